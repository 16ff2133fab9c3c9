"""Authentication endpoints.

Register and log in; both return the user and a bearer token.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies import UserServiceDep
from storefront.api.responses import success
from storefront.api.schemas import JSendResponse, LoginRequest, RegisterRequest, responses

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=JSendResponse,
    responses=responses(409),
    summary="Register",
)
async def register(request: RegisterRequest, service: UserServiceDep) -> JSONResponse:
    """Create an account.

    Args:
        request: Name, email and password.
        service: User service.

    Returns:
        The new user and an access token.
    """
    result = await service.register(request.model_dump(exclude_unset=True))
    return success(result.to_dict(), status_code=status.HTTP_201_CREATED)


@router.post(
    "/login",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Log in",
)
async def login(request: LoginRequest, service: UserServiceDep) -> JSONResponse:
    """Exchange email and password for an access token."""
    result = await service.login(request.email, request.password)
    return success(result.to_dict())
