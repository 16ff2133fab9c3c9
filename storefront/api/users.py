"""User management endpoints. All of them require a bearer token."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies import UserServiceDep
from storefront.api.responses import success
from storefront.api.schemas import JSendResponse, RegisterRequest, UserUpdateRequest, responses

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=JSendResponse, responses=responses(401), summary="List users")
async def list_users(service: UserServiceDep) -> JSONResponse:
    users = await service.list()
    return success([u.to_dict() for u in users])


@router.get(
    "/{user_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Get user",
)
async def get_user(user_id: int, service: UserServiceDep) -> JSONResponse:
    user = await service.get(user_id)
    return success(user.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=JSendResponse,
    responses=responses(401, 409),
    summary="Create user",
)
async def create_user(request: RegisterRequest, service: UserServiceDep) -> JSONResponse:
    user = await service.create(request.model_dump(exclude_unset=True))
    return success(user.to_dict(), status_code=status.HTTP_201_CREATED)


@router.put(
    "/{user_id}",
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Update user",
)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    service: UserServiceDep,
) -> JSONResponse:
    user = await service.update(user_id, request.model_dump(exclude_unset=True))
    return success(user.to_dict())


@router.delete(
    "/{user_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Delete user",
)
async def delete_user(user_id: int, service: UserServiceDep) -> JSONResponse:
    await service.delete(user_id)
    return success(None)
