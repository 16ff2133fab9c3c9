"""Category API endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies import CategoryServiceDep
from storefront.api.responses import success
from storefront.api.schemas import CategoryRequest, JSendResponse, responses

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=JSendResponse, summary="List categories")
async def list_categories(service: CategoryServiceDep) -> JSONResponse:
    """List every category."""
    categories = await service.list()
    return success([c.to_dict() for c in categories])


@router.get(
    "/{category_id}",
    response_model=JSendResponse,
    responses=responses(404),
    summary="Get category",
)
async def get_category(category_id: int, service: CategoryServiceDep) -> JSONResponse:
    """Get a category by id."""
    category = await service.get(category_id)
    return success(category.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=JSendResponse,
    responses=responses(401, 409),
    summary="Create category",
)
async def create_category(request: CategoryRequest, service: CategoryServiceDep) -> JSONResponse:
    """Create a category with a unique name."""
    category = await service.create(request.model_dump(exclude_unset=True))
    return success(category.to_dict(), status_code=status.HTTP_201_CREATED)


@router.put(
    "/{category_id}",
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Update category",
)
async def update_category(
    category_id: int,
    request: CategoryRequest,
    service: CategoryServiceDep,
) -> JSONResponse:
    """Rename or describe a category."""
    category = await service.update(category_id, request.model_dump(exclude_unset=True))
    return success(category.to_dict())


@router.delete(
    "/{category_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Delete category",
)
async def delete_category(category_id: int, service: CategoryServiceDep) -> JSONResponse:
    """Delete a category; its products become uncategorized."""
    await service.delete(category_id)
    return success(None)
