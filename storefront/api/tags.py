"""Tag API endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies import TagServiceDep
from storefront.api.responses import success
from storefront.api.schemas import JSendResponse, TagRequest, responses

router = APIRouter(prefix="/tags", tags=["Tags"])


@router.get("", response_model=JSendResponse, summary="List tags")
async def list_tags(service: TagServiceDep) -> JSONResponse:
    """List every tag."""
    tags = await service.list()
    return success([t.to_dict() for t in tags])


@router.get("/{tag_id}", response_model=JSendResponse, responses=responses(404), summary="Get tag")
async def get_tag(tag_id: int, service: TagServiceDep) -> JSONResponse:
    """Get a tag by id."""
    tag = await service.get(tag_id)
    return success(tag.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=JSendResponse,
    responses=responses(401, 409),
    summary="Create tag",
)
async def create_tag(request: TagRequest, service: TagServiceDep) -> JSONResponse:
    """Create a tag with a unique name."""
    tag = await service.create(request.model_dump(exclude_unset=True))
    return success(tag.to_dict(), status_code=status.HTTP_201_CREATED)


@router.put(
    "/{tag_id}",
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Rename tag",
)
async def update_tag(tag_id: int, request: TagRequest, service: TagServiceDep) -> JSONResponse:
    """Rename a tag."""
    tag = await service.update(tag_id, request.model_dump(exclude_unset=True))
    return success(tag.to_dict())


@router.delete(
    "/{tag_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Delete tag",
)
async def delete_tag(tag_id: int, service: TagServiceDep) -> JSONResponse:
    """Delete a tag and detach it from every product."""
    await service.delete(tag_id)
    return success(None)
