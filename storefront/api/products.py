"""Product API endpoints.

Provides product CRUD, listing with filters, duplicate detection and
find-or-create.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from storefront.api.dependencies import ProductFiltersDep, ProductServiceDep, parse_flag
from storefront.api.responses import success
from storefront.api.schemas import (
    JSendResponse,
    ProductCreateRequest,
    ProductUpdateRequest,
    responses,
)

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=JSendResponse,
    responses=responses(),
    summary="List products",
    description="List products with filtering, sorting and pagination.",
)
async def list_products(
    service: ProductServiceDep,
    filters: ProductFiltersDep,
    exclude_duplicates: Annotated[
        str | None, Query(description="Collapse same-name products in one category")
    ] = None,
) -> JSONResponse:
    """List products.

    Args:
        service: Product service.
        filters: Raw filter parameters.
        exclude_duplicates: Flag enabling duplicate filtering.

    Returns:
        Page of products with pagination metadata.
    """
    page = await service.list(filters, exclude_duplicates=parse_flag(exclude_duplicates))
    return success(page.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Create product",
)
async def create_product(
    request: ProductCreateRequest,
    service: ProductServiceDep,
) -> JSONResponse:
    """Create a product.

    The slug is derived from the name and a SKU is generated when none
    is given. Duplicates are rejected with 409 and a suggested fix.
    """
    product = await service.create(request.model_dump(exclude_unset=True))
    return success(product.to_dict(), status_code=status.HTTP_201_CREATED)


@router.post(
    "/find-or-create",
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Find or create product",
)
async def find_or_create_product(
    request: ProductCreateRequest,
    service: ProductServiceDep,
) -> JSONResponse:
    """Return the product with the same name and category, creating it if needed."""
    result = await service.find_or_create(request.model_dump(exclude_unset=True))
    return success(
        {
            "product": result.product.to_dict(),
            "created": result.created,
            "duplicate_prevented": result.duplicate_prevented,
        },
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
    )


@router.get(
    "/duplicates",
    response_model=JSendResponse,
    responses=responses(401),
    summary="Detect duplicate products",
)
async def detect_duplicates(service: ProductServiceDep) -> JSONResponse:
    """Report every group of products sharing a name within a category."""
    report = await service.detect_all_duplicates()
    return success(report.to_dict())


@router.get(
    "/{product_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Get product",
)
async def get_product(product_id: int, service: ProductServiceDep) -> JSONResponse:
    """Get a product with its category and tags."""
    product = await service.get(product_id)
    return success(product.to_dict())


@router.put(
    "/{product_id}",
    response_model=JSendResponse,
    responses=responses(401, 404, 409),
    summary="Update product",
)
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    service: ProductServiceDep,
) -> JSONResponse:
    """Update a product.

    Args:
        product_id: Product identifier.
        request: Fields to change.
        service: Product service.

    Returns:
        Updated product.
    """
    product = await service.update(product_id, request.model_dump(exclude_unset=True))
    return success(product.to_dict())


@router.delete(
    "/{product_id}",
    response_model=JSendResponse,
    responses=responses(401, 404),
    summary="Delete product",
)
async def delete_product(product_id: int, service: ProductServiceDep) -> JSONResponse:
    """Delete a product and its tag associations."""
    await service.delete(product_id)
    return success(None)
