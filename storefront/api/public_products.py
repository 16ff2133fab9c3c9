"""Public storefront endpoints.

Read-only product views with self-healing ``/{id}-{slug}`` URLs: a
request with an outdated slug is redirected to the current one.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from storefront.api.dependencies import ProductFiltersDep, ProductServiceDep, parse_flag
from storefront.api.responses import success
from storefront.api.schemas import JSendResponse, responses
from storefront.domain.exceptions import NotFoundError

router = APIRouter(prefix="/public/products", tags=["Public"])


def split_identifier(identifier: str) -> tuple[str, str | None]:
    """Split ``"12-blue-lamp"`` into ``("12", "blue-lamp")``.

    A bare id yields ``(id, None)``.
    """
    product_id, _, slug = identifier.partition("-")
    return product_id, slug or None


@router.get(
    "",
    response_model=JSendResponse,
    responses=responses(),
    summary="List products",
)
async def list_public_products(
    service: ProductServiceDep,
    filters: ProductFiltersDep,
    exclude_duplicates: Annotated[str | None, Query()] = "true",
) -> JSONResponse:
    """List products for the storefront, duplicates collapsed by default."""
    page = await service.list(filters, exclude_duplicates=parse_flag(exclude_duplicates))
    return success(page.to_dict())


@router.get(
    "/{product_id}/related",
    response_model=JSendResponse,
    responses=responses(404),
    summary="Related products",
)
async def related_products(
    product_id: int,
    service: ProductServiceDep,
    limit: Annotated[str | None, Query(description="Maximum products")] = None,
) -> JSONResponse:
    """Get products sharing the category or a tag."""
    related = await service.related(product_id, limit=limit or 4)
    return success(
        {
            "product_id": related.product_id,
            "items": [p.to_dict() for p in related.items],
            "duplicates_removed": related.duplicates_removed,
        }
    )


@router.get(
    "/{identifier}",
    response_model=JSendResponse,
    responses={**responses(404), 301: {"description": "Slug is outdated"}},
    summary="Get product by public URL",
)
async def get_public_product(identifier: str, service: ProductServiceDep) -> Response:
    """Get a product by ``{id}-{slug}``.

    Redirects with 301 when the slug part is not the current slug.
    """
    product_id, slug = split_identifier(identifier)
    if not product_id.isdigit():
        raise NotFoundError("Product", identifier)

    result = await service.get_public(product_id, slug)
    if result.redirect_to:
        return RedirectResponse(result.redirect_to, status_code=status.HTTP_301_MOVED_PERMANENTLY)
    return success(result.product.to_dict())
