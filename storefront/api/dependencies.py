"""FastAPI dependencies.

Wires a request-scoped database session into repositories and services.
"""

from typing import Annotated, Any

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.accounts.repository import UserRepository
from storefront.accounts.service import UserService
from storefront.catalog.categories import CategoryService, TagService
from storefront.catalog.repository import CategoryRepository, ProductRepository, TagRepository
from storefront.catalog.service import ProductService
from storefront.infrastructure.database import get_session

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_product_service(session: SessionDep) -> ProductService:
    """Get product service bound to the request session."""
    return ProductService(
        ProductRepository(session),
        CategoryRepository(session),
        TagRepository(session),
    )


def get_category_service(session: SessionDep) -> CategoryService:
    """Get category service bound to the request session."""
    return CategoryService(CategoryRepository(session))


def get_tag_service(session: SessionDep) -> TagService:
    """Get tag service bound to the request session."""
    return TagService(TagRepository(session))


def get_user_service(session: SessionDep) -> UserService:
    """Get user service bound to the request session."""
    return UserService(UserRepository(session))


ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
CategoryServiceDep = Annotated[CategoryService, Depends(get_category_service)]
TagServiceDep = Annotated[TagService, Depends(get_tag_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def product_filters(
    request: Request,
    category: Annotated[str | None, Query(description="Category id")] = None,
    tags: Annotated[str | None, Query(description="Tag ids, comma-separated or repeated")] = None,
    price_min: Annotated[str | None, Query(description="Minimum price, inclusive")] = None,
    price_max: Annotated[str | None, Query(description="Maximum price, inclusive")] = None,
    search: Annotated[str | None, Query(description="Text in name or description")] = None,
    sku: Annotated[str | None, Query(description="Substring of the SKU")] = None,
    min_stock: Annotated[str | None, Query(description="Minimum stock")] = None,
    page: Annotated[str | None, Query(description="Page number, 1-based")] = None,
    limit: Annotated[str | None, Query(description="Items per page")] = None,
    sort_by: Annotated[str | None, Query(description="Sort field")] = None,
    sort_order: Annotated[str | None, Query(description="ASC or DESC")] = None,
) -> dict[str, Any]:
    """Collect list filters as raw strings.

    Values are parsed leniently by the query builder, so a malformed
    number is ignored rather than rejected.
    """
    repeated_tags = request.query_params.getlist("tags")
    return {
        "category": category,
        "tags": ",".join(repeated_tags) if len(repeated_tags) > 1 else tags,
        "price_min": price_min,
        "price_max": price_max,
        "search": search,
        "sku": sku,
        "min_stock": min_stock,
        "page": page,
        "limit": limit,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


ProductFiltersDep = Annotated[dict[str, Any], Depends(product_filters)]


def parse_flag(value: str | None) -> bool:
    """Read a boolean query flag."""
    return value is not None and value.strip().lower() in ("1", "true", "yes", "on")
