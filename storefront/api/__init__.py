"""API layer module.

Contains FastAPI routers, request schemas and JSend response helpers.
"""

from storefront.api.auth import router as auth_router
from storefront.api.categories import router as categories_router
from storefront.api.health import router as health_router
from storefront.api.products import router as products_router
from storefront.api.public_products import router as public_products_router
from storefront.api.tags import router as tags_router
from storefront.api.users import router as users_router

__all__ = [
    "auth_router",
    "categories_router",
    "health_router",
    "products_router",
    "public_products_router",
    "tags_router",
    "users_router",
]
