"""Product Catalog.

Query building, duplicate prevention and product orchestration on top
of async SQLAlchemy repositories.
"""

from storefront.catalog.categories import CategoryService, TagService
from storefront.catalog.models import Category, Product, Tag, product_tags
from storefront.catalog.query_builder import ProductQueryBuilder, QueryDescription
from storefront.catalog.repository import CategoryRepository, ProductRepository, TagRepository
from storefront.catalog.service import ProductPage, ProductService
from storefront.catalog.store import CategoryStore, ProductStore, TagStore
from storefront.catalog.uniqueness import GuardConfig, UniquenessGuard

__all__ = [
    # Models
    "Category",
    "Product",
    "Tag",
    "product_tags",
    # Query building
    "ProductQueryBuilder",
    "QueryDescription",
    # Data access
    "CategoryStore",
    "ProductStore",
    "TagStore",
    "CategoryRepository",
    "ProductRepository",
    "TagRepository",
    # Uniqueness
    "GuardConfig",
    "UniquenessGuard",
    # Services
    "CategoryService",
    "ProductPage",
    "ProductService",
    "TagService",
]
