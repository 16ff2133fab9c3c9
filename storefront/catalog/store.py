"""Data-access interfaces for the catalog.

Services depend on these abstractions and receive a concrete store at
construction time. ``storefront.catalog.repository`` implements them on
SQLAlchemy; tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from storefront.catalog.models import Category, Product, Tag
from storefront.catalog.query_builder import QueryDescription


class ProductStore(ABC):
    """Persistence operations for products.

    Products returned by lookups have ``category`` and ``tags`` loaded.
    ``create`` and ``update`` write the product row and its tag
    associations as a single unit: either both are stored or neither is.
    """

    @abstractmethod
    async def find_all(self) -> Sequence[Product]:
        """Return every product."""

    @abstractmethod
    async def find_by_id(self, product_id: int) -> Product | None:
        """Return the product with the given id."""

    @abstractmethod
    async def find_by_slug(self, slug: str) -> Product | None:
        """Return the product with the given slug."""

    @abstractmethod
    async def find_by_sku(self, sku: str) -> Product | None:
        """Return the product with the given SKU."""

    @abstractmethod
    async def exists_by_id(self, product_id: int) -> bool:
        """Check whether a product exists."""

    @abstractmethod
    async def create(self, data: dict[str, Any], tag_ids: Sequence[int] | None = None) -> Product:
        """Insert a product and its tag associations."""

    @abstractmethod
    async def update(
        self,
        product_id: int,
        data: dict[str, Any],
        tag_ids: Sequence[int] | None = None,
    ) -> Product:
        """Apply field changes; replace all tags when ``tag_ids`` is not None."""

    @abstractmethod
    async def delete(self, product_id: int) -> None:
        """Delete a product and its tag associations."""

    @abstractmethod
    async def set_tags(self, product_id: int, tag_ids: Sequence[int]) -> None:
        """Replace the full tag set of a product."""

    @abstractmethod
    async def query(self, description: QueryDescription) -> tuple[list[Product], int]:
        """Execute a description; return the page of rows and the total count."""

    @abstractmethod
    async def find_related(self, product: Product, limit: int) -> Sequence[Product]:
        """Return products sharing the category or any tag of ``product``."""


class CategoryStore(ABC):
    """Persistence operations for categories."""

    @abstractmethod
    async def find_all(self) -> Sequence[Category]:
        """Return every category ordered by id."""

    @abstractmethod
    async def find_by_id(self, category_id: int) -> Category | None:
        """Return the category with the given id."""

    @abstractmethod
    async def find_by_ids(self, category_ids: Sequence[int]) -> Sequence[Category]:
        """Return the categories that exist among the given ids."""

    @abstractmethod
    async def exists_by_id(self, category_id: int) -> bool:
        """Check whether a category exists."""

    @abstractmethod
    async def create(self, data: dict[str, Any]) -> Category:
        """Insert a category."""

    @abstractmethod
    async def update(self, category_id: int, data: dict[str, Any]) -> Category:
        """Apply field changes to a category."""

    @abstractmethod
    async def delete(self, category_id: int) -> None:
        """Delete a category."""


class TagStore(ABC):
    """Persistence operations for tags."""

    @abstractmethod
    async def find_all(self) -> Sequence[Tag]:
        """Return every tag ordered by id."""

    @abstractmethod
    async def find_by_id(self, tag_id: int) -> Tag | None:
        """Return the tag with the given id."""

    @abstractmethod
    async def find_by_ids(self, tag_ids: Sequence[int]) -> Sequence[Tag]:
        """Return the tags that exist among the given ids."""

    @abstractmethod
    async def exists_by_id(self, tag_id: int) -> bool:
        """Check whether a tag exists."""

    @abstractmethod
    async def create(self, data: dict[str, Any]) -> Tag:
        """Insert a tag."""

    @abstractmethod
    async def update(self, tag_id: int, data: dict[str, Any]) -> Tag:
        """Apply field changes to a tag."""

    @abstractmethod
    async def delete(self, tag_id: int) -> None:
        """Delete a tag."""
