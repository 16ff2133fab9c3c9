"""Shared fixtures and in-memory stores.

The in-memory stores implement the catalog store interfaces with plain
dictionaries so that the guard and the services can be tested without
a database. They mimic the unique indexes of the real schema, including
the per-category name key.
"""

import os
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

# Keep imports of the application from touching a real database
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest

from storefront.catalog.categories import CategoryService, TagService
from storefront.catalog.models import Category, Product, Tag
from storefront.catalog.query_builder import (
    Operator,
    OrGroup,
    Predicate,
    QueryDescription,
    SortDirection,
    TagMatchMode,
)
from storefront.catalog.service import ProductService
from storefront.catalog.slugs import name_key
from storefront.catalog.store import CategoryStore, ProductStore, TagStore
from storefront.catalog.uniqueness import GuardConfig, UniquenessGuard
from storefront.domain.exceptions import IntegrityViolationError, StoreError

EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


# ============================================================================
# In-memory Stores
# ============================================================================


class InMemoryNamedStore:
    """Dictionary-backed store for categories or tags."""

    model: type[Category] | type[Tag]

    def __init__(self) -> None:
        self.rows: dict[int, Any] = {}
        self._next_id = 1

    def add(self, name: str, **fields: Any) -> Any:
        """Insert a record synchronously."""
        record = self.model(id=self._next_id, name=name, created_at=EPOCH, updated_at=EPOCH, **fields)
        self.rows[record.id] = record
        self._next_id += 1
        return record

    async def find_all(self) -> Sequence[Any]:
        return [self.rows[k] for k in sorted(self.rows)]

    async def find_by_id(self, entity_id: int) -> Any | None:
        return self.rows.get(entity_id)

    async def find_by_ids(self, entity_ids: Sequence[int]) -> Sequence[Any]:
        return [self.rows[i] for i in entity_ids if i in self.rows]

    async def exists_by_id(self, entity_id: int) -> bool:
        return entity_id in self.rows

    async def create(self, data: dict[str, Any]) -> Any:
        if any(r.name == data["name"] for r in self.rows.values()):
            raise IntegrityViolationError("UNIQUE constraint failed: name")
        name = data["name"]
        return self.add(name, **{k: v for k, v in data.items() if k != "name"})

    async def update(self, entity_id: int, data: dict[str, Any]) -> Any:
        record = self.rows[entity_id]
        for key, value in data.items():
            setattr(record, key, value)
        return record

    async def delete(self, entity_id: int) -> None:
        self.rows.pop(entity_id, None)


class InMemoryCategoryStore(InMemoryNamedStore, CategoryStore):
    model = Category


class InMemoryTagStore(InMemoryNamedStore, TagStore):
    model = Tag


class InMemoryProductStore(ProductStore):
    """Dictionary-backed product store.

    Records every call in ``calls``. Setting ``fail_reads`` makes every
    lookup raise ``StoreError`` like an unreachable database would.
    """

    def __init__(self, categories: InMemoryCategoryStore, tags: InMemoryTagStore) -> None:
        self.categories = categories
        self.tags = tags
        self.rows: dict[int, Product] = {}
        self.calls: list[str] = []
        self.fail_reads = False
        self._next_id = 1

    # -- helpers -------------------------------------------------------

    def add(self, name: str, category_id: int | None = 1, **fields: Any) -> Product:
        """Insert a product synchronously, bypassing every check."""
        product_id = fields.pop("id", self._next_id)
        tag_ids = fields.pop("tag_ids", [])
        product = Product(
            id=product_id,
            name=name,
            category_id=category_id,
            price=fields.pop("price", Decimal("10.00")),
            stock=fields.pop("stock", 0),
            sku=fields.pop("sku", f"SKU-{product_id}"),
            slug=fields.pop("slug", f"product-{product_id}"),
            created_at=fields.pop("created_at", EPOCH + timedelta(minutes=product_id)),
            updated_at=EPOCH,
            **fields,
        )
        product.category = self.categories.rows.get(category_id)
        product.tags = [self.tags.rows[t] for t in tag_ids if t in self.tags.rows]
        self.rows[product.id] = product
        self._next_id = max(self._next_id, product.id) + 1
        return product

    def _read(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_reads:
            raise StoreError("The data store is unavailable")

    def _check_unique(self, product_id: int | None, data: dict[str, Any]) -> None:
        current = self.rows.get(product_id)
        category_id = data.get("category_id", current.category_id if current else None)
        for other in self.rows.values():
            if other.id == product_id:
                continue
            for key in ("sku", "slug"):
                if key in data and getattr(other, key) == data[key]:
                    raise IntegrityViolationError(f"UNIQUE constraint failed: products.{key}")
            if (
                "name" in data
                and category_id is not None
                and other.category_id == category_id
                and name_key(other.name) == name_key(data["name"])
            ):
                raise IntegrityViolationError(
                    "UNIQUE constraint failed: products.name_key, products.category_id"
                )

    # -- interface -----------------------------------------------------

    async def find_all(self) -> Sequence[Product]:
        self._read("find_all")
        return [self.rows[k] for k in sorted(self.rows)]

    async def find_by_id(self, product_id: int) -> Product | None:
        self._read("find_by_id")
        return self.rows.get(product_id)

    async def find_by_slug(self, slug: str) -> Product | None:
        self._read("find_by_slug")
        return next((p for p in self.rows.values() if p.slug == slug), None)

    async def find_by_sku(self, sku: str) -> Product | None:
        self._read("find_by_sku")
        return next((p for p in self.rows.values() if p.sku == sku), None)

    async def exists_by_id(self, product_id: int) -> bool:
        self._read("exists_by_id")
        return product_id in self.rows

    async def create(self, data: dict[str, Any], tag_ids: Sequence[int] | None = None) -> Product:
        self.calls.append("create")
        self._check_unique(None, data)
        fields = dict(data)
        name = fields.pop("name")
        category_id = fields.pop("category_id", None)
        fields.setdefault("created_at", datetime.now(timezone.utc))
        return self.add(name, category_id, tag_ids=list(tag_ids or []), **fields)

    async def update(
        self,
        product_id: int,
        data: dict[str, Any],
        tag_ids: Sequence[int] | None = None,
    ) -> Product:
        self.calls.append("update")
        self._check_unique(product_id, data)
        product = self.rows[product_id]
        for key, value in data.items():
            setattr(product, key, value)
        product.category = self.categories.rows.get(product.category_id)
        if tag_ids is not None:
            product.tags = [self.tags.rows[t] for t in tag_ids if t in self.tags.rows]
        return product

    async def delete(self, product_id: int) -> None:
        self.calls.append("delete")
        self.rows.pop(product_id, None)

    async def set_tags(self, product_id: int, tag_ids: Sequence[int]) -> None:
        self.calls.append("set_tags")
        self.rows[product_id].tags = [self.tags.rows[t] for t in tag_ids if t in self.tags.rows]

    async def query(self, description: QueryDescription) -> tuple[list[Product], int]:
        self._read("query")
        rows = [p for p in self.rows.values() if all(_matches(p, c) for c in description.conditions)]

        tags = description.relation("tags")
        if tags is not None and tags.filtering:
            wanted = set(tags.ids)
            if tags.match_mode is TagMatchMode.ALL:
                rows = [p for p in rows if wanted <= {t.id for t in p.tags}]
            else:
                rows = [p for p in rows if wanted & {t.id for t in p.tags}]

        reverse = description.ordering.direction is SortDirection.DESC
        rows.sort(key=lambda p: (getattr(p, description.ordering.field), p.id), reverse=reverse)

        total = len(rows)
        end = None if description.limit is None else description.offset + description.limit
        return rows[description.offset:end], total

    async def find_related(self, product: Product, limit: int) -> Sequence[Product]:
        self._read("find_related")
        tag_ids = {t.id for t in product.tags}
        related = [
            p
            for p in self.rows.values()
            if p.id != product.id
            and (
                (product.category_id is not None and p.category_id == product.category_id)
                or tag_ids & {t.id for t in p.tags}
            )
        ]
        return related[:limit]


def _matches(product: Product, condition: Predicate | OrGroup) -> bool:
    if isinstance(condition, OrGroup):
        return any(_matches(product, p) for p in condition.predicates)

    value = getattr(product, condition.field)
    if condition.operator is Operator.CONTAINS:
        return value is not None and str(condition.value).lower() in str(value).lower()
    if value is None:
        return False
    if condition.operator is Operator.EQ:
        return value == condition.value
    if condition.operator is Operator.GTE:
        return value >= condition.value
    return value <= condition.value


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def category_store() -> InMemoryCategoryStore:
    """Category store with categories 1 (Lighting) and 2 (Furniture)."""
    store = InMemoryCategoryStore()
    store.add("Lighting")
    store.add("Furniture")
    return store


@pytest.fixture
def tag_store() -> InMemoryTagStore:
    """Tag store with tags 1 (sale), 2 (new) and 3 (eco)."""
    store = InMemoryTagStore()
    for name in ("sale", "new", "eco"):
        store.add(name)
    return store


@pytest.fixture
def product_store(
    category_store: InMemoryCategoryStore,
    tag_store: InMemoryTagStore,
) -> InMemoryProductStore:
    """Empty product store wired to the category and tag stores."""
    return InMemoryProductStore(category_store, tag_store)


@pytest.fixture
def guard(product_store: InMemoryProductStore) -> UniquenessGuard:
    """Guard with default configuration."""
    return UniquenessGuard(product_store, GuardConfig())


@pytest.fixture
def product_service(
    product_store: InMemoryProductStore,
    category_store: InMemoryCategoryStore,
    tag_store: InMemoryTagStore,
    guard: UniquenessGuard,
) -> ProductService:
    """Product service over the in-memory stores."""
    return ProductService(product_store, category_store, tag_store, guard=guard)


@pytest.fixture
def category_service(category_store: InMemoryCategoryStore) -> CategoryService:
    """Category service over the in-memory store."""
    return CategoryService(category_store)


@pytest.fixture
def tag_service(tag_store: InMemoryTagStore) -> TagService:
    """Tag service over the in-memory store."""
    return TagService(tag_store)
