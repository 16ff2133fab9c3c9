"""Catalog repositories for database operations.

SQLAlchemy implementations of the store interfaces in
``storefront.catalog.store``. Every write commits its own transaction,
so a product row and its tag associations are stored together or not
at all. Driver errors never leave this module: constraint violations
become ``IntegrityViolationError``, everything else ``StoreError``.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.catalog.models import Category, Product, Tag
from storefront.catalog.query_builder import (
    Operator,
    OrGroup,
    Predicate,
    QueryDescription,
    RelationSpec,
    SortDirection,
    TagMatchMode,
)
from storefront.catalog.slugs import name_key
from storefront.catalog.store import CategoryStore, ProductStore, TagStore
from storefront.domain.exceptions import IntegrityViolationError, StoreError

logger = structlog.get_logger()


_PRODUCT_COLUMNS = {
    "id": Product.id,
    "name": Product.name,
    "description": Product.description,
    "price": Product.price,
    "stock": Product.stock,
    "brand": Product.brand,
    "category_id": Product.category_id,
    "sku": Product.sku,
    "slug": Product.slug,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}

_PRODUCT_RELATIONS = {
    "category": Product.category,
    "tags": Product.tags,
}


class SessionRepository:
    """Shared session handling and error translation."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @asynccontextmanager
    async def _translate_errors(self, operation: str, **context: Any) -> AsyncIterator[None]:
        """Roll back and re-raise driver errors as domain errors."""
        try:
            yield
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Database constraint violated",
                operation=operation,
                error=str(e.orig),
                **context,
            )
            raise IntegrityViolationError("A database constraint was violated", cause=e) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Data store failure", operation=operation, **context)
            raise StoreError("The data store is unavailable", cause=e) from e

    async def _commit(self) -> None:
        await self.session.commit()


# ============================================================================
# Products
# ============================================================================


class ProductRepository(SessionRepository, ProductStore):
    """Repository for Product database operations.

    Example usage:
        async with async_session_factory() as session:
            repo = ProductRepository(session)
            description = ProductQueryBuilder().search("lamp").build()
            products, total = await repo.query(description)
    """

    def _select(self) -> Select:
        return select(Product).options(
            selectinload(Product.category),
            selectinload(Product.tags),
        )

    async def _one(self, *conditions: Any) -> Product | None:
        result = await self.session.execute(
            self._select().where(*conditions).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _tags(self, tag_ids: Sequence[int]) -> list[Tag]:
        if not tag_ids:
            return []
        result = await self.session.execute(select(Tag).where(Tag.id.in_(list(tag_ids))))
        return list(result.scalars().all())

    async def find_all(self) -> Sequence[Product]:
        """Get every product ordered by id."""
        async with self._translate_errors("product.find_all"):
            result = await self.session.execute(self._select().order_by(Product.id))
            return result.scalars().all()

    async def find_by_id(self, product_id: int) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product with category and tags loaded, None if not found.
        """
        async with self._translate_errors("product.find_by_id", product_id=product_id):
            return await self._one(Product.id == product_id)

    async def find_by_slug(self, slug: str) -> Product | None:
        """Get product by slug."""
        async with self._translate_errors("product.find_by_slug", slug=slug):
            return await self._one(Product.slug == slug)

    async def find_by_sku(self, sku: str) -> Product | None:
        """Get product by SKU."""
        async with self._translate_errors("product.find_by_sku", sku=sku):
            return await self._one(Product.sku == sku)

    async def exists_by_id(self, product_id: int) -> bool:
        """Check whether a product exists."""
        async with self._translate_errors("product.exists_by_id", product_id=product_id):
            result = await self.session.execute(
                select(Product.id).where(Product.id == product_id)
            )
            return result.scalar_one_or_none() is not None

    async def create(self, data: dict[str, Any], tag_ids: Sequence[int] | None = None) -> Product:
        """Insert a product together with its tag associations.

        ``name_key`` is derived from the name, so the database rejects a
        second product with the same normalized name in one category.

        Args:
            data: Column values.
            tag_ids: Tags to associate.

        Returns:
            Stored product with relations loaded.

        Raises:
            IntegrityViolationError: If a unique or foreign key constraint fails.
            StoreError: If the database fails.
        """
        async with self._translate_errors("product.create", name=data.get("name")):
            product = Product(**{**data, "name_key": name_key(data.get("name"))})
            product.tags = await self._tags(tag_ids or [])
            self.session.add(product)
            await self._commit()
            product_id = product.id
            return await self._one(Product.id == product_id)

    async def update(
        self,
        product_id: int,
        data: dict[str, Any],
        tag_ids: Sequence[int] | None = None,
    ) -> Product:
        """Apply field changes and, when given, replace the tag set.

        Args:
            product_id: Product ID.
            data: Changed column values.
            tag_ids: New complete tag set, None to keep the current one.

        Returns:
            Updated product with relations loaded.
        """
        async with self._translate_errors("product.update", product_id=product_id):
            product = await self._one(Product.id == product_id)
            if product is None:
                raise StoreError(f"Product {product_id} disappeared during update")
            for key, value in data.items():
                setattr(product, key, value)
            if "name" in data:
                product.name_key = name_key(data["name"])
            if tag_ids is not None:
                product.tags = await self._tags(tag_ids)
            await self._commit()
            return await self._one(Product.id == product_id)

    async def delete(self, product_id: int) -> None:
        """Delete a product and its tag associations."""
        async with self._translate_errors("product.delete", product_id=product_id):
            product = await self._one(Product.id == product_id)
            if product is None:
                return
            await self.session.delete(product)
            await self._commit()

    async def set_tags(self, product_id: int, tag_ids: Sequence[int]) -> None:
        """Replace the full tag set of a product."""
        async with self._translate_errors("product.set_tags", product_id=product_id):
            product = await self._one(Product.id == product_id)
            if product is None:
                return
            product.tags = await self._tags(tag_ids)
            await self._commit()

    async def query(self, description: QueryDescription) -> tuple[list[Product], int]:
        """Execute a query description.

        Args:
            description: Output of ``ProductQueryBuilder.build``.

        Returns:
            Tuple of (rows for the requested page, total matching rows).
        """
        conditions = [_condition(c) for c in description.conditions]
        for relation in description.relations:
            if relation.filtering:
                conditions.append(_relation_filter(relation))

        filtered = select(Product.id)
        if conditions:
            filtered = filtered.where(and_(*conditions))

        column = _PRODUCT_COLUMNS[description.ordering.field]
        if description.ordering.direction is SortDirection.ASC:
            order = (column.asc(), Product.id.asc())
        else:
            order = (column.desc(), Product.id.desc())

        stmt = select(Product).where(Product.id.in_(filtered)).order_by(*order)
        for relation in description.relations:
            attribute = _PRODUCT_RELATIONS.get(relation.name)
            if attribute is None:
                logger.debug("Unknown relation ignored", relation=relation.name)
                continue
            stmt = stmt.options(selectinload(attribute))
        if description.limit is not None:
            stmt = stmt.limit(description.limit)
        if description.offset:
            stmt = stmt.offset(description.offset)

        async with self._translate_errors("product.query"):
            total = await self.session.execute(
                select(func.count()).select_from(filtered.subquery())
            )
            rows = await self.session.execute(stmt)
            return list(rows.scalars().all()), total.scalar_one()

    async def find_related(self, product: Product, limit: int) -> Sequence[Product]:
        """Get products sharing the category or any tag, in random order."""
        conditions = []
        if product.category_id is not None:
            conditions.append(Product.category_id == product.category_id)
        tag_ids = [tag.id for tag in product.tags]
        if tag_ids:
            conditions.append(Product.tags.any(Tag.id.in_(tag_ids)))
        if not conditions:
            return []

        stmt = (
            self._select()
            .where(Product.id != product.id, or_(*conditions))
            .order_by(func.random())
            .limit(limit)
        )
        async with self._translate_errors("product.find_related", product_id=product.id):
            result = await self.session.execute(stmt)
            return result.scalars().all()


def _condition(condition: Predicate | OrGroup) -> Any:
    if isinstance(condition, OrGroup):
        return or_(*(_condition(p) for p in condition.predicates))

    column = _PRODUCT_COLUMNS[condition.field]
    if condition.operator is Operator.EQ:
        return column == condition.value
    if condition.operator is Operator.GTE:
        return column >= condition.value
    if condition.operator is Operator.LTE:
        return column <= condition.value
    return column.icontains(str(condition.value), autoescape=True)


def _relation_filter(relation: RelationSpec) -> Any:
    if relation.name == "tags":
        if relation.match_mode is TagMatchMode.ALL:
            return and_(*(Product.tags.any(Tag.id == tag_id) for tag_id in relation.ids))
        return Product.tags.any(Tag.id.in_(relation.ids))
    if relation.name == "category":
        return Product.category_id.in_(relation.ids)
    raise ValueError(f"Cannot filter on relation: {relation.name}")


# ============================================================================
# Categories and Tags
# ============================================================================


class _NamedRepository(SessionRepository):
    """CRUD shared by the simple name-keyed tables."""

    model: type[Category] | type[Tag]
    entity: str

    async def find_all(self) -> Sequence[Any]:
        async with self._translate_errors(f"{self.entity}.find_all"):
            result = await self.session.execute(select(self.model).order_by(self.model.id))
            return result.scalars().all()

    async def find_by_id(self, entity_id: int) -> Any | None:
        async with self._translate_errors(f"{self.entity}.find_by_id", entity_id=entity_id):
            return await self.session.get(self.model, entity_id, populate_existing=True)

    async def find_by_ids(self, entity_ids: Sequence[int]) -> Sequence[Any]:
        if not entity_ids:
            return []
        async with self._translate_errors(f"{self.entity}.find_by_ids"):
            result = await self.session.execute(
                select(self.model).where(self.model.id.in_(list(entity_ids)))
            )
            return result.scalars().all()

    async def exists_by_id(self, entity_id: int) -> bool:
        return await self.find_by_id(entity_id) is not None

    async def create(self, data: dict[str, Any]) -> Any:
        async with self._translate_errors(f"{self.entity}.create", name=data.get("name")):
            entity = self.model(**data)
            self.session.add(entity)
            await self._commit()
            return entity

    async def update(self, entity_id: int, data: dict[str, Any]) -> Any:
        async with self._translate_errors(f"{self.entity}.update", entity_id=entity_id):
            entity = await self.session.get(self.model, entity_id)
            if entity is None:
                raise StoreError(f"{self.entity} {entity_id} disappeared during update")
            for key, value in data.items():
                setattr(entity, key, value)
            await self._commit()
            return entity

    async def delete(self, entity_id: int) -> None:
        async with self._translate_errors(f"{self.entity}.delete", entity_id=entity_id):
            entity = await self.session.get(self.model, entity_id)
            if entity is None:
                return
            await self.session.delete(entity)
            await self._commit()


class CategoryRepository(_NamedRepository, CategoryStore):
    """Repository for Category database operations.

    Deleting a category leaves its products uncategorized through the
    ``ON DELETE SET NULL`` rule on ``products.category_id``.
    """

    model = Category
    entity = "category"


class TagRepository(_NamedRepository, TagStore):
    """Repository for Tag database operations."""

    model = Tag
    entity = "tag"
