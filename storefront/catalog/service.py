"""Product orchestration service.

Sequences the uniqueness guard, slug/SKU generation and the query
builder around an injected product store. Failures are raised as
domain exceptions; the API layer turns them into JSend envelopes.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

import structlog

from storefront.catalog.models import Product
from storefront.catalog.query_builder import ProductQueryBuilder, parse_decimal, parse_id_list, parse_int
from storefront.catalog.store import CategoryStore, ProductStore, TagStore
from storefront.catalog.uniqueness import (
    Candidate,
    DuplicateReport,
    DuplicateRule,
    UniquenessGuard,
)
from storefront.domain.exceptions import (
    ConflictError,
    IntegrityViolationError,
    NotFoundError,
    ValidationError,
    ValidationUnavailableError,
)
from storefront.infrastructure.config import settings

logger = structlog.get_logger()

REQUIRED_CREATE_FIELDS = ("name", "price", "category_id")
UPDATABLE_FIELDS = ("name", "description", "price", "stock", "brand", "category_id", "sku")

# Exclusive upper bound of a Numeric(10, 2) column
MAX_PRICE = Decimal("100000000")


# ============================================================================
# Results
# ============================================================================


@dataclass
class ProductPage:
    """One page of a product listing.

    Attributes:
        items: Products on this page.
        total_count: Products matching the filters across all pages.
        page: Current page (1-indexed).
        page_size: Items per page.
        total_pages: ``ceil(total_count / page_size)``.
        duplicates_removed: Duplicates collapsed across the whole result.
    """

    items: list[Product]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    duplicates_removed: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "items": [p.to_dict() for p in self.items],
            "total_count": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "duplicates_removed": self.duplicates_removed,
        }


@dataclass
class FindOrCreateResult:
    """Outcome of ``find_or_create``."""

    product: Product
    created: bool
    duplicate_prevented: bool


@dataclass
class PublicProduct:
    """Product looked up by a public URL.

    ``redirect_to`` is set when the requested slug is stale.
    """

    product: Product
    redirect_to: str | None = None


@dataclass
class RelatedProducts:
    """Products related to a given one."""

    product_id: int
    items: list[Product] = field(default_factory=list)
    duplicates_removed: int = 0


# ============================================================================
# Service
# ============================================================================


class ProductService:
    """Service for product operations.

    Example usage:
        async with async_session_factory() as session:
            service = ProductService(
                ProductRepository(session),
                CategoryRepository(session),
                TagRepository(session),
            )
            product = await service.create(
                {"name": "Widget", "price": "9.99", "category_id": 1}
            )
    """

    def __init__(
        self,
        products: ProductStore,
        categories: CategoryStore,
        tags: TagStore,
        guard: UniquenessGuard | None = None,
        query_builder_options: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize service.

        Args:
            products: Product data access.
            categories: Category data access.
            tags: Tag data access.
            guard: Uniqueness guard, built on ``products`` when omitted.
            query_builder_options: Keyword arguments for ``ProductQueryBuilder``.
        """
        self.products = products
        self.categories = categories
        self.tags = tags
        self.guard = guard or UniquenessGuard(products)
        self.query_builder_options = dict(query_builder_options or {})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, product_id: Any) -> Product:
        """Get a product with category and tags.

        Raises:
            NotFoundError: If the product does not exist.
        """
        product = await self._require(product_id)
        return product

    async def list(
        self,
        filters: Mapping[str, Any] | None = None,
        exclude_duplicates: bool = False,
    ) -> ProductPage:
        """List products matching loosely typed filters.

        Args:
            filters: Raw filter parameters, see ``ProductQueryBuilder.from_params``.
            exclude_duplicates: Collapse same-name-same-category rows. The
                whole filtered result is collapsed before paging, so the
                totals count distinct products.

        Returns:
            Page of products with pagination metadata.
        """
        builder = ProductQueryBuilder.from_params(filters or {}, **self.query_builder_options)
        description = builder.build()

        removed = 0
        if exclude_duplicates:
            everything, _ = await self.products.query(replace(description, limit=None, offset=0))
            result = self.guard.filter_duplicates(everything)
            removed = result.removed
            total = len(result.filtered)
            end = None if description.limit is None else description.offset + description.limit
            items = result.filtered[description.offset:end]
        else:
            items, total = await self.products.query(description)

        return ProductPage(
            items=list(items),
            total_count=total,
            page=description.page,
            page_size=description.page_size or len(items),
            total_pages=description.total_pages(total),
            duplicates_removed=removed,
        )

    async def get_public(self, product_id: Any, slug: str | None = None) -> PublicProduct:
        """Resolve a public product URL.

        Args:
            product_id: Product ID from the URL.
            slug: Slug from the URL, possibly outdated.

        Returns:
            The product, with ``redirect_to`` set when ``slug`` is not current.
        """
        product = await self._require(product_id)
        if slug is not None and slug != product.slug:
            return PublicProduct(product, redirect_to=f"/public/products/{product.id}-{product.slug}")
        return PublicProduct(product)

    async def related(self, product_id: Any, limit: Any = 4) -> RelatedProducts:
        """Get products sharing the category or a tag.

        Same-name-same-category duplicates are collapsed. ``limit`` is
        capped at the maximum page size.
        """
        size = min(max(1, parse_int(limit) or 4), settings.max_page_size)
        product = await self._require(product_id)
        # Over-fetch so that duplicate filtering can still fill the page
        candidates = await self.products.find_related(product, size * 3)
        result = self.guard.filter_duplicates(candidates)
        return RelatedProducts(
            product_id=product.id,
            items=result.filtered[:size],
            duplicates_removed=result.removed,
        )

    async def detect_all_duplicates(self) -> DuplicateReport:
        """Scan the catalog for same-name-same-category groups.

        Detection only: when the store cannot be read the failure is
        logged and an incomplete report is returned.
        """
        try:
            return await self.guard.detect_all_duplicates()
        except ValidationUnavailableError as e:
            logger.error("Duplicate scan failed", error=str(e))
            return DuplicateReport(total_products=0, complete=False)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> Product:
        """Create a product.

        Steps: validate input, run the uniqueness guard, check that the
        category and tags exist, derive slug and SKU, then store the
        product and its tags in one transaction.

        Args:
            data: Product fields plus optional ``tag_ids``.

        Returns:
            Created product with category and tags.

        Raises:
            ValidationError: If required fields are missing or invalid.
            ConflictError: If the product would be a duplicate.
            NotFoundError: If the category or a tag does not exist.
            StoreError: If the data store fails.
        """
        values, tag_ids = self._clean(data, creating=True)

        await self.guard.validate(Candidate.from_mapping(values))
        await self._require_category(values["category_id"])
        await self._require_tags(tag_ids)

        values["slug"] = await self.guard.generate_unique_slug(values["name"])
        if not values.get("sku"):
            values["sku"] = await self.guard.generate_unique_sku()

        try:
            product = await self.products.create(values, tag_ids or [])
        except IntegrityViolationError as e:
            raise await self._conflict_from(e, Candidate.from_mapping(values)) from e

        logger.info("Product created", product_id=product.id, sku=product.sku, slug=product.slug)
        return product

    async def update(self, product_id: Any, data: Mapping[str, Any]) -> Product:
        """Update a product.

        The guard runs again when the name, category or SKU changes,
        against the merged state and ignoring the product itself. A
        renamed product gets a fresh slug. ``tag_ids`` replaces the full
        tag set; an empty list clears it.

        Raises:
            NotFoundError: If the product, category or a tag does not exist.
            ValidationError: If a field is invalid.
            ConflictError: If the change would create a duplicate.
        """
        current = await self._require(product_id)
        values, tag_ids = self._clean(data, creating=False)

        changes = {k: v for k, v in values.items() if getattr(current, k) != v}
        merged = Candidate(
            name=changes.get("name", current.name),
            category_id=changes.get("category_id", current.category_id),
            sku=changes.get("sku"),
            brand=changes.get("brand", current.brand),
        )

        if {"name", "category_id", "sku"} & changes.keys():
            await self.guard.validate(merged, exclude_id=current.id)
        if changes.get("category_id") is not None:
            await self._require_category(changes["category_id"])
        if tag_ids is not None:
            await self._require_tags(tag_ids)

        if "name" in changes:
            changes["slug"] = await self.guard.generate_unique_slug(
                changes["name"], exclude_id=current.id
            )

        written = Candidate(
            name=merged.name,
            category_id=merged.category_id,
            slug=changes.get("slug", current.slug),
            sku=changes.get("sku", current.sku),
        )
        try:
            if changes:
                product = await self.products.update(current.id, changes, tag_ids)
            elif tag_ids is not None:
                await self.products.set_tags(current.id, tag_ids)
                product = await self._require(current.id)
            else:
                product = current
        except IntegrityViolationError as e:
            raise await self._conflict_from(e, written, exclude_id=current.id) from e

        logger.info(
            "Product updated",
            product_id=product.id,
            fields=sorted(changes),
            tags_replaced=tag_ids is not None,
        )
        return product

    async def delete(self, product_id: Any) -> None:
        """Delete a product and its tag associations.

        Raises:
            NotFoundError: If the product does not exist.
        """
        product = await self._require(product_id)
        await self.products.delete(product.id)
        logger.info("Product deleted", product_id=product.id)

    async def find_or_create(self, data: Mapping[str, Any]) -> FindOrCreateResult:
        """Return the product with the same name and category, or create it.

        Raises:
            ValidationError: If name or category is missing.
        """
        name = data.get("name")
        category_id = parse_int(data.get("category_id"))
        if not isinstance(name, str) or not name.strip() or category_id is None:
            raise ValidationError(
                "Fields name and category_id are required", fields=["name", "category_id"]
            )

        collisions = await self.guard.check_candidate(Candidate(name=name, category_id=category_id))
        for collision in collisions:
            if collision.rule is DuplicateRule.NAME_CATEGORY:
                existing = await self._require(collision.existing_id)
                logger.info("Duplicate creation prevented", product_id=existing.id)
                return FindOrCreateResult(existing, created=False, duplicate_prevented=True)

        product = await self.create(data)
        return FindOrCreateResult(product, created=True, duplicate_prevented=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require(self, product_id: Any) -> Product:
        parsed = parse_int(product_id)
        product = await self.products.find_by_id(parsed) if parsed is not None else None
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def _require_category(self, category_id: int) -> None:
        if not await self.categories.exists_by_id(category_id):
            raise NotFoundError("Category", category_id)

    async def _require_tags(self, tag_ids: Sequence[int] | None) -> None:
        if not tag_ids:
            return
        found = {tag.id for tag in await self.tags.find_by_ids(tag_ids)}
        missing = [tag_id for tag_id in tag_ids if tag_id not in found]
        if missing:
            raise NotFoundError("Tag", missing)

    async def _conflict_from(
        self,
        error: IntegrityViolationError,
        candidate: Candidate,
        exclude_id: Any = None,
    ) -> ConflictError:
        """Describe the product a unique index rejection collided with.

        Uses the same shape as the guard's pre-check. A generic conflict
        is returned only when the colliding row cannot be found, e.g.
        because it was deleted in the meantime.
        """
        logger.warning(
            "Unique constraint rejected product write",
            name=candidate.name,
            error=str(error.cause),
        )
        try:
            collisions = await self.guard.explain_violation(candidate, exclude_id)
        except ValidationUnavailableError as e:
            logger.warning("Could not identify colliding product", error=str(e))
            collisions = []

        if collisions:
            return collisions[0].to_conflict()
        return ConflictError(
            "A product with the same unique fields already exists",
            duplicate={"type": "constraint"},
        )

    def _clean(
        self,
        data: Mapping[str, Any],
        creating: bool,
    ) -> tuple[dict[str, Any], Sequence[int] | None]:
        """Validate and coerce incoming product fields.

        Returns:
            Tuple of (column values, tag ids or None when not supplied).
        """
        if creating:
            missing = [f for f in REQUIRED_CREATE_FIELDS if _is_missing(data.get(f))]
            if missing:
                raise ValidationError(
                    f"Missing required fields: {', '.join(missing)}", fields=missing
                )

        values: dict[str, Any] = {}
        invalid: list[str] = []
        for key in UPDATABLE_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key == "name":
                if not isinstance(value, str) or not value.strip():
                    invalid.append(key)
                    continue
                value = value.strip()
            elif key == "price":
                value = parse_decimal(value)
                if value is None or not 0 <= value < MAX_PRICE:
                    invalid.append(key)
                    continue
                value = value.quantize(Decimal("0.01"))
            elif key == "stock":
                value = parse_int(value)
                if value is None or value < 0:
                    invalid.append(key)
                    continue
            elif key == "category_id":
                if value is not None:
                    value = parse_int(value)
                    if value is None:
                        invalid.append(key)
                        continue
            elif key == "sku":
                value = str(value).strip() if value is not None else None
                if not value:
                    if not creating:
                        invalid.append(key)
                    continue
            values[key] = value

        if invalid:
            raise ValidationError(f"Invalid values for fields: {', '.join(invalid)}", fields=invalid)

        tag_ids = None
        if "tag_ids" in data and data["tag_ids"] is not None:
            tag_ids = parse_id_list(data["tag_ids"])
        return values, tag_ids


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
