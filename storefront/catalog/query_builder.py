"""Product query builder.

Turns loosely typed filter parameters (usually straight from a query
string) into an immutable ``QueryDescription`` that a repository can
execute. Nothing here touches the database.

Parsing is lenient on purpose: a value that cannot be read as a number
is treated as if it had not been sent, and the default applies.

Example usage:
    description = (
        ProductQueryBuilder()
        .filter_by_category("5")
        .filter_by_price("10", None)
        .search("lamp")
        .paginate(page="2", page_size="20")
        .order_by("price", "asc")
        .build()
    )
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import structlog

from storefront.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Description Types
# ============================================================================


class SortDirection(str, Enum):
    """Ordering direction."""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: Any) -> "SortDirection":
        """Read a direction, defaulting to descending."""
        if isinstance(value, SortDirection):
            return value
        if isinstance(value, str) and value.strip().lower() in ("asc", "ascending"):
            return cls.ASC
        return cls.DESC


class Operator(str, Enum):
    """Comparison operators understood by repositories."""

    EQ = "eq"
    GTE = "gte"
    LTE = "lte"
    CONTAINS = "contains"  # case-insensitive substring


class TagMatchMode(str, Enum):
    """How several tag ids combine when filtering."""

    ANY = "any"
    ALL = "all"

    @classmethod
    def parse(cls, value: Any) -> "TagMatchMode":
        """Read a match mode, defaulting to ANY."""
        if isinstance(value, TagMatchMode):
            return value
        if isinstance(value, str) and value.strip().lower() == "all":
            return cls.ALL
        return cls.ANY


@dataclass(frozen=True)
class Predicate:
    """A single ``field <operator> value`` condition."""

    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class OrGroup:
    """Conditions where any one match is enough."""

    predicates: tuple[Predicate, ...]


@dataclass(frozen=True)
class RelationSpec:
    """A related collection to fetch with each product.

    Attributes:
        name: Relation name ("category" or "tags").
        filtering: True when the join restricts rows (inner join
            semantics), False for pure enrichment (left join).
        ids: Related ids the rows must reference when filtering.
        match_mode: ANY or ALL when several ids are given.
    """

    name: str
    filtering: bool = False
    ids: tuple[int, ...] = ()
    match_mode: TagMatchMode = TagMatchMode.ANY


@dataclass(frozen=True)
class Ordering:
    """Sort field and direction."""

    field: str
    direction: SortDirection


@dataclass(frozen=True)
class QueryDescription:
    """Executable description of a product query.

    Top-level conditions are combined with AND; an ``OrGroup`` matches
    when any of its predicates does.

    Attributes:
        conditions: Predicates and OR groups.
        relations: De-duplicated relation specs.
        limit: Maximum rows, None for no limit.
        offset: Rows to skip.
        ordering: Sort order.
    """

    conditions: tuple[Predicate | OrGroup, ...] = ()
    relations: tuple[RelationSpec, ...] = ()
    limit: int | None = None
    offset: int = 0
    ordering: Ordering = field(
        default_factory=lambda: Ordering(DEFAULT_SORT_FIELD, SortDirection.DESC)
    )

    @property
    def page(self) -> int:
        """Current page number (1-indexed)."""
        if not self.limit:
            return 1
        return self.offset // self.limit + 1

    @property
    def page_size(self) -> int | None:
        """Items per page (alias for limit)."""
        return self.limit

    def relation(self, name: str) -> RelationSpec | None:
        """Get the relation spec with the given name."""
        return next((r for r in self.relations if r.name == name), None)

    def total_pages(self, total: int) -> int:
        """Calculate total pages for a result count."""
        if not self.limit:
            return 1 if total else 0
        return math.ceil(total / self.limit)


# ============================================================================
# Lenient Parsing
# ============================================================================


# Largest value a database integer column holds
MAX_DB_INT = 2**63 - 1

SORTABLE_FIELDS = ("id", "name", "price", "stock", "sku", "created_at", "updated_at")
DEFAULT_SORT_FIELD = "created_at"

_FIELD_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def parse_int(value: Any) -> int | None:
    """Read an integer, returning None for anything unreadable.

    Values outside the signed 64-bit range are unreadable too.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        number = int(value)
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            parsed = parse_decimal(value)
            if parsed is None:
                return None
            number = int(parsed)
    return number if -MAX_DB_INT - 1 <= number <= MAX_DB_INT else None


def parse_decimal(value: Any) -> Decimal | None:
    """Read a finite decimal, returning None for anything unreadable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    return number if number.is_finite() else None


def parse_id_list(value: Any) -> list[int]:
    """Read ids from a list or a comma-separated string.

    Unreadable entries are skipped and duplicates removed, keeping the
    first occurrence.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        raw = value
    else:
        raw = [value]

    ids: list[int] = []
    for item in raw:
        number = parse_int(item)
        if number is not None and number not in ids:
            ids.append(number)
    return ids


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ============================================================================
# Builder
# ============================================================================


class ProductQueryBuilder:
    """Fluent builder for product ``QueryDescription`` objects.

    Each filter method records its intent and returns the builder.
    Calling the same filter twice replaces the earlier value. ``build``
    resolves the recorded state into an immutable description and
    collapses repeated relation requests into one spec per relation.
    """

    def __init__(
        self,
        default_page_size: int | None = None,
        max_page_size: int | None = None,
        tag_match_mode: TagMatchMode | str | None = None,
    ) -> None:
        """Initialize builder.

        Args:
            default_page_size: Page size used when none or an invalid one is given.
            max_page_size: Upper bound for page size.
            tag_match_mode: Default ANY/ALL mode for tag filtering.
        """
        self.default_page_size = default_page_size or settings.default_page_size
        self.max_page_size = max_page_size or settings.max_page_size
        self.tag_match_mode = TagMatchMode.parse(tag_match_mode or settings.tag_match_mode)

        self._conditions: dict[str, Predicate | OrGroup] = {}
        self._relations: list[RelationSpec] = []
        self._limit: int | None = None
        self._offset: int = 0
        self._ordering: Ordering | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any], **kwargs: Any) -> "ProductQueryBuilder":
        """Create a builder with every recognised parameter applied.

        Recognised keys: ``category`` / ``category_id``, ``tags`` /
        ``tag_ids``, ``tag_mode``, ``price_min`` / ``min_price``,
        ``price_max`` / ``max_price``, ``search``, ``sku``, ``min_stock``,
        ``page``, ``limit`` / ``page_size``, ``sort_by``, ``sort_order``.

        Category and tags are always fetched for enrichment.

        Args:
            params: Raw parameter mapping.
            **kwargs: Passed to the constructor.

        Returns:
            Configured builder.
        """

        def first(*keys: str) -> Any:
            for key in keys:
                value = params.get(key)
                if not _blank(value):
                    return value
            return None

        builder = cls(**kwargs)
        builder.include("category").include("tags")
        builder.filter_by_category(first("category", "category_id", "categoryId"))
        builder.filter_by_tags(
            first("tags", "tag_ids", "tagIds"),
            mode=first("tag_mode"),
        )
        builder.filter_by_price(
            first("price_min", "min_price", "minPrice"),
            first("price_max", "max_price", "maxPrice"),
        )
        builder.search(first("search", "q"))
        builder.filter_by_sku(first("sku"))
        builder.filter_by_min_stock(first("min_stock", "minStock"))
        builder.paginate(first("page"), first("limit", "page_size", "pageSize"))
        builder.order_by(first("sort_by", "sortBy"), first("sort_order", "sortOrder"))
        return builder

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def filter_by_category(self, category_id: Any) -> "ProductQueryBuilder":
        """Restrict to one category.

        The category itself is joined for enrichment only; the
        restriction is an equality on ``category_id``.
        """
        value = parse_int(category_id)
        if value is None:
            return self

        self._conditions["category_id"] = Predicate("category_id", Operator.EQ, value)
        self._relations.append(RelationSpec("category", filtering=False))
        return self

    def filter_by_tags(self, tag_ids: Any, mode: Any = None) -> "ProductQueryBuilder":
        """Restrict to products carrying the given tags.

        Args:
            tag_ids: List of ids or comma-separated string.
            mode: "any" (default from settings) or "all".
        """
        ids = parse_id_list(tag_ids)
        if not ids:
            return self

        match_mode = TagMatchMode.parse(mode) if mode is not None else self.tag_match_mode
        self._relations.append(
            RelationSpec("tags", filtering=True, ids=tuple(ids), match_mode=match_mode)
        )
        return self

    def filter_by_price(self, minimum: Any = None, maximum: Any = None) -> "ProductQueryBuilder":
        """Bound the price inclusively on either side."""
        low = parse_decimal(minimum)
        high = parse_decimal(maximum)

        if low is not None:
            self._conditions["price_min"] = Predicate("price", Operator.GTE, low)
        if high is not None:
            self._conditions["price_max"] = Predicate("price", Operator.LTE, high)
        return self

    def search(self, text: Any) -> "ProductQueryBuilder":
        """Match text against name or description."""
        if _blank(text):
            return self

        term = str(text).strip()
        self._conditions["search"] = OrGroup(
            (
                Predicate("name", Operator.CONTAINS, term),
                Predicate("description", Operator.CONTAINS, term),
            )
        )
        return self

    def filter_by_sku(self, sku: Any) -> "ProductQueryBuilder":
        """Substring match on SKU."""
        if _blank(sku):
            return self

        self._conditions["sku"] = Predicate("sku", Operator.CONTAINS, str(sku).strip())
        return self

    def filter_by_min_stock(self, min_stock: Any = 0) -> "ProductQueryBuilder":
        """Lower-bound stock, defaulting to zero."""
        value = parse_int(min_stock)
        self._conditions["min_stock"] = Predicate(
            "stock", Operator.GTE, value if value is not None else 0
        )
        return self

    def include(self, relation: str) -> "ProductQueryBuilder":
        """Fetch a relation without restricting rows."""
        self._relations.append(RelationSpec(relation, filtering=False))
        return self

    # ------------------------------------------------------------------
    # Pagination and ordering
    # ------------------------------------------------------------------

    def paginate(self, page: Any = 1, page_size: Any = None) -> "ProductQueryBuilder":
        """Set page and page size, clamping both to at least 1."""
        page_number = parse_int(page)
        size = parse_int(page_size)

        page_number = max(1, page_number if page_number is not None else 1)
        size = max(1, size if size is not None else self.default_page_size)
        size = min(size, self.max_page_size)
        # Offset must still fit a database integer
        page_number = min(page_number, MAX_DB_INT // size + 1)

        self._limit = size
        self._offset = (page_number - 1) * size
        return self

    def order_by(self, sort_field: Any = None, direction: Any = None) -> "ProductQueryBuilder":
        """Set ordering; unknown fields fall back to ``created_at``."""
        name = sort_field.strip() if isinstance(sort_field, str) else None
        name = _FIELD_ALIASES.get(name, name) if name else None

        if name not in SORTABLE_FIELDS:
            if name:
                logger.debug("Unsupported sort field, using default", sort_by=name)
            name = DEFAULT_SORT_FIELD

        self._ordering = Ordering(name, SortDirection.parse(direction))
        return self

    # ------------------------------------------------------------------
    # Terminal
    # ------------------------------------------------------------------

    def build(self) -> QueryDescription:
        """Resolve the builder into an immutable description.

        Relations requested more than once collapse into a single spec.
        A filtering request always wins over an enrichment request for
        the same relation; otherwise the latest request wins.

        Returns:
            Query description.
        """
        relations: dict[str, RelationSpec] = {}
        for spec in self._relations:
            existing = relations.get(spec.name)
            if existing is not None and existing.filtering and not spec.filtering:
                continue
            relations[spec.name] = spec

        description = QueryDescription(
            conditions=tuple(self._conditions.values()),
            relations=tuple(relations.values()),
            limit=self._limit,
            offset=self._offset,
            ordering=self._ordering or Ordering(DEFAULT_SORT_FIELD, SortDirection.DESC),
        )

        logger.debug(
            "Product query built",
            conditions=[_describe(c) for c in description.conditions],
            relations=[r.name for r in description.relations],
            limit=description.limit,
            offset=description.offset,
            order=f"{description.ordering.field} {description.ordering.direction.value}",
        )
        return description


def _describe(condition: Predicate | OrGroup) -> str:
    if isinstance(condition, OrGroup):
        return " OR ".join(_describe(p) for p in condition.predicates)
    return f"{condition.field} {condition.operator.value} {condition.value}"
