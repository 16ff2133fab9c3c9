"""Duplicate prevention for products.

The guard checks a candidate product against the existing catalog
before it is written, ranks every collision it finds by severity and
proposes a fix. It also generates collision-free names and slugs and
scans the whole catalog for groups of duplicates.

The guard is a fast pre-check for good error messages. Unique indexes
in the database remain the authority; the product service maps their
violations onto the same ``ConflictError`` shape.

Example usage:
    guard = UniquenessGuard(product_store)
    collisions = await guard.check_candidate(
        Candidate(name="Widget", category_id=1),
        exclude_id=7,
    )
    if collisions:
        print(collisions[0].message)
"""

import unicodedata
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from storefront.catalog.models import Product
from storefront.catalog.slugs import generate_sku, slugify, timestamp_suffix
from storefront.catalog.store import ProductStore
from storefront.domain.exceptions import ConflictError, StoreError, ValidationUnavailableError
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Rules and Configuration
# ============================================================================


class DuplicateRule(str, Enum):
    """Uniqueness rules checked by the guard."""

    NAME = "name"
    NAME_CATEGORY = "name_category"
    SLUG = "slug"
    SKU = "sku"

    @property
    def fields(self) -> tuple[str, ...]:
        """Candidate fields the rule reads."""
        return {
            DuplicateRule.NAME: ("name",),
            DuplicateRule.NAME_CATEGORY: ("name", "category_id"),
            DuplicateRule.SLUG: ("slug",),
            DuplicateRule.SKU: ("sku",),
        }[self]


class Severity(str, Enum):
    """Collision severity, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more severe."""
        return {"critical": 3, "high": 2, "medium": 1, "low": 0}[self.value]


DEFAULT_SEVERITIES: dict[DuplicateRule, Severity] = {
    DuplicateRule.NAME_CATEGORY: Severity.CRITICAL,
    DuplicateRule.SKU: Severity.CRITICAL,
    DuplicateRule.SLUG: Severity.HIGH,
    DuplicateRule.NAME: Severity.HIGH,
}

# Rules backed by unique indexes on the products table
STORAGE_RULES = frozenset(
    {DuplicateRule.NAME_CATEGORY, DuplicateRule.SLUG, DuplicateRule.SKU}
)


@dataclass
class GuardConfig:
    """Guard behaviour.

    Attributes:
        case_sensitive: Compare names and slugs case-sensitively.
        trim_whitespace: Strip surrounding whitespace before comparing.
        exclude_fields: Fields to skip; a rule reading any of them is off.
        rules: Rules to run.
        severities: Severity per rule.
        max_attempts: Attempts before name/slug generation falls back
            to a timestamp suffix.
    """

    case_sensitive: bool = False
    trim_whitespace: bool = True
    exclude_fields: frozenset[str] = frozenset()
    rules: frozenset[DuplicateRule] = frozenset(DuplicateRule)
    severities: dict[DuplicateRule, Severity] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITIES)
    )
    max_attempts: int = field(default_factory=lambda: settings.uniqueness_max_attempts)

    def is_enabled(self, rule: DuplicateRule) -> bool:
        """Check whether a rule should run."""
        if rule not in self.rules:
            return False
        return not any(f in self.exclude_fields for f in rule.fields)

    def severity_of(self, rule: DuplicateRule) -> Severity:
        """Get the configured severity of a rule."""
        return self.severities.get(rule, DEFAULT_SEVERITIES[rule])


# ============================================================================
# Value Types
# ============================================================================


@dataclass(frozen=True)
class Candidate:
    """Field values of a product about to be written.

    Every field is optional; rules whose fields are missing are skipped.
    """

    name: str | None = None
    category_id: int | None = None
    slug: str | None = None
    sku: str | None = None
    brand: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Candidate":
        """Build a candidate from a field mapping."""
        return cls(
            name=data.get("name"),
            category_id=data.get("category_id"),
            slug=data.get("slug"),
            sku=data.get("sku"),
            brand=data.get("brand"),
        )

    @classmethod
    def from_product(cls, product: Product) -> "Candidate":
        """Build a candidate from a stored product."""
        return cls(
            name=product.name,
            category_id=product.category_id,
            slug=product.slug,
            sku=product.sku,
            brand=product.brand,
        )


@dataclass(frozen=True)
class Collision:
    """A uniqueness rule that a candidate would break.

    Attributes:
        rule: Rule that fired.
        field: Offending field(s).
        value: Offending value.
        existing_id: Id of the product already holding the value.
        severity: Severity of the rule.
        message: Human-readable explanation.
        suggestion: Actionable hint.
        alternative_name: Collision-free name, for name rules.
    """

    rule: DuplicateRule
    field: str
    value: str
    existing_id: Any
    severity: Severity
    message: str
    suggestion: str
    alternative_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.rule.value,
            "field": self.field,
            "value": self.value,
            "existing_id": self.existing_id,
            "severity": self.severity.value,
            "suggestion": self.suggestion,
            "alternative_name": self.alternative_name,
        }

    def to_conflict(self) -> ConflictError:
        """Convert to the error raised to callers."""
        auto_fix = {"name": self.alternative_name} if self.alternative_name else None
        return ConflictError(
            self.message,
            duplicate=self.to_dict(),
            suggestion=self.suggestion,
            auto_fix=auto_fix,
        )


@dataclass
class DuplicateGroup:
    """Products sharing the same normalized name and category."""

    key: str
    products: list[dict[str, Any]]

    @property
    def count(self) -> int:
        """Number of products in the group."""
        return len(self.products)

    @property
    def suggestion(self) -> str:
        """Consolidation hint."""
        return (
            f"Consolidate into a single product or delete "
            f"{self.count - 1} duplicate(s)"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "count": self.count,
            "products": self.products,
            "suggestion": self.suggestion,
        }


@dataclass
class DuplicateReport:
    """Result of a full catalog scan.

    Attributes:
        total_products: Products scanned.
        groups: Groups with more than one member.
        complete: False when the scan could not read the catalog.
    """

    total_products: int
    groups: list[DuplicateGroup] = field(default_factory=list)
    complete: bool = True

    @property
    def summary(self) -> str:
        """One-line summary."""
        if not self.complete:
            return "Duplicate detection unavailable"
        return f"Found {len(self.groups)} group(s) of duplicate products"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_products": self.total_products,
            "duplicate_groups": len(self.groups),
            "groups": [g.to_dict() for g in self.groups],
            "complete": self.complete,
            "summary": self.summary,
        }


@dataclass
class FilterResult:
    """Result of removing duplicates from a list of products."""

    filtered: list[Product]
    removed: int

    @property
    def duplicates_found(self) -> bool:
        """Whether anything was removed."""
        return self.removed > 0


# ============================================================================
# Guard
# ============================================================================


class UniquenessGuard:
    """Detects and resolves product uniqueness collisions.

    All string comparison happens on values normalized by the guard
    itself (Unicode NFC, trimmed, case-folded by default), so results do
    not depend on database collation.
    """

    def __init__(self, store: ProductStore, config: GuardConfig | None = None) -> None:
        """Initialize guard.

        Args:
            store: Product data access.
            config: Guard configuration.
        """
        self.store = store
        self.config = config or GuardConfig()

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, value: Any) -> str | None:
        """Normalize a value for comparison."""
        if value is None:
            return None
        text = unicodedata.normalize("NFC", str(value))
        if self.config.trim_whitespace:
            text = text.strip()
        if not self.config.case_sensitive:
            text = text.casefold()
        return text

    def group_key(self, name: Any, category_id: Any) -> tuple[str | None, Any]:
        """Key identifying a (name, category) pair."""
        return (self.normalize(name), category_id)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def check_candidate(
        self,
        candidate: Candidate,
        exclude_id: Any = None,
    ) -> list[Collision]:
        """Run every enabled rule against the catalog.

        Args:
            candidate: Prospective field values.
            exclude_id: Product to ignore, for update-in-place.

        Returns:
            Collisions sorted by descending severity; empty when valid.

        Raises:
            ValidationUnavailableError: If the catalog cannot be read.
        """
        try:
            collisions = await self._collect(candidate, exclude_id)
        except StoreError as e:
            logger.warning("Duplicate check unavailable", error=str(e))
            raise ValidationUnavailableError(
                "Duplicate validation is temporarily unavailable", cause=e
            ) from e

        collisions.sort(key=lambda c: c.severity.rank, reverse=True)
        if collisions:
            logger.info(
                "Product collisions detected",
                rules=[c.rule.value for c in collisions],
                existing_ids=[c.existing_id for c in collisions],
            )
        return collisions

    async def validate(self, candidate: Candidate, exclude_id: Any = None) -> None:
        """Raise the most severe collision, if any.

        Raises:
            ConflictError: If the candidate collides.
            ValidationUnavailableError: If the catalog cannot be read.
        """
        collisions = await self.check_candidate(candidate, exclude_id)
        if collisions:
            raise collisions[0].to_conflict()

    async def explain_violation(
        self,
        candidate: Candidate,
        exclude_id: Any = None,
    ) -> list[Collision]:
        """Find what a write rejected by a unique index collided with.

        Runs the rules the database enforces, with the database's name
        normalization, whatever rules this guard is configured with.

        Args:
            candidate: Full field values of the rejected write.
            exclude_id: Product being updated, if any.

        Returns:
            Collisions sorted by descending severity.

        Raises:
            ValidationUnavailableError: If the catalog cannot be read.
        """
        config = replace(
            self.config,
            rules=STORAGE_RULES,
            exclude_fields=frozenset(),
            case_sensitive=False,
            trim_whitespace=True,
        )
        return await UniquenessGuard(self.store, config).check_candidate(candidate, exclude_id)

    async def _collect(self, candidate: Candidate, exclude_id: Any) -> list[Collision]:
        collisions: list[Collision] = []
        name_rules = [
            rule
            for rule in (DuplicateRule.NAME_CATEGORY, DuplicateRule.NAME)
            if self._applies(rule, candidate)
        ]

        if name_rules:
            products = list(await self.store.find_all())
            for rule in name_rules:
                existing = self._find_name_match(products, rule, candidate, exclude_id)
                if existing is not None:
                    alternative = self._next_free_name(
                        products,
                        candidate.name or "",
                        candidate.category_id,
                        exclude_id,
                    )
                    collisions.append(self._collision(rule, candidate, existing, alternative))

        if self._applies(DuplicateRule.SLUG, candidate):
            existing = await self.store.find_by_slug(self.normalize(candidate.slug) or "")
            if existing is not None and not _same_id(existing.id, exclude_id):
                collisions.append(self._collision(DuplicateRule.SLUG, candidate, existing))

        if self._applies(DuplicateRule.SKU, candidate):
            existing = await self.store.find_by_sku(str(candidate.sku).strip())
            if existing is not None and not _same_id(existing.id, exclude_id):
                collisions.append(self._collision(DuplicateRule.SKU, candidate, existing))

        return collisions

    def _applies(self, rule: DuplicateRule, candidate: Candidate) -> bool:
        if not self.config.is_enabled(rule):
            return False
        return all(
            getattr(candidate, f) not in (None, "") for f in rule.fields
        )

    def _find_name_match(
        self,
        products: Iterable[Product],
        rule: DuplicateRule,
        candidate: Candidate,
        exclude_id: Any,
    ) -> Product | None:
        wanted = self.normalize(candidate.name)
        for product in products:
            if _same_id(product.id, exclude_id):
                continue
            if self.normalize(product.name) != wanted:
                continue
            if rule is DuplicateRule.NAME_CATEGORY and product.category_id != candidate.category_id:
                continue
            return product
        return None

    def _collision(
        self,
        rule: DuplicateRule,
        candidate: Candidate,
        existing: Product,
        alternative_name: str | None = None,
    ) -> Collision:
        if rule is DuplicateRule.NAME_CATEGORY:
            field_name = "name, category_id"
            value = f"{candidate.name} in category {candidate.category_id}"
            message = (
                f'A product named "{candidate.name}" already exists in the same '
                f"category (ID: {existing.id})"
            )
        else:
            field_name = rule.fields[0]
            value = str(getattr(candidate, field_name))
            message = (
                f'A product with {field_name} "{value}" already exists (ID: {existing.id})'
            )

        return Collision(
            rule=rule,
            field=field_name,
            value=value,
            existing_id=existing.id,
            severity=self.config.severity_of(rule),
            message=message,
            suggestion=self.suggestion_for(rule, candidate, alternative_name),
            alternative_name=alternative_name,
        )

    def suggestion_for(
        self,
        rule: DuplicateRule,
        candidate: Candidate,
        alternative_name: str | None = None,
    ) -> str:
        """Human-actionable fix for a collision."""
        if rule is DuplicateRule.NAME:
            options = [f'"{alternative_name or f"{candidate.name} (1)"}"']
            options.append(f'"{candidate.name} - {candidate.brand or "new"}"')
            options.append(f'"{candidate.name} {datetime.now(timezone.utc).year}"')
            return f"Try a different name, for example {', '.join(options)}"
        if rule is DuplicateRule.NAME_CATEGORY:
            hint = f' (e.g. "{alternative_name}")' if alternative_name else ""
            return (
                "The same name cannot be used twice in one category. "
                f"Change the name{hint} or choose a different category."
            )
        if rule is DuplicateRule.SLUG:
            return "A disambiguated slug with a numeric suffix will be generated automatically."
        return "SKUs must be unique. Regenerate the SKU or use a different code."

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_unique_name(
        self,
        base_name: str,
        category_id: int | None = None,
        exclude_id: Any = None,
    ) -> str:
        """Find a name free under the enabled name rules.

        Tries ``base_name``, then ``base_name (1)``, ``base_name (2)``
        and so on. After ``max_attempts`` tries a timestamp suffix is
        appended instead.

        Args:
            base_name: Desired name.
            category_id: Category the product belongs to.
            exclude_id: Product to ignore, for renames.

        Returns:
            Collision-free name.
        """
        if not base_name:
            return base_name
        products = list(await self._read(self.store.find_all))
        return self._next_free_name(products, base_name, category_id, exclude_id)

    def _next_free_name(
        self,
        products: Sequence[Product],
        base_name: str,
        category_id: int | None,
        exclude_id: Any,
    ) -> str:
        check_global = self.config.is_enabled(DuplicateRule.NAME)
        taken = set()
        for product in products:
            if _same_id(product.id, exclude_id):
                continue
            if check_global or product.category_id == category_id:
                taken.add(self.normalize(product.name))

        base = base_name.strip() if self.config.trim_whitespace else base_name
        for attempt in range(self.config.max_attempts):
            name = base if attempt == 0 else f"{base} ({attempt})"
            if self.normalize(name) not in taken:
                return name

        logger.warning("Name attempts exhausted, using timestamp", base_name=base)
        return f"{base}_{timestamp_suffix()}"

    async def generate_unique_slug(self, name: str, exclude_id: Any = None) -> str:
        """Derive a collision-free slug from a name.

        Tries the plain slug, then ``slug-1``, ``slug-2`` and so on; after
        ``max_attempts`` tries a timestamp suffix is appended instead.

        Args:
            name: Source name.
            exclude_id: Product whose own slug does not count as taken.

        Returns:
            Unique URL-safe slug.
        """
        base = slugify(name) or "product"
        for attempt in range(self.config.max_attempts):
            slug = base if attempt == 0 else f"{base}-{attempt}"
            existing = await self._read(self.store.find_by_slug, slug)
            if existing is None or _same_id(existing.id, exclude_id):
                return slug

        logger.warning("Slug attempts exhausted, using timestamp", base_slug=base)
        return f"{base}-{timestamp_suffix()}"

    async def generate_unique_sku(self, prefix: str | None = None) -> str:
        """Generate a SKU not used by any product."""
        sku = generate_sku(prefix)
        for _ in range(self.config.max_attempts):
            if await self._read(self.store.find_by_sku, sku) is None:
                return sku
            sku = generate_sku(prefix)
        return f"{sku}-{timestamp_suffix()}"

    # ------------------------------------------------------------------
    # Catalog-wide detection
    # ------------------------------------------------------------------

    async def detect_all_duplicates(self) -> DuplicateReport:
        """Group the whole catalog by normalized (name, category).

        Single pass over the products with a dictionary keyed by the
        normalized pair.

        Returns:
            Report listing every group with more than one member.

        Raises:
            ValidationUnavailableError: If the catalog cannot be read.
        """
        products = list(await self._read(self.store.find_all))

        buckets: dict[tuple[str | None, Any], list[Product]] = {}
        for product in products:
            buckets.setdefault(self.group_key(product.name, product.category_id), []).append(product)

        groups = [
            DuplicateGroup(
                key=f"{name}-{category_id}",
                products=[
                    {
                        "id": p.id,
                        "name": p.name,
                        "category_id": p.category_id,
                        "slug": p.slug,
                        "created_at": p.created_at,
                    }
                    for p in members
                ],
            )
            for (name, category_id), members in buckets.items()
            if len(members) > 1
        ]

        logger.info(
            "Duplicate scan complete",
            total_products=len(products),
            duplicate_groups=len(groups),
        )
        return DuplicateReport(total_products=len(products), groups=groups)

    def filter_duplicates(self, products: Sequence[Product]) -> FilterResult:
        """Keep one product per normalized (name, category).

        The most recently created product of each group takes the
        position of the group's first occurrence.
        """
        kept: dict[tuple[str | None, Any], int] = {}
        result: list[Product] = []

        for product in products:
            key = self.group_key(product.name, product.category_id)
            index = kept.get(key)
            if index is None:
                kept[key] = len(result)
                result.append(product)
            elif _newer(product, result[index]):
                result[index] = product

        return FilterResult(filtered=result, removed=len(products) - len(result))

    async def _read(self, lookup, *args: Any) -> Any:
        try:
            return await lookup(*args)
        except StoreError as e:
            raise ValidationUnavailableError(
                "Duplicate validation is temporarily unavailable", cause=e
            ) from e


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)


def _newer(candidate: Product, current: Product) -> bool:
    if candidate.created_at is None or current.created_at is None:
        return False
    return _as_utc(candidate.created_at) > _as_utc(current.created_at)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
