"""Tests for the product query builder."""

from decimal import Decimal

import pytest

from storefront.catalog.query_builder import (
    DEFAULT_SORT_FIELD,
    MAX_DB_INT,
    Operator,
    OrGroup,
    Predicate,
    ProductQueryBuilder,
    QueryDescription,
    SortDirection,
    TagMatchMode,
    parse_decimal,
    parse_id_list,
    parse_int,
)


def predicates_on(description: QueryDescription, field: str) -> list[Predicate]:
    """Top-level predicates on one field."""
    return [c for c in description.conditions if isinstance(c, Predicate) and c.field == field]


class TestLenientParsing:
    """Tests for the lenient value parsers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("5", 5), (" 7 ", 7), (3, 3), ("2.9", 2), ("abc", None), (None, None), ("", None)],
    )
    def test_parse_int(self, raw, expected) -> None:
        """Integers are read from strings and numbers; junk is None."""
        assert parse_int(raw) == expected

    def test_parse_int_rejects_booleans(self) -> None:
        """Booleans are not treated as numbers."""
        assert parse_int(True) is None

    @pytest.mark.parametrize("raw", ["99999999999999999999", 2**63, -(2**63) - 1, 1e30])
    def test_parse_int_outside_64_bit_range(self, raw) -> None:
        """Integers a database column cannot hold are treated as absent."""
        assert parse_int(raw) is None

    def test_parse_int_64_bit_bounds(self) -> None:
        """The extreme 64-bit values are still readable."""
        assert parse_int(str(2**63 - 1)) == 2**63 - 1
        assert parse_int(-(2**63)) == -(2**63)

    @pytest.mark.parametrize("raw", ["abc", "NaN", "Infinity", "", None])
    def test_parse_decimal_unreadable(self, raw) -> None:
        """Unreadable or non-finite values are None."""
        assert parse_decimal(raw) is None

    def test_parse_decimal(self) -> None:
        """Decimal strings keep their precision."""
        assert parse_decimal("19.99") == Decimal("19.99")

    def test_parse_id_list_from_string(self) -> None:
        """Comma-separated ids are split, junk skipped, duplicates dropped."""
        assert parse_id_list("3, x, 1,3") == [3, 1]

    def test_parse_id_list_from_list(self) -> None:
        """Lists are accepted as-is."""
        assert parse_id_list(["2", 4]) == [2, 4]


class TestProductQueryBuilder:
    """Tests for ProductQueryBuilder."""

    @pytest.fixture
    def builder(self) -> ProductQueryBuilder:
        """Builder with explicit page size limits."""
        return ProductQueryBuilder(default_page_size=10, max_page_size=100, tag_match_mode="any")

    def test_category_filter_twice_is_deduplicated(self, builder: ProductQueryBuilder) -> None:
        """Applying the category filter twice keeps one predicate and one relation."""
        description = builder.filter_by_category(5).filter_by_category(5).build()

        assert predicates_on(description, "category_id") == [
            Predicate("category_id", Operator.EQ, 5)
        ]
        assert [r.name for r in description.relations] == ["category"]

    def test_category_filter_last_value_wins(self, builder: ProductQueryBuilder) -> None:
        """A second category filter replaces the first."""
        description = builder.filter_by_category(5).filter_by_category("8").build()
        assert predicates_on(description, "category_id")[0].value == 8

    def test_category_relation_is_enrichment(self, builder: ProductQueryBuilder) -> None:
        """Category is fetched with a left join; the id predicate restricts rows."""
        description = builder.filter_by_category(5).build()
        assert description.relation("category").filtering is False

    def test_invalid_category_is_ignored(self, builder: ProductQueryBuilder) -> None:
        """An unreadable category id adds nothing."""
        description = builder.filter_by_category("abc").build()
        assert predicates_on(description, "category_id") == []
        assert description.relation("category") is None

    def test_tag_filter_is_filtering_relation(self, builder: ProductQueryBuilder) -> None:
        """Tag ids produce a filtering relation in the default ANY mode."""
        description = builder.filter_by_tags("1,2").build()

        tags = description.relation("tags")
        assert tags.filtering is True
        assert tags.ids == (1, 2)
        assert tags.match_mode is TagMatchMode.ANY

    def test_tag_filter_all_mode(self, builder: ProductQueryBuilder) -> None:
        """The match mode can be switched to ALL per call."""
        description = builder.filter_by_tags([1, 2], mode="all").build()
        assert description.relation("tags").match_mode is TagMatchMode.ALL

    def test_filtering_tags_win_over_enrichment(self, builder: ProductQueryBuilder) -> None:
        """An include after a tag filter does not turn the filter off."""
        description = builder.filter_by_tags([3]).include("tags").build()

        tags = [r for r in description.relations if r.name == "tags"]
        assert len(tags) == 1
        assert tags[0].filtering is True

    def test_empty_tag_list_is_ignored(self, builder: ProductQueryBuilder) -> None:
        """No ids means no tag relation."""
        assert builder.filter_by_tags("").build().relation("tags") is None

    def test_price_range(self, builder: ProductQueryBuilder) -> None:
        """Both bounds are inclusive."""
        description = builder.filter_by_price("10", "99.5").build()

        assert Predicate("price", Operator.GTE, Decimal("10")) in description.conditions
        assert Predicate("price", Operator.LTE, Decimal("99.5")) in description.conditions

    def test_search_is_or_group(self, builder: ProductQueryBuilder) -> None:
        """Search text matches name or description."""
        description = builder.search("  lamp ").build()

        groups = [c for c in description.conditions if isinstance(c, OrGroup)]
        assert len(groups) == 1
        assert {p.field for p in groups[0].predicates} == {"name", "description"}
        assert all(p.operator is Operator.CONTAINS and p.value == "lamp" for p in groups[0].predicates)

    def test_sku_is_substring_match(self, builder: ProductQueryBuilder) -> None:
        """SKU filtering uses a case-insensitive substring match."""
        description = builder.filter_by_sku("abc").build()
        assert predicates_on(description, "sku") == [Predicate("sku", Operator.CONTAINS, "abc")]

    def test_min_stock_defaults_to_zero(self, builder: ProductQueryBuilder) -> None:
        """An unreadable minimum stock falls back to zero."""
        description = builder.filter_by_min_stock("lots").build()
        assert predicates_on(description, "stock") == [Predicate("stock", Operator.GTE, 0)]

    def test_paginate_clamps_to_minimum(self, builder: ProductQueryBuilder) -> None:
        """page=0 and page_size=-5 clamp to 1 and 1."""
        description = builder.paginate(page=0, page_size=-5).build()

        assert description.page == 1
        assert description.page_size == 1
        assert description.offset == 0

    def test_paginate_caps_page_size(self, builder: ProductQueryBuilder) -> None:
        """Page size never exceeds the configured maximum."""
        description = builder.paginate(page=1, page_size=1000).build()
        assert description.limit == 100

    def test_paginate_defaults(self, builder: ProductQueryBuilder) -> None:
        """Missing values use page 1 and the default page size."""
        description = builder.paginate(None, "abc").build()
        assert (description.page, description.limit, description.offset) == (1, 10, 0)

    def test_paginate_oversized_page_is_ignored(self, builder: ProductQueryBuilder) -> None:
        """A page number beyond 64 bits falls back to page 1."""
        description = builder.paginate("99999999999999999999", 10).build()
        assert description.offset == 0

    def test_paginate_keeps_offset_in_range(self, builder: ProductQueryBuilder) -> None:
        """Huge page numbers are clamped so the offset fits an integer column."""
        description = builder.paginate(2**63 - 1, 10).build()

        assert description.offset <= MAX_DB_INT
        assert description.offset + description.limit > MAX_DB_INT

    def test_oversized_category_is_ignored(self, builder: ProductQueryBuilder) -> None:
        """A category id beyond 64 bits adds no filter."""
        description = builder.filter_by_category("99999999999999999999").build()
        assert predicates_on(description, "category_id") == []

    def test_order_by_unknown_field_falls_back(self, builder: ProductQueryBuilder) -> None:
        """Fields outside the allow-list sort by creation time."""
        description = builder.order_by("password", "asc").build()

        assert description.ordering.field == DEFAULT_SORT_FIELD
        assert description.ordering.direction is SortDirection.ASC

    def test_order_by_accepts_camel_case(self, builder: ProductQueryBuilder) -> None:
        """createdAt is accepted as an alias."""
        description = builder.order_by("updatedAt").build()

        assert description.ordering.field == "updated_at"
        assert description.ordering.direction is SortDirection.DESC

    def test_total_pages(self, builder: ProductQueryBuilder) -> None:
        """Total pages is the ceiling of total over page size."""
        description = builder.paginate(1, 10).build()

        assert description.total_pages(0) == 0
        assert description.total_pages(10) == 1
        assert description.total_pages(11) == 2


class TestFromParams:
    """Tests for building from raw request parameters."""

    def test_invalid_price_is_omitted(self) -> None:
        """priceMin="abc" is treated as absent while pagination still applies."""
        description = ProductQueryBuilder.from_params(
            {"priceMin": "abc", "page": "2", "pageSize": "10"}
        ).build()

        assert predicates_on(description, "price") == []
        assert description.page == 2
        assert description.page_size == 10
        assert description.offset == 10

    def test_relations_included_once(self) -> None:
        """Category and tags are fetched once even when also filtered."""
        description = ProductQueryBuilder.from_params({"category": "1", "tags": "2"}).build()

        assert sorted(r.name for r in description.relations) == ["category", "tags"]
        assert description.relation("tags").filtering is True

    def test_all_filters(self) -> None:
        """Every recognised parameter lands in the description."""
        description = ProductQueryBuilder.from_params(
            {
                "category": "3",
                "price_min": "1",
                "price_max": "5",
                "search": "desk",
                "sku": "PRD",
                "min_stock": "2",
                "sort_by": "price",
                "sort_order": "asc",
            }
        ).build()

        fields = sorted(
            c.field if isinstance(c, Predicate) else "search" for c in description.conditions
        )
        assert fields == ["category_id", "price", "price", "search", "sku", "stock"]
        assert description.ordering.field == "price"
        assert description.ordering.direction is SortDirection.ASC

    def test_defaults(self) -> None:
        """Empty params give page 1, default size and newest first."""
        description = ProductQueryBuilder.from_params({}, default_page_size=25).build()

        assert description.limit == 25
        assert description.ordering.field == "created_at"
        assert description.ordering.direction is SortDirection.DESC
