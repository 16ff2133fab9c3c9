"""Tests for slug and SKU derivation."""

import re

import pytest

from storefront.catalog.slugs import generate_sku, is_valid_slug, slugify


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Blue Desk Lamp", "blue-desk-lamp"),
            ("  Crème Brûlée!  ", "creme-brulee"),
            ("LED -- 60W / warm", "led-60w-warm"),
            ("---", ""),
            ("", ""),
        ],
    )
    def test_slugify(self, text: str, expected: str) -> None:
        """Slugs are lowercase ASCII joined by single hyphens."""
        assert slugify(text) == expected

    def test_slugify_is_deterministic(self) -> None:
        """The same name always gives the same slug."""
        assert slugify("Widget Pro") == slugify("Widget Pro")

    @pytest.mark.parametrize("text", ["Widget", "Ünïcödé Name 2", "a  b", "x-y-z"])
    def test_slug_is_url_safe(self, text: str) -> None:
        """Every non-empty slug matches the URL-safe pattern."""
        assert is_valid_slug(slugify(text))

    @pytest.mark.parametrize("slug", ["Upper", "-leading", "trailing-", "double--hyphen", "sp ace"])
    def test_invalid_slugs(self, slug: str) -> None:
        """Malformed slugs are rejected."""
        assert not is_valid_slug(slug)


class TestGenerateSku:
    """Tests for generate_sku."""

    def test_format(self) -> None:
        """SKU is prefix, base36 time and six hex chars, uppercased."""
        sku = generate_sku("prd")
        assert re.fullmatch(r"PRD-[0-9A-Z]+-[0-9A-F]{6}", sku)

    def test_default_prefix(self) -> None:
        """The configured prefix is used by default."""
        assert generate_sku().startswith("PRD-")

    def test_unique(self) -> None:
        """Consecutive SKUs differ."""
        assert len({generate_sku() for _ in range(50)}) == 50
