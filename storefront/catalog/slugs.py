"""Slug, SKU and name key derivation.

Pure helpers; uniqueness against existing products is handled by the
uniqueness guard and the unique indexes on the products table.
"""

import re
import secrets
import time
import unicodedata

from storefront.infrastructure.config import settings

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str | None) -> str:
    """Derive a URL-safe slug from text.

    Lowercases, strips accents, collapses every run of other characters
    into a single hyphen and trims hyphens from both ends.

    Args:
        text: Source text, typically a product name.

    Returns:
        Slug, empty when the text has no ASCII letters or digits.
    """
    if not text:
        return ""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")


def name_key(name: str | None) -> str | None:
    """Comparison form of a product name.

    NFC-normalized, trimmed and case-folded, matching the guard's default
    normalization. Stored in ``products.name_key`` so that the database
    enforces one name per category.
    """
    if name is None:
        return None
    return unicodedata.normalize("NFC", name).strip().casefold()


def is_valid_slug(slug: str) -> bool:
    """Check a slug against the URL-safe pattern."""
    return bool(SLUG_PATTERN.match(slug))


def timestamp_suffix() -> str:
    """High-resolution timestamp used as a last-resort disambiguator."""
    return str(time.time_ns())


def generate_sku(prefix: str | None = None) -> str:
    """Generate a SKU from a time component and a random component.

    Format: ``<PREFIX>-<base36 millis>-<6 hex chars>``, uppercased.

    Args:
        prefix: SKU prefix, defaults to ``settings.sku_prefix``.

    Returns:
        New SKU.
    """
    millis = time.time_ns() // 1_000_000
    return f"{prefix or settings.sku_prefix}-{_base36(millis)}-{secrets.token_hex(3)}".upper()


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, remainder = divmod(number, 36)
        out.append(digits[remainder])
    return "".join(reversed(out))
