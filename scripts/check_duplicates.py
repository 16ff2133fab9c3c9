#!/usr/bin/env python3
"""Duplicate product check script.

Scans the catalog for products sharing a name within one category and
prints every group found. Exits with status 1 when duplicates exist, so
it can gate deployments or run from cron.

Usage:
    python scripts/check_duplicates.py
    python scripts/check_duplicates.py --json
    python scripts/check_duplicates.py --database-url sqlite+aiosqlite:///./other.db
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.catalog.repository import CategoryRepository, ProductRepository, TagRepository
from storefront.catalog.service import ProductService
from storefront.catalog.uniqueness import DuplicateReport
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import build_engine
from storefront.infrastructure.logging import configure_logging


async def scan(database_url: str) -> DuplicateReport:
    """Run duplicate detection against a database.

    Args:
        database_url: Async SQLAlchemy URL.

    Returns:
        Duplicate report.
    """
    engine = build_engine(database_url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            service = ProductService(
                ProductRepository(session),
                CategoryRepository(session),
                TagRepository(session),
            )
            return await service.detect_all_duplicates()
    finally:
        await engine.dispose()


def print_report(report: DuplicateReport) -> None:
    """Print a human-readable report."""
    print("=" * 60)
    print("Storefront Duplicate Check")
    print("=" * 60)
    print(f"Products scanned: {report.total_products}")
    print(report.summary)
    print()

    for group in report.groups:
        print(f"[{group.key}] {group.count} products")
        for product in group.products:
            print(f"  - #{product['id']} {product['name']} (slug: {product['slug']})")
        print(f"  -> {group.suggestion}")
        print()


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Detect duplicate products (same name within a category)",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Database URL (default: DATABASE_URL setting)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )

    args = parser.parse_args()
    configure_logging(level="WARNING")

    report = await scan(args.database_url)

    if args.json:
        print(json.dumps(report.to_dict(), default=str, indent=2))
    else:
        print_report(report)

    if not report.complete:
        return 2
    return 1 if report.groups else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
