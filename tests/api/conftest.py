"""Shared fixtures for API tests.

Each test gets its own SQLite file. ``NullPool`` keeps connections from
outliving the event loop of whichever thread opened them, since the
test client runs the app on its own loop.
"""

import asyncio
from decimal import Decimal
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from storefront.catalog.models import Product
from storefront.catalog.repository import CategoryRepository, ProductRepository, TagRepository
from storefront.infrastructure.database import build_engine, create_tables, get_session
from storefront.infrastructure.security import create_access_token
from storefront.main import app


@pytest.fixture
def session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """Session factory on a fresh database."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    asyncio.run(create_tables(engine))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(session_factory) -> TestClient:
    """Test client with the database dependency pointed at the test database."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {create_access_token(1, 'admin@example.com')}"}


@pytest.fixture
def auth_client(client: TestClient, auth_headers: dict[str, str]) -> TestClient:
    """Test client sending a valid bearer token."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def catalog(session_factory) -> None:
    """Seed categories 1 (Lighting), 2 (Furniture) and tags 1 (sale), 2 (new)."""

    async def seed() -> None:
        async with session_factory() as session:
            categories = CategoryRepository(session)
            tags = TagRepository(session)
            await categories.create({"name": "Lighting"})
            await categories.create({"name": "Furniture"})
            await tags.create({"name": "sale"})
            await tags.create({"name": "new"})

    asyncio.run(seed())


@pytest.fixture
def insert_product(session_factory, catalog):
    """Insert a product directly, bypassing the uniqueness guard.

    ``keyless=True`` clears the stored name key, like rows stored before
    the key existed, so that same-name duplicates can be set up.
    """

    def insert(
        name: str,
        tag_ids: list[int] | None = None,
        keyless: bool = False,
        **fields: Any,
    ) -> Product:
        slug = fields.pop("slug", name.lower().replace(" ", "-"))
        data = {
            "name": name,
            "price": Decimal("10.00"),
            "stock": 1,
            "category_id": 1,
            "sku": f"SKU-{slug}",
            "slug": slug,
            **fields,
        }

        async def run() -> Product:
            async with session_factory() as session:
                product = await ProductRepository(session).create(data, tag_ids)
                if keyless:
                    await session.execute(
                        update(Product).where(Product.id == product.id).values(name_key=None)
                    )
                    await session.commit()
                return product

        return asyncio.run(run())

    return insert
