"""Tests for public storefront endpoints."""

from fastapi.testclient import TestClient

from storefront.api.public_products import split_identifier


def test_split_identifier() -> None:
    """The id is everything before the first hyphen."""
    assert split_identifier("12-blue-lamp") == ("12", "blue-lamp")
    assert split_identifier("12") == ("12", None)
    assert split_identifier("12-") == ("12", None)


class TestPublicProduct:
    """Tests for GET /public/products/{id}-{slug}."""

    def test_canonical_url(self, client: TestClient, insert_product) -> None:
        """The current slug serves the product without a token."""
        product = insert_product("Blue Lamp")

        response = client.get(f"/public/products/{product.id}-blue-lamp")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == product.id

    def test_bare_id(self, client: TestClient, insert_product) -> None:
        """An id without a slug is served directly."""
        product = insert_product("Blue Lamp")

        assert client.get(f"/public/products/{product.id}").status_code == 200

    def test_stale_slug_redirects(self, client: TestClient, insert_product) -> None:
        """An outdated slug answers 301 to the canonical URL."""
        product = insert_product("Blue Lamp")

        response = client.get(f"/public/products/{product.id}-old-name", follow_redirects=False)

        assert response.status_code == 301
        assert response.headers["location"] == f"/public/products/{product.id}-blue-lamp"

    def test_not_found(self, client: TestClient, catalog) -> None:
        """Unknown, malformed or oversized identifiers are 404."""
        assert client.get("/public/products/999-nothing").status_code == 404
        assert client.get("/public/products/lamp").status_code == 404
        assert client.get("/public/products/99999999999999999999-lamp").status_code == 404


class TestPublicListing:
    """Tests for GET /public/products."""

    def test_duplicates_collapsed_by_default(self, client: TestClient, insert_product) -> None:
        """The storefront listing hides duplicates unless asked not to."""
        insert_product("Lamp", slug="lamp", keyless=True)
        insert_product("LAMP", slug="lamp-1", keyless=True)
        insert_product("Desk", slug="desk")

        collapsed = client.get("/public/products").json()["data"]
        full = client.get("/public/products", params={"exclude_duplicates": "false"}).json()["data"]

        assert len(collapsed["items"]) == 2
        assert collapsed["duplicates_removed"] == 1
        assert collapsed["total_count"] == 2
        assert len(full["items"]) == 3


class TestRelatedProducts:
    """Tests for GET /public/products/{id}/related."""

    def test_related(self, client: TestClient, insert_product) -> None:
        """Related products share the category or a tag."""
        lamp = insert_product("Lamp", tag_ids=[2])
        insert_product("Bulb")
        insert_product("Chair", category_id=2, tag_ids=[2])
        insert_product("Table", category_id=2)

        response = client.get(f"/public/products/{lamp.id}/related")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["product_id"] == lamp.id
        assert {p["name"] for p in data["items"]} == {"Bulb", "Chair"}

    def test_limit(self, client: TestClient, insert_product) -> None:
        """The limit caps the result."""
        lamp = insert_product("Lamp")
        for name in ("Bulb", "Shade", "Cord"):
            insert_product(name)

        response = client.get(f"/public/products/{lamp.id}/related", params={"limit": "2"})

        assert len(response.json()["data"]["items"]) == 2

    def test_huge_limit(self, client: TestClient, insert_product) -> None:
        """A limit far above the page size is capped."""
        lamp = insert_product("Lamp")
        insert_product("Bulb")

        response = client.get(
            f"/public/products/{lamp.id}/related", params={"limit": str(2**62)}
        )

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]["items"]] == ["Bulb"]

    def test_unknown_product(self, client: TestClient, catalog) -> None:
        """Related products of a missing product are 404."""
        assert client.get("/public/products/999/related").status_code == 404
