"""API schemas.

Pydantic models for request validation and OpenAPI documentation.
Product bodies only check types; required-field rules live in the
services so every entry point reports them the same way.
"""

from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================================================
# Common Schemas
# ============================================================================


class JSendResponse(BaseModel):
    """JSend envelope.

    ``success`` carries ``data``; ``fail`` and ``error`` carry a
    ``message`` and optionally ``data`` with details.
    """

    status: Literal["success", "fail", "error"] = Field(..., description="Outcome")
    data: Any = Field(default=None, description="Payload or failure details")
    message: str | None = Field(default=None, description="Human-readable message")


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": JSendResponse, "description": "Invalid input"},
    500: {"model": JSendResponse, "description": "Data store failure"},
}


def responses(*codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses`` entry for the given failure codes."""
    described = {
        401: "Missing or invalid token",
        404: "Referenced entity not found",
        409: "Uniqueness conflict",
    }
    result = dict(ERROR_RESPONSES)
    for code in codes:
        result[code] = {"model": JSendResponse, "description": described.get(code, "")}
    return result


# ============================================================================
# Product Schemas
# ============================================================================


class ProductCreateRequest(BaseModel):
    """Request to create a product."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, max_length=255, description="Product name")
    description: str | None = Field(default=None, description="Long description")
    price: Decimal | None = Field(default=None, description="Unit price")
    stock: int | None = Field(default=None, description="Units in stock")
    brand: str | None = Field(default=None, max_length=255, description="Brand")
    category_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("category_id", "categoryId"),
        description="Category the product belongs to",
    )
    sku: str | None = Field(
        default=None, max_length=64, description="Stock keeping unit, generated when omitted"
    )
    tag_ids: list[int] | None = Field(
        default=None,
        validation_alias=AliasChoices("tag_ids", "tagIds"),
        description="Tags to attach",
    )


class ProductUpdateRequest(ProductCreateRequest):
    """Request to update a product.

    Only fields present in the body are changed. ``tag_ids`` replaces the
    whole tag set; an empty list removes all tags.
    """


# ============================================================================
# Category and Tag Schemas
# ============================================================================


class CategoryRequest(BaseModel):
    """Request to create or update a category."""

    name: str | None = Field(default=None, max_length=255, description="Unique name")
    description: str | None = Field(default=None, description="Description")


class TagRequest(BaseModel):
    """Request to create or update a tag."""

    name: str | None = Field(default=None, max_length=100, description="Unique name")


# ============================================================================
# Account Schemas
# ============================================================================


class RegisterRequest(BaseModel):
    """Request to register an account."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("full_name", "fullName"),
        description="Display name",
    )
    email: str | None = Field(default=None, description="Login email")
    password: str | None = Field(default=None, description="Plain-text password")


class LoginRequest(BaseModel):
    """Request to log in."""

    email: str | None = Field(default=None, description="Login email")
    password: str | None = Field(default=None, description="Plain-text password")


class UserUpdateRequest(RegisterRequest):
    """Request to update a user; only supplied fields change."""
