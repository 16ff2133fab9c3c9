"""SQLAlchemy models for the product catalog.

Defines Category, Tag and Product tables plus the product/tag
association table.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Table, Text, UniqueConstraint, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Composite primary key keeps each (product, tag) pair unique
product_tags = Table(
    "product_tags",
    Base.metadata,
    Column(
        "product_id",
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Category(Base):
    """Product category.

    Attributes:
        id: Category identifier.
        name: Unique category name.
        description: Optional description.
    """

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, name={self.name})>"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Tag(Base):
    """Free-form product label."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Tag(id={self.id}, name={self.name})>"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Product(Base):
    """Product entity in the catalog.

    Slug and SKU are unique across all products. Both are computed by
    the product service before the row is written, never by the model.
    ``name_key`` holds the normalized name and is unique per category;
    rows stored before it was filled keep it NULL and are only found by
    the duplicate scan.

    Attributes:
        id: Product identifier.
        name: Display name.
        description: Optional long description.
        price: Unit price, non-negative.
        stock: Units on hand, non-negative.
        brand: Optional brand name.
        category_id: Owning category, nulled when the category is deleted.
        sku: Stock keeping unit.
        slug: URL-safe identifier derived from the name.
        name_key: Normalized name, see ``slugs.name_key``.
        tags: Associated tags.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("name_key", "category_id", name="uq_products_name_category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    category: Mapped["Category | None"] = relationship("Category")
    tags: Mapped[list["Tag"]] = relationship(
        "Tag",
        secondary=product_tags,
        order_by="Tag.id",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, name={self.name[:30]})>"

    def to_dict(self, include_relations: bool = True) -> dict:
        """Convert to dictionary.

        Args:
            include_relations: Include category and tags when loaded.

        Returns:
            Dictionary representation.
        """
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "brand": self.brand,
            "category_id": self.category_id,
            "sku": self.sku,
            "slug": self.slug,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_relations:
            # Only relations that were loaded; never trigger a lazy load
            unloaded = inspect(self).unloaded
            if "category" not in unloaded:
                data["category"] = self.category.to_dict() if self.category else None
            if "tags" not in unloaded:
                data["tags"] = [tag.to_dict() for tag in self.tags]
        return data
