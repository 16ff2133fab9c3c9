"""Category and tag services.

Both entities are plain name-keyed records. Names must be unique after
normalization (surrounding whitespace stripped, case folded).
"""

import unicodedata
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from storefront.catalog.query_builder import parse_int
from storefront.catalog.store import CategoryStore, TagStore
from storefront.domain.exceptions import (
    ConflictError,
    IntegrityViolationError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()


def normalize_name(name: str) -> str:
    """Comparison key for category and tag names."""
    return unicodedata.normalize("NFC", name).strip().casefold()


class NamedEntityService:
    """CRUD for an entity identified by a unique name.

    Subclasses set ``entity`` and the writable ``fields``.
    """

    entity: str = "Entity"
    fields: tuple[str, ...] = ("name",)

    def __init__(self, store: CategoryStore | TagStore) -> None:
        """Initialize service.

        Args:
            store: Data access for the entity.
        """
        self.store = store

    async def list(self) -> Sequence[Any]:
        """Get every record ordered by id."""
        return await self.store.find_all()

    async def get(self, entity_id: Any) -> Any:
        """Get a record by id.

        Raises:
            NotFoundError: If the record does not exist.
        """
        parsed = parse_int(entity_id)
        record = await self.store.find_by_id(parsed) if parsed is not None else None
        if record is None:
            raise NotFoundError(self.entity, entity_id)
        return record

    async def create(self, data: Mapping[str, Any]) -> Any:
        """Create a record.

        Raises:
            ValidationError: If the name is missing or blank.
            ConflictError: If the name is already taken.
        """
        values = self._clean(data, creating=True)
        await self._ensure_name_free(values["name"])
        try:
            record = await self.store.create(values)
        except IntegrityViolationError as e:
            raise ConflictError(f'{self.entity} "{values["name"]}" already exists') from e
        logger.info(f"{self.entity} created", entity_id=record.id, name=record.name)
        return record

    async def update(self, entity_id: Any, data: Mapping[str, Any]) -> Any:
        """Update a record.

        Raises:
            NotFoundError: If the record does not exist.
            ConflictError: If the new name is already taken.
        """
        record = await self.get(entity_id)
        values = self._clean(data, creating=False)
        if "name" in values:
            await self._ensure_name_free(values["name"], exclude_id=record.id)
        try:
            updated = await self.store.update(record.id, values)
        except IntegrityViolationError as e:
            raise ConflictError(f"{self.entity} name already exists") from e
        logger.info(f"{self.entity} updated", entity_id=record.id, fields=sorted(values))
        return updated

    async def delete(self, entity_id: Any) -> None:
        """Delete a record.

        Raises:
            NotFoundError: If the record does not exist.
        """
        record = await self.get(entity_id)
        await self.store.delete(record.id)
        logger.info(f"{self.entity} deleted", entity_id=record.id)

    async def _ensure_name_free(self, name: str, exclude_id: Any = None) -> None:
        wanted = normalize_name(name)
        for record in await self.store.find_all():
            if record.id == exclude_id:
                continue
            if normalize_name(record.name) == wanted:
                raise ConflictError(
                    f'{self.entity} "{name}" already exists (ID: {record.id})',
                    duplicate={
                        "type": "name",
                        "field": "name",
                        "value": name,
                        "existing_id": record.id,
                    },
                    suggestion=f"Use the existing {self.entity.lower()} or choose another name",
                )

    def _clean(self, data: Mapping[str, Any], creating: bool) -> dict[str, Any]:
        values = {key: data[key] for key in self.fields if key in data}
        name = values.get("name")
        if creating or "name" in values:
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("Field name is required", fields=["name"])
            values["name"] = name.strip()
        return values


class CategoryService(NamedEntityService):
    """Service for category operations.

    Deleting a category leaves its products without a category.
    """

    entity = "Category"
    fields = ("name", "description")


class TagService(NamedEntityService):
    """Service for tag operations."""

    entity = "Tag"
    fields = ("name",)
