"""User repository for database operations."""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select

from storefront.accounts.models import User
from storefront.catalog.repository import SessionRepository


class UserRepository(SessionRepository):
    """Repository for User database operations."""

    async def find_all(self) -> Sequence[User]:
        """Get every user ordered by id."""
        async with self._translate_errors("user.find_all"):
            result = await self.session.execute(select(User).order_by(User.id))
            return result.scalars().all()

    async def find_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        async with self._translate_errors("user.find_by_id", user_id=user_id):
            return await self.session.get(User, user_id)

    async def find_by_email(self, email: str) -> User | None:
        """Get user by email, ignoring case."""
        async with self._translate_errors("user.find_by_email"):
            result = await self.session.execute(
                select(User).where(func.lower(User.email) == email.lower())
            )
            return result.scalar_one_or_none()

    async def create(self, data: dict[str, Any]) -> User:
        """Insert a user."""
        async with self._translate_errors("user.create"):
            user = User(**data)
            self.session.add(user)
            await self._commit()
            return user

    async def update(self, user: User, data: dict[str, Any]) -> User:
        """Apply field changes to a user."""
        async with self._translate_errors("user.update", user_id=user.id):
            for key, value in data.items():
                setattr(user, key, value)
            await self._commit()
            return user

    async def delete(self, user: User) -> None:
        """Delete a user."""
        async with self._translate_errors("user.delete", user_id=user.id):
            await self.session.delete(user)
            await self._commit()
