"""User service.

Registration, login and user management. Passwords are hashed before
they reach the repository and tokens are issued on register and login.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from storefront.accounts.models import User
from storefront.accounts.repository import UserRepository
from storefront.catalog.query_builder import parse_int
from storefront.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    IntegrityViolationError,
    NotFoundError,
    ValidationError,
)
from storefront.infrastructure.security import create_access_token, hash_password, verify_password

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class AuthResult:
    """Authenticated user and the token issued for it."""

    user: User
    token: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"user": self.user.to_dict(), "token": self.token}


class UserService:
    """Service for user accounts.

    Example usage:
        service = UserService(UserRepository(session))
        result = await service.login("ana@example.com", "secret")
    """

    def __init__(self, repository: UserRepository) -> None:
        """Initialize service.

        Args:
            repository: User data access.
        """
        self.repository = repository

    async def register(self, data: Mapping[str, Any]) -> AuthResult:
        """Create an account and log it in.

        Raises:
            ValidationError: If a field is missing or malformed.
            ConflictError: If the email is already registered.
        """
        values = self._clean(data, creating=True)
        await self._ensure_email_free(values["email"])
        user = await self._store(self.repository.create, values)
        logger.info("User registered", user_id=user.id)
        return AuthResult(user, create_access_token(user.id, user.email))

    async def login(self, email: Any, password: Any) -> AuthResult:
        """Check credentials and issue a token.

        Raises:
            ValidationError: If email or password is missing.
            NotFoundError: If no user has the email.
            AuthenticationError: If the password is wrong.
        """
        if not email or not password:
            raise ValidationError("Email and password are required", fields=["email", "password"])

        user = await self.repository.find_by_email(str(email).strip())
        if user is None:
            raise NotFoundError("User", email)
        if not verify_password(str(password), user.password_hash):
            logger.info("Login rejected", user_id=user.id)
            raise AuthenticationError("Incorrect password")

        logger.info("User logged in", user_id=user.id)
        return AuthResult(user, create_access_token(user.id, user.email))

    async def list(self) -> Sequence[User]:
        """Get every user."""
        return await self.repository.find_all()

    async def get(self, user_id: Any) -> User:
        """Get a user by id.

        Raises:
            NotFoundError: If the user does not exist.
        """
        parsed = parse_int(user_id)
        user = await self.repository.find_by_id(parsed) if parsed is not None else None
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def create(self, data: Mapping[str, Any]) -> User:
        """Create a user without issuing a token."""
        values = self._clean(data, creating=True)
        await self._ensure_email_free(values["email"])
        return await self._store(self.repository.create, values)

    async def update(self, user_id: Any, data: Mapping[str, Any]) -> User:
        """Update name, email or password.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If the new email belongs to another user.
        """
        user = await self.get(user_id)
        values = self._clean(data, creating=False)
        if "email" in values:
            await self._ensure_email_free(values["email"], exclude_id=user.id)
        return await self._store(self.repository.update, user, values)

    async def delete(self, user_id: Any) -> None:
        """Delete a user."""
        user = await self.get(user_id)
        await self.repository.delete(user)
        logger.info("User deleted", user_id=user.id)

    async def _ensure_email_free(self, email: str, exclude_id: int | None = None) -> None:
        existing = await self.repository.find_by_email(email)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(
                "Email is already registered",
                duplicate={"type": "email", "field": "email", "value": email, "existing_id": existing.id},
                suggestion="Log in with this email or register with another one",
            )

    async def _store(self, write, *args: Any) -> User:
        try:
            return await write(*args)
        except IntegrityViolationError as e:
            raise ConflictError("Email is already registered") from e

    def _clean(self, data: Mapping[str, Any], creating: bool) -> dict[str, Any]:
        values: dict[str, Any] = {}
        missing: list[str] = []

        for key in ("full_name", "email", "password"):
            value = data.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                if creating:
                    missing.append(key)
                continue
            values[key] = str(value).strip() if key != "password" else str(value)

        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
        if "email" in values:
            values["email"] = values["email"].lower()
            if not EMAIL_PATTERN.match(values["email"]):
                raise ValidationError("Invalid email address", fields=["email"])
        if "password" in values:
            values["password_hash"] = hash_password(values.pop("password"))
        return values
