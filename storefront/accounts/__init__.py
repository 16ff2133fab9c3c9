"""User accounts and authentication."""

from storefront.accounts.models import User
from storefront.accounts.repository import UserRepository
from storefront.accounts.service import AuthResult, UserService

__all__ = [
    "AuthResult",
    "User",
    "UserRepository",
    "UserService",
]
