"""Domain layer module.

Contains the error taxonomy shared by catalog and account services.
"""

from storefront.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    DomainError,
    IntegrityViolationError,
    NotFoundError,
    StoreError,
    ValidationError,
    ValidationUnavailableError,
)

__all__ = [
    "AuthenticationError",
    "ConflictError",
    "DomainError",
    "IntegrityViolationError",
    "NotFoundError",
    "StoreError",
    "ValidationError",
    "ValidationUnavailableError",
]
