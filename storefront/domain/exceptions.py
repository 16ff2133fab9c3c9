"""Domain exceptions.

All errors the catalog and account services raise. The API layer maps
each class onto a JSend envelope and an HTTP status code, so services
never deal with response formatting.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the API layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Client Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when required input is missing or malformed."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error message.
            fields: Names of the offending fields.
        """
        fields = fields or []
        super().__init__(message, details={"fields": fields} if fields else {})
        self.fields = fields


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, ids: list[Any] | Any) -> None:
        """Initialize not found error.

        Args:
            entity: Entity type (e.g., "Product", "Tag").
            ids: Missing id or list of missing ids.
        """
        missing = list(ids) if isinstance(ids, (list, tuple, set)) else [ids]
        if len(missing) == 1:
            message = f"{entity} not found: {missing[0]}"
        else:
            message = f"{entity}s not found: {', '.join(str(i) for i in missing)}"
        super().__init__(message, details={"entity": entity, "missing_ids": missing})
        self.entity = entity
        self.missing_ids = missing


class ConflictError(DomainError):
    """Raised when a write would break a uniqueness rule.

    Both the pre-flight uniqueness check and storage-level constraint
    violations end up here, so clients always see the same shape.
    """

    def __init__(
        self,
        message: str,
        duplicate: dict[str, Any] | None = None,
        suggestion: str | None = None,
        auto_fix: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict error.

        Args:
            message: Human-readable error message.
            duplicate: Structured description of the collision.
            suggestion: Actionable hint for the client.
            auto_fix: Field patch that would resolve the collision.
        """
        details: dict[str, Any] = {}
        if duplicate:
            details["duplicate"] = duplicate
        if suggestion:
            details["suggestion"] = suggestion
        if auto_fix:
            details["auto_fix"] = auto_fix
        super().__init__(message, details=details)
        self.duplicate = duplicate
        self.suggestion = suggestion
        self.auto_fix = auto_fix


class AuthenticationError(DomainError):
    """Raised when credentials or tokens are rejected."""

    pass


# ============================================================================
# Infrastructure Errors
# ============================================================================


class StoreError(DomainError):
    """Raised when the underlying data store fails.

    The original exception is kept on ``cause`` for logging only.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Initialize store error.

        Args:
            message: Generic error message safe to show to clients.
            cause: Underlying exception.
        """
        super().__init__(message)
        self.cause = cause


class ValidationUnavailableError(StoreError):
    """Raised when duplicate detection cannot reach the data store."""

    pass


class IntegrityViolationError(StoreError):
    """Raised when a write breaks a database constraint.

    Services translate this into a ``ConflictError`` with a fresh
    suggestion.
    """

    pass
