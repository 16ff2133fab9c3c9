"""Password hashing and JWT helpers.

Passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hash>``.
Tokens are HS256 JWTs carrying the user id and email.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from storefront.domain.exceptions import AuthenticationError
from storefront.infrastructure.config import settings

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: str | None = None) -> str:
    """Hash a plain-text password.

    Args:
        password: Plain-text password.
        salt: Optional hex salt, generated when omitted.

    Returns:
        Encoded hash string.
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode(),
        bytes.fromhex(salt),
        PBKDF2_ITERATIONS,
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a plain-text password against a stored hash.

    Args:
        password: Candidate password.
        encoded: Stored hash produced by ``hash_password``.

    Returns:
        True if the password matches.
    """
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False

    computed = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode(),
        bytes.fromhex(salt),
        int(iterations),
    ).hex()

    # Constant-time comparison
    return hmac.compare_digest(computed, expected)


def create_access_token(user_id: int, email: str) -> str:
    """Issue a signed access token.

    Args:
        user_id: Authenticated user id.
        email: Authenticated user email.

    Returns:
        Encoded JWT.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expires_minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify and decode an access token.

    Args:
        token: Encoded JWT.

    Returns:
        Token claims.

    Raises:
        AuthenticationError: If the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e
