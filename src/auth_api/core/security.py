"""JWT token creation/validation, password hashing, and random token generation.

Uses PyJWT for JWT operations and passlib with bcrypt for password hashing.
"""

import re
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import jwt
from passlib.context import CryptContext

from auth_api.core.errors import InvalidInputError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

MIN_PASSWORD_LENGTH = 8

# Fallback lifetime for expiration strings that cannot be parsed (15 minutes)
DEFAULT_EXPIRATION_SECONDS = 900

_EXPIRATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}


@lru_cache(maxsize=8)
def _crypt_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a plaintext password using bcrypt.

    Args:
        password: The plaintext password to hash.
        rounds: bcrypt cost factor.

    Returns:
        The bcrypt-hashed password string.
    """
    return _crypt_context(rounds).hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash.

    The comparison is constant-time. The cost factor is read from the hash
    itself, so hashes created with any number of rounds verify.

    Args:
        plain_password: The plaintext password to verify.
        hashed_password: The bcrypt hash to verify against.

    Returns:
        True if the password matches, False otherwise.
    """
    try:
        return _crypt_context(10).verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def parse_expiration(expiration: str) -> int:
    """Convert an expiration string such as ``15m`` or ``7d`` to seconds.

    Supported units are ``s``, ``m``, ``h`` and ``d``. Anything else,
    including a missing or non-numeric value, yields 900 seconds.

    Args:
        expiration: Duration string.

    Returns:
        Duration in seconds.
    """
    match = _EXPIRATION_RE.match(expiration.strip()) if expiration else None
    if match is None:
        return DEFAULT_EXPIRATION_SECONDS
    value, unit = match.groups()
    return int(value) * _UNIT_SECONDS[unit]


def create_access_token(
    subject: str,
    secret_key: str,
    *,
    email: str,
    username: str,
    roles: list[str],
    permissions: list[str],
    algorithm: str = "HS256",
    expires_seconds: int = DEFAULT_EXPIRATION_SECONDS,
) -> str:
    """Create a JWT access token.

    Args:
        subject: The token subject (user id).
        secret_key: Secret key for signing.
        email: The user's email address.
        username: The user's username.
        roles: Role names held by the user.
        permissions: Flattened permission names granted by the roles.
        algorithm: JWT signing algorithm.
        expires_seconds: Token lifetime in seconds.

    Returns:
        The encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "email": email,
        "username": username,
        "roles": roles,
        "permissions": permissions,
        "iat": now,
        "exp": now + timedelta(seconds=expires_seconds),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def create_refresh_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_seconds: int = 7 * 24 * 60 * 60,
) -> str:
    """Create a JWT refresh token.

    Each token carries a random ``jti`` so tokens minted for the same user
    within the same second are still distinct.

    Args:
        subject: The token subject (user id).
        secret_key: Secret key for signing.
        algorithm: JWT signing algorithm.
        expires_seconds: Token lifetime in seconds.

    Returns:
        The encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(seconds=expires_seconds),
        "type": REFRESH_TOKEN_TYPE,
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict:
    """Decode and validate a JWT token.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The decoded token payload.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is invalid.
    """
    return jwt.decode(token, secret_key, algorithms=[algorithm])


def generate_secure_token(nbytes: int = 32) -> str:
    """Return a hex-encoded cryptographically random token of ``nbytes`` bytes."""
    return secrets.token_hex(nbytes)


def check_password_policy(password: str) -> None:
    """Reject passwords shorter than ``MIN_PASSWORD_LENGTH``.

    Raises:
        InvalidInputError: If the password does not meet the policy.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        msg = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        raise InvalidInputError(msg)
