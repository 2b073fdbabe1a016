"""Unit tests for JWT, password hashing, and token generation."""

import jwt as pyjwt
import pytest

from auth_api.core.errors import InvalidInputError
from auth_api.core.security import (
    DEFAULT_EXPIRATION_SECONDS,
    check_password_policy,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_secure_token,
    hash_password,
    parse_expiration,
    verify_password,
)


class TestPasswordHashing:
    """Tests for bcrypt password hashing and verification."""

    def test_hash_and_verify(self) -> None:
        """Hashed password can be verified."""
        hashed = hash_password("mypassword123", rounds=4)
        assert verify_password("mypassword123", hashed)

    def test_wrong_password_fails(self) -> None:
        hashed = hash_password("mypassword123", rounds=4)
        assert not verify_password("wrongpassword", hashed)

    def test_hash_is_different_each_time(self) -> None:
        """Same password produces different hashes (salt)."""
        assert hash_password("same-password", rounds=4) != hash_password("same-password", rounds=4)

    def test_rounds_embedded_in_hash(self) -> None:
        hashed = hash_password("mypassword123", rounds=5)
        assert hashed.startswith("$2b$05$")
        assert verify_password("mypassword123", hashed)

    def test_malformed_hash_does_not_verify(self) -> None:
        assert not verify_password("anything", "not-a-bcrypt-hash")


class TestParseExpiration:
    """Tests for duration strings."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("30s", 30), ("15m", 900), ("2h", 7200), ("7d", 604800)],
    )
    def test_units(self, value: str, expected: int) -> None:
        assert parse_expiration(value) == expected

    @pytest.mark.parametrize("value", ["", "15", "m", "1w", "abc", "-5m"])
    def test_unparseable_falls_back(self, value: str) -> None:
        """Anything that is not <number><s|m|h|d> means 15 minutes."""
        assert parse_expiration(value) == DEFAULT_EXPIRATION_SECONDS == 900


class TestJWT:
    """Tests for JWT token creation and decoding."""

    SECRET = "test-secret-key-that-is-long-enough-000"

    def _access(self, **overrides: object) -> str:
        kwargs: dict = {
            "email": "a@example.com",
            "username": "alice",
            "roles": ["USER"],
            "permissions": ["READ_OWN_DATA"],
        }
        kwargs.update(overrides)
        return create_access_token("user-id", self.SECRET, **kwargs)

    def test_access_token_claims(self) -> None:
        payload = decode_token(self._access(), self.SECRET)
        assert payload["sub"] == "user-id"
        assert payload["email"] == "a@example.com"
        assert payload["username"] == "alice"
        assert payload["roles"] == ["USER"]
        assert payload["permissions"] == ["READ_OWN_DATA"]
        assert payload["type"] == "access"
        assert payload["exp"] - payload["iat"] == DEFAULT_EXPIRATION_SECONDS

    def test_refresh_token_claims(self) -> None:
        payload = decode_token(create_refresh_token("user-id", self.SECRET), self.SECRET)
        assert payload["sub"] == "user-id"
        assert payload["type"] == "refresh"
        assert payload["jti"]

    def test_refresh_tokens_are_unique(self) -> None:
        """Tokens minted back to back differ even within the same second."""
        assert create_refresh_token("user-id", self.SECRET) != create_refresh_token("user-id", self.SECRET)

    def test_decode_with_wrong_secret_fails(self) -> None:
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_token(self._access(), "another-secret-that-is-long-enough-00")

    def test_expired_token_fails(self) -> None:
        token = self._access(expires_seconds=-1)
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_token(token, self.SECRET)


class TestSecureToken:
    def test_length_and_alphabet(self) -> None:
        token = generate_secure_token(32)
        assert len(token) == 64
        int(token, 16)

    def test_tokens_differ(self) -> None:
        assert generate_secure_token() != generate_secure_token()


class TestPasswordPolicy:
    def test_short_password_rejected(self) -> None:
        with pytest.raises(InvalidInputError, match="at least 8 characters"):
            check_password_policy("short")

    def test_eight_characters_accepted(self) -> None:
        check_password_policy("12345678")
