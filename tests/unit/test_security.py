"""Unit tests for password hashing and access tokens."""

import pytest
from itsdangerous import URLSafeTimedSerializer

from src.core.config import settings
from src.core.errors import AuthenticationError
from src.core.security import hash_password, issue_access_token, verify_access_token, verify_password


@pytest.mark.unit
class TestPasswords:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("password123")

        assert hashed != "password123"
        assert hashed.startswith("$2")

    def test_verify_matches(self):
        hashed = hash_password("password123")

        assert verify_password("password123", hashed) is True
        assert verify_password("wrong-password", hashed) is False

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("password123", "not-a-bcrypt-hash") is False


@pytest.mark.unit
class TestAccessTokens:
    def test_round_trip(self):
        token = issue_access_token(user_id="42")

        assert verify_access_token(token) == "42"

    def test_tampered_token_is_rejected(self):
        token = issue_access_token(user_id="42")

        with pytest.raises(AuthenticationError):
            verify_access_token(token[:-2] + "xx")

    def test_token_signed_with_other_secret_is_rejected(self):
        forged = URLSafeTimedSerializer("another-secret", salt="access-token").dumps({"sub": "42"})

        with pytest.raises(AuthenticationError):
            verify_access_token(forged)

    def test_expired_token_is_rejected(self, monkeypatch):
        token = issue_access_token(user_id="42")
        monkeypatch.setattr(settings, "access_token_max_age_seconds", -1)

        with pytest.raises(AuthenticationError, match="Token expired"):
            verify_access_token(token)

    def test_token_without_subject_is_rejected(self):
        token = URLSafeTimedSerializer(settings.secret_key, salt="access-token").dumps({"role": "admin"})

        with pytest.raises(AuthenticationError):
            verify_access_token(token)
