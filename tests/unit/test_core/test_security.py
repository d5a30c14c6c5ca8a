"""Unit tests for password hashing and JWT tokens."""

import jwt
import pytest

from campus_vote.core.security import create_access_token, decode_token, hash_password, verify_password

SECRET = "test-secret-key-not-for-production"


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("correct horse battery")
        assert hashed != "correct horse battery"
        assert verify_password("correct horse battery", hashed)
        assert not verify_password("wrong", hashed)


class TestTokens:
    def test_round_trip_carries_subject_and_role(self) -> None:
        token = create_access_token("student@uni.test", "student", SECRET)
        payload = decode_token(token, SECRET)
        assert payload["sub"] == "student@uni.test"
        assert payload["role"] == "student"
        assert payload["type"] == "access"

    def test_wrong_secret_is_rejected(self) -> None:
        token = create_access_token("student@uni.test", "student", SECRET)
        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token, "another-secret-key-not-for-production")

    def test_expired_token_is_rejected(self) -> None:
        token = create_access_token("student@uni.test", "student", SECRET, expires_minutes=-1)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token, SECRET)

    def test_non_access_token_is_rejected(self) -> None:
        token = jwt.encode({"sub": "student@uni.test", "type": "refresh"}, SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError, match="Not an access token"):
            decode_token(token, SECRET)
