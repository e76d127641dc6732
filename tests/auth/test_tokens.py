"""Tests for bearer token issue and validation."""

import uuid
from datetime import timedelta

import jwt
import pytest

from src.auth.tokens import ALGORITHM, TokenValidationError, create_access_token, validate_token
from tests.conftest import TEST_JWT_SECRET, make_token


class TestValidateToken:
    def test_valid_token(self, fake_settings, test_user_id):
        claims = validate_token(make_token(str(test_user_id)), fake_settings)

        assert claims["sub"] == str(test_user_id)
        assert claims["email"] == "principal@example.com"

    def test_expired(self, fake_settings, test_user_id):
        with pytest.raises(TokenValidationError, match="expired"):
            validate_token(make_token(str(test_user_id), expires_in=-10), fake_settings)

    def test_wrong_secret(self, fake_settings, test_user_id):
        token = make_token(str(test_user_id), secret="not-the-configured-secret")
        with pytest.raises(TokenValidationError):
            validate_token(token, fake_settings)

    def test_subject_must_be_uuid(self, fake_settings):
        with pytest.raises(TokenValidationError, match="subject"):
            validate_token(make_token("alice"), fake_settings)

    def test_missing_exp(self, fake_settings, test_user_id):
        token = jwt.encode({"sub": str(test_user_id)}, TEST_JWT_SECRET, algorithm=ALGORITHM)
        with pytest.raises(TokenValidationError):
            validate_token(token, fake_settings)

    def test_garbage(self, fake_settings):
        with pytest.raises(TokenValidationError):
            validate_token("not.a.jwt", fake_settings)

    def test_other_algorithm_refused(self, fake_settings, test_user_id):
        token = jwt.encode(
            {"sub": str(test_user_id), "exp": 9999999999},
            TEST_JWT_SECRET,
            algorithm="HS512",
        )
        with pytest.raises(TokenValidationError):
            validate_token(token, fake_settings)


class TestCreateAccessToken:
    def test_round_trip(self, fake_settings):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, fake_settings, email="p@example.com")

        claims = validate_token(token, fake_settings)
        assert claims["sub"] == str(user_id)
        assert claims["email"] == "p@example.com"
        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_custom_expiry(self, fake_settings):
        token = create_access_token(uuid.uuid4(), fake_settings, expires_in=timedelta(hours=2))

        claims = validate_token(token, fake_settings)
        assert claims["exp"] - claims["iat"] == 7200
        assert "email" not in claims

    def test_unique_token_ids(self, fake_settings):
        user_id = uuid.uuid4()
        first = validate_token(create_access_token(user_id, fake_settings), fake_settings)
        second = validate_token(create_access_token(user_id, fake_settings), fake_settings)
        assert first["jti"] != second["jti"]
