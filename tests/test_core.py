"""
Tests for settings resolution, token sealing, JWT helpers and log formatting.
"""
import json
import logging
from unittest.mock import MagicMock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from app.core import jwt_validation, secrets
from app.core.encryption import open_session_tokens, seal_session_tokens
from app.core.jwt_validation import extract_user_from_jwt, validate_jwt_token
from app.core.logging_config import JSONFormatter

from conftest import TEST_JWT_SECRET


# ============================================================================
# Settings
# ============================================================================

def test_resolve_setting_from_env(monkeypatch):
    monkeypatch.delenv("SOME_KEY_NAME", raising=False)
    monkeypatch.setenv("SOME_KEY", "value")

    assert secrets.resolve_setting("SOME_KEY") == "value"


def test_resolve_setting_prefers_secret_manager(monkeypatch):
    monkeypatch.setenv("SOME_KEY", "local")
    monkeypatch.setenv("SOME_KEY_NAME", "Secret:some-key:3")
    monkeypatch.setattr(secrets, "get_secret_value", lambda name: f"from {name}")

    assert secrets.resolve_setting("SOME_KEY") == "from Secret:some-key:3"


def test_resolve_setting_missing(monkeypatch):
    monkeypatch.delenv("SOME_KEY", raising=False)
    monkeypatch.delenv("SOME_KEY_NAME", raising=False)

    with pytest.raises(RuntimeError, match="SOME_KEY"):
        secrets.resolve_setting("SOME_KEY")
    assert secrets.resolve_setting("SOME_KEY", required=False) is None


def test_get_secret_value_parses_reference(monkeypatch):
    secret_client = MagicMock()
    secret_client.access_secret_version.return_value.payload.data = b"s3cret"
    monkeypatch.setattr(secrets, "_get_client", lambda: secret_client)
    monkeypatch.setenv("GCP_PROJECT_ID", "my-project")
    secrets.get_secret_value.cache_clear()

    assert secrets.get_secret_value("Secret:anon-key:2") == "s3cret"

    secret_client.access_secret_version.assert_called_once_with(
        name="projects/my-project/secrets/anon-key/versions/2"
    )
    secrets.get_secret_value.cache_clear()


# ============================================================================
# Session tokens
# ============================================================================

def test_sealed_tokens_open_again():
    sealed = seal_session_tokens("access", "refresh")

    assert "access" not in sealed
    assert open_session_tokens(sealed) == {"access_token": "access", "refresh_token": "refresh"}


@pytest.mark.parametrize("sealed", [None, "", "not-a-fernet-token"])
def test_unreadable_tokens(sealed):
    assert open_session_tokens(sealed) is None


# ============================================================================
# JWT
# ============================================================================

def test_validate_jwt_token_checks_audience():
    token = jwt.encode({"sub": "user-1", "aud": "anon"}, TEST_JWT_SECRET, algorithm="HS256")

    with pytest.raises(jwt.exceptions.InvalidAudienceError):
        validate_jwt_token(token, TEST_JWT_SECRET)


def test_asymmetric_token_validated_against_jwks(monkeypatch):
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_jwk = jwt.algorithms.ECAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    public_jwk.update(kid="key-1", alg="ES256")
    token = jwt.encode(
        {"sub": "user-1", "aud": "authenticated"},
        private_key,
        algorithm="ES256",
        headers={"kid": "key-1"},
    )
    jwks_response = MagicMock()
    jwks_response.json.return_value = {"keys": [public_jwk]}
    fetch = MagicMock(return_value=jwks_response)
    monkeypatch.setattr(jwt_validation.httpx, "get", fetch)
    jwt_validation.get_jwks.cache_clear()

    payload = jwt_validation.validate_asymmetric_token(token, "https://project.supabase.co")

    assert payload["sub"] == "user-1"
    assert fetch.call_args.args[0] == "https://project.supabase.co/auth/v1/.well-known/jwks.json"
    jwt_validation.get_jwks.cache_clear()


def test_asymmetric_token_with_unknown_key(monkeypatch):
    private_key = ec.generate_private_key(ec.SECP256R1())
    token = jwt.encode({"sub": "user-1"}, private_key, algorithm="ES256", headers={"kid": "rotated"})
    jwks_response = MagicMock()
    jwks_response.json.return_value = {"keys": []}
    fetch = MagicMock(return_value=jwks_response)
    monkeypatch.setattr(jwt_validation.httpx, "get", fetch)
    jwt_validation.get_jwks.cache_clear()

    with pytest.raises(jwt.exceptions.InvalidKeyError):
        jwt_validation.validate_asymmetric_token(token, "https://project.supabase.co")

    assert fetch.call_count == 2
    jwt_validation.get_jwks.cache_clear()


def test_extract_user_from_jwt():
    payload = {"sub": "user-1", "email": "jane@example.com", "user_metadata": {"full_name": "Jane Doe"}}

    assert extract_user_from_jwt(payload) == {
        "user_id": "user-1",
        "email": "jane@example.com",
        "display_name": "Jane Doe",
    }


# ============================================================================
# Logging
# ============================================================================

def test_json_formatter_includes_extra_fields():
    record = logging.makeLogRecord({
        "name": "app.auth.flow",
        "levelname": "WARNING",
        "msg": "Auth flow step failed",
        "operation": "send_code",
    })

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["message"] == "Auth flow step failed"
    assert data["operation"] == "send_code"


def test_json_formatter_redacts_credentials():
    record = logging.makeLogRecord({
        "name": "app.auth.dependencies",
        "levelname": "INFO",
        "msg": "Refreshed session",
        "user_id": "user-1",
        "refresh_token": "r-123",
        "password": "secret123",
    })

    data = json.loads(JSONFormatter().format(record))

    assert data["user_id"] == "user-1"
    assert data["refresh_token"] == "[redacted]"
    assert data["password"] == "[redacted]"
    assert "r-123" not in json.dumps(data)


def test_json_formatter_uses_record_time():
    record = logging.makeLogRecord({"msg": "hello", "levelname": "INFO", "created": 1704067200.25})

    data = json.loads(JSONFormatter().format(record))

    assert data["timestamp"] == "2024-01-01T00:00:00.250Z"
