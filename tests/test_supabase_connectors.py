"""
Tests for the Supabase adapters, with the supabase client replaced by MagicMock.
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.connectors import supabase as supabase_module
from app.connectors.supabase import SupabaseIdentityService, SupabaseRecordStore, get_supabase_client
from app.core.errors import IdentityServiceError, RecordNotFoundError, RecordStoreError


def fake_user(confirmed=True):
    user = MagicMock()
    user.id = "user-1"
    user.email = "jane@example.com"
    user.user_metadata = {"full_name": "Jane Doe"}
    user.email_confirmed_at = datetime(2024, 1, 1, tzinfo=timezone.utc) if confirmed else None
    return user


def auth_response(with_session=True, confirmed=True):
    response = MagicMock()
    response.user = fake_user(confirmed)
    if with_session:
        response.session.access_token = "access"
        response.session.refresh_token = "refresh"
    else:
        response.session = None
    return response


def api_error(message, code=None):
    error = Exception(message)
    error.code = code
    return error


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def identity(client):
    return SupabaseIdentityService(client_factory=lambda: client)


# ============================================================================
# Identity service
# ============================================================================

def test_sign_in_with_password(identity, client):
    client.auth.sign_in_with_password.return_value = auth_response()

    session = identity.sign_in_with_password("jane@example.com", "secret123")

    assert session.user_id == "user-1"
    assert session.display_name == "Jane Doe"
    assert session.access_token == "access"
    assert session.refresh_token == "refresh"
    assert session.email_confirmed_at == "2024-01-01T00:00:00+00:00"


def test_sign_in_error_keeps_service_message(identity, client):
    client.auth.sign_in_with_password.side_effect = api_error("Email not confirmed", code="email_not_confirmed")

    with pytest.raises(IdentityServiceError) as exc_info:
        identity.sign_in_with_password("jane@example.com", "secret123")

    assert exc_info.value.message == "Email not confirmed"
    assert exc_info.value.code == "email_not_confirmed"


def test_sign_up_without_session(identity, client):
    client.auth.sign_up.return_value = auth_response(with_session=False, confirmed=False)

    result = identity.sign_up("jane@example.com", "secret123", "Jane Doe", email_redirect_to="http://site/auth/confirm")

    assert result.session is None
    assert result.user.email_confirmed_at is None
    payload = client.auth.sign_up.call_args.args[0]
    assert payload["options"] == {
        "data": {"full_name": "Jane Doe"},
        "email_redirect_to": "http://site/auth/confirm",
    }


def test_sign_up_with_session(identity, client):
    client.auth.sign_up.return_value = auth_response()

    result = identity.sign_up("jane@example.com", "secret123", "Jane Doe")

    assert result.session.access_token == "access"
    assert "email_redirect_to" not in client.auth.sign_up.call_args.args[0]["options"]


def test_send_code_does_not_create_users(identity, client):
    identity.send_code("jane@example.com")

    client.auth.sign_in_with_otp.assert_called_once_with({
        "email": "jane@example.com",
        "options": {"should_create_user": False},
    })


def test_verify_code(identity, client):
    client.auth.verify_otp.return_value = auth_response()

    identity.verify_code("jane@example.com", "123456")

    client.auth.verify_otp.assert_called_once_with({"email": "jane@example.com", "token": "123456", "type": "email"})


def test_verify_token_without_session(identity, client):
    response = auth_response()
    response.session = None
    client.auth.verify_otp.return_value = response

    with pytest.raises(IdentityServiceError):
        identity.verify_token("hash", "signup")


def test_update_password_sets_session_first(identity, client):
    identity.update_password("access", "refresh", "newpass1")

    client.auth.set_session.assert_called_once_with("access", "refresh")
    client.auth.update_user.assert_called_once_with({"password": "newpass1"})


def test_get_current_user_rejected_token(identity, client):
    client.auth.get_user.side_effect = api_error("invalid JWT")

    assert identity.get_current_user("bad") is None


def test_refresh_session(identity, client):
    client.auth.refresh_session.return_value = auth_response()

    session = identity.refresh_session("old-refresh")

    client.auth.refresh_session.assert_called_once_with("old-refresh")
    assert session.access_token == "access"
    assert session.refresh_token == "refresh"


def test_refresh_session_rejected(identity, client):
    client.auth.refresh_session.side_effect = api_error("Invalid Refresh Token: Already Used")

    with pytest.raises(IdentityServiceError, match="Already Used"):
        identity.refresh_session("old-refresh")


def test_resend_confirmation(identity, client):
    identity.resend_confirmation("jane@example.com", "http://site/auth/confirm")

    payload = client.auth.resend.call_args.args[0]
    assert payload["type"] == "signup"
    assert payload["options"] == {"email_redirect_to": "http://site/auth/confirm"}


# ============================================================================
# Record store
# ============================================================================

def test_read_applies_filters_and_order(client):
    query = client.table.return_value.select.return_value
    query.eq.return_value.order.return_value.execute.return_value.data = [{"id": "a"}]

    rows = SupabaseRecordStore(client).read("clothes", filters={"user_id": "user-1"}, order_by="created_at")

    assert rows == [{"id": "a"}]
    client.table.assert_called_once_with("clothes")
    query.eq.assert_called_once_with("user_id", "user-1")
    query.eq.return_value.order.assert_called_once_with("created_at", desc=True)


def test_get_maps_no_rows_to_not_found(client):
    chain = client.table.return_value.select.return_value.eq.return_value.single.return_value
    chain.execute.side_effect = api_error("JSON object requested, multiple (or no) rows returned", code="PGRST116")

    with pytest.raises(RecordNotFoundError):
        SupabaseRecordStore(client).get("profiles", "user-1")


def test_update_without_rows_is_not_found(client):
    client.table.return_value.update.return_value.eq.return_value.execute.return_value.data = []

    with pytest.raises(RecordNotFoundError):
        SupabaseRecordStore(client).update("clothes", "missing", {"name": "Hat"})


def test_create_failure(client):
    client.table.return_value.insert.return_value.execute.side_effect = api_error("permission denied", code="42501")

    with pytest.raises(RecordStoreError) as exc_info:
        SupabaseRecordStore(client).create("clothes", {"name": "Hat"})

    assert not isinstance(exc_info.value, RecordNotFoundError)
    assert exc_info.value.code == "42501"


# ============================================================================
# Client factory
# ============================================================================

def test_client_requires_url(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)

    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        get_supabase_client()


def test_client_acts_as_user(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    created = MagicMock()
    create_client = MagicMock(return_value=created)
    monkeypatch.setattr(supabase_module, "create_client", create_client)

    assert get_supabase_client("user-token") is created

    assert create_client.call_args.args[:2] == ("https://project.supabase.co", "anon-key")
    created.postgrest.auth.assert_called_once_with("user-token")
