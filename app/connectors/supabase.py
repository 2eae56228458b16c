"""
Supabase connectors: the hosted identity service (Supabase Auth) and record store (PostgREST).
"""
import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from supabase import Client, create_client
from supabase.client import ClientOptions

from app.core.errors import IdentityServiceError, RecordNotFoundError, RecordStoreError
from app.core.secrets import resolve_setting
from app.models.auth import AuthSession, AuthUser, SignUpResult

logger = logging.getLogger(__name__)

# PostgREST error code for `.single()` matching zero rows
NOT_FOUND_CODE = "PGRST116"


def get_supabase_client(access_token: Optional[str] = None) -> Client:
    """
    Create a Supabase client for the project's public (anon) key.

    A new client is built per call with session persistence disabled so that
    one user's sign-in never leaks into another request. When `access_token`
    is given, table queries run as that user and row-level security applies.
    """
    url = os.getenv("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL is not set")

    anon_key = resolve_setting("SUPABASE_ANON_KEY")
    client = create_client(
        url,
        anon_key,
        options=ClientOptions(persist_session=False, auto_refresh_token=False),
    )
    if access_token:
        client.postgrest.auth(access_token)
    return client


def _isoformat(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _to_user(user: Any) -> AuthUser:
    user_metadata = getattr(user, "user_metadata", None) or {}
    return AuthUser(
        id=str(user.id),
        email=user.email or "",
        display_name=user_metadata.get("full_name") or None,
        email_confirmed_at=_isoformat(getattr(user, "email_confirmed_at", None)),
    )


def _to_session(auth_response: Any) -> AuthSession:
    if not auth_response.user or not auth_response.session:
        raise IdentityServiceError("Authentication failed: No user or session returned")
    return AuthSession.for_user(
        _to_user(auth_response.user),
        access_token=auth_response.session.access_token,
        refresh_token=auth_response.session.refresh_token,
    )


class SupabaseIdentityService:
    """IdentityService backed by Supabase Auth."""

    def __init__(self, client_factory: Callable[..., Client] = get_supabase_client):
        self._client_factory = client_factory

    def _auth(self):
        return self._client_factory().auth

    @staticmethod
    def _error(operation: str, exc: Exception) -> IdentityServiceError:
        logger.warning("Identity service call failed", extra={"operation": operation, "error": str(exc)})
        return IdentityServiceError(str(exc), code=getattr(exc, "code", None))

    def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        email_redirect_to: Optional[str] = None,
    ) -> SignUpResult:
        options: Dict[str, Any] = {"data": {"full_name": full_name}}
        if email_redirect_to:
            options["email_redirect_to"] = email_redirect_to
        try:
            response = self._auth().sign_up({
                "email": email,
                "password": password,
                "options": options,
            })
        except Exception as e:
            raise self._error("sign_up", e) from e

        if not response.user:
            raise IdentityServiceError("Signup failed: No user returned from Supabase")

        session = _to_session(response) if response.session else None
        return SignUpResult(user=_to_user(response.user), session=session)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = self._auth().sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as e:
            raise self._error("sign_in_with_password", e) from e
        return _to_session(response)

    def send_code(self, email: str, allow_create: bool = False) -> None:
        try:
            self._auth().sign_in_with_otp({
                "email": email,
                "options": {"should_create_user": allow_create},
            })
        except Exception as e:
            raise self._error("send_code", e) from e

    def verify_code(self, email: str, code: str) -> AuthSession:
        try:
            response = self._auth().verify_otp({
                "email": email,
                "token": code,
                "type": "email",
            })
        except Exception as e:
            raise self._error("verify_code", e) from e
        return _to_session(response)

    def verify_token(self, token_hash: str, token_type: str) -> AuthSession:
        try:
            response = self._auth().verify_otp({
                "token_hash": token_hash,
                "type": token_type,
            })
        except Exception as e:
            raise self._error("verify_token", e) from e
        return _to_session(response)

    def send_reset_link(self, email: str, redirect_to: str) -> None:
        try:
            self._auth().reset_password_for_email(email, {"redirect_to": redirect_to})
        except Exception as e:
            raise self._error("send_reset_link", e) from e

    def update_password(self, access_token: str, refresh_token: Optional[str], new_password: str) -> None:
        auth = self._auth()
        try:
            auth.set_session(access_token, refresh_token or "")
            auth.update_user({"password": new_password})
        except Exception as e:
            raise self._error("update_password", e) from e

    def get_current_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = self._auth().get_user(access_token)
        except Exception as e:
            logger.info("Token rejected by identity service", extra={"error": str(e)})
            return None
        if not response or not response.user:
            return None
        return _to_user(response.user)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        try:
            response = self._auth().refresh_session(refresh_token)
        except Exception as e:
            raise self._error("refresh_session", e) from e
        return _to_session(response)

    def sign_out(self, access_token: str) -> None:
        try:
            self._auth().admin.sign_out(access_token)
        except Exception as e:
            raise self._error("sign_out", e) from e

    def resend_confirmation(self, email: str, redirect_to: str) -> None:
        try:
            self._auth().resend({
                "type": "signup",
                "email": email,
                "options": {"email_redirect_to": redirect_to},
            })
        except Exception as e:
            raise self._error("resend_confirmation", e) from e


class SupabaseRecordStore:
    """RecordStore backed by PostgREST tables."""

    def __init__(self, client: Client):
        self._client = client

    @staticmethod
    def _error(operation: str, collection: str, exc: Exception) -> RecordStoreError:
        code = getattr(exc, "code", None)
        if code == NOT_FOUND_CODE:
            return RecordNotFoundError(str(exc), code=code)
        logger.warning(
            "Record store call failed",
            extra={"operation": operation, "collection": collection, "error": str(exc)},
        )
        return RecordStoreError(str(exc), code=code)

    def create(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.table(collection).insert(record).execute()
        except Exception as e:
            raise self._error("create", collection, e) from e
        if not response.data:
            raise RecordStoreError(f"Failed to insert into {collection}")
        return response.data[0]

    def read(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        query = self._client.table(collection).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        try:
            response = query.execute()
        except Exception as e:
            raise self._error("read", collection, e) from e
        return response.data or []

    def get(self, collection: str, record_id: str) -> Dict[str, Any]:
        try:
            response = self._client.table(collection)\
                .select("*")\
                .eq("id", record_id)\
                .single()\
                .execute()
        except Exception as e:
            raise self._error("get", collection, e) from e
        if not response.data:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        return response.data

    def update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.table(collection).update(changes).eq("id", record_id).execute()
        except Exception as e:
            raise self._error("update", collection, e) from e
        if not response.data:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        return response.data[0]

    def delete(self, collection: str, record_id: str) -> None:
        try:
            response = self._client.table(collection).delete().eq("id", record_id).execute()
        except Exception as e:
            raise self._error("delete", collection, e) from e
        if not response.data:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
