"""In-memory implementations of IdentityService and RecordStore for testing."""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt

from app.core.errors import IdentityServiceError, RecordNotFoundError, RecordStoreError
from app.models.auth import AuthSession, AuthUser, SignUpResult


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeIdentityService:
    """
    Mimics Supabase Auth closely enough for the auth flows.

    `confirmations_required` models the project setting that decides whether
    sign-up returns a session right away. Access tokens expire after
    `token_lifetime`; refresh tokens are single-use. Emails that would be sent are
    appended to `outbox`; `failures` maps an operation name to an error
    message the next calls of that operation raise.
    """

    def __init__(self, jwt_secret: str, confirmations_required: bool = False):
        self.jwt_secret = jwt_secret
        self.confirmations_required = confirmations_required
        self.token_lifetime = timedelta(hours=1)
        self.users: Dict[str, Dict[str, Any]] = {}
        self.pending_codes: Dict[str, str] = {}
        self.confirmation_tokens: Dict[str, str] = {}
        self.active_tokens: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.outbox: List[Dict[str, Any]] = []
        self.failures: Dict[str, str] = {}
        self.calls: List[str] = []

    # ── helpers ──────────────────────────────────────────────

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise IdentityServiceError(self.failures[operation])

    def _user(self, record: Dict[str, Any]) -> AuthUser:
        return AuthUser(
            id=record["id"],
            email=record["email"],
            display_name=record.get("full_name") or None,
            email_confirmed_at=record.get("email_confirmed_at"),
        )

    def _issue_session(self, record: Dict[str, Any]) -> AuthSession:
        now = datetime.now(timezone.utc)
        access_token = jwt.encode(
            {
                "sub": record["id"],
                "email": record["email"],
                "aud": "authenticated",
                "role": "authenticated",
                "user_metadata": {"full_name": record.get("full_name", "")},
                "iat": int(now.timestamp()),
                "exp": int((now + self.token_lifetime).timestamp()),
                "jti": uuid.uuid4().hex,
            },
            self.jwt_secret,
            algorithm="HS256",
        )
        refresh_token = uuid.uuid4().hex
        self.active_tokens[access_token] = record["id"]
        self.refresh_tokens[refresh_token] = record["email"]
        return AuthSession.for_user(self._user(record), access_token, refresh_token=refresh_token)

    def _send_confirmation(self, record: Dict[str, Any], redirect_to: Optional[str]) -> None:
        token_hash = secrets.token_hex(16)
        self.confirmation_tokens[token_hash] = record["email"]
        self.outbox.append({
            "kind": "confirmation",
            "email": record["email"],
            "token_hash": token_hash,
            "redirect_to": redirect_to,
        })

    def add_user(self, email: str, password: str, full_name: str = "", confirmed: bool = True) -> AuthUser:
        """Seed an account directly."""
        record = {
            "id": uuid.uuid4().hex,
            "email": email,
            "password": password,
            "full_name": full_name,
            "email_confirmed_at": _now() if confirmed else None,
        }
        self.users[email] = record
        return self._user(record)

    def last_email(self, kind: str, email: str) -> Dict[str, Any]:
        for entry in reversed(self.outbox):
            if entry["kind"] == kind and entry["email"] == email:
                return entry
        raise LookupError(f"No {kind} email sent to {email}")

    # ── IdentityService ──────────────────────────────────────

    def sign_up(self, email, password, full_name, email_redirect_to=None) -> SignUpResult:
        self._enter("sign_up")
        if email in self.users:
            raise IdentityServiceError("User already registered")
        user = self.add_user(email, password, full_name, confirmed=not self.confirmations_required)
        record = self.users[email]
        if self.confirmations_required:
            self._send_confirmation(record, email_redirect_to)
            return SignUpResult(user=user)
        return SignUpResult(user=user, session=self._issue_session(record))

    def sign_in_with_password(self, email, password) -> AuthSession:
        self._enter("sign_in_with_password")
        record = self.users.get(email)
        if record is None or record["password"] != password:
            raise IdentityServiceError("Invalid login credentials")
        if not record["email_confirmed_at"]:
            raise IdentityServiceError("Email not confirmed")
        return self._issue_session(record)

    def send_code(self, email, allow_create=False) -> None:
        self._enter("send_code")
        if email not in self.users:
            if not allow_create:
                raise IdentityServiceError("Signups not allowed for otp")
            self.add_user(email, password="", confirmed=False)
        code = f"{secrets.randbelow(10 ** 6):06d}"
        self.pending_codes[email] = code
        self.outbox.append({"kind": "code", "email": email, "code": code})

    def verify_code(self, email, code) -> AuthSession:
        self._enter("verify_code")
        if self.pending_codes.get(email) != code:
            raise IdentityServiceError("Token has expired or is invalid")
        del self.pending_codes[email]
        record = self.users[email]
        record["email_confirmed_at"] = record["email_confirmed_at"] or _now()
        return self._issue_session(record)

    def verify_token(self, token_hash, token_type) -> AuthSession:
        self._enter("verify_token")
        email = self.confirmation_tokens.pop(token_hash, None)
        if email is None:
            raise IdentityServiceError("Email link is invalid or has expired")
        record = self.users[email]
        record["email_confirmed_at"] = record["email_confirmed_at"] or _now()
        return self._issue_session(record)

    def send_reset_link(self, email, redirect_to) -> None:
        self._enter("send_reset_link")
        if email in self.users:
            token_hash = secrets.token_hex(16)
            self.confirmation_tokens[token_hash] = email
            self.outbox.append({
                "kind": "recovery",
                "email": email,
                "token_hash": token_hash,
                "redirect_to": redirect_to,
            })

    def update_password(self, access_token, refresh_token, new_password) -> None:
        self._enter("update_password")
        user_id = self.active_tokens.get(access_token)
        if user_id is None:
            raise IdentityServiceError("Auth session missing!")
        for record in self.users.values():
            if record["id"] == user_id:
                record["password"] = new_password

    def get_current_user(self, access_token) -> Optional[AuthUser]:
        self.calls.append("get_current_user")
        user_id = self.active_tokens.get(access_token)
        for record in self.users.values():
            if record["id"] == user_id:
                return self._user(record)
        return None

    def refresh_session(self, refresh_token) -> AuthSession:
        self._enter("refresh_session")
        email = self.refresh_tokens.pop(refresh_token, None)
        if email is None:
            raise IdentityServiceError("Invalid Refresh Token: Refresh Token Not Found")
        return self._issue_session(self.users[email])

    def sign_out(self, access_token) -> None:
        self._enter("sign_out")
        self.active_tokens.pop(access_token, None)

    def resend_confirmation(self, email, redirect_to) -> None:
        self._enter("resend_confirmation")
        record = self.users.get(email)
        if record is not None and not record["email_confirmed_at"]:
            self._send_confirmation(record, redirect_to)


class FakeRecordStore:
    """
    Dict-backed collections. Timestamps come from a counter so that ordering by
    `created_at` is deterministic. `failures` holds (operation, collection)
    pairs that raise RecordStoreError.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.failures: set = set()
        self._ticks = 0

    def _enter(self, operation: str, collection: str) -> Dict[str, Dict[str, Any]]:
        if (operation, collection) in self.failures:
            raise RecordStoreError(f"{operation} on {collection} failed")
        return self.collections.setdefault(collection, {})

    def _timestamp(self) -> str:
        self._ticks += 1
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return (base + timedelta(seconds=self._ticks)).isoformat()

    def create(self, collection, record) -> Dict[str, Any]:
        rows = self._enter("create", collection)
        stamp = self._timestamp()
        row = {"id": uuid.uuid4().hex, "created_at": stamp, "updated_at": stamp}
        row.update(record)
        rows[row["id"]] = row
        return dict(row)

    def read(self, collection, filters=None, order_by=None, descending=True) -> List[Dict[str, Any]]:
        rows = self._enter("read", collection)
        matched = [
            dict(row) for row in rows.values()
            if all(row.get(column) == value for column, value in (filters or {}).items())
        ]
        if order_by:
            matched.sort(key=lambda row: row.get(order_by) or "", reverse=descending)
        return matched

    def get(self, collection, record_id) -> Dict[str, Any]:
        rows = self._enter("get", collection)
        if record_id not in rows:
            raise RecordNotFoundError(f"{collection} record {record_id} not found", code="PGRST116")
        return dict(rows[record_id])

    def update(self, collection, record_id, changes) -> Dict[str, Any]:
        rows = self._enter("update", collection)
        if record_id not in rows:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        rows[record_id].update(changes)
        return dict(rows[record_id])

    def delete(self, collection, record_id) -> None:
        rows = self._enter("delete", collection)
        if record_id not in rows:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        del rows[record_id]
