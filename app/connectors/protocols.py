"""
Interfaces of the two hosted collaborators: the identity service and the record store.

Both are implemented against Supabase in app.connectors.supabase and in memory
in app.connectors.fake.
"""
from typing import Any, Dict, List, Optional, Protocol

from app.models.auth import AuthSession, AuthUser, SignUpResult


class IdentityService(Protocol):
    """Authentication verbs. Every method raises IdentityServiceError on failure."""

    def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        email_redirect_to: Optional[str] = None,
    ) -> SignUpResult:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def send_code(self, email: str, allow_create: bool = False) -> None:
        """Email a one-time code to `email`."""
        ...

    def verify_code(self, email: str, code: str) -> AuthSession:
        ...

    def verify_token(self, token_hash: str, token_type: str) -> AuthSession:
        """Redeem the token carried by a confirmation link."""
        ...

    def send_reset_link(self, email: str, redirect_to: str) -> None:
        ...

    def update_password(self, access_token: str, refresh_token: Optional[str], new_password: str) -> None:
        ...

    def get_current_user(self, access_token: str) -> Optional[AuthUser]:
        """Return the user the token belongs to, or None if the token is not valid."""
        ...

    def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new token pair. The old refresh token is used up."""
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def resend_confirmation(self, email: str, redirect_to: str) -> None:
        ...


class RecordStore(Protocol):
    """Generic CRUD over named collections. Raises RecordStoreError on failure."""

    def create(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def read(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        ...

    def get(self, collection: str, record_id: str) -> Dict[str, Any]:
        """Fetch one record by id. Raises RecordNotFoundError when absent."""
        ...

    def update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update. Raises RecordNotFoundError when no record matched."""
        ...

    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record. Raises RecordNotFoundError when no record matched."""
        ...
