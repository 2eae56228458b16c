"""
Profile records and account settings.
"""
import logging
from datetime import datetime, timezone
from typing import List

from app.connectors.protocols import IdentityService, RecordStore
from app.core.errors import (
    IdentityServiceError,
    InputValidationError,
    OperationError,
    RecordNotFoundError,
    RecordStoreError,
)
from app.models.auth import AuthSession
from app.models.wardrobe import Profile

logger = logging.getLogger(__name__)

PROFILES = "profiles"
MIN_PASSWORD_LENGTH = 6

PASSWORD_CHANGE_MESSAGE = (
    "Password change initiated! Please check your email and click the "
    "confirmation link to complete the change."
)


class InvalidCurrentPasswordError(OperationError):
    pass


def check_new_password(new_password: str, confirm_password: str) -> None:
    if new_password != confirm_password:
        raise InputValidationError("New passwords do not match")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")


def set_new_password(
    identity: IdentityService,
    session: AuthSession,
    new_password: str,
    confirm_password: str,
) -> None:
    """Replace the signed-in user's password. Supabase may ask for email confirmation first."""
    check_new_password(new_password, confirm_password)
    try:
        identity.update_password(session.access_token, session.refresh_token, new_password)
    except IdentityServiceError as e:
        logger.warning("Password update failed", extra={"user_id": session.user_id, "error": e.message})
        raise OperationError(e.message) from e


class ProfileService:
    def __init__(self, store: RecordStore, identity: IdentityService):
        self.store = store
        self.identity = identity

    def ensure_profile(self, session: AuthSession) -> Profile:
        """
        Return the session user's profile, creating it on first visit.

        A failed insert is logged and the profile derived from the session is
        returned so the page still renders.
        """
        try:
            return Profile.model_validate(self.store.get(PROFILES, session.user_id))
        except RecordNotFoundError:
            pass
        except RecordStoreError as e:
            raise OperationError("Failed to load profile") from e

        record = {
            "id": session.user_id,
            "email": session.email or "",
            "full_name": session.display_name or "",
        }
        try:
            created = self.store.create(PROFILES, record)
        except RecordStoreError as e:
            logger.error("Error creating profile", extra={"user_id": session.user_id, "error": e.message})
            return Profile.model_validate(record)
        logger.info("Created profile", extra={"user_id": session.user_id})
        return Profile.model_validate(created)

    def update_display_name(self, session: AuthSession, full_name: str) -> Profile:
        """Only the display name is editable; the email stays whatever the account was created with."""
        self.ensure_profile(session)
        changes = {
            "full_name": full_name.strip(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.store.update(PROFILES, session.user_id, changes)
        except RecordStoreError as e:
            logger.warning("Profile update failed", extra={"user_id": session.user_id, "error": e.message})
            raise OperationError("Failed to update profile") from e
        return self.ensure_profile(session)

    def change_password(
        self,
        session: AuthSession,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> str:
        """Verify the current password by signing in with it, then request the change."""
        check_new_password(new_password, confirm_password)
        try:
            self.identity.sign_in_with_password(session.email, current_password)
        except IdentityServiceError as e:
            raise InvalidCurrentPasswordError("Current password is incorrect") from e
        set_new_password(self.identity, session, new_password, confirm_password)
        return PASSWORD_CHANGE_MESSAGE

    def list_profiles(self) -> List[Profile]:
        try:
            rows = self.store.read(PROFILES, order_by="created_at")
        except RecordStoreError as e:
            raise OperationError("Failed to load users") from e
        return [Profile.model_validate(row) for row in rows]
