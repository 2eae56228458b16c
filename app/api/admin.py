"""
Admin overview: registered users and the auth configuration this deployment expects.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.auth.dependencies import email_confirmation_required, get_current_session, get_identity_service, get_record_store
from app.connectors.protocols import IdentityService, RecordStore
from app.core.errors import OperationError
from app.models.auth import AuthSession
from app.models.wardrobe import Profile
from app.services.profiles import ProfileService

router = APIRouter()


class AuthSettings(BaseModel):
    has_session: bool
    email_confirmation_required: bool
    message: str


@router.get("/users", response_model=List[Profile])
async def list_users(
    session: AuthSession = Depends(get_current_session),
    store: RecordStore = Depends(get_record_store),
    identity: IdentityService = Depends(get_identity_service),
):
    """Profiles visible to the caller, newest first."""
    try:
        return ProfileService(store=store, identity=identity).list_profiles()
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/auth-settings", response_model=AuthSettings)
async def auth_settings(session: AuthSession = Depends(get_current_session)):
    """
    Reading the real project settings needs Supabase admin access, so this
    reports what the deployment is configured to expect.
    """
    required = email_confirmation_required()
    message = (
        "Email confirmations are expected to be enabled: use the confirmation-link flows."
        if required
        else "Email confirmations are expected to be disabled: password and code flows sign in immediately."
    )
    return AuthSettings(has_session=True, email_confirmation_required=required, message=message)
