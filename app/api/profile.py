"""
Profile page: display name and password.
"""
from fastapi import APIRouter, Depends, HTTPException

from app.auth.dependencies import get_current_session, get_identity_service, get_record_store
from app.connectors.protocols import IdentityService, RecordStore
from app.core.errors import InputValidationError, OperationError
from app.models.auth import AuthSession, MessageResponse
from app.models.wardrobe import PasswordChangeRequest, Profile, ProfileUpdateRequest
from app.services.profiles import InvalidCurrentPasswordError, ProfileService

router = APIRouter()


def get_profile_service(
    store: RecordStore = Depends(get_record_store),
    identity: IdentityService = Depends(get_identity_service),
) -> ProfileService:
    return ProfileService(store=store, identity=identity)


@router.get("", response_model=Profile)
async def get_profile(
    session: AuthSession = Depends(get_current_session),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        return service.ensure_profile(session)
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("", response_model=Profile)
async def update_profile(
    body: ProfileUpdateRequest,
    session: AuthSession = Depends(get_current_session),
    service: ProfileService = Depends(get_profile_service),
):
    """Change the display name. Email cannot be changed."""
    try:
        return service.update_display_name(session, body.full_name)
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/password", response_model=MessageResponse)
async def change_password(
    body: PasswordChangeRequest,
    session: AuthSession = Depends(get_current_session),
    service: ProfileService = Depends(get_profile_service),
):
    """
    Change password. The current password is checked first; Supabase then
    emails a confirmation link before the new password takes effect.
    """
    try:
        message = service.change_password(
            session,
            current_password=body.current_password,
            new_password=body.new_password,
            confirm_password=body.confirm_password,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidCurrentPasswordError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "pending_confirmation", "message": message}
