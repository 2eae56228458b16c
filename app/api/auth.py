"""
Auth pages. Every sign-in variant and mode is served by the same routes and the
same AuthFlowController; the page's flow state lives in the cookie session.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from app.auth.dependencies import (
    forget_session,
    get_current_session,
    get_identity_service,
    get_optional_session,
    get_site_url,
    remember_session,
)
from app.auth.flow import DASHBOARD_PATH, AuthFlowController, AuthFlowState, FlowOutcome
from app.connectors.protocols import IdentityService
from app.core.errors import IdentityServiceError, InputValidationError, OperationError
from app.models.auth import (
    AuthErrorKind,
    AuthFlowResponse,
    AuthMode,
    AuthSession,
    CodeRequest,
    FlowVariant,
    IdentifierRequest,
    MessageResponse,
    NewPasswordRequest,
    ResendConfirmationRequest,
    SignOutResponse,
)
from app.services.profiles import set_new_password

logger = logging.getLogger(__name__)

router = APIRouter()

FLOW_STATE_KEY = "auth_flow"

ERROR_STATUS_CODES = {
    AuthErrorKind.VALIDATION: 422,
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.EMAIL_NOT_CONFIRMED: 403,
    AuthErrorKind.ALREADY_REGISTERED: 400,
    AuthErrorKind.CODE_INVALID: 400,
    AuthErrorKind.CONFIGURATION_REQUIRED: 409,
    AuthErrorKind.SERVICE: 500,
}


def _controller(
    request: Request,
    identity: IdentityService,
    variant: FlowVariant,
    mode: AuthMode,
    fresh: bool = False,
) -> AuthFlowController:
    state = None if fresh else AuthFlowState.from_dict(request.session.get(FLOW_STATE_KEY))
    return AuthFlowController(identity, variant, mode, state=state, site_url=get_site_url())


def _respond(request: Request, response: Response, outcome: FlowOutcome) -> AuthFlowResponse:
    """Persist the flow state (or drop it once the flow is done) and pick the status code."""
    if outcome.finished:
        request.session.pop(FLOW_STATE_KEY, None)
    else:
        request.session[FLOW_STATE_KEY] = outcome.state.to_dict()
    if outcome.session is not None:
        remember_session(request, outcome.session)
    if outcome.error_kind is not None:
        response.status_code = ERROR_STATUS_CODES[outcome.error_kind]
    return outcome.to_response()


# ============================================================================
# Fixed routes (registered before the /{variant}/{mode} patterns)
# ============================================================================

@router.get("/confirm")
async def confirm(
    request: Request,
    token_hash: Optional[str] = Query(None),
    token_type: Optional[str] = Query(None, alias="type"),
    next_path: str = Query(DASHBOARD_PATH, alias="next"),
    identity: IdentityService = Depends(get_identity_service),
):
    """
    Target of the links in confirmation and password-reset emails.
    Redeems the token and forwards to `next`; any failure lands on the home page.
    """
    failure = RedirectResponse(url="/?" + urlencode({"error": "confirmation_error"}))
    if not token_hash or not token_type:
        return failure

    try:
        session = identity.verify_token(token_hash, token_type)
    except IdentityServiceError as e:
        logger.warning("Error confirming auth", extra={"token_type": token_type, "error": e.message})
        return failure

    remember_session(request, session)
    request.session.pop(FLOW_STATE_KEY, None)
    # Only same-site paths; anything else falls back to the dashboard
    if not next_path.startswith("/") or next_path.startswith("//"):
        next_path = DASHBOARD_PATH
    return RedirectResponse(url=next_path)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: NewPasswordRequest,
    session: AuthSession = Depends(get_current_session),
    identity: IdentityService = Depends(get_identity_service),
):
    """Set a new password after arriving from a reset link or reset code."""
    try:
        set_new_password(identity, session, body.new_password, body.confirm_password)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=f"Password update failed: {str(e)}")
    return {"status": "updated", "message": "Your password has been updated."}


@router.post("/signout", response_model=SignOutResponse)
async def signout(
    request: Request,
    session: AuthSession = Depends(get_current_session),
    identity: IdentityService = Depends(get_identity_service),
):
    """
    Sign out the current user and clear the cookie session.
    """
    try:
        identity.sign_out(session.access_token)
    except IdentityServiceError as e:
        # The local session is cleared regardless
        logger.warning("Sign out error", extra={"error": e.message})
    forget_session(request)
    request.session.pop(FLOW_STATE_KEY, None)

    return {
        "status": "signed_out",
        "message": "Successfully signed out"
    }


# ============================================================================
# Auth pages: /auth/{variant}/{mode}
# ============================================================================

@router.get("/{variant}/{mode}", response_model=AuthFlowResponse)
async def open_flow(
    variant: FlowVariant,
    mode: AuthMode,
    request: Request,
    error: Optional[str] = Query(None, description="Notice passed by a redirect (auth_error, confirmation_error)"),
    session: Optional[AuthSession] = Depends(get_optional_session),
    identity: IdentityService = Depends(get_identity_service),
):
    """Page mount: start the flow from its first step."""
    controller = _controller(request, identity, variant, mode, fresh=True)
    outcome = controller.describe(session=session, error_param=error)
    request.session[FLOW_STATE_KEY] = outcome.state.to_dict()
    return outcome.to_response()


@router.post("/{variant}/{mode}", response_model=AuthFlowResponse)
async def submit_identifier(
    variant: FlowVariant,
    mode: AuthMode,
    body: IdentifierRequest,
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    """Step 1: email (plus password / name where the flow asks for them)."""
    controller = _controller(request, identity, variant, mode)
    outcome = controller.submit_identifier(body.email, body.password, body.full_name)
    return _respond(request, response, outcome)


@router.post("/{variant}/{mode}/verify", response_model=AuthFlowResponse)
async def submit_code(
    variant: FlowVariant,
    mode: AuthMode,
    body: CodeRequest,
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    """Step 2: the emailed one-time code."""
    controller = _controller(request, identity, variant, mode)
    outcome = controller.submit_code(body.code)
    return _respond(request, response, outcome)


@router.post("/{variant}/{mode}/resend", response_model=AuthFlowResponse)
async def resend_code(
    variant: FlowVariant,
    mode: AuthMode,
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    controller = _controller(request, identity, variant, mode)
    outcome = controller.resend_code()
    return _respond(request, response, outcome)


@router.post("/{variant}/{mode}/resend-confirmation", response_model=AuthFlowResponse)
async def resend_confirmation(
    variant: FlowVariant,
    mode: AuthMode,
    body: ResendConfirmationRequest,
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    """Send the signup confirmation email again."""
    controller = _controller(request, identity, variant, mode)
    outcome = controller.resend_confirmation(body.email)
    return _respond(request, response, outcome)
