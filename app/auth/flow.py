"""
Auth flow controller shared by every sign-in page.

One controller drives all four variants (password, one-time code, hybrid
password/code, confirmation link) across the three modes (login, signup,
forgot-password). Each page runs a small state machine:

    collecting-identifier --(code sent)--> collecting-code --(code verified)--> done

The only transition is forward. Leaving the page discards the state, which
is the only way back to the first step. Identity-service failures never
propagate out of the controller; they become a FlowOutcome carrying a
user-facing message and an AuthErrorKind.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.connectors.protocols import IdentityService
from app.core.errors import IdentityServiceError
from app.models.auth import (
    AuthErrorKind,
    AuthFlowResponse,
    AuthMode,
    AuthSession,
    FlowStep,
    FlowVariant,
    UserSummary,
)

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
MIN_PASSWORD_LENGTH = 6

DASHBOARD_PATH = "/dashboard"
RESET_PASSWORD_PATH = "/reset-password"
CONFIRM_PATH = "/auth/confirm"

CODE_SENT_MESSAGE = "We've sent a 6-digit code to your email. Please enter it below."
REDIRECTING_MESSAGE = "Redirecting..."

# Notices for the `error` query parameter a page can be opened with
ERROR_NOTICES = {
    "auth_error": "Authentication failed. Please try again.",
    "confirmation_error": "Email confirmation failed. Please try signing up again.",
}

_EMAIL_MASK = re.compile(r"^(.{2})(.*)(@.*)$")


def mask_email(email: Optional[str]) -> Optional[str]:
    """Keep the first two characters and the domain: `jane@example.com` -> `ja***@example.com`."""
    if not email:
        return None
    return _EMAIL_MASK.sub(r"\1***\3", email)


def sanitize_code(raw: str) -> str:
    """Drop everything but digits and cut to the code length, like the code input field does."""
    return re.sub(r"\D", "", raw or "")[:CODE_LENGTH]


@dataclass
class AuthFlowState:
    variant: FlowVariant
    mode: AuthMode
    step: FlowStep = FlowStep.COLLECTING_IDENTIFIER
    email: Optional[str] = None

    @property
    def masked_email(self) -> Optional[str]:
        if self.step is not FlowStep.COLLECTING_CODE:
            return None
        return mask_email(self.email)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant.value,
            "mode": self.mode.value,
            "step": self.step.value,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["AuthFlowState"]:
        if not data:
            return None
        try:
            return cls(
                variant=FlowVariant(data["variant"]),
                mode=AuthMode(data["mode"]),
                step=FlowStep(data["step"]),
                email=data.get("email"),
            )
        except (KeyError, ValueError):
            return None


@dataclass
class FlowOutcome:
    state: AuthFlowState
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[AuthErrorKind] = None
    show_setup_help: bool = False
    show_email_tips: bool = False
    redirect_to: Optional[str] = None
    session: Optional[AuthSession] = None
    finished: bool = False
    alternatives: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def to_response(self) -> AuthFlowResponse:
        user = None
        if self.session is not None:
            user = UserSummary(
                id=self.session.user_id,
                email=self.session.email,
                display_name=self.session.display_name,
            )
        return AuthFlowResponse(
            variant=self.state.variant,
            mode=self.state.mode,
            step=self.state.step,
            email=self.state.email,
            masked_email=self.state.masked_email,
            message=self.message,
            error=self.error,
            error_kind=self.error_kind,
            show_setup_help=self.show_setup_help,
            show_email_tips=self.show_email_tips,
            redirect_to=self.redirect_to,
            access_token=self.session.access_token if self.session else None,
            user=user,
            alternatives=self.alternatives,
        )


class AuthFlowController:
    """Runs one auth page. `state` is whatever the page carried over from its previous call."""

    def __init__(
        self,
        identity: IdentityService,
        variant: FlowVariant,
        mode: AuthMode,
        state: Optional[AuthFlowState] = None,
        site_url: str = "http://localhost:3000",
    ):
        self.identity = identity
        self.variant = variant
        self.mode = mode
        if state is None or state.variant is not variant or state.mode is not mode:
            state = AuthFlowState(variant=variant, mode=mode)
        self.state = state
        self.site_url = site_url.rstrip("/")

    @property
    def step(self) -> FlowStep:
        return self.state.step

    # ── outcomes ─────────────────────────────────────────────

    def _outcome(self, **kwargs) -> FlowOutcome:
        return FlowOutcome(state=self.state, **kwargs)

    def _fail(self, kind: AuthErrorKind, error: str, **kwargs) -> FlowOutcome:
        return self._outcome(error=error, error_kind=kind, **kwargs)

    def _service_failure(self, operation: str, exc: IdentityServiceError) -> FlowOutcome:
        logger.warning(
            "Auth flow step failed",
            extra={"operation": operation, "variant": self.variant.value, "mode": self.mode.value},
        )
        return self._fail(AuthErrorKind.SERVICE, exc.message)

    def _complete(self, session: Optional[AuthSession], message: str, target: str = DASHBOARD_PATH) -> FlowOutcome:
        logger.info("Auth flow completed", extra={"variant": self.variant.value, "mode": self.mode.value})
        return self._outcome(message=message, session=session, redirect_to=target, finished=True)

    def _advance_to_code(self, email: str) -> FlowOutcome:
        self.state.email = email
        self.state.step = FlowStep.COLLECTING_CODE
        return self._outcome(message=CODE_SENT_MESSAGE)

    def _url(self, path: str) -> str:
        return f"{self.site_url}{path}"

    # ── page mount ───────────────────────────────────────────

    def describe(self, session: Optional[AuthSession] = None, error_param: Optional[str] = None) -> FlowOutcome:
        """Initial page state. A signed-in user opening a login page is sent to the dashboard."""
        outcome = self._outcome(error=ERROR_NOTICES.get(error_param or ""))
        if session is not None and self.mode is AuthMode.LOGIN:
            outcome.redirect_to = DASHBOARD_PATH
        return outcome

    # ── step 1 ───────────────────────────────────────────────

    def _validate_identifier(self, email: str, password: str, full_name: str) -> Optional[str]:
        if not email:
            return "Email is required"
        if self.mode is AuthMode.SIGNUP:
            if not full_name:
                return "Full name is required"
            if len(password) < MIN_PASSWORD_LENGTH:
                return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        if self.mode is AuthMode.LOGIN and self.variant in (FlowVariant.PASSWORD, FlowVariant.LINK) and not password:
            return "Password is required"
        return None

    def submit_identifier(
        self,
        email: str,
        password: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> FlowOutcome:
        if self.step is not FlowStep.COLLECTING_IDENTIFIER:
            return self._fail(
                AuthErrorKind.VALIDATION,
                "A code has already been sent. Enter it below or request a new one.",
            )

        email = (email or "").strip()
        password = password or ""
        full_name = (full_name or "").strip()
        problem = self._validate_identifier(email, password, full_name)
        if problem:
            return self._fail(AuthErrorKind.VALIDATION, problem)

        self.state.email = email
        if self.mode is AuthMode.LOGIN:
            return self._login(email, password)
        if self.mode is AuthMode.SIGNUP:
            return self._signup(email, password, full_name)
        return self._forgot_password(email)

    def _login(self, email: str, password: str) -> FlowOutcome:
        if self.variant is FlowVariant.OTP:
            return self._send_login_code(email)
        if self.variant is FlowVariant.HYBRID and not password:
            # A blank password is the explicit request for a login code
            return self._send_login_code(email)
        return self._password_login(email, password)

    def _password_login(self, email: str, password: str) -> FlowOutcome:
        try:
            session = self.identity.sign_in_with_password(email, password)
        except IdentityServiceError as e:
            if "Invalid login credentials" in e.message:
                hint = " or try the code option" if self.variant is FlowVariant.HYBRID else ""
                return self._fail(
                    AuthErrorKind.INVALID_CREDENTIALS,
                    f"Invalid email or password. Please check your credentials{hint}.",
                )
            if "Email not confirmed" in e.message:
                return self._fail(
                    AuthErrorKind.EMAIL_NOT_CONFIRMED,
                    "Please check your email and confirm your account before signing in.",
                    show_email_tips=True,
                    alternatives=["/auth/otp/login", "/auth/link/login"],
                )
            return self._service_failure("sign_in_with_password", e)
        return self._complete(session, f"Login successful! {REDIRECTING_MESSAGE}")

    def _send_login_code(self, email: str) -> FlowOutcome:
        try:
            self.identity.send_code(email, allow_create=False)
        except IdentityServiceError as e:
            return self._service_failure("send_code", e)
        return self._advance_to_code(email)

    def _signup(self, email: str, password: str, full_name: str) -> FlowOutcome:
        redirect_to = self._url(CONFIRM_PATH) if self.variant is FlowVariant.LINK else None
        try:
            result = self.identity.sign_up(email, password, full_name, email_redirect_to=redirect_to)
        except IdentityServiceError as e:
            if "already registered" in e.message:
                return self._fail(
                    AuthErrorKind.ALREADY_REGISTERED,
                    "An account with this email already exists. Please sign in instead.",
                )
            if self.variant in (FlowVariant.OTP, FlowVariant.HYBRID) and _mentions_confirmation(e.message):
                return self._fail(
                    AuthErrorKind.CONFIGURATION_REQUIRED,
                    "Email confirmations are still enabled in Supabase. Please disable them first.",
                    show_setup_help=True,
                )
            return self._service_failure("sign_up", e)

        if result.user.email_confirmed_at:
            return self._complete(result.session, f"Account created successfully! {REDIRECTING_MESSAGE}")

        if self.variant is FlowVariant.LINK:
            return self._outcome(
                message="Please check your email and click the confirmation link to complete your registration!",
                show_email_tips=True,
            )

        if self.variant is FlowVariant.PASSWORD:
            return self._fail(
                AuthErrorKind.CONFIGURATION_REQUIRED,
                "Email confirmations are enabled. Please disable them in Supabase dashboard for instant signup.",
                show_setup_help=True,
            )

        # Code-based signup: the account exists unconfirmed, a code confirms it
        try:
            self.identity.send_code(email, allow_create=False)
        except IdentityServiceError:
            return self._fail(
                AuthErrorKind.CONFIGURATION_REQUIRED,
                "Could not send OTP. Please check your Supabase email configuration.",
                show_setup_help=True,
            )
        return self._advance_to_code(email)

    def _forgot_password(self, email: str) -> FlowOutcome:
        if self.variant in (FlowVariant.OTP, FlowVariant.HYBRID):
            try:
                self.identity.send_code(email, allow_create=False)
            except IdentityServiceError:
                return self._fail(
                    AuthErrorKind.CONFIGURATION_REQUIRED,
                    "Could not send reset code. Please check your email configuration.",
                    show_setup_help=True,
                )
            return self._advance_to_code(email)

        if self.variant is FlowVariant.LINK:
            callback = self._url(f"{CONFIRM_PATH}?next={RESET_PASSWORD_PATH}")
            message = "Check your email for the password reset link!"
        else:
            callback = self._url(RESET_PASSWORD_PATH)
            message = "Password reset email sent! Check your inbox."
        try:
            self.identity.send_reset_link(email, callback)
        except IdentityServiceError as e:
            return self._service_failure("send_reset_link", e)
        return self._outcome(message=message, show_email_tips=self.variant is FlowVariant.LINK)

    # ── step 2 ───────────────────────────────────────────────

    def submit_code(self, code: str) -> FlowOutcome:
        if self.step is not FlowStep.COLLECTING_CODE:
            return self._fail(AuthErrorKind.VALIDATION, "Request a code before entering one.")

        code = sanitize_code(code)
        if len(code) != CODE_LENGTH:
            return self._fail(AuthErrorKind.VALIDATION, f"Enter the {CODE_LENGTH}-digit code from your email.")

        try:
            session = self.identity.verify_code(self.state.email, code)
        except IdentityServiceError as e:
            logger.info("Code rejected", extra={"variant": self.variant.value, "mode": self.mode.value})
            return self._fail(AuthErrorKind.CODE_INVALID, e.message)

        target = RESET_PASSWORD_PATH if self.mode is AuthMode.FORGOT_PASSWORD else DASHBOARD_PATH
        return self._complete(session, f"Successfully verified! {REDIRECTING_MESSAGE}", target)

    def resend_code(self) -> FlowOutcome:
        if self.step is not FlowStep.COLLECTING_CODE:
            return self._fail(AuthErrorKind.VALIDATION, "Request a code before asking for a new one.")
        try:
            self.identity.send_code(self.state.email, allow_create=False)
        except IdentityServiceError as e:
            return self._service_failure("send_code", e)
        return self._outcome(message="New code sent! Please check your email.")

    def resend_confirmation(self, email: Optional[str]) -> FlowOutcome:
        email = (email or self.state.email or "").strip()
        if not email:
            return self._fail(AuthErrorKind.VALIDATION, "Please enter your email address first")
        try:
            self.identity.resend_confirmation(email, self._url(CONFIRM_PATH))
        except IdentityServiceError as e:
            return self._service_failure("resend_confirmation", e)
        return self._outcome(message="Confirmation email resent! Please check your inbox.", show_email_tips=True)


def _mentions_confirmation(message: str) -> bool:
    lowered = message.lower()
    return (
        "signup requires a valid password" in lowered
        or "email" in lowered
        or "confirmation" in lowered
    )
