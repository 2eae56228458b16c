"""
Pydantic models for authentication requests, responses and identities.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class FlowVariant(str, Enum):
    """Which sign-in variant an auth page runs."""
    PASSWORD = "password"
    OTP = "otp"
    HYBRID = "hybrid"
    LINK = "link"


class AuthMode(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"
    FORGOT_PASSWORD = "forgot-password"


class FlowStep(str, Enum):
    COLLECTING_IDENTIFIER = "collecting-identifier"
    COLLECTING_CODE = "collecting-code"


class AuthErrorKind(str, Enum):
    VALIDATION = "validation"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    ALREADY_REGISTERED = "already_registered"
    CODE_INVALID = "code_invalid"
    CONFIGURATION_REQUIRED = "configuration_required"
    SERVICE = "service"


class AuthUser(BaseModel):
    """A user record as reported by the identity service."""
    id: str
    email: str = ""
    display_name: Optional[str] = None
    email_confirmed_at: Optional[str] = None


class AuthSession(BaseModel):
    """An authenticated identity plus the tokens the identity service issued for it."""
    user_id: str
    email: str = ""
    display_name: Optional[str] = None
    email_confirmed_at: Optional[str] = None
    access_token: str = Field("", repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)

    @classmethod
    def for_user(cls, user: AuthUser, access_token: str, refresh_token: Optional[str] = None) -> "AuthSession":
        return cls(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name,
            email_confirmed_at=user.email_confirmed_at,
            access_token=access_token,
            refresh_token=refresh_token,
        )


class SignUpResult(BaseModel):
    """sign-up returns a user, and a session only when no confirmation is pending."""
    user: AuthUser
    session: Optional[AuthSession] = None


class IdentifierRequest(BaseModel):
    """Step 1 of every auth flow."""
    email: EmailStr = Field(..., description="User's email address")
    password: Optional[str] = Field(None, description="Password; optional for code-based login")
    full_name: Optional[str] = Field(None, description="Display name, required on signup")


class CodeRequest(BaseModel):
    """Step 2 of the code-based flows."""
    code: str = Field(..., description="6-digit code from the email")


class ResendConfirmationRequest(BaseModel):
    email: Optional[EmailStr] = Field(None, description="Address to confirm; defaults to the one entered on the page")


class NewPasswordRequest(BaseModel):
    """Set a new password after a reset link or reset code."""
    new_password: str
    confirm_password: str


class UserSummary(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None


class AuthFlowResponse(BaseModel):
    """State of an auth page after a call; errors leave the user on the page."""
    variant: FlowVariant
    mode: AuthMode
    step: FlowStep
    email: Optional[str] = None
    masked_email: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[AuthErrorKind] = None
    show_setup_help: bool = False
    show_email_tips: bool = False
    redirect_to: Optional[str] = None
    access_token: Optional[str] = None
    user: Optional[UserSummary] = None
    alternatives: List[str] = Field(default_factory=list, description="Other auth pages worth trying")


class MessageResponse(BaseModel):
    status: str
    message: str


class SignOutResponse(BaseModel):
    """Response after sign out."""
    status: str
    message: str
