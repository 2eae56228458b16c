import logging
import os
from typing import Any, Dict, Optional

import httpx
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.connectors.protocols import IdentityService, RecordStore
from app.connectors.supabase import SupabaseIdentityService, SupabaseRecordStore, get_supabase_client
from app.core.encryption import open_session_tokens, seal_session_tokens
from app.core.errors import IdentityServiceError
from app.core.jwt_validation import (
    ASYMMETRIC_ALGORITHMS,
    extract_user_from_jwt,
    get_jwt_secret,
    validate_asymmetric_token,
    validate_jwt_token,
)
from app.models.auth import AuthSession

logger = logging.getLogger(__name__)

SESSION_TOKENS_KEY = "supabase_tokens"


def get_site_url() -> str:
    """Public origin used to build the callback links in confirmation and reset emails."""
    return os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")


def email_confirmation_required() -> bool:
    return os.getenv("EMAIL_CONFIRMATION_REQUIRED", "true").lower() not in ("0", "false", "no")


def get_identity_service() -> IdentityService:
    return SupabaseIdentityService()


def remember_session(request: Request, session: AuthSession) -> None:
    """Keep the session's tokens in the (signed, encrypted) cookie session."""
    request.session[SESSION_TOKENS_KEY] = seal_session_tokens(session.access_token, session.refresh_token)


def forget_session(request: Request) -> None:
    request.session.pop(SESSION_TOKENS_KEY, None)


bearer_scheme = HTTPBearer(auto_error=False)


def _local_claims(access_token: str) -> Optional[Dict[str, Any]]:
    """
    Claims of a token that can be verified here, or None when no local key
    material applies to it. Raises PyJWTError for a token that fails verification.
    """
    algorithm = jwt.get_unverified_header(access_token).get("alg")
    if algorithm in ASYMMETRIC_ALGORITHMS:
        supabase_url = os.getenv("SUPABASE_URL")
        if not supabase_url:
            return None
        try:
            payload = validate_asymmetric_token(access_token, supabase_url)
        except httpx.HTTPError as e:
            logger.warning("Could not fetch signing keys", extra={"error": str(e)})
            return None
        return extract_user_from_jwt(payload)

    secret = get_jwt_secret()
    if not secret:
        return None
    return extract_user_from_jwt(validate_jwt_token(access_token, secret))


def _refresh(request: Request, identity: IdentityService, refresh_token: str) -> Optional[AuthSession]:
    """Trade the cookie's refresh token for a new pair and store it; forget the session if that fails."""
    try:
        session = identity.refresh_session(refresh_token)
    except IdentityServiceError as e:
        logger.info("Session refresh failed", extra={"error": e.message})
        forget_session(request)
        return None
    remember_session(request, session)
    logger.info("Refreshed session", extra={"user_id": session.user_id})
    return session


def _resolve_session(
    request: Request,
    cred: Optional[HTTPAuthorizationCredentials],
    identity: IdentityService,
) -> Optional[AuthSession]:
    refresh_token = None
    if cred is not None:
        access_token = cred.credentials
    else:
        tokens = open_session_tokens(request.session.get(SESSION_TOKENS_KEY))
        if tokens is None:
            return None
        access_token = tokens["access_token"]
        refresh_token = tokens.get("refresh_token") or None

    try:
        claims = _local_claims(access_token)
    except jwt.exceptions.ExpiredSignatureError:
        # Only cookie sessions carry a refresh token
        if refresh_token:
            return _refresh(request, identity, refresh_token)
        logger.info("Rejected expired access token")
        if cred is None:
            forget_session(request)
        return None
    except jwt.exceptions.PyJWTError as e:
        logger.info("Rejected access token", extra={"error": str(e)})
        if cred is None:
            forget_session(request)
        return None
    if claims is not None:
        return AuthSession(
            user_id=claims["user_id"],
            email=claims["email"],
            display_name=claims["display_name"],
            access_token=access_token,
            refresh_token=refresh_token,
        )

    # No local key material: let the identity service check the token
    user = identity.get_current_user(access_token)
    if user is None:
        if refresh_token:
            return _refresh(request, identity, refresh_token)
        if cred is None:
            forget_session(request)
        return None
    return AuthSession.for_user(user, access_token, refresh_token)


async def get_optional_session(
    request: Request,
    cred: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    identity: IdentityService = Depends(get_identity_service),
) -> Optional[AuthSession]:
    """The current session, or None for anonymous visitors."""
    return _resolve_session(request, cred, identity)


async def get_current_session(
    session: Optional[AuthSession] = Depends(get_optional_session),
) -> AuthSession:
    """
    The current session, from the Authorization Bearer header or the session cookie.
    Pages that need a signed-in user respond 401 without one.
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Bearer authentication required",
            headers={"WWW-Authenticate": 'Bearer realm="auth_required"'},
        )
    return session


def get_record_store(session: AuthSession = Depends(get_current_session)) -> RecordStore:
    """Record store acting as the signed-in user so that row-level security applies."""
    return SupabaseRecordStore(get_supabase_client(session.access_token))
