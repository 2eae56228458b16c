"""
JWT validation utilities for Supabase Auth tokens.

Supports both the legacy JWT secret (HS256) and the Signing Keys system,
where tokens are signed with an asymmetric key published in the project's
JWKS. Without local key material, callers fall back to asking the identity
service (see app.auth.dependencies).
"""
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
import jwt

from app.core.secrets import resolve_setting

ASYMMETRIC_ALGORITHMS = ["ES256", "RS256"]


def get_jwt_secret() -> Optional[str]:
    """
    Get Supabase JWT secret for HS256 token validation, or None when it is not configured.
    """
    return resolve_setting("SUPABASE_JWT_SECRET", required=False)


@lru_cache(maxsize=4)
def get_jwks(supabase_url: str) -> Dict[str, Any]:
    """
    Fetch JSON Web Key Set (JWKS) from Supabase for asymmetric key validation.

    Args:
        supabase_url: Your Supabase project URL

    Returns:
        JWKS containing public keys for JWT verification
    """
    jwks_url = f"{supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"
    response = httpx.get(jwks_url, timeout=10.0)
    response.raise_for_status()
    return response.json()


def _find_signing_key(jwks: Dict[str, Any], kid: Optional[str]):
    for jwk in jwks.get("keys", []):
        if jwk.get("kid") == kid:
            return jwt.PyJWK(jwk).key
    return None


def validate_jwt_token(
    token: str,
    secret: str,
    audience: str = "authenticated",
    algorithms: Optional[list] = None,
) -> Dict[str, Any]:
    """
    Decode an HS256 token signed with the project secret (legacy JWT secret,
    or a symmetric key of the Signing Keys system).

    Raises:
        jwt.exceptions.PyJWTError: If token is invalid or expired
    """
    if algorithms is None:
        algorithms = ["HS256"]

    return jwt.decode(
        token,
        secret,
        audience=audience,
        algorithms=algorithms,
    )


def validate_asymmetric_token(token: str, supabase_url: str, audience: str = "authenticated") -> Dict[str, Any]:
    """
    Validate a token signed with one of the project's signing keys.

    An unknown `kid` refetches the JWKS once, so rotated keys are picked up.

    Raises:
        jwt.exceptions.PyJWTError: If token is invalid, expired or signed by an unknown key
        httpx.HTTPError: If the JWKS cannot be fetched
    """
    kid = jwt.get_unverified_header(token).get("kid")
    key = _find_signing_key(get_jwks(supabase_url), kid)
    if key is None:
        get_jwks.cache_clear()
        key = _find_signing_key(get_jwks(supabase_url), kid)
    if key is None:
        raise jwt.exceptions.InvalidKeyError(f"No signing key with kid {kid}")

    return jwt.decode(token, key, audience=audience, algorithms=ASYMMETRIC_ALGORITHMS)


def extract_user_from_jwt(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract user information from decoded JWT payload.

    Supabase puts sign-up attributes (our `full_name`) under `user_metadata`.
    """
    user_metadata = payload.get("user_metadata") or {}
    return {
        "user_id": payload.get("sub"),  # 'sub' claim contains user UUID
        "email": payload.get("email") or "",
        "display_name": user_metadata.get("full_name") or None,
    }
