"""
Token sealing using Fernet (symmetric encryption).

Supabase access and refresh tokens are kept in the signed session cookie.
Signing only prevents tampering, so the tokens are encrypted before they go in.
"""
import json
from functools import lru_cache
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from app.core.secrets import resolve_setting


@lru_cache(maxsize=1)
def _get_cipher() -> Fernet:
    """Get the Fernet cipher keyed by ENCRYPTION_KEY (or the secret named by ENCRYPTION_KEY_NAME)."""
    key = resolve_setting("ENCRYPTION_KEY")
    return Fernet(key.encode())


def encrypt_token(plaintext: str) -> bytes:
    if not plaintext:
        return b""
    return _get_cipher().encrypt(plaintext.encode())


def decrypt_token(encrypted: bytes) -> str:
    if not encrypted:
        return ""
    return _get_cipher().decrypt(encrypted).decode()


def seal_session_tokens(access_token: str, refresh_token: Optional[str]) -> str:
    """
    Encrypt a token pair into a single string that can live in the cookie session.

    Fernet tokens are already base64-encoded, so the result is JSON-safe.
    """
    payload = json.dumps({"access_token": access_token, "refresh_token": refresh_token or ""})
    return encrypt_token(payload).decode("utf-8")


def open_session_tokens(sealed: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Reverse of seal_session_tokens.

    Returns None when nothing is stored or when the value cannot be
    decrypted (key rotated, cookie from another deployment).
    """
    if not sealed:
        return None
    try:
        payload = decrypt_token(sealed.encode("utf-8"))
    except InvalidToken:
        return None
    data = json.loads(payload)
    if not data.get("access_token"):
        return None
    return data
