from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any
from uuid import UUID

from fastapi import HTTPException, Security
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer

from .config import get_settings

SESSION_COOKIE_NAME = "ab_session"
MIN_SECRET_LENGTH = 32

session_cookie = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)
cron_bearer = HTTPBearer(auto_error=False)


def _get_secret() -> bytes:
    secret = get_settings().SESSION_SECRET
    if not secret or len(secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"SESSION_SECRET must be set and at least {MIN_SECRET_LENGTH} characters"
        )
    return secret.encode()


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _signature(data: str) -> str:
    digest = hmac.new(_get_secret(), data.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _split_token(token: str) -> tuple[str, str] | None:
    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def _signature_matches(data: str, sig: str) -> bool:
    return hmac.compare_digest(sig.encode("ascii", "ignore"), _signature(data).encode("ascii"))


# ---------------------------------------------------------------------------
# Audit tokens: grant read access to a single free audit, never expire
# ---------------------------------------------------------------------------

def sign_audit_token(audit_id: str | UUID) -> str:
    """Return `base64url(audit_id).base64url(hmac)`."""
    data = _b64url_encode(str(audit_id).encode())
    return f"{data}.{_signature(data)}"


def verify_audit_token(audit_id: str | UUID | None, token: str | None) -> bool:
    if not token or not audit_id:
        return False

    parts = _split_token(token)
    if parts is None:
        return False
    data, sig = parts

    try:
        token_audit_id = _b64url_decode(data).decode()
    except (binascii.Error, ValueError):
        return False
    if token_audit_id != str(audit_id):
        return False

    return _signature_matches(data, sig)


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------

def sign_session(payload: dict[str, Any]) -> str:
    data = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode())
    return f"{data}.{_signature(data)}"


def verify_session(token: str | None) -> dict[str, Any] | None:
    """
    Return the payload for a well-formed, correctly signed, unexpired token.

    `exp` is epoch milliseconds.
    """
    if not token:
        return None
    parts = _split_token(token)
    if parts is None:
        return None
    data, sig = parts

    if not _signature_matches(data, sig):
        return None

    try:
        payload = json.loads(_b64url_decode(data))
    except (binascii.Error, ValueError):
        return None
    if not isinstance(payload, dict):
        return None

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or exp < time.time() * 1000:
        return None
    return payload


def issue_session_token(user_id: str | UUID, email: str) -> str:
    max_age_ms = get_settings().SESSION_MAX_AGE_DAYS * 24 * 60 * 60 * 1000
    return sign_session(
        {
            "userId": str(user_id),
            "email": email,
            "exp": int(time.time() * 1000) + max_age_ms,
        }
    )


def get_session_user_id(token: str | None = Security(session_cookie)) -> UUID | None:
    payload = verify_session(token)
    if not payload:
        return None
    try:
        return UUID(str(payload.get("userId")))
    except ValueError:
        return None


def require_user_id(user_id: UUID | None = Security(get_session_user_id)) -> UUID:
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Security(cron_bearer),
) -> None:
    """
    Bearer-token check for scheduler-triggered endpoints.

    Without a configured CRON_SECRET every request is rejected.
    """
    expected = get_settings().CRON_SECRET
    if not expected or credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
