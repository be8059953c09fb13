"""Issuing and checking bearer tokens."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

import jwt

from securevault import log
from securevault.models import utc_now

TOKEN_LIFETIME = timedelta(hours=24)
BEARER_PREFIX = "Bearer "
_SIGNING_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


class AuthError(Exception):
    """Raised when a token cannot be issued or is not accepted."""


def issue_token(user_id: str, secret: str, now: Optional[datetime] = None) -> str:
    """Return an HS256 token for ``user_id`` valid for 24 hours from ``now``."""
    if not secret:
        raise AuthError("JWT_SECRET not set")
    issued = utc_now() if now is None else now
    claims = {"sub": user_id, "exp": int((issued + TOKEN_LIFETIME).timestamp())}
    try:
        signed = jwt.encode(claims, secret, algorithm=_SIGNING_ALGORITHM)
    except jwt.PyJWTError as exc:
        log.error("auth", "Failed to sign token: %s", exc)
        raise AuthError("token error") from exc
    log.info("auth", "Issued token for user: %s", user_id)
    return signed


def verify_token(token: str, secret: str) -> dict[str, Any]:
    """Check an HMAC-signed token and return its claims."""
    if not secret:
        raise AuthError("JWT_SECRET is not set in environment")
    try:
        claims = jwt.decode(token, secret, algorithms=_HMAC_ALGORITHMS, options={"verify_sub": False})
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid or expired token") from exc
    if not isinstance(claims, dict):
        raise AuthError("Invalid token claims")
    return claims


def user_id_from_header(header: Optional[str], secret: str) -> str:
    """Authenticate an Authorization header and return the token's subject, or ''."""
    if not header or not header.startswith(BEARER_PREFIX):
        raise AuthError("Missing or invalid Authorization header")
    subject = verify_token(header[len(BEARER_PREFIX):], secret).get("sub")
    log.info("auth", "Authenticated user: %s", subject)
    return subject if isinstance(subject, str) else ""