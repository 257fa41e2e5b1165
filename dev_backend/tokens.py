"""
Token issuing for the development backend: HS256 access JWTs and opaque refresh tokens.
Refresh tokens are single-use when rotation is on; replaying one is rejected.
"""
import logging
import secrets
import threading
import time
from dataclasses import dataclass

import jwt

from dev_backend.config import (
    ACCESS_TOKEN_EXPIRES,
    REFRESH_TOKEN_EXPIRES,
    ROTATE_REFRESH_TOKENS,
    SIGNING_SECRET,
)

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

_secret: str | None = SIGNING_SECRET


def get_signing_secret() -> str:
    """Configured secret, or a per-process random one."""
    global _secret
    if _secret is None:
        _secret = secrets.token_urlsafe(32)
        logger.warning("DEV_BACKEND_SIGNING_SECRET not set; generated a transient signing secret")
    return _secret


class InvalidRefreshToken(Exception):
    """Refresh token unknown, expired or already used."""


@dataclass
class RefreshRecord:
    user_id: int
    expires_at: float
    used: bool = False


_refresh_tokens: dict[str, RefreshRecord] = {}
_lock = threading.Lock()


def issue_access_token(user_id: int, *, expires_in: int = ACCESS_TOKEN_EXPIRES) -> str:
    now = int(time.time())
    payload = {
        "token_type": "access",
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
        "jti": secrets.token_hex(8),
    }
    token = jwt.encode(payload, get_signing_secret(), algorithm=ALGORITHM)
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def verify_access_token(token: str) -> dict:
    """Decoded claims; raises jwt.InvalidTokenError (incl. ExpiredSignatureError) otherwise."""
    claims = jwt.decode(
        token,
        get_signing_secret(),
        algorithms=[ALGORITHM],
        options={"require": ["exp", "sub"]},
    )
    if claims.get("token_type") != "access":
        raise jwt.InvalidTokenError("not an access token")
    return claims


def issue_refresh_token(user_id: int, *, expires_in: int = REFRESH_TOKEN_EXPIRES) -> str:
    value = secrets.token_urlsafe(48)
    with _lock:
        _refresh_tokens[value] = RefreshRecord(user_id=user_id, expires_at=time.time() + expires_in)
    return value


def use_refresh_token(value: str) -> tuple[int, str | None]:
    """
    Validate a refresh token. Returns (user_id, rotated refresh token or None).
    With rotation on, the presented token is burned and a new one issued.
    """
    with _lock:
        record = _refresh_tokens.get(value)
        if record is None:
            raise InvalidRefreshToken("Token is invalid or expired")
        if record.used:
            raise InvalidRefreshToken("Token is blacklisted")
        if record.expires_at < time.time():
            raise InvalidRefreshToken("Token is invalid or expired")
        if ROTATE_REFRESH_TOKENS:
            record.used = True
    if ROTATE_REFRESH_TOKENS:
        return record.user_id, issue_refresh_token(record.user_id)
    return record.user_id, None

