"""
Staleness policy: pure functions over (expiry, margin, now).
"""
from enum import Enum

from admin_session.claims import get_expiry


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FRESH = "fresh"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"
    RENEWING = "renewing"


def is_stale(exp: int | float | None, margin_seconds: float, now: float) -> bool:
    """
    True if the token should be renewed: no known expiry, or expiry within margin_seconds of now.
    Margin 0 means "actually expired".
    """
    if exp is None:
        return True
    return exp - now <= margin_seconds


def classify(
    access_token: str | None,
    *,
    margin_seconds: float,
    now: float,
    renewing: bool = False,
) -> SessionState:
    """Derive the session state from the stored access token and the clock."""
    if renewing:
        return SessionState.RENEWING
    if not access_token:
        return SessionState.UNAUTHENTICATED
    exp = get_expiry(access_token)
    if is_stale(exp, 0, now):
        return SessionState.EXPIRED
    if is_stale(exp, margin_seconds, now):
        return SessionState.NEAR_EXPIRY
    return SessionState.FRESH
