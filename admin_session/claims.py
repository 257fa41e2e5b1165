"""
Unverified access token claims. Signature checks are the backend's job;
the client only needs `exp` to decide when to renew.
"""
import logging

import jwt

from admin_session.errors import MalformedCredential

logger = logging.getLogger(__name__)


def decode_claims(token: str) -> dict:
    """
    Decode the payload of a JWT without verifying its signature or time claims.
    Raises MalformedCredential for anything PyJWT cannot read as a JSON object payload.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise MalformedCredential(f"token is not a readable JWT: {e}") from e


def get_expiry(token: str | None) -> int | None:
    """Expiry (seconds since epoch) or None when absent/undecodable. Never raises."""
    if not token:
        return None
    try:
        claims = decode_claims(token)
    except MalformedCredential as e:
        logger.debug("Access token treated as expired: %s", e)
        return None
    exp = claims.get("exp")
    # bool is an int subclass; a boolean exp is garbage, and 0 counts as missing
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not exp:
        return None
    return int(exp)
