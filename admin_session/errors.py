"""
Session error taxonomy. Only the request and login errors ever reach callers;
decode and renewal errors are recovered or recorded inside the session.
"""
import httpx


class SessionError(Exception):
    """Base class for admin session errors."""


class MalformedCredential(SessionError):
    """Access token payload could not be decoded. Treated as expired."""


class RenewalError(SessionError):
    """Renewal did not produce a new access token."""


class RenewalRejected(RenewalError):
    """Backend refused the refresh token (expired, revoked, reused)."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(message or f"Renewal rejected with status {status_code}")
        self.status_code = status_code


class RenewalUnreachable(RenewalError):
    """Transport failure while talking to the renewal endpoint."""


class RequestAuthorizationFailure(SessionError):
    """Authenticated request still unauthorized after one renewal-and-retry."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"{response.request.method} {response.request.url} unauthorized")
        self.response = response


class LoginFailed(SessionError):
    """Login endpoint did not return a credential pair."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
