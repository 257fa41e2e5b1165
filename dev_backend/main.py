"""
Development backend — the portfolio REST API's auth surface, for local runs and tests.
POST /api/users/login/, POST /api/users/token/refresh/, GET /api/users/me/.
Port 8001 (admin_session default ADMIN_API_BASE_URL).
"""
import logging
from typing import Annotated

import jwt
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from dev_backend.tokens import (
    InvalidRefreshToken,
    issue_access_token,
    issue_refresh_token,
    use_refresh_token,
    verify_access_token,
)
from dev_backend.users import authenticate, get_user_by_id, seed_from_env

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


security = HTTPBearer(auto_error=False)


def get_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict:
    """Dependency: valid Bearer access token -> decoded claims."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Authentication credentials were not provided.")
    try:
        return verify_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token is expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Access token rejected: %s", e)
        raise _unauthorized("Given token not valid for any token type")


def create_app() -> FastAPI:
    seed_from_env()
    app = FastAPI(title="Dev Backend", version="0.1.0")

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "dev_backend"}

    @app.post("/api/users/login/")
    def login(body: LoginRequest):
        user = authenticate(body.email, body.password)
        if user is None:
            raise _unauthorized("No active account found with the given credentials")
        logger.info("login ok user_id=%s", user.id)
        return {"access": issue_access_token(user.id), "refresh": issue_refresh_token(user.id)}

    @app.post("/api/users/token/refresh/")
    def refresh(body: RefreshRequest):
        try:
            user_id, rotated = use_refresh_token(body.refresh)
        except InvalidRefreshToken as e:
            raise _unauthorized(str(e))
        response = {"access": issue_access_token(user_id)}
        if rotated:
            response["refresh"] = rotated
        logger.info("token refreshed user_id=%s rotated=%s", user_id, bool(rotated))
        return response

    @app.get("/api/users/me/")
    def me(claims: dict = Depends(get_claims)):
        user = get_user_by_id(int(claims["sub"]))
        if user is None:
            raise _unauthorized("User not found")
        return {"id": user.id, "email": user.email, "is_active": user.is_active}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dev_backend.main:app",
        host="127.0.0.1",
        port=8001,
        reload=True,
    )
