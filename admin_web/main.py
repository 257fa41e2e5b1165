"""
Admin Web — login, logout and the guarded admin area of the portfolio dashboard.
Talks to the REST backend only through admin_session (bearer auth, renewal, 401 retry).
GET /, /admin, /admin/dashboard; POST /admin/login, /admin/logout; /admin/api/{path} proxy.
Port 8000.
"""
import html
import logging
from contextlib import asynccontextmanager
from urllib.parse import urlencode

import httpx
from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from admin_session.errors import LoginFailed, RequestAuthorizationFailure
from admin_session.guard import GuardState, SessionGuard
from admin_session.session import SessionManager
from admin_web.config import HOME_ROUTE, LOGIN_ROUTE, PROFILE_PATH

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class LoginRequired(Exception):
    """Raised by guarded routes; rendered as a redirect to the login surface."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
{body}
</body>
</html>""",
        status_code=status_code,
    )


def _login_location(destination: str) -> str:
    return f"{LOGIN_ROUTE}?{urlencode({'next': destination})}"


def _safe_next(next_path: str | None) -> str:
    """Only same-site admin paths are allowed as post-login targets."""
    if next_path and next_path.startswith(LOGIN_ROUTE + "/") and not next_path.startswith("//"):
        return next_path
    return HOME_ROUTE


async def _unmount_guard(app: FastAPI) -> None:
    guard, app.state.guard = app.state.guard, None
    if guard is not None:
        await guard.unmount()


async def _mount_guard(app: FastAPI, destination: str | None) -> SessionGuard:
    await _unmount_guard(app)
    guard = SessionGuard(app.state.session, login_route=LOGIN_ROUTE, destination=destination)
    app.state.guard = guard
    await guard.mount()
    return guard


async def require_session(request: Request) -> SessionManager:
    """
    Dependency for the protected area. Reuses the running guard while it is READY;
    otherwise mounts a fresh one, which redirects when there is no session.
    """
    app = request.app
    session: SessionManager = app.state.session
    guard: SessionGuard | None = app.state.guard
    if guard is None or guard.state is not GuardState.READY or not session.get_access_token():
        guard = await _mount_guard(app, request.url.path)
        if guard.state is GuardState.REDIRECTING:
            raise LoginRequired(guard.redirect_location or _login_location(request.url.path))
    return session


def create_app(session: SessionManager | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Stop background renewal and close the backend client on shutdown."""
        yield
        await _unmount_guard(app)
        await app.state.session.aclose()

    app = FastAPI(title="Admin Web", version="0.1.0", lifespan=lifespan)
    app.state.session = session if session is not None else SessionManager()
    app.state.guard = None

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        return RedirectResponse(url=exc.location, status_code=303)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "admin_web"}

    @app.get("/", response_class=HTMLResponse)
    def home():
        """Home page with link to the admin area."""
        return _page("Portfolio Admin", f'  <p><a href="{HOME_ROUTE}">Dashboard</a> (requires login)</p>')

    @app.get(LOGIN_ROUTE, response_class=HTMLResponse)
    def login_form(request: Request, next: str | None = None):
        """Login form; ?next is carried through to the post-login redirect."""
        if request.app.state.session.get_access_token():
            return RedirectResponse(url=_safe_next(next), status_code=303)
        return _login_page(next)

    @app.post(f"{LOGIN_ROUTE}/login")
    async def login(
        request: Request,
        email: str = Form(...),
        password: str = Form(...),
        next: str | None = Form(None),
    ):
        session: SessionManager = request.app.state.session
        try:
            await session.login(email, password)
        except LoginFailed as e:
            logger.info("Admin login failed: %s", e)
            return _login_page(next, error=str(e), status_code=401)
        target = _safe_next(next)
        await _mount_guard(request.app, target)
        return RedirectResponse(url=target, status_code=303)

    @app.post(f"{LOGIN_ROUTE}/logout")
    async def logout(request: Request):
        await _unmount_guard(request.app)
        await request.app.state.session.logout()
        return RedirectResponse(url=LOGIN_ROUTE, status_code=303)

    @app.get(HOME_ROUTE, response_class=HTMLResponse)
    async def dashboard(request: Request, session: SessionManager = Depends(require_session)):
        """Guarded dashboard: shows the signed-in admin's profile from the backend."""
        try:
            profile = await session.fetch_json_with_auth(PROFILE_PATH)
        except RequestAuthorizationFailure:
            # Still unauthorized after renew + retry: the session is unusable
            await _unmount_guard(request.app)
            session.clear_tokens()
            raise LoginRequired(_login_location(request.url.path))
        except httpx.HTTPError as e:
            return _page("Dashboard", f"  <p>Request failed: {html.escape(str(e))}</p>", status_code=502)
        email = profile.get("email", "unknown") if isinstance(profile, dict) else "unknown"
        return _page(
            "Dashboard",
            f"""  <p>Signed in as <code>{html.escape(str(email))}</code></p>
  <p>Session: {html.escape(session.state.value)}</p>
  <form method="post" action="{LOGIN_ROUTE}/logout"><button type="submit">Log out</button></form>""",
        )

    @app.api_route(f"{LOGIN_ROUTE}/api/{{path:path}}", methods=PROXY_METHODS)
    async def api_proxy(path: str, request: Request, session: SessionManager = Depends(require_session)):
        """Forward to the backend with the session's bearer token; status and body are passed through."""
        headers = {}
        content_type = request.headers.get("content-type")
        if content_type:
            headers["Content-Type"] = content_type
        body = await request.body()
        try:
            r = await session.fetch_with_auth(
                f"/api/{path}",
                method=request.method,
                params=list(request.query_params.multi_items()),
                content=body or None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning("Upstream request /api/%s failed: %s", path, e)
            return JSONResponse({"detail": "Upstream error"}, status_code=502)
        return Response(content=r.content, status_code=r.status_code, media_type=r.headers.get("content-type"))

    return app


def _login_page(next_path: str | None, error: str | None = None, status_code: int = 200) -> HTMLResponse:
    error_html = f'  <p class="error">{html.escape(error)}</p>\n' if error else ""
    next_html = html.escape(next_path or "", quote=True)
    return _page(
        "Admin login",
        f"""{error_html}  <form method="post" action="{LOGIN_ROUTE}/login">
    <input type="hidden" name="next" value="{next_html}">
    <label>Email <input type="email" name="email" required></label>
    <label>Password <input type="password" name="password" required></label>
    <button type="submit">Log in</button>
  </form>
  <p><a href="/">Home</a></p>""",
        status_code=status_code,
    )


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "admin_web.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
