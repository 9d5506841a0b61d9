"""Sign-in, session and sign-out endpoints."""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from .main import app, get_broker, get_config, request_session
from .pages import create_error_html
from ..auth.oauth_config import OAuthConfig
from ..auth.session_broker import SessionBroker
from ..session import SessionRestorer
from ..utils.errors import LifeAssistError

logger = logging.getLogger(__name__)


def _error_redirect(message: str) -> RedirectResponse:
    return RedirectResponse(f"/auth/error?{urlencode({'error': message})}", status_code=302)


@app.get("/api/auth/google")
def begin_google_sign_in(
    returnTo: str = "/",
    broker: SessionBroker = Depends(get_broker),
):
    """Redirect the browser to Google's consent screen."""
    try:
        redirect = broker.begin_interactive_sign_in(return_to=returnTo)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error generating auth URL: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to generate authentication URL"},
        )
    return RedirectResponse(redirect.url, status_code=302)


@app.get("/api/auth/callback/google")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
):
    """Handle the OAuth callback from Google."""
    if error:
        logger.error(f"Google returned an error: {error}")
        return _error_redirect(error)

    if not code:
        logger.error("No authorization code received from Google")
        return _error_redirect("no_code")

    try:
        session = broker.complete_interactive_sign_in(code, state)
    except LifeAssistError as e:
        logger.error(f"Error in Google callback: {e}")
        return _error_redirect(e.message)

    cache = request_session(request, config)
    cache.remember(session.credential)

    return RedirectResponse(session.return_to, status_code=302)


@app.get("/api/auth/session")
def read_session(
    request: Request,
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
):
    """Restore the session from the signed session pointers, refreshing the token if needed."""
    cache = request_session(request, config)
    restorer = SessionRestorer(
        broker, cache, debounce_seconds=config.email_restore_debounce_seconds
    )
    result = restorer.restore()

    if result.authenticated and result.credential is not None:
        return JSONResponse(
            content={
                "authenticated": True,
                "user": result.credential.to_profile(),
                "accessTokenExpiresAtMs": result.credential.access_token_expires_at_ms,
            }
        )
    return JSONResponse(status_code=401, content={"authenticated": False})


@app.post("/api/auth/signout")
def sign_out(
    request: Request,
    broker: SessionBroker = Depends(get_broker),
    config: OAuthConfig = Depends(get_config),
):
    """Clear session pointers and suppress silent restore."""
    cache = request_session(request, config)
    broker.end_session(cache.last_user_id, cache)
    return {"success": True}


@app.get("/auth/error", response_class=HTMLResponse)
def auth_error(error: str = "Unknown error") -> HTMLResponse:
    """Show why interactive sign-in failed."""
    return HTMLResponse(content=create_error_html(error))
