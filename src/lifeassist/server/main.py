"""FastAPI application, shared dependencies and error mapping."""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from ..assistant import get_chat_assistant
from ..auth.oauth_config import OAuthConfig, get_oauth_config
from ..auth.session_broker import SessionBroker, get_session_broker
from ..calendar import CalendarClient
from ..session import ClientSessionCache, SessionClientStorage
from ..utils.errors import (
    RemoteServiceError,
    SessionExpired,
    SessionNotFound,
    StoreUnavailableError,
    format_error,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="LifeAssist")

_config = get_oauth_config()
_session_secret = _config.session_secret
if not _session_secret:
    logger.warning(
        "LIFEASSIST_SESSION_SECRET is not set; using a per-process key, "
        "sessions will not survive a restart"
    )
    _session_secret = os.urandom(32).hex()

app.add_middleware(
    SessionMiddleware,
    secret_key=_session_secret,
    session_cookie=_config.session_cookie,
    max_age=_config.pointer_ttl_seconds,
    same_site="lax",
    https_only=_config.secure_cookies,
)


def get_broker() -> SessionBroker:
    """Dependency: the process-wide session broker."""
    return get_session_broker()


def get_config() -> OAuthConfig:
    """Dependency: the current configuration."""
    return get_oauth_config()


def get_calendar_factory():
    """Dependency: how to build a calendar client from an access token."""
    return CalendarClient


def get_assistant_factory():
    """Dependency: how to obtain the chat assistant."""
    return get_chat_assistant


def request_session(request: Request, config: OAuthConfig) -> ClientSessionCache:
    """Session pointer cache backed by this request's signed session cookie."""
    storage = SessionClientStorage(request.session)
    return ClientSessionCache(storage, pointer_ttl_seconds=config.pointer_ttl_seconds)


@app.exception_handler(SessionNotFound)
@app.exception_handler(SessionExpired)
async def session_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"success": False, "message": format_error("Authentication", exc)},
    )


@app.exception_handler(RemoteServiceError)
async def remote_exception_handler(
    request: Request, exc: RemoteServiceError
) -> JSONResponse:
    status = exc.status if exc.status in (401, 403, 404, 429, 503) else 502
    return JSONResponse(
        status_code=status,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(StoreUnavailableError)
async def store_exception_handler(
    request: Request, exc: StoreUnavailableError
) -> JSONResponse:
    logger.error(f"Credential store unavailable: {exc}")
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "Session storage is unavailable"},
    )
