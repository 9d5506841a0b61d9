"""LifeAssist HTTP server."""

import logging
import os
from urllib.parse import urlparse

import uvicorn

from .main import app

from . import auth_routes
from . import calendar_routes
from . import chat_routes

__all__ = ["app", "main"]


def main():
    """Entry point for the LifeAssist server."""
    from ..auth.google_auth import check_client_secrets
    from ..auth.oauth_config import get_oauth_config

    logging.basicConfig(
        level=os.getenv("LIFEASSIST_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)
    config = get_oauth_config()
    logger.info("Starting LifeAssist: %s", config.get_environment_summary())
    error = check_client_secrets()
    if error:
        logger.warning(error)
    hostname = urlparse(config.base_uri).hostname or "localhost"
    uvicorn.run(app, host=hostname, port=config.port, log_level="info")
