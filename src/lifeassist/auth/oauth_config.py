"""
OAuth and Session Configuration Management for LifeAssist.

This module centralizes OAuth and session-lifecycle configuration to eliminate
hardcoded values. Values come from environment variables, with a `.env` file
loaded first when present.
"""

import os
from typing import Optional, Dict, Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class OAuthConfig:
    """
    Centralized OAuth configuration management.

    Provides a single source of truth for all OAuth and session configuration.
    """

    def __init__(self) -> None:
        # Base server configuration
        self.base_uri = os.getenv("LIFEASSIST_BASE_URI", "http://localhost")
        self.port = int(os.getenv("LIFEASSIST_PORT", "3000"))
        self.base_url = f"{self.base_uri}:{self.port}"

        # External URL for reverse proxy scenarios
        self.external_url = os.getenv("LIFEASSIST_EXTERNAL_URL")

        # Data directory (local credential store, pending OAuth states)
        self.data_dir = os.path.expanduser(
            os.getenv("LIFEASSIST_DATA_DIR", "~/.lifeassist")
        )

        # OAuth client configuration (from environment or client_secret.json)
        self.client_id = os.getenv("GOOGLE_OAUTH_CLIENT_ID")
        self.client_secret = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET")
        self.client_secrets_path = os.path.join(self.data_dir, "client_secret.json")

        # Credential store backend: "local" or "firestore"
        self.credential_backend = os.getenv("LIFEASSIST_CREDENTIAL_BACKEND", "local")
        self.firebase_credentials_path = os.getenv("FIREBASE_CREDENTIALS_PATH")

        # Session lifecycle
        self.refresh_margin_seconds = int(
            os.getenv("LIFEASSIST_REFRESH_MARGIN_SECONDS", "300")
        )
        self.email_restore_debounce_seconds = float(
            os.getenv("LIFEASSIST_EMAIL_RESTORE_DEBOUNCE_SECONDS", "10")
        )
        self.pointer_ttl_days = int(os.getenv("LIFEASSIST_POINTER_TTL_DAYS", "30"))
        self.oauth_state_ttl_seconds = 600
        self.secure_cookies = _env_bool("LIFEASSIST_SECURE_COOKIES", False)

        # Signs the session cookie that carries the user pointers
        self.session_secret = os.getenv("LIFEASSIST_SESSION_SECRET")
        self.session_cookie = os.getenv("LIFEASSIST_SESSION_COOKIE", "lifeassist_session")

        # Chat assistant (Anthropic)
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")
        self.chat_model = os.getenv("LIFEASSIST_CHAT_MODEL", "claude-3-7-sonnet-20250219")
        self.chat_max_tokens = int(os.getenv("LIFEASSIST_CHAT_MAX_TOKENS", "1024"))

        # PKCE is always required
        self.pkce_required = True

        # Redirect URI configuration
        self.redirect_uri = self._get_redirect_uri()

    def _get_redirect_uri(self) -> str:
        """Get the OAuth redirect URI."""
        explicit_uri = os.getenv("LIFEASSIST_REDIRECT_URI")
        if explicit_uri:
            return explicit_uri
        return f"{self.get_oauth_base_url()}/api/auth/callback/google"

    def get_oauth_base_url(self) -> str:
        """
        Get OAuth base URL for constructing OAuth endpoints.

        Uses LIFEASSIST_EXTERNAL_URL if set (for reverse proxy scenarios),
        otherwise falls back to constructed base_url with port.
        """
        if self.external_url:
            return self.external_url
        return self.base_url

    @property
    def pointer_ttl_seconds(self) -> int:
        return self.pointer_ttl_days * 24 * 60 * 60

    def is_configured(self) -> bool:
        """Check if OAuth is properly configured."""
        # Either environment variables or client_secret.json must exist
        if self.client_id and self.client_secret:
            return True
        return os.path.exists(self.client_secrets_path)

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration (excluding secrets)."""
        return {
            "base_url": self.base_url,
            "external_url": self.external_url,
            "effective_oauth_url": self.get_oauth_base_url(),
            "redirect_uri": self.redirect_uri,
            "data_dir": self.data_dir,
            "client_configured": self.is_configured(),
            "credential_backend": self.credential_backend,
            "refresh_margin_seconds": self.refresh_margin_seconds,
            "email_restore_debounce_seconds": self.email_restore_debounce_seconds,
            "pointer_ttl_days": self.pointer_ttl_days,
            "secure_cookies": self.secure_cookies,
            "session_secret_configured": bool(self.session_secret),
            "chat_configured": bool(self.anthropic_api_key),
            "chat_model": self.chat_model,
            "pkce_required": self.pkce_required,
        }


# Global configuration instance
_oauth_config: Optional[OAuthConfig] = None


def get_oauth_config() -> OAuthConfig:
    """Get the global OAuth configuration instance."""
    global _oauth_config
    if _oauth_config is None:
        _oauth_config = OAuthConfig()
    return _oauth_config


def reload_oauth_config() -> OAuthConfig:
    """Reload the OAuth configuration from environment variables."""
    global _oauth_config
    _oauth_config = OAuthConfig()
    return _oauth_config


def get_data_dir() -> str:
    """Get the data directory path, creating it if necessary."""
    config = get_oauth_config()
    if not os.path.exists(config.data_dir):
        os.makedirs(config.data_dir, exist_ok=True)
    return config.data_dir
