"""LifeAssist - session and credential lifecycle for the LifeAssist assistant.

This package keeps a signed-in user's Google OAuth credentials, hands out
usable access tokens (refreshing them near expiry), and restores sessions
across page reloads without interactive consent.
"""
from .auth import SessionBroker, UserCredential, get_session_broker

__version__ = "0.1.0"
__all__ = ["SessionBroker", "UserCredential", "get_session_broker"]
