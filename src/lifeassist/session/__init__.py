"""
Client session persistence for LifeAssist.

Keeps pointers to the last signed-in user in an injected client storage and
restores the session silently on reload.
"""

from .storage import ClientStorage, MemoryClientStorage, SessionClientStorage
from .cache import ClientSessionCache
from .restorer import RestoreResult, RestoreState, SessionRestorer

__all__ = [
    "ClientStorage",
    "MemoryClientStorage",
    "SessionClientStorage",
    "ClientSessionCache",
    "RestoreResult",
    "RestoreState",
    "SessionRestorer",
]
