from .session_store import RedisSessionStore
from .session_store import SessionStore


__all__ = [
    "RedisSessionStore",
    "SessionStore",
]
