"""
Durable key-value storage used to mirror cart state.

Any object with get/set/remove over string values works; these two cover
tests (MemoryStorage) and the web app (SessionStorage, one cart per
browser).
"""
from typing import Dict, Optional

from flask import session


class MemoryStorage:
    """Dict-backed storage. Survives as long as the instance does."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class SessionStorage:
    """
    Storage over the Flask session cookie.

    Scoped to the browser that owns the cookie and survives page reloads,
    the same guarantees a browser's localStorage gives. Only usable inside
    a request context.
    """

    def get(self, key: str) -> Optional[str]:
        value = session.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        session[key] = value
        session.modified = True

    def remove(self, key: str) -> None:
        if key in session:
            del session[key]
            session.modified = True

    def __contains__(self, key: str) -> bool:
        return key in session
