"""Session Store

Persists the authentication cookie jar between process invocations so that
the expensive OIDC handshake is skipped while the session is still valid.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


AUTH_COOKIE_NAME = "beck-online.auth"

Cookie = dict[str, Any]


def find_auth_cookie(cookies: list[Cookie]) -> Cookie | None:
    """Return the session-auth cookie from a cookie list, if present"""
    for cookie in cookies:
        if isinstance(cookie, dict) and cookie.get("name") == AUTH_COOKIE_NAME:
            return cookie
    return None


def is_cookie_expired(cookie: Cookie, now: float | None = None) -> bool:
    """Session-only cookies (no expiry or -1) never count as expired"""
    expires = cookie.get("expires")
    if expires is None or expires == -1:
        return False
    try:
        return float(expires) < (now if now is not None else time.time())
    except (TypeError, ValueError):
        return True


class SessionStore(ABC):
    """Storage port for the cookie jar"""

    @abstractmethod
    async def read(self) -> Any | None:
        """Return the raw persisted payload, or None"""
        pass

    @abstractmethod
    async def write(self, cookies: list[Cookie]) -> None:
        """Replace the persisted payload"""
        pass

    async def save(self, cookies: list[Cookie]) -> None:
        """Persist the full cookie set. Failures are logged, never raised."""
        try:
            await self.write(cookies)
        except Exception as e:
            logger.error(f"Failed to save session: {e}")

    async def load(self) -> list[Cookie] | None:
        """Return the saved cookies if they hold a live auth cookie"""
        try:
            cookies = await self.read()
        except Exception as e:
            logger.error(f"Failed to load session: {e}")
            return None

        if not isinstance(cookies, list):
            return None

        auth = find_auth_cookie(cookies)
        if auth is None:
            return None

        if is_cookie_expired(auth):
            logger.info("Saved session expired.")
            return None

        return cookies


class FileSessionStore(SessionStore):
    """JSON file at a fixed per-user path"""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    async def read(self) -> Any | None:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def write(self, cookies: list[Cookie]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(cookies, f, ensure_ascii=False, indent=2)
        logger.info(f"Session saved to {self.path}")


class InMemorySessionStore(SessionStore):
    """In-memory cookie jar (tests and development)"""

    def __init__(self, cookies: list[Cookie] | None = None):
        self._cookies = cookies

    async def read(self) -> Any | None:
        return self._cookies

    async def write(self, cookies: list[Cookie]) -> None:
        self._cookies = [dict(c) for c in cookies]
