"""Core Package for German Legal MCP

Browser session, session persistence and the error taxonomy.
"""

from .browser import BeckBrowser, BrowserHandles, BrowserState, launch_chromium
from .exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConfigurationError,
    EmptyContentError,
    LegalSourceError,
    MalformedResponseError,
    UnresolvedReferenceError,
)
from .session_store import (
    AUTH_COOKIE_NAME,
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
)

__all__ = [
    # Browser
    "BeckBrowser",
    "BrowserHandles",
    "BrowserState",
    "launch_chromium",
    # Session
    "AUTH_COOKIE_NAME",
    "SessionStore",
    "FileSessionStore",
    "InMemorySessionStore",
    # Errors
    "LegalSourceError",
    "ConfigurationError",
    "AuthenticationError",
    "AccessDeniedError",
    "EmptyContentError",
    "UnresolvedReferenceError",
    "MalformedResponseError",
]
