"""Error taxonomy for legal-source providers."""

from __future__ import annotations


class LegalSourceError(Exception):
    """Base class for all provider errors"""


class ConfigurationError(LegalSourceError):
    """Required configuration (credentials) is missing.

    Fatal for the affected source only; the provider is exposed as disabled.
    """


class AuthenticationError(LegalSourceError):
    """The login handshake did not reach an authenticated state."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class AccessDeniedError(LegalSourceError):
    """The origin rendered a permission page instead of the document."""

    def __init__(self, target: str):
        super().__init__(f"Access Denied for {target}")
        self.target = target


class EmptyContentError(LegalSourceError):
    """Conversion succeeded but no document body could be extracted."""

    def __init__(self, target: str, message: str | None = None):
        super().__init__(message or f"Empty content for {target}.")
        self.target = target


class UnresolvedReferenceError(LegalSourceError):
    """A lookup could not be resolved to a single unambiguous document."""


class MalformedResponseError(LegalSourceError):
    """A payload from the origin could not be parsed."""
