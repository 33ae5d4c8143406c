"""Error taxonomy for permission and settings operations.

Callers map these to their own transport errors; the HTTP layer turns
them into 403 / 404 / 400 responses.
"""

from __future__ import annotations


class PermissionsError(Exception):
    """Base class for settings/permission failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Forbidden(PermissionsError):
    """Actor lacks the role required for the requested mutation."""


class NotFound(PermissionsError):
    """Referenced user or tenant does not exist."""


class InvalidRequest(PermissionsError):
    """Request is well-formed but cannot be carried out (e.g. SMTP not configured)."""
