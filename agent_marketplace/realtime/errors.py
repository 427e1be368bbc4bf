"""Errors raised by chat relay handlers.

The relay dispatcher turns these into an ``error`` event for the originating
connection only, except :class:`AuthError`, which answers with ``auth_error``
and closes the connection.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    code = "server_error"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotAuthenticated(RelayError):
    code = "not_authenticated"
    default_message = "Not authenticated"


class AccessDenied(RelayError):
    code = "access_denied"
    default_message = "Access denied to chat"


class AuthError(RelayError):
    code = "auth_error"
    default_message = "Authentication failed"


class PersistenceFailure(RelayError):
    code = "persistence_failure"
    default_message = "Failed to save changes"


class InvalidPayload(RelayError):
    code = "invalid_payload"
    default_message = "Invalid payload"
