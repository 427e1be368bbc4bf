"""Identity lookup for Socket.IO connections.

The token a client sends with ``authenticate`` (or, failing that, the one it
put on the handshake) is validated as a SimpleJWT access token, the same
token the REST API accepts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str


def _lookup_identity(token: str) -> Identity | None:
    jwt_auth = JWTAuthentication()
    try:
        validated = jwt_auth.get_validated_token(token)
        user = jwt_auth.get_user(validated)
    except (TokenError, AuthenticationFailed) as exc:
        logger.info("Socket identity lookup rejected token: %s", exc)
        return None
    if not user.is_active:
        return None
    return Identity(user_id=int(user.id), role=str(user.role))


async def get_current_identity(token: str | None) -> Identity | None:
    if not token:
        return None
    return await database_sync_to_async(_lookup_identity)(token)


def extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract a JWT from the Socket.IO handshake, if the client sent one.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    # Allow `auth: { token }` as fallback.
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    return None
