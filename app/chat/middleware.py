"""
WebSocket authentication middleware.

Authenticates the socket handshake with the same simplejwt access tokens the
REST API accepts and puts the resolved user on scope["user"]. Any failure
(missing, malformed or expired token, unknown or inactive user) leaves an
AnonymousUser in scope; the consumer then rejects the connection before it
joins any group.

Token Passing Methods (in order of precedence):
    1. Query string: ws://host/ws/realtime/?token=<jwt_token>
    2. Header: Authorization: Bearer <jwt_token>
    3. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

logger = logging.getLogger(__name__)

JWT_SUBPROTOCOL = "jwt"


def get_token_from_scope(scope) -> str | None:
    """Extract the raw bearer token from a websocket scope."""
    params = parse_qs(scope.get("query_string", b"").decode())
    token_list = params.get("token", [])
    if token_list and token_list[0]:
        return token_list[0]

    for name, value in scope.get("headers", []):
        if name.lower() == b"authorization":
            parts = value.decode().split()
            if len(parts) == 2 and parts[0].lower() == "bearer":
                return parts[1]

    subprotocols = scope.get("subprotocols") or []
    if len(subprotocols) >= 2 and subprotocols[0] == JWT_SUBPROTOCOL:
        return subprotocols[1]

    return None


@database_sync_to_async
def get_user_for_token(raw_token: str):
    """
    Validate a JWT access token and resolve its active user.

    Returns:
        User instance if valid, AnonymousUser otherwise
    """
    authentication = JWTAuthentication()
    try:
        validated = authentication.get_validated_token(raw_token)
        return authentication.get_user(validated)
    except (InvalidToken, TokenError) as exc:
        reason = "expired" if "expired" in str(exc).lower() else "invalid"
        logger.warning(f"Rejected websocket token ({reason})")
    except AuthenticationFailed as exc:
        logger.warning(f"Rejected websocket token: {exc.detail}")
    return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the token from the handshake, validates it, and attaches the
    user to the scope.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = get_token_from_scope(scope)
        if token:
            scope["user"] = await get_user_for_token(token)
        else:
            scope["user"] = AnonymousUser()
        return await super().__call__(scope, receive, send)
