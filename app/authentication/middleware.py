"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections. Browsers cannot set
an Authorization header on a WebSocket handshake, so the access token is
passed in the query string or as a subprotocol.

Token Passing Methods:
    1. Query string: ws://host/ws/fees/disputes/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from authentication.middleware import JWTAuthMiddleware

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
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user_from_token(token: str):
    """
    Validate a JWT access token and load its user.

    Returns:
        User instance if the token is valid and the user active,
        AnonymousUser otherwise
    """
    User = get_user_model()

    try:
        access_token = AccessToken(token)
        user_id = access_token["user_id"]
    except TokenError as e:
        logger.warning(f"Invalid JWT on WebSocket handshake: {e}")
        return AnonymousUser()
    except KeyError:
        logger.warning("JWT on WebSocket handshake has no user_id claim")
        return AnonymousUser()

    try:
        user = User.objects.select_related("tenant").get(id=user_id)
    except User.DoesNotExist:
        logger.warning("User not found for WebSocket token", extra={"user_id": user_id})
        return AnonymousUser()

    if not user.is_active:
        logger.warning(
            "Inactive user attempted WebSocket connection",
            extra={"user_id": user_id},
        )
        return AnonymousUser()

    return user


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the token from the query string or subprotocol, validates it
    and sets scope["user"]. Consumers decide what an anonymous user may do.
    """

    async def __call__(self, scope, receive, send):
        token = self._get_token_from_query(scope) or self._get_token_from_subprotocol(
            scope
        )

        if token:
            scope["user"] = await get_user_from_token(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    def _get_token_from_query(self, scope) -> str | None:
        query_string = scope.get("query_string", b"").decode()
        token_list = parse_qs(query_string).get("token", [])
        return token_list[0] if token_list else None

    def _get_token_from_subprotocol(self, scope) -> str | None:
        """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
        subprotocols = scope.get("subprotocols", [])
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None
