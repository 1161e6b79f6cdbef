"""
WebSocket URL routing for the fees app.

URL Patterns:
    ws/fees/disputes/ - Admin dispute feed for the caller's school

Authentication:
    JWT access token as query parameter: ?token=<jwt_access_token>
    authentication.middleware.JWTAuthMiddleware validates it and attaches
    the user to the consumer's scope.
"""

from django.urls import path

from fees import consumers

websocket_urlpatterns = [
    path(
        "ws/fees/disputes/",
        consumers.DisputeFeedConsumer.as_asgi(),
    ),
]
