"""
WebSocket URL routing for the realtime gateway.

URL Patterns:
    ws/realtime/ - One socket per client session

Authentication:
    JWT access token as query parameter (?token=<jwt>), Authorization
    header, or ["jwt", <token>] subprotocol. JWTAuthMiddleware validates it
    and attaches the user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/realtime/", consumers.RealtimeConsumer.as_asgi()),
]
