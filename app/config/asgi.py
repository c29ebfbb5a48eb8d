"""
ASGI config for the messaging service.

Routes plain HTTP to Django and WebSocket handshakes to the realtime gateway.
The gateway stack is:
    1. AllowedHostsOriginValidator - origin must match ALLOWED_HOSTS
    2. JWTAuthMiddleware - resolves the bearer token to scope["user"]
    3. URLRouter - ws/realtime/ -> RealtimeConsumer

Serve with an ASGI server, e.g. `uvicorn config.asgi:application`.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Django must be set up before anything imports models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
