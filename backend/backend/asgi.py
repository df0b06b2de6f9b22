"""
ASGI entry point for the narrated classroom backend.

HTTP requests go to Django; each websocket on ``ws/classroom/`` gets its own
ClassroomConsumer, which owns one SessionController for the connection.

Run with: daphne backend.asgi:application
"""

import os
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.core.asgi import get_asgi_application
from django.urls import path

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

# Django must be set up before the consumer imports app modules
django_asgi_app = get_asgi_application()

from classroom.realtime import ClassroomConsumer

websocket_urlpatterns = [
    path('ws/classroom/', ClassroomConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AllowedHostsOriginValidator(URLRouter(websocket_urlpatterns)),
})
