"""
URL configuration for the narrated classroom backend.

Lessons run over the websocket routed in asgi.py; HTTP only serves the
classroom helper endpoints.
"""
from django.urls import path, include

urlpatterns = [
    path('api/classroom/', include('classroom.urls')),
]
