"""
ASGI config for the course commerce back office.

It exposes the ASGI callable as a module-level variable named ``application``.
"""
import os
from django.core.asgi import get_asgi_application

# In production, set DJANGO_SETTINGS_MODULE explicitly
# (e.g., backend.config.settings.production).
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.config.settings")

application = get_asgi_application()
