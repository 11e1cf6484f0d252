"""
ASGI config for the ledger service.

Exposes the ASGI callable as a module-level variable named `application`
for Uvicorn. The service has no WebSocket surface, so plain Django HTTP
handling is all that is mounted.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
