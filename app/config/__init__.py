# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, ASGI/WSGI applications and the Celery app.
#
# Importing the Celery app here makes sure it is loaded when Django starts,
# so @shared_task functions in every app bind to it.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
