"""
Stripe webhook handling for payment confirmations.

Webhooks are verified, stored idempotently and processed asynchronously
via Celery tasks.
"""

from credits.webhooks.handlers import dispatch_webhook, register_handler
from credits.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
