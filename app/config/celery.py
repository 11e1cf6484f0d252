"""
Celery configuration for the ledger service.

Background work handled here:
- Processing Stripe payment confirmations (webhook events)
- Retrying owed subscription plan swaps after freeze/unfreeze
- Completing bookings for finished classes
- Monthly credit grants and nightly balance reconciliation

Redis is both the message broker and result backend. Periodic schedules
live in the database (django-celery-beat) and are created by migrations.

Usage:
    from credits.tasks import process_webhook_event
    process_webhook_event.delay(str(webhook_event.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
