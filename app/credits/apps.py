"""
Credits app configuration.

This app owns credit balances, the credit audit log, bookings, account
freeze state, tourist passes and Stripe payment confirmations.
"""

from django.apps import AppConfig


class CreditsConfig(AppConfig):
    """Configuration for the credits application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "credits"
    verbose_name = "Credits & Bookings"
