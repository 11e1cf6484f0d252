"""
Django app configuration for studios.
"""

from django.apps import AppConfig


class StudiosConfig(AppConfig):
    """Configuration for the studios application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "studios"
    verbose_name = "Studios"
