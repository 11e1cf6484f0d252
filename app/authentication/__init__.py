"""
Authentication application.

Holds the local representation of a marketplace member: an email-based
User that the rest of the service keys on. Tokens are issued by
djangorestframework-simplejwt; every credit account hangs off a User.

Usage:
    from authentication.models import User
"""
