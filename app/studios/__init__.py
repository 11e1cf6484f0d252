"""
Studios application.

Studios publish scheduled class sessions. The credit ledger reads a
session's capacity and credit cost when booking and locks the session row
to serialize concurrent attempts for the same class.

Usage:
    from studios.models import ClassSession, Studio
"""
