"""
URL configuration for the credit ledger API.

Mounted at /api/v1/credits/ by config.urls.
"""

from django.urls import path

from credits import views
from credits.webhooks import stripe_webhook

app_name = "credits"

urlpatterns = [
    path("balance/", views.BalanceView.as_view(), name="balance"),
    path("breakdown/", views.BreakdownView.as_view(), name="breakdown"),
    path("history/", views.HistoryView.as_view(), name="history"),
    path(
        "topup/eligibility/",
        views.TopUpEligibilityView.as_view(),
        name="topup-eligibility",
    ),
    path("add/", views.AddCreditsView.as_view(), name="add"),
    path("bookings/", views.BookingCreateView.as_view(), name="booking-create"),
    path(
        "bookings/<uuid:booking_id>/cancel/",
        views.BookingCancelView.as_view(),
        name="booking-cancel",
    ),
    path("account/freeze/", views.FreezeView.as_view(), name="freeze"),
    path("account/unfreeze/", views.UnfreezeView.as_view(), name="unfreeze"),
    path("tourist-pass/", views.TouristPassView.as_view(), name="tourist-pass"),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
