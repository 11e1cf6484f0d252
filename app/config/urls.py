"""
URL configuration for the ledger service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (email + password)
    /api/v1/auth/token/refresh/    - Refresh JWT access token
    /api/v1/studios/               - Studio class schedule
        classes/                   - Upcoming classes with spots remaining
    /api/v1/credits/               - Credit & booking ledger
        balance/                   - Current credit balance
        breakdown/                 - Purchased / bonus / promotional split
        history/                   - Credit audit log
        topup/eligibility/         - Credit packs within the tier cap
        add/                       - Manual credit grant (staff only)
        bookings/                  - Book a class (POST) / list bookings (GET)
        bookings/{id}/cancel/      - Cancel a booking
        account/freeze/            - Freeze status (GET) / freeze (POST)
        account/unfreeze/          - Unfreeze account
        tourist-pass/              - Active tourist pass
        webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("studios/", include("studios.urls")),
    path("credits/", include("credits.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Ledger Admin"
admin.site.site_title = "Ledger Admin"
admin.site.index_title = "Credits, bookings and passes"
