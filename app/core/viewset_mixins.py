"""
Reusable mixins for DRF views.

Mixins:
    ServiceErrorMixin: Convert service exceptions into the standard error envelope

Usage:
    from core.viewset_mixins import ServiceErrorMixin

    class BalanceView(ServiceErrorMixin, APIView):
        service_class = CreditService

        def get(self, request):
            balance = CreditService.get_active_credits(account_id)  # may raise
            ...
"""

from __future__ import annotations

from typing import Any

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult


class ServiceErrorMixin:
    """
    Map exceptions raised by services to ServiceResult envelopes.

    - BaseApplicationError -> {"success": false, ...} with the error's status_code
    - DatabaseError -> logged with stack trace, generic 500 INTERNAL_ERROR
    - Anything else -> DRF's default handling (auth, validation, 404, ...)
    """

    service_class: type[BaseService] = BaseService

    def handle_exception(self, exc: Exception) -> Any:
        if isinstance(exc, BaseApplicationError):
            result = ServiceResult.from_exception(exc)
            return Response(result.to_response(), status=exc.status_code)

        if isinstance(exc, DatabaseError):
            result = self.service_class.handle_exception(
                exc, context=f"{self.__class__.__name__} {self.request.method}"
            )
            return Response(
                result.to_response(),
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return super().handle_exception(exc)
