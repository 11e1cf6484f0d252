"""
DRF views for the credit ledger.

Views resolve the caller's account from request.user, call one service
operation and wrap the result in the ServiceResult envelope. Service
exceptions become error envelopes through ServiceErrorMixin.

Endpoints:
    GET  /api/v1/credits/balance/                 - Current balance
    GET  /api/v1/credits/breakdown/               - Balance by origin
    GET  /api/v1/credits/history/                 - Audit log (paged)
    GET  /api/v1/credits/topup/eligibility/       - Packs within the tier cap
    POST /api/v1/credits/add/                     - Staff top-up
    GET  /api/v1/credits/bookings/                - My bookings (?status=)
    POST /api/v1/credits/bookings/                - Book a class
    POST /api/v1/credits/bookings/{id}/cancel/    - Cancel a booking
    GET  /api/v1/credits/account/freeze/          - Freeze status
    POST /api/v1/credits/account/freeze/          - Freeze account
    POST /api/v1/credits/account/unfreeze/        - Unfreeze account
    GET  /api/v1/credits/tourist-pass/            - Active tourist pass

Security:
    - All endpoints require authentication
    - add/ requires a staff user
    - Members only reach their own account and bookings
"""

from __future__ import annotations

from django.db import DatabaseError
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from core.viewset_mixins import ServiceErrorMixin

from credits.exceptions import InternalError
from credits.serializers import (
    AccountStateSerializer,
    AddCreditsSerializer,
    AuditLogEntrySerializer,
    BalanceSerializer,
    BookingListQuerySerializer,
    BookingRequestSerializer,
    BookingResultSerializer,
    BookingSerializer,
    CancellationResultSerializer,
    CreditBreakdownSerializer,
    HistoryQuerySerializer,
    TopUpEligibilityQuerySerializer,
    TopUpEligibilitySerializer,
    TouristPassSerializer,
)
from credits.services import (
    AccountStateService,
    BookingCoordinator,
    CreditService,
    TouristPassService,
)


class LedgerAPIView(ServiceErrorMixin, APIView):
    """Base view: authenticated, with the caller's account at hand."""

    permission_classes = [IsAuthenticated]
    service_class = CreditService

    def get_account(self):
        return CreditService.get_or_create_account(self.request.user)

    def handle_exception(self, exc):
        if isinstance(exc, DatabaseError):
            self.service_class.handle_exception(
                exc, context=f"{self.__class__.__name__} {self.request.method}"
            )
            exc = InternalError("An internal error occurred. Please try again later.")
        return super().handle_exception(exc)


def envelope(data, message: str | None = None, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(ServiceResult.success(data, message=message).to_response(), status=status_code)


# =============================================================================
# Balance
# =============================================================================


class BalanceView(LedgerAPIView):
    @extend_schema(
        operation_id="get_credit_balance",
        summary="Get credit balance",
        responses={200: BalanceSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        account = self.get_account()
        return envelope(BalanceSerializer(account).data)


class BreakdownView(LedgerAPIView):
    @extend_schema(
        operation_id="get_credit_breakdown",
        summary="Get credit breakdown",
        description=(
            "Balance split into purchased, bonus and promotional credits. "
            "Credits never expire, so expiring_soon is always 0."
        ),
        responses={200: CreditBreakdownSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        account = self.get_account()
        breakdown = CreditService.get_breakdown(account.id)
        return envelope(CreditBreakdownSerializer(breakdown).data)


class HistoryView(LedgerAPIView):
    @extend_schema(
        operation_id="list_credit_history",
        summary="List credit history",
        parameters=[HistoryQuerySerializer],
        responses={200: AuditLogEntrySerializer(many=True)},
        tags=["Credits"],
    )
    def get(self, request):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        account = self.get_account()
        entries = CreditService.get_audit_log(
            account.id,
            limit=query.validated_data["limit"],
            offset=query.validated_data["offset"],
        )
        return envelope(AuditLogEntrySerializer(entries, many=True).data)


class TopUpEligibilityView(LedgerAPIView):
    @extend_schema(
        operation_id="get_top_up_eligibility",
        summary="Check credit pack eligibility",
        description=(
            "Which credit packs can be bought without taking the balance over "
            "the tier's credit cap. Pass ?pack=<key> to check a single pack."
        ),
        parameters=[TopUpEligibilityQuerySerializer],
        responses={200: TopUpEligibilitySerializer},
        tags=["Credits"],
    )
    def get(self, request):
        query = TopUpEligibilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        account = self.get_account()
        eligibility = CreditService.get_top_up_eligibility(
            account.id, pack=query.validated_data.get("pack")
        )
        return envelope(TopUpEligibilitySerializer(eligibility).data)


class AddCreditsView(LedgerAPIView):
    """Manual top-up by staff; members top up through Stripe webhooks."""

    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        operation_id="add_credits",
        summary="Add credits (staff)",
        request=AddCreditsSerializer,
        responses={
            200: BalanceSerializer,
            400: OpenApiResponse(description="Invalid amount"),
            404: OpenApiResponse(description="Account not found"),
        },
        tags=["Credits"],
    )
    def post(self, request):
        serializer = AddCreditsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        CreditService.add_credits(
            data["account_id"],
            data["amount"],
            source=f"staff:{request.user.pk}",
            bonus_credits=data["bonus_credits"],
            payment_reference=data.get("payment_reference"),
        )
        account = CreditService.get_account(data["account_id"])
        return envelope(BalanceSerializer(account).data, message="Credits added")


# =============================================================================
# Bookings
# =============================================================================


class BookingCreateView(LedgerAPIView):
    service_class = BookingCoordinator

    @extend_schema(
        operation_id="list_bookings",
        summary="List my bookings",
        parameters=[BookingListQuerySerializer],
        responses={200: BookingSerializer(many=True)},
        tags=["Bookings"],
    )
    def get(self, request):
        query = BookingListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        account = self.get_account()
        bookings = BookingCoordinator.list_bookings(
            account.id, status=query.validated_data.get("status")
        )
        return envelope(BookingSerializer(bookings, many=True).data)

    @extend_schema(
        operation_id="book_class",
        summary="Book a class",
        request=BookingRequestSerializer,
        responses={
            201: BookingResultSerializer,
            400: OpenApiResponse(description="Not enough credits"),
            403: OpenApiResponse(description="Account is frozen"),
            404: OpenApiResponse(description="Class not found"),
            409: OpenApiResponse(description="Class full, already booked or already started"),
        },
        tags=["Bookings"],
    )
    def post(self, request):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        account = self.get_account()

        result = BookingCoordinator.attempt_booking(
            account.id, serializer.validated_data["class_id"]
        )
        return envelope(
            BookingResultSerializer(result).data,
            message="Class booked",
            status_code=status.HTTP_201_CREATED,
        )


class BookingCancelView(LedgerAPIView):
    service_class = BookingCoordinator

    @extend_schema(
        operation_id="cancel_booking",
        summary="Cancel a booking",
        request=None,
        responses={
            200: CancellationResultSerializer,
            404: OpenApiResponse(description="Booking not found"),
            409: OpenApiResponse(description="Booking not cancellable"),
        },
        tags=["Bookings"],
    )
    def post(self, request, booking_id):
        account = self.get_account()
        result = BookingCoordinator.cancel_booking(booking_id, account_id=account.id)
        return envelope(CancellationResultSerializer(result).data, message="Booking cancelled")


# =============================================================================
# Account State
# =============================================================================


class FreezeView(LedgerAPIView):
    service_class = AccountStateService

    @extend_schema(
        operation_id="get_freeze_status",
        summary="Get freeze status",
        responses={200: AccountStateSerializer},
        tags=["Account"],
    )
    def get(self, request):
        account = self.get_account()
        return envelope(AccountStateSerializer(AccountStateService.get_status(account.id)).data)

    @extend_schema(
        operation_id="freeze_account",
        summary="Freeze account",
        request=None,
        responses={
            200: AccountStateSerializer,
            409: OpenApiResponse(description="Account already frozen"),
        },
        tags=["Account"],
    )
    def post(self, request):
        account = self.get_account()
        result = AccountStateService.freeze(account.id)
        return envelope(AccountStateSerializer(result).data, message="Account frozen")


class UnfreezeView(LedgerAPIView):
    service_class = AccountStateService

    @extend_schema(
        operation_id="unfreeze_account",
        summary="Unfreeze account",
        request=None,
        responses={
            200: AccountStateSerializer,
            409: OpenApiResponse(description="Account not frozen"),
        },
        tags=["Account"],
    )
    def post(self, request):
        account = self.get_account()
        result = AccountStateService.unfreeze(account.id)
        return envelope(AccountStateSerializer(result).data, message="Account unfrozen")


# =============================================================================
# Tourist Pass
# =============================================================================


class TouristPassView(LedgerAPIView):
    @extend_schema(
        operation_id="get_active_tourist_pass",
        summary="Get active tourist pass",
        description="Returns data: null when the member has no active pass.",
        responses={200: TouristPassSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        account = self.get_account()
        tourist_pass = TouristPassService.get_active_pass(account.id)
        data = TouristPassSerializer(tourist_pass).data if tourist_pass else None
        return envelope(data)
