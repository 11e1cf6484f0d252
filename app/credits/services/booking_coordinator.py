"""
Booking coordinator: capacity, funding and the booking lifecycle.

attempt_booking() runs as one transaction: lock the account, lock the class
session, check preconditions, fund the booking from a tourist pass or from
credits, and insert it. Lock order is always account, then class session,
then tourist pass. Any precondition failure raises before the first write.

Usage:
    from credits.services import BookingCoordinator

    result = BookingCoordinator.attempt_booking(account.id, class_session.id)
    result.remaining_credits

    BookingCoordinator.cancel_booking(result.booking.id, account_id=account.id)
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from core.services import BaseService

from credits.exceptions import (
    AccountFrozen,
    AlreadyBooked,
    BookingNotFound,
    ClassAlreadyStarted,
    ClassFull,
    ClassNotFound,
    InsufficientCredits,
    InvalidBookingTransition,
)
from credits.models import Booking, CreditAccount, TouristPass
from credits.services.credit_service import CreditService
from credits.services.tourist_pass import TouristPassService
from credits.state_machines import BookingStatus, FundingSource
from credits.types import BookingResult, CancellationResult
from studios.models import ClassSession


class BookingCoordinator(BaseService):
    """
    Service for booking operations.

    Safety Guarantees:
        - The class session row lock serializes attempts for one class, so
          the confirmed count can never exceed max_capacity
        - The account row lock serializes balance changes
        - Debit and booking insert commit together or not at all
        - Cancellation refunds exactly what the booking consumed, once
    """

    # =========================================================================
    # Booking
    # =========================================================================

    @classmethod
    def attempt_booking(
        cls,
        account_id: uuid.UUID,
        class_id: uuid.UUID,
    ) -> BookingResult:
        """
        Book one seat in a class.

        Raises:
            AccountNotFound / AccountFrozen
            ClassNotFound: Missing or inactive class
            ClassAlreadyStarted: Class start time has passed
            AlreadyBooked: Account already holds a confirmed seat
            ClassFull: Confirmed bookings reached max_capacity
            InsufficientCredits: No usable pass and too few credits
        """
        logger = cls.get_logger()

        with cls.atomic():
            account = CreditService.lock_account(account_id)
            if account.frozen:
                raise AccountFrozen(
                    "Account is frozen",
                    details={"account_id": str(account.id)},
                )

            class_session = cls._lock_class_session(class_id)
            cls._check_capacity(account, class_session)

            tourist_pass = TouristPassService.lock_usable_pass(account)
            if tourist_pass is not None:
                booking = cls._book_with_pass(account, class_session, tourist_pass)
            else:
                booking = cls._book_with_credits(account, class_session)

        logger.info(
            "Class booked",
            extra={
                "account_id": str(account.id),
                "class_id": str(class_session.id),
                "booking_id": str(booking.id),
                "funding_source": booking.funding_source,
                "credits_used": booking.credits_used,
                "balance": account.credits,
            },
        )
        return BookingResult(
            success=True,
            booking=booking,
            remaining_credits=account.credits,
            funding_source=booking.funding_source,
        )

    @classmethod
    def _check_capacity(cls, account: CreditAccount, class_session: ClassSession) -> None:
        if class_session.has_started:
            raise ClassAlreadyStarted(
                "Class has already started",
                details={"class_id": str(class_session.id)},
            )

        confirmed = Booking.objects.filter(
            class_session=class_session,
            status=BookingStatus.CONFIRMED,
        )
        if confirmed.count() >= class_session.max_capacity:
            raise ClassFull(
                "Class is full",
                details={
                    "class_id": str(class_session.id),
                    "max_capacity": class_session.max_capacity,
                },
            )
        if confirmed.filter(account=account).exists():
            raise AlreadyBooked(
                "You already have a booking for this class",
                details={"class_id": str(class_session.id)},
            )

    @classmethod
    def _book_with_pass(
        cls,
        account: CreditAccount,
        class_session: ClassSession,
        tourist_pass: TouristPass,
    ) -> Booking:
        TouristPassService.consume_unit_locked(tourist_pass)
        return Booking.objects.create(
            account=account,
            class_session=class_session,
            funding_source=FundingSource.TOURIST_PASS,
            tourist_pass=tourist_pass,
            credits_used=0,
        )

    @classmethod
    def _book_with_credits(cls, account: CreditAccount, class_session: ClassSession) -> Booking:
        cost = class_session.credit_cost
        if account.credits < cost:
            raise InsufficientCredits(account.id, required=cost, available=account.credits)

        booking = Booking.objects.create(
            account=account,
            class_session=class_session,
            funding_source=FundingSource.CREDITS,
            credits_used=cost,
        )
        CreditService.apply_debit(
            account,
            cost,
            reason=f"Booking: {class_session.name}",
            booking=booking,
        )
        return booking

    # =========================================================================
    # Cancellation & Completion
    # =========================================================================

    @classmethod
    def cancel_booking(
        cls,
        booking_id: uuid.UUID,
        account_id: uuid.UUID | None = None,
    ) -> CancellationResult:
        """
        Cancel a confirmed booking and give back what it consumed.

        Credit-funded bookings get their credits refunded; pass-funded
        bookings get their pass unit back. Never both.

        Args:
            booking_id: Booking to cancel
            account_id: When given, the booking must belong to this account

        Raises:
            BookingNotFound: Unknown booking, or not owned by account_id
            InvalidBookingTransition: Booking is not confirmed
            ClassAlreadyStarted: Past the cancellation cutoff
        """
        booking = cls._get_booking(booking_id, account_id)

        with cls.atomic():
            account = CreditService.lock_account(booking.account_id)
            class_session = ClassSession.objects.select_for_update().get(
                id=booking.class_session_id
            )
            booking = Booking.objects.select_for_update().get(id=booking.id)

            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidBookingTransition(
                    f"Cannot cancel a {booking.status} booking",
                    details={"booking_id": str(booking.id), "status": booking.status},
                )

            cutoff = class_session.start_time - timedelta(
                minutes=settings.BOOKING_CANCELLATION_CUTOFF_MINUTES
            )
            if timezone.now() >= cutoff:
                raise ClassAlreadyStarted(
                    "Booking can no longer be cancelled",
                    details={"booking_id": str(booking.id)},
                )

            booking.cancel()
            booking.save()

            refunded_credits = 0
            refunded_units = 0
            if booking.credits_used > 0:
                CreditService.apply_refund(account, booking.credits_used, booking)
                refunded_credits = booking.credits_used
            elif booking.tourist_pass_id:
                tourist_pass = TouristPass.objects.select_for_update().get(
                    id=booking.tourist_pass_id
                )
                TouristPassService.refund_unit_locked(tourist_pass)
                refunded_units = 1

        cls.get_logger().info(
            "Booking cancelled",
            extra={
                "account_id": str(account.id),
                "booking_id": str(booking.id),
                "refunded_credits": refunded_credits,
                "refunded_pass_units": refunded_units,
                "balance": account.credits,
            },
        )
        return CancellationResult(
            booking=booking,
            refunded_credits=refunded_credits,
            refunded_pass_units=refunded_units,
            remaining_credits=account.credits,
        )

    @classmethod
    def complete_booking(cls, booking_id: uuid.UUID) -> Booking:
        """
        Mark a confirmed booking as attended.

        Raises:
            BookingNotFound
            InvalidBookingTransition: Booking is not confirmed
        """
        with cls.atomic():
            try:
                booking = Booking.objects.select_for_update().get(id=booking_id)
            except (Booking.DoesNotExist, ValueError, DjangoValidationError):
                raise BookingNotFound(
                    f"Booking {booking_id} not found",
                    details={"booking_id": str(booking_id)},
                )
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidBookingTransition(
                    f"Cannot complete a {booking.status} booking",
                    details={"booking_id": str(booking.id), "status": booking.status},
                )
            booking.complete()
            booking.save()
        return booking

    @classmethod
    def complete_finished_bookings(cls) -> int:
        """
        Complete every confirmed booking whose class has ended.

        Returns:
            Number of bookings completed
        """
        candidates = (
            Booking.objects.filter(
                status=BookingStatus.CONFIRMED,
                class_session__start_time__lte=timezone.now(),
            )
            .select_related("class_session")
            .order_by("class_session__start_time")
        )

        completed = 0
        for booking in candidates:
            if not booking.class_session.has_ended:
                continue
            try:
                cls.complete_booking(booking.id)
            except InvalidBookingTransition:
                # Cancelled or completed since the candidate query ran
                continue
            completed += 1

        if completed:
            cls.get_logger().info(
                "Finished bookings completed",
                extra={"completed": completed},
            )
        return completed

    @classmethod
    def list_bookings(
        cls,
        account_id: uuid.UUID,
        status: str | None = None,
    ) -> list[Booking]:
        """An account's bookings, soonest class first."""
        queryset = Booking.objects.filter(account_id=account_id).select_related("class_session")
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by("class_session__start_time"))

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _lock_class_session(cls, class_id: uuid.UUID) -> ClassSession:
        try:
            return ClassSession.objects.select_for_update().get(id=class_id, is_active=True)
        except (ClassSession.DoesNotExist, ValueError, DjangoValidationError):
            raise ClassNotFound(
                f"Class {class_id} not found",
                details={"class_id": str(class_id)},
            )

    @classmethod
    def _get_booking(cls, booking_id: uuid.UUID, account_id: uuid.UUID | None) -> Booking:
        filters = {"id": booking_id}
        if account_id is not None:
            filters["account_id"] = account_id
        try:
            return Booking.objects.get(**filters)
        except (Booking.DoesNotExist, ValueError, DjangoValidationError):
            raise BookingNotFound(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )
