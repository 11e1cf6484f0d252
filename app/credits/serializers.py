"""
Serializers for the credit ledger API.

Request serializers validate input; response serializers shape service
results (models and credits.types dataclasses) before they are wrapped
in the ServiceResult envelope.
"""

from __future__ import annotations

from rest_framework import serializers

from credits.catalog import CREDIT_PACKS
from credits.models import Booking, CreditAuditLogEntry, TouristPass
from credits.state_machines import BookingStatus

# =============================================================================
# Requests
# =============================================================================


class AddCreditsSerializer(serializers.Serializer):
    """Staff top-up of a member's account."""

    account_id = serializers.UUIDField()
    amount = serializers.IntegerField(min_value=1)
    bonus_credits = serializers.IntegerField(min_value=0, default=0)
    payment_reference = serializers.CharField(
        max_length=255, required=False, allow_blank=False
    )

    def validate(self, attrs):
        if attrs["bonus_credits"] > attrs["amount"]:
            raise serializers.ValidationError(
                {"bonus_credits": ["Bonus credits cannot exceed the amount."]}
            )
        return attrs


class BookingRequestSerializer(serializers.Serializer):
    class_id = serializers.UUIDField()


class BookingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BookingStatus.choices, required=False)


class HistoryQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)


class TopUpEligibilityQuerySerializer(serializers.Serializer):
    pack = serializers.ChoiceField(choices=sorted(CREDIT_PACKS), required=False)


# =============================================================================
# Responses
# =============================================================================


class BalanceSerializer(serializers.Serializer):
    credits = serializers.IntegerField()
    tier = serializers.CharField()
    frozen = serializers.BooleanField()


class CreditBreakdownSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    purchased = serializers.IntegerField()
    bonus = serializers.IntegerField()
    promotional = serializers.IntegerField()
    expiring_soon = serializers.IntegerField()
    credits_expire = serializers.BooleanField()


class PackEligibilitySerializer(serializers.Serializer):
    pack = serializers.CharField()
    credits = serializers.IntegerField()
    eligible = serializers.BooleanField()
    would_have = serializers.IntegerField()


class TopUpEligibilitySerializer(serializers.Serializer):
    tier = serializers.CharField()
    current_credits = serializers.IntegerField()
    tier_cap = serializers.IntegerField()
    packs = PackEligibilitySerializer(many=True)


class AuditLogEntrySerializer(serializers.ModelSerializer):
    booking_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = CreditAuditLogEntry
        fields = [
            "id",
            "sequence",
            "action",
            "credits_before",
            "credits_after",
            "credits_changed",
            "booking_id",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    class_id = serializers.UUIDField(source="class_session_id", read_only=True)
    class_name = serializers.CharField(source="class_session.name", read_only=True)
    start_time = serializers.DateTimeField(source="class_session.start_time", read_only=True)
    tourist_pass_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "class_id",
            "class_name",
            "start_time",
            "status",
            "funding_source",
            "credits_used",
            "tourist_pass_id",
            "created_at",
            "cancelled_at",
            "completed_at",
        ]
        read_only_fields = fields


class BookingResultSerializer(serializers.Serializer):
    booking = BookingSerializer()
    remaining_credits = serializers.IntegerField()
    funding_source = serializers.CharField()


class CancellationResultSerializer(serializers.Serializer):
    booking = BookingSerializer()
    refunded_credits = serializers.IntegerField()
    refunded_pass_units = serializers.IntegerField()
    remaining_credits = serializers.IntegerField()


class AccountStateSerializer(serializers.Serializer):
    frozen = serializers.BooleanField()
    frozen_at = serializers.DateTimeField(allow_null=True)
    credits = serializers.IntegerField()
    billing_synced = serializers.BooleanField()


class TouristPassSerializer(serializers.ModelSerializer):
    classes_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = TouristPass
        fields = [
            "id",
            "pass_type",
            "starts_at",
            "ends_at",
            "classes_total",
            "classes_used",
            "classes_remaining",
            "active",
        ]
        read_only_fields = fields
