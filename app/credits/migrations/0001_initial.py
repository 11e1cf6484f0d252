import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def timestamp_fields():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier (UUID v4)",
            primary_key=True,
            serialize=False,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("studios", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditAccount",
            fields=[
                *timestamp_fields(),
                uuid_pk(),
                ("credits", models.PositiveIntegerField(default=0, help_text="Current credit balance")),
                (
                    "tier",
                    models.CharField(
                        choices=[
                            ("free", "Free"),
                            ("basic", "Basic"),
                            ("premium", "Premium"),
                            ("unlimited", "Unlimited"),
                        ],
                        db_index=True,
                        default="free",
                        help_text="Subscription tier",
                        max_length=20,
                    ),
                ),
                (
                    "frozen",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Frozen accounts keep their balance but cannot book",
                    ),
                ),
                (
                    "frozen_at",
                    models.DateTimeField(
                        blank=True, help_text="When the account was frozen", null=True
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe Customer ID (cus_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Stripe Subscription ID (sub_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "billing_sync_pending",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="A subscription plan swap still has to reach Stripe",
                    ),
                ),
                (
                    "billing_sync_error",
                    models.TextField(blank=True, default="", help_text="Last plan swap failure"),
                ),
                (
                    "billing_sync_attempts",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Plan swap attempts since the last success"
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="Owning user",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("credits__gte", 0)),
                        name="credit_account_credits_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("frozen", True), ("frozen_at__isnull", False)),
                            models.Q(("frozen", False), ("frozen_at__isnull", True)),
                            _connector="OR",
                        ),
                        name="credit_account_frozen_at_matches_frozen",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TouristPass",
            fields=[
                *timestamp_fields(),
                uuid_pk(),
                ("pass_type", models.CharField(max_length=30)),
                ("starts_at", models.DateTimeField()),
                ("ends_at", models.DateTimeField(db_index=True)),
                ("classes_total", models.PositiveIntegerField()),
                ("classes_used", models.PositiveIntegerField(default=0)),
                ("active", models.BooleanField(default=True)),
                (
                    "payment_reference",
                    models.CharField(
                        blank=True,
                        help_text="Payment that bought the pass (pi_xxx / cs_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tourist_passes",
                        to="credits.creditaccount",
                    ),
                ),
            ],
            options={
                "ordering": ["ends_at"],
                "indexes": [
                    models.Index(
                        fields=["account", "active", "ends_at"],
                        name="tourist_pass_acct_window_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("classes_total__gt", 0)),
                        name="tourist_pass_classes_total_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("classes_used__lte", models.F("classes_total"))),
                        name="tourist_pass_classes_used_within_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("starts_at__lt", models.F("ends_at"))),
                        name="tourist_pass_window_ordered",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *timestamp_fields(),
                uuid_pk(),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx)", max_length=255, unique=True
                    ),
                ),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                ("payload", models.JSONField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "retry_count"],
                        name="webhook_status_retry_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                *timestamp_fields(),
                uuid_pk(),
                (
                    "funding_source",
                    models.CharField(
                        choices=[("credits", "Credits"), ("tourist_pass", "Tourist Pass")],
                        default="credits",
                        max_length=20,
                    ),
                ),
                (
                    "credits_used",
                    models.PositiveIntegerField(
                        default=0, help_text="Credits debited for this booking"
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                            ("completed", "Completed"),
                        ],
                        db_index=True,
                        default="confirmed",
                        help_text="Current booking state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="credits.creditaccount",
                    ),
                ),
                (
                    "class_session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="studios.classsession",
                    ),
                ),
                (
                    "tourist_pass",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="credits.touristpass",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["account", "status"], name="booking_account_status_idx"
                    ),
                    models.Index(
                        fields=["class_session", "status"], name="booking_class_status_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "confirmed")),
                        fields=("account", "class_session"),
                        name="booking_one_confirmed_per_account_class",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("funding_source", "tourist_pass"),
                                ("credits_used", 0),
                                ("tourist_pass__isnull", False),
                            ),
                            models.Q(
                                ("funding_source", "credits"),
                                ("tourist_pass__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="booking_funding_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditAuditLogEntry",
            fields=[
                uuid_pk(),
                (
                    "sequence",
                    models.PositiveIntegerField(
                        help_text="Position in the account's audit history"
                    ),
                ),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("booking_debit", "Booking Debit"),
                            ("booking_refund", "Booking Refund"),
                            ("account_frozen", "Account Frozen"),
                            ("account_unfrozen", "Account Unfrozen"),
                            ("manual_adjustment", "Manual Adjustment"),
                            ("monthly_grant", "Monthly Grant"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("credits_before", models.PositiveIntegerField()),
                ("credits_after", models.PositiveIntegerField()),
                (
                    "credits_changed",
                    models.IntegerField(help_text="Signed change applied to the balance"),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Unique key to prevent duplicate entries",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("created_by", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_entries",
                        to="credits.creditaccount",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_entries",
                        to="credits.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Credit audit log entry",
                "verbose_name_plural": "Credit audit log entries",
                "ordering": ["account", "sequence"],
                "indexes": [
                    models.Index(
                        fields=["account", "action"], name="credit_audit_acct_action_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("account", "sequence"),
                        name="credit_audit_unique_account_sequence",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            (
                                "credits_after",
                                models.F("credits_before") + models.F("credits_changed"),
                            )
                        ),
                        name="credit_audit_arithmetic",
                    ),
                ],
            },
        ),
    ]
