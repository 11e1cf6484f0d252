"""
CreditAuditLogEntry model: the append-only history of a credit balance.

Every change to CreditAccount.credits writes exactly one entry in the same
transaction, so replaying an account's entries from 0 reproduces its
balance. Freeze and unfreeze also write entries, with credits_changed 0.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q

from core.model_mixins import UUIDPrimaryKeyMixin

from credits.exceptions import ImmutableAuditEntry
from credits.state_machines import AuditAction


class CreditAuditLogEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    One credit-affecting event.

    Fields:
        account: Account whose balance changed
        sequence: Position in the account's history (1, 2, 3, ...)
        action: What happened
        credits_before / credits_after: Balance around the event
        credits_changed: Signed delta (credits_after - credits_before)
        booking: Related booking for debits and refunds
        metadata: Payment reference, bonus split, reason, actor, ...
        idempotency_key: Unique key so retried writes never double-apply
        created_by: Service or user that wrote the entry
        created_at: When the entry was written

    Constraints:
        - credits_after = credits_before + credits_changed
        - (account, sequence) is unique
        - idempotency_key is unique when set

    Note:
        Entries are immutable once written. save() on an existing entry
        and delete() raise ImmutableAuditEntry; corrections are new
        manual_adjustment entries.
    """

    account = models.ForeignKey(
        "credits.CreditAccount",
        on_delete=models.PROTECT,
        related_name="audit_entries",
    )
    sequence = models.PositiveIntegerField(
        help_text="Position in the account's audit history",
    )
    action = models.CharField(
        max_length=30,
        choices=AuditAction.choices,
        db_index=True,
    )
    credits_before = models.PositiveIntegerField()
    credits_after = models.PositiveIntegerField()
    credits_changed = models.IntegerField(
        help_text="Signed change applied to the balance",
    )
    booking = models.ForeignKey(
        "credits.Booking",
        on_delete=models.PROTECT,
        related_name="audit_entries",
        null=True,
        blank=True,
    )
    metadata = models.JSONField(default=dict, blank=True)
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Unique key to prevent duplicate entries",
    )
    created_by = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["account", "sequence"]
        verbose_name = "Credit audit log entry"
        verbose_name_plural = "Credit audit log entries"
        indexes = [
            models.Index(
                fields=["account", "action"], name="credit_audit_acct_action_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "sequence"],
                name="credit_audit_unique_account_sequence",
            ),
            models.CheckConstraint(
                condition=Q(credits_after=F("credits_before") + F("credits_changed")),
                name="credit_audit_arithmetic",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_action_display()}: {self.credits_changed:+d} ({self.credits_after})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableAuditEntry(
                "Audit log entries cannot be modified",
                details={"entry_id": str(self.id)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableAuditEntry(
            "Audit log entries cannot be deleted",
            details={"entry_id": str(self.id)},
        )
