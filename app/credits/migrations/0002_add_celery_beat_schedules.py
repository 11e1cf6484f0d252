"""
Add Celery Beat schedules for ledger maintenance tasks.

This migration creates periodic task schedules for:
- Webhook retries (failed and never-queued events)
- Owed subscription plan swaps after freeze/unfreeze
- Completing bookings for finished classes
- Monthly tier credit grants
- Nightly balance reconciliation
"""

from django.db import migrations

TASK_NAMES = [
    "Credits: Retry Failed Webhooks",
    "Credits: Sync Pending Billing Plans",
    "Credits: Complete Finished Bookings",
    "Credits: Grant Monthly Credits",
    "Credits: Reconcile Credit Balances",
]


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for the credit ledger."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # =========================================================================
    # Schedules
    # =========================================================================

    schedule_5min, _ = IntervalSchedule.objects.get_or_create(every=5, period="minutes")
    schedule_15min, _ = IntervalSchedule.objects.get_or_create(every=15, period="minutes")

    # 1st of each month at 00:05 UTC
    crontab_monthly, _ = CrontabSchedule.objects.get_or_create(
        minute="5",
        hour="0",
        day_of_week="*",
        day_of_month="1",
        month_of_year="*",
    )

    # Daily at 3 AM UTC
    crontab_daily_3am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )

    # =========================================================================
    # Periodic Tasks
    # =========================================================================

    PeriodicTask.objects.get_or_create(
        name="Credits: Retry Failed Webhooks",
        defaults={
            "task": "credits.tasks.retry_failed_webhooks",
            "interval": schedule_15min,
            "enabled": True,
            "description": (
                "Re-queues failed Stripe webhook events with retries left and "
                "events that were stored but never queued."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Credits: Sync Pending Billing Plans",
        defaults={
            "task": "credits.tasks.sync_pending_billing_plans",
            "interval": schedule_5min,
            "enabled": True,
            "description": (
                "Retries subscription plan swaps that failed to reach Stripe "
                "after an account was frozen or unfrozen."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Credits: Complete Finished Bookings",
        defaults={
            "task": "credits.tasks.complete_finished_bookings",
            "interval": schedule_15min,
            "enabled": True,
            "description": "Marks confirmed bookings as completed once their class has ended.",
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Credits: Grant Monthly Credits",
        defaults={
            "task": "credits.tasks.grant_monthly_credits_to_subscribers",
            "crontab": crontab_monthly,
            "enabled": True,
            "description": (
                "Grants each paid tier's monthly allocation. Idempotent per "
                "account and month, so a rerun grants nothing twice."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Credits: Reconcile Credit Balances",
        defaults={
            "task": "credits.tasks.reconcile_credit_balances",
            "crontab": crontab_daily_3am,
            "enabled": True,
            "description": (
                "Replays every account's audit log and logs an error for any "
                "balance that does not match."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the credit ledger periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name__in=TASK_NAMES).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("credits", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
