"""
Credit & booking ledger.

Subpackages:
    models: CreditAccount, CreditAuditLogEntry, Booking, TouristPass, WebhookEvent
    services: CreditService, BookingCoordinator, AccountStateService, TouristPassService
    adapters: StripeBillingAdapter
    webhooks: Stripe payment confirmation handling

Note:
    Models and services are NOT imported here to avoid AppRegistryNotReady
    errors. Import them from their modules.
"""
