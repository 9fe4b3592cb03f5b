"""API routers for the GymLedger service."""

from gymledger.routers import (
    commands,
    counters,
    deleted_members,
    invoices,
    members,
    receipts,
    subscriptions,
)  # noqa: F401
