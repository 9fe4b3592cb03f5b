"""Billing ledger and subscription lifecycle service for gym management."""

__version__ = "0.1.0"
