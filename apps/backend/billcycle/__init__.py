"""Billing cycle & carryover reconciliation backend."""

__version__ = "0.1.0"
