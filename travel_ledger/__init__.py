"""Financial ledger and reconciliation engine for the travel back office."""

__version__ = "0.1.0"
