"""Ledger store, reference data and booking allocations."""
