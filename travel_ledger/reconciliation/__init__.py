"""Planned-vs-actual reconciliation."""
