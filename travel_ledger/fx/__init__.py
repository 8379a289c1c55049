"""EUR-pivot currency conversion and rate feeds."""

from travel_ledger.fx.converter import PIVOT_CURRENCY, RateTable, convert, pick_rates

__all__ = ["PIVOT_CURRENCY", "RateTable", "convert", "pick_rates"]
