"""Bank statement adapters and the statement importer."""

from travel_ledger.importers.base import ParsedStatement, StatementRow
from travel_ledger.importers.mt940 import parse_mt940
from travel_ledger.importers.tabular import parse_tabular

__all__ = ["ParsedStatement", "StatementRow", "parse_mt940", "parse_tabular"]
