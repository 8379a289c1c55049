"""Aggregation jobs that rebuild the dashboard caches."""

from travel_ledger.jobs.account_daily import build_account_daily
from travel_ledger.jobs.founders import build_founders_cache
from travel_ledger.jobs.overview import build_overview_cache
from travel_ledger.jobs.pl_monthly import build_pl_monthly
from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.jobs.sales_dashboard import build_sales_dashboard

__all__ = [
    "CacheResult",
    "run_cache_job",
    "build_account_daily",
    "build_pl_monthly",
    "build_sales_dashboard",
    "build_founders_cache",
    "build_overview_cache",
]
