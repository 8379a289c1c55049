"""Run an aggregation job from the command line.

    python -m travel_ledger.jobs <job> [from] [to]

Dates are ISO (YYYY-MM-DD). account_daily and pl_monthly need both.
"""

import datetime
import sys

from travel_ledger.config import get_database_url
from travel_ledger.database.connection import create_database_engine, get_session
from travel_ledger.database.schema import create_tables
from travel_ledger.errors import JobFailedError
from travel_ledger.jobs import (
    build_account_daily,
    build_founders_cache,
    build_overview_cache,
    build_pl_monthly,
    build_sales_dashboard,
)
from travel_ledger.logger import setup_logging

JOBS = {
    "account_daily": lambda s, a, b: build_account_daily(s, a, b),
    "pl_monthly": lambda s, a, b: build_pl_monthly(s, a, b),
    "sales_dashboard": lambda s, a, b: build_sales_dashboard(s, a, b),
    "founders": lambda s, a, b: build_founders_cache(s),
    "overview": lambda s, a, b: build_overview_cache(s, a, b),
}
RANGE_REQUIRED = ("account_daily", "pl_monthly")


def main(argv):
    if len(argv) < 2 or argv[1] not in JOBS:
        print(f"Usage: python -m travel_ledger.jobs <{'|'.join(JOBS)}> [from] [to]")
        return 1

    name = argv[1]
    try:
        start = datetime.date.fromisoformat(argv[2]) if len(argv) > 2 else None
        end = datetime.date.fromisoformat(argv[3]) if len(argv) > 3 else None
    except ValueError as e:
        print(f"✗ Invalid date: {e}")
        return 1
    if name in RANGE_REQUIRED and (start is None or end is None):
        print(f"✗ {name} needs a from and a to date")
        return 1

    setup_logging()
    engine = create_database_engine(get_database_url())
    create_tables(engine)
    session = get_session(engine)
    try:
        result = JOBS[name](session, start, end)
    except (JobFailedError, ValueError) as e:
        print(f"✗ {name} failed: {e}")
        return 1
    finally:
        session.close()

    print(f"✓ {name}: {result.document_count} documents written")
    for issue in result.debug.get("issues", []):
        print(f"  ✗ {issue}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
