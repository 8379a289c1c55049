"""Runtime configuration read from environment variables."""

import os
from decimal import Decimal, InvalidOperation
from typing import List

from travel_ledger.logger import get_logger
from travel_ledger.models.booking import OwnerShare

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///travel_ledger.db"
DEFAULT_OWNERS = "a:Owner A:50,b:Owner B:50"
DEFAULT_BNR_BASE_URL = "https://curs.bnr.ro"


def get_database_url() -> str:
    """Database connection string.

    Uses DATABASE_URL environment variable if set, otherwise a local
    SQLite file in the working directory.
    """
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def get_write_batch_size() -> int:
    """Number of documents written before the session is flushed."""
    raw = os.getenv("LEDGER_WRITE_BATCH_SIZE", "400")
    try:
        size = int(raw)
    except ValueError:
        logger.warning("Invalid LEDGER_WRITE_BATCH_SIZE=%r, using 400", raw)
        return 400
    return size if size > 0 else 400


def get_match_window_days() -> int:
    raw = os.getenv("LEDGER_MATCH_WINDOW_DAYS", "3")
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning("Invalid LEDGER_MATCH_WINDOW_DAYS=%r, using 3", raw)
        return 3


def get_match_tolerance() -> Decimal:
    raw = os.getenv("LEDGER_MATCH_TOLERANCE", "1.00")
    try:
        return Decimal(raw)
    except InvalidOperation:
        logger.warning("Invalid LEDGER_MATCH_TOLERANCE=%r, using 1.00", raw)
        return Decimal("1.00")


def get_default_booking_type() -> str:
    """Booking type whose commission is attributed by base owner or share table."""
    return os.getenv("LEDGER_DEFAULT_BOOKING_TYPE", "base")


def get_bnr_base_url() -> str:
    return os.getenv("BNR_BASE_URL", DEFAULT_BNR_BASE_URL).rstrip("/")


def parse_owner_config(raw: str) -> List[OwnerShare]:
    """Parse `id:Name:share,...` into owner shares.

    Example:
        "a:Alice:60,b:Bob:40" -> [OwnerShare(a, Alice, 60), OwnerShare(b, Bob, 40)]
    """
    owners = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [p.strip() for p in chunk.split(":")]
        if len(parts) != 3:
            logger.warning("Skipping malformed owner entry %r", chunk)
            continue
        owner_id, name, share = parts
        try:
            owners.append(OwnerShare(id=owner_id, name=name, share=Decimal(share)))
        except InvalidOperation:
            logger.warning("Skipping owner %r with invalid share %r", owner_id, share)
    return owners


def get_owner_shares() -> List[OwnerShare]:
    """Fallback owner configuration used when the owners collection is empty."""
    owners = parse_owner_config(os.getenv("LEDGER_OWNERS", DEFAULT_OWNERS))
    if not owners:
        owners = parse_owner_config(DEFAULT_OWNERS)
    return owners
