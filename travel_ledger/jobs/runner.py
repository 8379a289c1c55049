"""Run a cache job with its running / done / error status record."""

import datetime
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from travel_ledger.config import get_write_batch_size
from travel_ledger.errors import JobFailedError
from travel_ledger.jobs.cache import CacheStore
from travel_ledger.logger import get_logger
from travel_ledger.models.common import JobStatus

logger = get_logger(__name__)


@dataclass
class CacheResult:
    """Output of a job's build step.

    documents: collection -> document id -> payload
    stale: collection -> predicate(doc_id, payload) selecting documents to
        delete before writing
    """
    documents: Dict[str, Dict[str, dict]]
    stale: Dict[str, Callable[[str, dict], bool]] = field(default_factory=dict)
    debug: dict = field(default_factory=dict)

    @property
    def document_count(self) -> int:
        return sum(len(docs) for docs in self.documents.values())


def run_cache_job(
    session: Session,
    name: str,
    build: Callable[[], CacheResult],
    range_from: Optional[datetime.date] = None,
    range_to: Optional[datetime.date] = None,
) -> CacheResult:
    """Build and publish a cache.

    The status record is committed as running first. Documents and the
    done status are then committed together, so a failure leaves the
    previous cache untouched and the status set to error.

    Raises:
        JobFailedError: when building or writing fails
    """
    cache = CacheStore(session)
    try:
        cache.set_meta(name, JobStatus.RUNNING.value, range_from, range_to)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception("Cache job %s could not start", name)
        raise JobFailedError(name, str(e)) from e

    logger.info("Cache job %s started (%s .. %s)", name, range_from or "-", range_to or "-")
    try:
        result = build()
        batch_size = get_write_batch_size()
        for collection, predicate in result.stale.items():
            cache.delete_where(collection, predicate)

        written = 0
        for collection, docs in result.documents.items():
            for doc_id, payload in docs.items():
                cache.put(collection, doc_id, payload)
                written += 1
                if written % batch_size == 0:
                    session.flush()

        cache.set_meta(name, JobStatus.DONE.value, range_from, range_to, debug=result.debug)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception("Cache job %s failed", name)
        _record_failure(session, cache, name, range_from, range_to, str(e))
        raise JobFailedError(name, str(e)) from e

    logger.info("Cache job %s done: %d documents", name, written)
    return result


def _record_failure(session, cache, name, range_from, range_to, message):
    try:
        cache.set_meta(name, JobStatus.ERROR.value, range_from, range_to, message=message)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Could not record failure of cache job %s", name)
