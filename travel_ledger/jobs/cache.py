"""Cache documents and cache job status records."""

import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from travel_ledger.database.models import CacheDocumentModel, CacheMetaModel


class CacheStore:
    """Derived documents read by dashboards, grouped by collection."""

    def __init__(self, session: Session):
        self.session = session

    def put(self, collection: str, doc_id: str, payload: dict):
        row = self.session.get(CacheDocumentModel, (collection, doc_id))
        if row is None:
            self.session.add(CacheDocumentModel(collection=collection, doc_id=doc_id, payload=payload))
        else:
            row.payload = payload

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        row = self.session.get(CacheDocumentModel, (collection, doc_id))
        return row.payload if row is not None else None

    def list(self, collection: str) -> Dict[str, dict]:
        rows = (
            self.session.query(CacheDocumentModel)
            .filter(CacheDocumentModel.collection == collection)
            .order_by(CacheDocumentModel.doc_id)
            .all()
        )
        return {row.doc_id: row.payload for row in rows}

    def delete_where(self, collection: str, predicate: Callable[[str, dict], bool]) -> int:
        """Delete documents of ``collection`` for which ``predicate(doc_id, payload)`` holds."""
        rows = self.session.query(CacheDocumentModel).filter(CacheDocumentModel.collection == collection).all()
        removed = 0
        for row in rows:
            if predicate(row.doc_id, row.payload or {}):
                self.session.delete(row)
                removed += 1
        self.session.flush()
        return removed

    def set_meta(
        self,
        name: str,
        status: str,
        range_from: Optional[datetime.date] = None,
        range_to: Optional[datetime.date] = None,
        message: Optional[str] = None,
        debug: Optional[dict] = None,
    ):
        row = self.session.get(CacheMetaModel, name)
        if row is None:
            row = CacheMetaModel(name=name)
            self.session.add(row)
        now = datetime.datetime.utcnow()
        row.status = status
        row.range_from = range_from.isoformat() if range_from else None
        row.range_to = range_to.isoformat() if range_to else None
        row.message = message
        if status == "running":
            row.started_at = now
            row.finished_at = None
        else:
            row.finished_at = now
        if debug is not None or status == "running":
            row.debug = debug

    def get_meta(self, name: str) -> Optional[dict]:
        row = self.session.get(CacheMetaModel, name)
        if row is None:
            return None
        return {
            "name": row.name,
            "status": row.status,
            "range_from": row.range_from,
            "range_to": row.range_to,
            "message": row.message,
            "debug": row.debug,
            "started_at": row.started_at,
            "finished_at": row.finished_at,
        }
