"""
Source registry backed by the store's ``sources`` table
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from newsdesk.storage.store import Store
from newsdesk.utils.errors import SourceNotFoundError
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Location, Source, utcnow

TABLE = "sources"


def _to_record(source: Source) -> Dict[str, Any]:
    record = source.model_dump(exclude={"metadata", "location"})
    record["kind"] = source.kind.value
    record["options"] = dict(source.metadata)
    record["location"] = source.location.model_dump() if source.location else None
    return record


def _from_record(record: Dict[str, Any]) -> Source:
    data = dict(record)
    data["metadata"] = data.pop("options", None) or {}
    if data.get("location"):
        data["location"] = Location(**data["location"])
    return Source(**data)


class SourceRegistry:
    """Keeps the configured sources and their fetch bookkeeping"""

    def __init__(self, store: Store):
        self.store = store

    def add_source(self, source: Source) -> Source:
        record = self.store.upsert(TABLE, _to_record(source), key=("id",))
        logger.info(f"Registered source {source.id} ({source.kind.value}: {source.name})")
        return _from_record(record)

    def load_sources(self, sources: Iterable[Source]) -> int:
        """Register configured sources, keeping fetch bookkeeping of known ones"""
        count = 0
        for source in sources:
            existing = self.store.get(TABLE, id=source.id)
            if existing:
                source = source.model_copy(update={
                    "last_fetched_at": existing.get("last_fetched_at"),
                    "last_error": existing.get("last_error"),
                    "needs_attention": existing.get("needs_attention", False),
                })
            self.add_source(source)
            count += 1
        return count

    def get_source(self, source_id: str) -> Source:
        record = self.store.get(TABLE, id=source_id)
        if record is None:
            raise SourceNotFoundError(f"Source not found: {source_id}")
        return _from_record(record)

    def list_sources(self) -> List[Source]:
        return [_from_record(r) for r in self.store.query(TABLE, order_by="name", descending=False)]

    def list_active_sources(self) -> List[Source]:
        return [
            _from_record(r)
            for r in self.store.query(TABLE, where={"is_active": True}, order_by="name", descending=False)
        ]

    def update_source(self, source_id: str, **changes) -> Source:
        source = self.get_source(source_id)
        updated = source.model_copy(update=changes)
        # Re-validate so bad intervals or kinds are rejected
        updated = Source(**updated.model_dump())
        return _from_record(self.store.upsert(TABLE, _to_record(updated), key=("id",)))

    def mark_fetched(self, source_id: str, at: Optional[datetime] = None) -> None:
        """Record a successful fetch; clears any previous failure flag"""
        updated = self.store.update(
            TABLE,
            {"id": source_id},
            {"last_fetched_at": at or utcnow(), "last_error": None, "needs_attention": False},
        )
        if not updated:
            raise SourceNotFoundError(f"Source not found: {source_id}")

    def record_failure(self, source_id: str, error: Exception, permanent: bool = False) -> None:
        """Keep the last error; permanent failures are flagged for an operator.

        The source stays active either way.
        """
        changes: Dict[str, Any] = {"last_error": str(error)}
        if permanent:
            changes["needs_attention"] = True
            logger.error(f"Source {source_id} needs attention: {error}")
        self.store.update(TABLE, {"id": source_id}, changes)

    @staticmethod
    def is_due(source: Source, now: Optional[datetime] = None) -> bool:
        if source.last_fetched_at is None:
            return True
        now = now or utcnow()
        return now - source.last_fetched_at >= timedelta(minutes=source.fetch_interval_minutes)
