"""
Persistent store: a narrow CRUD + change-notification interface and its
SQLAlchemy implementation.

Records cross the interface as plain dicts keyed by column name. Every
successful write is announced to the listeners registered for the table
(``on_change(topic, callback)``), which is how the real-time distributor
learns about new articles and summaries.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select, delete as sa_delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from newsdesk.storage.database import get_test_session_factory, init_database
from newsdesk.storage.models import TABLES
from newsdesk.utils.errors import DuplicateKeyError, StoreError
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Article, Location, Summary

ChangeCallback = Callable[[str, Dict[str, Any]], None]

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

_UNIQUE_MARKERS = ("unique constraint", "duplicate key")


def _integrity_error(table: str, error: IntegrityError) -> StoreError:
    """Unique violations become ``DuplicateKeyError``; foreign key and check failures stay ``StoreError``"""
    message = str(error.orig)
    if any(marker in message.lower() for marker in _UNIQUE_MARKERS):
        return DuplicateKeyError(f"Unique constraint violated in {table}: {message}")
    return StoreError(f"Integrity check failed in {table}: {message}")


class Store(ABC):
    """Storage contract consumed by the pipeline"""

    def __init__(self):
        self._listeners: Dict[str, List[ChangeCallback]] = defaultdict(list)

    @abstractmethod
    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record; raises ``DuplicateKeyError`` on a unique violation"""
        pass

    @abstractmethod
    def upsert(self, table: str, record: Dict[str, Any], key: Sequence[str]) -> Dict[str, Any]:
        """Insert or update the record matching ``key`` columns"""
        pass

    @abstractmethod
    def update(self, table: str, where: Dict[str, Any], changes: Dict[str, Any]) -> int:
        """Apply ``changes`` to every record matching ``where``"""
        pass

    @abstractmethod
    def query(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        search: Optional[Tuple[str, Sequence[str]]] = None,
        since: Optional[Tuple[str, datetime]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select records.

        ``where`` is column equality (a list/tuple/set value means IN),
        ``search`` is a case-insensitive substring over several columns,
        ``since`` keeps records whose column is at or after the timestamp.
        """
        pass

    @abstractmethod
    def delete(self, table: str, where: Dict[str, Any]) -> int:
        """Delete matching records and return how many were removed"""
        pass

    def get(self, table: str, **where) -> Optional[Dict[str, Any]]:
        rows = self.query(table, where=where, limit=1)
        return rows[0] if rows else None

    def on_change(self, topic: str, callback: ChangeCallback) -> None:
        """Register ``callback(operation, record)`` for writes to table ``topic``"""
        self._listeners[topic].append(callback)

    def _notify(self, topic: str, operation: str, record: Dict[str, Any]) -> None:
        for callback in list(self._listeners.get(topic, [])):
            try:
                callback(operation, record)
            except Exception as e:
                # A broken listener must not undo a committed write
                logger.exception(f"Change listener for {topic} failed: {e}")


class SQLAlchemyStore(Store):
    """Store backed by SQLAlchemy ORM sessions"""

    def __init__(self, session_factory: sessionmaker):
        super().__init__()
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SQLAlchemyStore":
        return cls(init_database(database_url))

    @staticmethod
    def _model(table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}")

    @staticmethod
    def _to_dict(row) -> Dict[str, Any]:
        return {column.name: getattr(row, column.name) for column in row.__table__.columns}

    def _filter(self, model, statement, where: Optional[Dict[str, Any]]):
        for column, value in (where or {}).items():
            attribute = getattr(model, column)
            if isinstance(value, (list, tuple, set)):
                statement = statement.where(attribute.in_(list(value)))
            else:
                statement = statement.where(attribute == value)
        return statement

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        try:
            with self._session_factory() as session:
                row = model(**record)
                session.add(row)
                session.flush()
                stored = self._to_dict(row)
                session.commit()
        except IntegrityError as e:
            raise _integrity_error(table, e) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into {table} failed: {e}") from e

        self._notify(table, INSERT, stored)
        return stored

    def upsert(self, table: str, record: Dict[str, Any], key: Sequence[str]) -> Dict[str, Any]:
        model = self._model(table)
        try:
            with self._session_factory() as session:
                statement = self._filter(model, select(model), {column: record[column] for column in key})
                row = session.execute(statement).scalars().first()
                if row is None:
                    operation = INSERT
                    row = model(**record)
                    session.add(row)
                else:
                    operation = UPDATE
                    for column, value in record.items():
                        setattr(row, column, value)
                session.flush()
                stored = self._to_dict(row)
                session.commit()
        except IntegrityError as e:
            raise _integrity_error(table, e) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Upsert into {table} failed: {e}") from e

        self._notify(table, operation, stored)
        return stored

    def update(self, table: str, where: Dict[str, Any], changes: Dict[str, Any]) -> int:
        model = self._model(table)
        try:
            with self._session_factory() as session:
                rows = session.execute(self._filter(model, select(model), where)).scalars().all()
                for row in rows:
                    for column, value in changes.items():
                        setattr(row, column, value)
                session.flush()
                updated = [self._to_dict(row) for row in rows]
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Update of {table} failed: {e}") from e

        for stored in updated:
            self._notify(table, UPDATE, stored)
        return len(updated)

    def query(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        search: Optional[Tuple[str, Sequence[str]]] = None,
        since: Optional[Tuple[str, datetime]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        model = self._model(table)
        statement = self._filter(model, select(model), where)

        if search:
            term, columns = search
            pattern = f"%{term}%"
            statement = statement.where(or_(*[getattr(model, column).ilike(pattern) for column in columns]))

        if since:
            column, timestamp = since
            statement = statement.where(getattr(model, column) >= timestamp)

        if order_by:
            attribute = getattr(model, order_by)
            statement = statement.order_by(attribute.desc() if descending else attribute.asc())

        if limit is not None:
            statement = statement.limit(limit)

        try:
            with self._session_factory() as session:
                return [self._to_dict(row) for row in session.execute(statement).scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"Query of {table} failed: {e}") from e

    def delete(self, table: str, where: Dict[str, Any]) -> int:
        model = self._model(table)
        removed = self.query(table, where=where)
        if not removed:
            return 0

        try:
            with self._session_factory() as session:
                session.execute(self._filter(model, sa_delete(model), where))
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Delete from {table} failed: {e}") from e

        for stored in removed:
            self._notify(table, DELETE, stored)
        return len(removed)


def get_test_store() -> SQLAlchemyStore:
    """In-memory store with all tables created"""
    return SQLAlchemyStore(get_test_session_factory())


# Record mapping

def article_to_record(article: Article) -> Dict[str, Any]:
    record = article.model_dump(exclude={"location"})
    location = article.location or Location()
    record["location_city"] = location.city
    record["location_region"] = location.region
    record["location_country"] = location.country
    return record


def record_to_article(record: Dict[str, Any]) -> Article:
    data = dict(record)
    location = Location(
        city=data.pop("location_city", None),
        region=data.pop("location_region", None),
        country=data.pop("location_country", None),
    )
    data["location"] = None if location.is_empty() else location
    return Article(**data)


def summary_to_record(summary: Summary) -> Dict[str, Any]:
    record = summary.model_dump()
    record["sentiment"] = summary.sentiment.value
    return record


def record_to_summary(record: Dict[str, Any]) -> Summary:
    data = dict(record)
    data.pop("id", None)
    return Summary(**data)
