"""
Database engine and session management.

Provides the SQLAlchemy engine and session factory with SQLite-specific
settings (WAL mode, foreign key enforcement) and an in-memory factory for
tests.
"""
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from newsdesk.storage.models import Base


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Set SQLite pragmas for performance and data integrity.

    Pragmas:
    - foreign_keys=ON: Enforce foreign key constraints
    - journal_mode=WAL: Write-Ahead Logging for better concurrency
    - synchronous=NORMAL: Balance between safety and performance
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``, creating the SQLite directory if needed"""
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},  # Allow multi-threading
        poolclass=StaticPool,  # Reuse single connection for SQLite
        echo=echo,
    )
    event.listen(engine, "connect", _set_sqlite_pragma)
    return engine


def init_database(database_url: str) -> sessionmaker:
    """Create all tables and return a session factory bound to them"""
    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_test_session_factory() -> sessionmaker:
    """
    Session factory over a fresh in-memory SQLite database.

    Example:
        @pytest.fixture
        def store():
            return SQLAlchemyStore(get_test_session_factory())
    """
    return init_database("sqlite:///:memory:")
