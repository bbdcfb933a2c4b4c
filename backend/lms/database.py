"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the services, scripts and tests.
"""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from .config import settings
from . import models  # noqa: F401  registers tables on SQLModel.metadata


def make_engine(url: str = None, **kwargs) -> Engine:
    """Create an engine for `url`, enabling foreign keys on SQLite."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    eng = create_engine(url, echo=settings.SQL_ECHO, **kwargs)
    if url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)
    return eng


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = make_engine()


def create_db_and_tables(bind: Engine = None):
    """Create database tables using SQLModel metadata.

    Intended for local development, scripts and tests; schema changes in
    a deployed database are handled outside this package.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """Yield a database `Session` for callers that manage request scope.

    The generator yields a session and ensures it is closed when the
    caller's scope finishes.
    """
    with Session(engine) as session:
        yield session
