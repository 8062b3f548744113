"""
Database session management
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from ems.core.config import settings
from ems.db.base import Base

_connect_args = {"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    connect_args=_connect_args,
)

if "sqlite" in settings.DATABASE_URL:
    # The link uniqueness and audit actor checks rely on constraints being enforced
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    import ems.models  # noqa: F401  register tables before create_all
    Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (audit worker, client backends, scripts)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
