from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from src.db.models.base import Base

settings = get_settings()


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    if url.startswith("sqlite"):
        new_engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
        return new_engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # ON DELETE CASCADE is ignored by SQLite unless this pragma is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the given engine."""
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


# Sync engine/session
engine = build_engine(settings.database_url, echo=settings.log_level == "DEBUG")
SessionLocal = build_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Initialize database tables."""
    # Register every mapped class on Base.metadata before create_all
    import src.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def check_connection(bind: Engine | None = None) -> None:
    """Run a trivial query; raises SQLAlchemyError when the database is unreachable."""
    with (bind or engine).connect() as conn:
        conn.execute(text("SELECT 1"))


@contextmanager
def transactional_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()

