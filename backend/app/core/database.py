from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings


def _engine_kwargs(dsn: str) -> dict[str, Any]:
    if not dsn.startswith("sqlite"):
        return {}
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    # In-memory SQLite: every connection must see the same database.
    if dsn in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.APP_DATABASE_DSN, **_engine_kwargs(settings.APP_DATABASE_DSN))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def reset_db(db: Session) -> None:
    """Delete every row from every table, leaving the schema in place."""
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.commit()
