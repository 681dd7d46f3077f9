from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_POSTGRES_SCHEMES = frozenset({"postgres", "postgresql"})

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _normalize_database_url(database_url: str) -> str:
    """
    Turn a hosted Postgres URL (postgres://, postgresql://) into a psycopg one.

    `sslmode=require` is added unless the URL already sets sslmode. Any other
    scheme is passed to SQLAlchemy as given.
    """
    raw = database_url.strip()
    if not raw:
        raise ValueError("database_url must be non-empty when provided")

    parsed = urlparse(raw)
    if parsed.scheme.lower() not in _POSTGRES_SCHEMES:
        return raw

    query = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(k.lower() == "sslmode" for k, _ in query):
        query.append(("sslmode", "require"))
    return urlunparse(parsed._replace(scheme="postgresql+psycopg", query=urlencode(query)))


def init_db(database_url: str | None, db_path: str) -> Engine:
    """Bind the module session factory and create missing tables."""
    global _engine, _SessionLocal
    if database_url:
        engine = create_engine(_normalize_database_url(database_url), pool_pre_ping=True)
    else:
        engine = create_engine(f"sqlite:///{db_path}")

    # Stores hand ORM objects out of short-lived sessions; they must stay readable after commit.
    _SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    from assistant_bot.db.models import Base  # noqa: WPS433

    Base.metadata.create_all(bind=engine)
    if _engine is not None and _engine is not engine:
        _engine.dispose()
    _engine = engine
    return engine


def check_connection() -> None:
    """Round-trip a trivial query; raises SQLAlchemyError when the backend is unreachable."""
    with get_session() as session:
        session.execute(text("SELECT 1"))


def dispose_db() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_session() -> Iterator[Session]:
    if _SessionLocal is None:
        raise RuntimeError("DB not initialized. Call init_db() first.")
    with _SessionLocal() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
