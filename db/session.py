from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from db.models import Base, Setting

ROOT = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./data/modmgr.db"
DB_URL_ENV = "MODMGR_DB_URL"

_log = logging.getLogger(__name__)


def normalize_sqlite_url(db_url: str) -> str:
    """Ensure sqlite file URLs are absolute and anchored at repo root when relative.

    This prevents mismatched files when different processes have different CWDs.
    """
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return db_url
    db_path = url.database or ""
    # skip in-memory URLs
    if db_path in ("", ":memory:"):
        return db_url
    p = Path(db_path)
    if not p.is_absolute():
        url = url.set(database=str((ROOT / p).resolve()))
        return url.render_as_string(hide_password=False)
    return db_url


def default_db_url() -> str:
    return os.environ.get(DB_URL_ENV) or DEFAULT_DB_URL


def _is_memory_url(db_url: str) -> bool:
    url = make_url(db_url)
    return url.get_backend_name() == "sqlite" and (url.database or "") in ("", ":memory:")


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """Create an engine for the catalog.

    File-backed SQLite uses NullPool so file handles are released as soon as a
    session closes; in-memory SQLite needs a single shared connection instead.
    """
    if _is_memory_url(db_url):
        engine = create_engine(
            db_url,
            echo=echo,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(db_url, echo=echo, future=True, poolclass=NullPool)

    # Ensure SQLite enforces foreign keys so CASCADE deletes work as intended
    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[override]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine


def ensure_sqlite_dir(db_url: str) -> None:
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite" or _is_memory_url(db_url):
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class CatalogStore:
    """Single long-lived handle on the catalog database.

    Owned by whichever entry point (CLI ``main`` or the API lifespan) created
    it and passed explicitly to every operation. Access goes through
    ``session()``, a short scoped borrow guarded by a mutex; callers must not
    perform filesystem or archive I/O while holding a borrow, and borrows do
    not nest.
    """

    def __init__(self, db_url: Optional[str] = None, echo: bool = False, create_schema: bool = True) -> None:
        self.url = normalize_sqlite_url(db_url or default_db_url())
        ensure_sqlite_dir(self.url)
        self.engine = build_engine(self.url, echo=echo)
        self._sessions = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session
        )
        self._lock = threading.Lock()
        if create_schema:
            # Lazily ensure core schema exists in ephemeral DBs
            Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        with self._lock:
            session = self._sessions()
            try:
                yield session
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def dispose(self) -> None:
        self.engine.dispose()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<CatalogStore url={self.url}>"


def get_setting(session: Session, key: str) -> Optional[str]:
    row = session.execute(select(Setting).where(Setting.key == key)).scalar_one_or_none()
    return row.value if row is not None else None


def set_setting(session: Session, key: str, value: Optional[str]) -> None:
    row = session.get(Setting, key)
    if row is None:
        session.add(Setting(key=key, value=value))
    else:
        row.value = value
