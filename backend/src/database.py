"""Database engine and session factory for the metadata store.

Sessions are created with expire_on_commit=False: lifecycle operations
return Document rows after their transaction has committed and closed.
"""

from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import Settings, get_settings


def build_engine(database_url: Optional[str] = None, settings: Optional[Settings] = None, **overrides: Any) -> Engine:
    """Create an engine with connection pooling and statement timeouts.

    Pool settings and statement_timeout only apply to PostgreSQL.
    """
    settings = settings or get_settings()
    database_url = database_url or settings.DATABASE_URL

    engine_kwargs: Dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": False,
    }

    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        if settings.DB_STATEMENT_TIMEOUT_MS > 0:
            engine_kwargs["connect_args"] = {
                "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
            }

    engine_kwargs.update(overrides)
    return create_engine(database_url, **engine_kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked; keep tenant/type references honest in tests."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

