"""Base SQLAlchemy declarative base for all models"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer, TypeDecorator, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base


class PortableJSONB(TypeDecorator):
    """JSON type that works with both PostgreSQL (JSONB) and SQLite (JSON).

    Uses JSONB on PostgreSQL for efficient indexing and querying,
    falls back to JSON on SQLite for testing compatibility.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


# SQLite only autoincrements INTEGER PRIMARY KEY columns
PortableBigInteger = BigInteger().with_variant(Integer(), "sqlite")


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for audit and lifecycle fields."""
    return datetime.now(timezone.utc)


Base = declarative_base()
