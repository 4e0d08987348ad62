"""
Key-value persistence for profile and scan records.

Three interchangeable backends share the ``KvStore`` protocol: an in-memory
dict for tests/local runs, a Redis keyspace, and a single SQL table
(Postgres in production, SQLite in tests). Values are JSON-compatible dicts.

``scan_prefix`` returns every matching value with no pagination; callers
filter and sort in memory, which only holds while per-owner corpora stay small.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import redis
from sqlalchemy import JSON, Column, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

_REDIS_GLOB_SPECIALS = "\\*?[]"


class KvStore(Protocol):
    """Interface for key-value persistence."""

    def get(self, key: str) -> dict | None:
        ...

    def set(self, key: str, value: dict) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def scan_prefix(self, prefix: str) -> list[dict]:
        ...


def _copy(value: Any) -> Any:
    # Same JSON round trip a networked backend would apply.
    return json.loads(json.dumps(value, default=str))


class InMemoryKvStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.items: dict[str, dict] = {}

    def get(self, key: str) -> dict | None:
        value = self.items.get(key)
        return _copy(value) if value is not None else None

    def set(self, key: str, value: dict) -> None:
        self.items[key] = _copy(value)

    def delete(self, key: str) -> None:
        self.items.pop(key, None)

    def scan_prefix(self, prefix: str) -> list[dict]:
        return [
            _copy(value) for key, value in self.items.items() if key.startswith(prefix)
        ]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.items.clear()


def escape_redis_glob(value: str) -> str:
    return "".join(f"\\{ch}" if ch in _REDIS_GLOB_SPECIALS else ch for ch in value)


class RedisKvStore:
    """Redis-backed store with JSON-encoded values under a namespace prefix."""

    def __init__(self, url: str, key_prefix: str = "skinscan:kv:", scan_count: int = 500):
        self.url = url
        self.key_prefix = key_prefix
        self.scan_count = scan_count
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> dict | None:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: dict) -> None:
        self.client.set(self._key(key), json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def scan_prefix(self, prefix: str) -> list[dict]:
        pattern = escape_redis_glob(self._key(prefix)) + "*"
        keys = list(self.client.scan_iter(match=pattern, count=self.scan_count))
        if not keys:
            return []
        values = []
        # Keys can vanish between SCAN and MGET; those come back as None.
        for raw in self.client.mget(keys):
            if raw is not None:
                values.append(json.loads(raw))
        return values


Base = declarative_base()


class KvRow(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)


class SqlKvStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlKvStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> dict | None:
        with self.Session() as session:
            row = session.get(KvRow, key)
            return _copy(row.value) if row else None

    def set(self, key: str, value: dict) -> None:
        with self.Session() as session:
            existing = session.get(KvRow, key)
            if existing:
                existing.value = _copy(value)
            else:
                session.add(KvRow(key=key, value=_copy(value)))
            session.commit()

    def delete(self, key: str) -> None:
        with self.Session() as session:
            row = session.get(KvRow, key)
            if row is None:
                return
            session.delete(row)
            session.commit()

    def scan_prefix(self, prefix: str) -> list[dict]:
        with self.Session() as session:
            stmt = select(KvRow).where(KvRow.key.startswith(prefix, autoescape=True))
            rows = session.execute(stmt).scalars().all()
            return [_copy(row.value) for row in rows]
