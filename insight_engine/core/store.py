"""
Observation Store Adapters

The engine persists exactly two kinds of state: the observation history behind
the Behavior Ledger and the health-assessment cache. Both are JSON documents
stored under a handful of logical keys. This module provides the key-value
boundary the engine talks to, with three interchangeable backends:

    memory  - process-local dict (tests, previews, single-shot scripts)
    sql     - one row per key in a SQLAlchemy table
    redis   - one string value per key

Unlike a cache, the store is the source of truth: backend failures are raised
as StoreUnavailableError and never downgraded to "not found".
"""
import copy
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

import redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insight_engine.core.config import settings
from insight_engine.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Logical store keys
OBSERVATION_HISTORY_KEY = "observation_history"
HEALTH_SNAPSHOT_KEY = "health_snapshot_latest"
HEALTH_HISTORY_KEY = "health_history"


def store_key(name: str, prefix: Optional[str] = None) -> str:
    """Namespace a logical key with the configured prefix."""
    prefix = settings.STORE_KEY_PREFIX if prefix is None else prefix
    return f"{prefix}:{name}" if prefix else name


class ObservationStore(Protocol):
    """Durable key-value persistence. Owns no logic."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def save(self, key: str, value: Dict[str, Any]) -> None:
        ...


class InMemoryObservationStore:
    """
    Dict-backed store.

    Values are round-tripped through JSON so callers get the same fidelity
    (and the same aliasing guarantees) as the durable backends.
    """

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(store_key(key, self.prefix))
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Dict[str, Any]) -> None:
        self._data[store_key(key, self.prefix)] = json.dumps(value, default=str)

    def keys(self):
        return sorted(self._data)


class SQLObservationStore:
    """
    SQLAlchemy-backed store: one StoreRecord row per key.

    Each call runs in its own short-lived session so a failed save never
    leaves a half-open transaction behind.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None, prefix: Optional[str] = None):
        if session_factory is None:
            from insight_engine.core.database import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory
        self.prefix = prefix

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        from insight_engine.models import StoreRecord

        full_key = store_key(key, self.prefix)
        session = self.session_factory()
        try:
            record = session.get(StoreRecord, full_key)
            if record is None:
                return None
            return copy.deepcopy(record.payload)
        except SQLAlchemyError as e:
            logger.warning(f"Store load failed for key {full_key}: {e}")
            raise StoreUnavailableError(f"SQL store unavailable: {e}", backend="sql") from e
        finally:
            session.close()

    def save(self, key: str, value: Dict[str, Any]) -> None:
        from insight_engine.models import StoreRecord

        full_key = store_key(key, self.prefix)
        # JSON round-trip so datetimes and the like are stored as plain strings
        payload = json.loads(json.dumps(value, default=str))
        session = self.session_factory()
        try:
            record = session.get(StoreRecord, full_key)
            if record:
                record.payload = payload
                record.version = (record.version or 0) + 1
            else:
                session.add(StoreRecord(key=full_key, payload=payload, version=1))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Store save failed for key {full_key}: {e}")
            raise StoreUnavailableError(f"SQL store unavailable: {e}", backend="sql") from e
        finally:
            session.close()


class RedisObservationStore:
    """Redis-backed store. Values never expire."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None, prefix: Optional[str] = None):
        self.client = client or redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        self.prefix = prefix

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        full_key = store_key(key, self.prefix)
        try:
            value = self.client.get(full_key)
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"Store load failed for key {full_key}: {e}")
            raise StoreUnavailableError(f"Redis store unavailable: {e}", backend="redis") from e
        if not value:
            return None
        return json.loads(value)

    def save(self, key: str, value: Dict[str, Any]) -> None:
        full_key = store_key(key, self.prefix)
        try:
            self.client.set(full_key, json.dumps(value, default=str))
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"Store save failed for key {full_key}: {e}")
            raise StoreUnavailableError(f"Redis store unavailable: {e}", backend="redis") from e


def create_store(backend: Optional[str] = None) -> ObservationStore:
    """Build the store configured by STORE_BACKEND (or the explicit backend)."""
    backend = (backend or settings.STORE_BACKEND).lower()

    if backend == "memory":
        return InMemoryObservationStore()
    if backend == "sql":
        from insight_engine.core.database import init_db
        init_db()
        return SQLObservationStore()
    if backend == "redis":
        return RedisObservationStore()

    raise ValueError(f"Unknown store backend: {backend}")
