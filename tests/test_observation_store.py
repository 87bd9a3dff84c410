"""
Tests for the Observation Store adapters.

Every backend must round-trip the ledger document exactly and surface
backend failures as StoreUnavailableError.
"""
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from insight_engine.core.exceptions import StoreUnavailableError
from insight_engine.core.store import (
    OBSERVATION_HISTORY_KEY,
    InMemoryObservationStore,
    RedisObservationStore,
    SQLObservationStore,
    create_store,
    store_key,
)
from insight_engine.models import StoreRecord
from insight_engine.services.behavior_ledger import BehaviorLedger
from tests.conftest import FIXED_NOW


@pytest.fixture
def ledger_document(make_observation):
    ledger = BehaviorLedger(retention_days=90)
    ledger.record(make_observation(timestamp=FIXED_NOW - timedelta(days=3), performance=81.25, weather="sunny"))
    ledger.record(make_observation(pillar="heart", mood=9, energy=8))
    return ledger.to_document()


class TestStoreKey:
    def test_prefixed(self):
        assert store_key("observation_history", prefix="user42") == "user42:observation_history"

    def test_empty_prefix(self):
        assert store_key("observation_history", prefix="") == "observation_history"


class TestInMemoryStore:
    """Dict-backed store with JSON fidelity."""

    def test_round_trip(self, memory_store, ledger_document):
        memory_store.save(OBSERVATION_HISTORY_KEY, ledger_document)
        assert memory_store.load(OBSERVATION_HISTORY_KEY) == ledger_document

    def test_missing_key(self, memory_store):
        assert memory_store.load("nothing_here") is None

    def test_loaded_value_is_a_copy(self, memory_store, ledger_document):
        memory_store.save(OBSERVATION_HISTORY_KEY, ledger_document)
        loaded = memory_store.load(OBSERVATION_HISTORY_KEY)
        loaded["observations"].clear()
        assert len(memory_store.load(OBSERVATION_HISTORY_KEY)["observations"]) == 2

    def test_keys_are_namespaced(self, memory_store):
        memory_store.save(OBSERVATION_HISTORY_KEY, {"a": 1})
        assert memory_store.keys() == ["test:observation_history"]

    def test_restored_ledger_matches(self, memory_store, ledger_document):
        memory_store.save(OBSERVATION_HISTORY_KEY, ledger_document)
        restored = BehaviorLedger.from_document(memory_store.load(OBSERVATION_HISTORY_KEY))
        assert restored.to_document() == ledger_document


class TestSQLStore:
    """SQLAlchemy-backed store."""

    def test_round_trip(self, sql_session_factory, ledger_document):
        store = SQLObservationStore(session_factory=sql_session_factory, prefix="test")
        store.save(OBSERVATION_HISTORY_KEY, ledger_document)
        assert store.load(OBSERVATION_HISTORY_KEY) == ledger_document

    def test_missing_key(self, sql_session_factory):
        store = SQLObservationStore(session_factory=sql_session_factory, prefix="test")
        assert store.load(OBSERVATION_HISTORY_KEY) is None

    def test_save_replaces_and_bumps_version(self, sql_session_factory):
        store = SQLObservationStore(session_factory=sql_session_factory, prefix="test")
        store.save("health_history", {"records": []})
        store.save("health_history", {"records": [1]})

        assert store.load("health_history") == {"records": [1]}
        session = sql_session_factory()
        try:
            record = session.get(StoreRecord, "test:health_history")
            assert record.version == 2
        finally:
            session.close()

    def test_backend_failure_raises(self):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        store = SQLObservationStore(session_factory=lambda: session, prefix="test")

        with pytest.raises(StoreUnavailableError) as exc_info:
            store.load(OBSERVATION_HISTORY_KEY)
        assert exc_info.value.error_code == "STORE_UNAVAILABLE"
        assert exc_info.value.backend == "sql"
        session.close.assert_called_once()

    def test_failed_save_rolls_back(self):
        session = MagicMock()
        session.get.return_value = None
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        store = SQLObservationStore(session_factory=lambda: session, prefix="test")

        with pytest.raises(StoreUnavailableError):
            store.save(OBSERVATION_HISTORY_KEY, {"observations": []})
        session.rollback.assert_called_once()


class TestRedisStore:
    """Redis-backed store against a mocked client."""

    def test_round_trip(self, ledger_document):
        client = MagicMock()
        store = RedisObservationStore(client=client, prefix="test")

        store.save(OBSERVATION_HISTORY_KEY, ledger_document)
        key, payload = client.set.call_args[0]
        assert key == "test:observation_history"

        client.get.return_value = payload
        assert store.load(OBSERVATION_HISTORY_KEY) == ledger_document

    def test_missing_key(self):
        client = MagicMock()
        client.get.return_value = None
        assert RedisObservationStore(client=client, prefix="test").load(OBSERVATION_HISTORY_KEY) is None

    def test_load_failure_raises(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(StoreUnavailableError) as exc_info:
            RedisObservationStore(client=client, prefix="test").load(OBSERVATION_HISTORY_KEY)
        assert exc_info.value.backend == "redis"

    def test_save_failure_raises(self):
        client = MagicMock()
        client.set.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(StoreUnavailableError):
            RedisObservationStore(client=client, prefix="test").save("health_history", {"records": []})

    def test_values_never_expire(self):
        client = MagicMock()
        RedisObservationStore(client=client, prefix="test").save("health_history", {"records": []})
        client.set.assert_called_once_with("test:health_history", json.dumps({"records": []}))


class TestCreateStore:
    def test_memory_backend(self):
        assert isinstance(create_store("memory"), InMemoryObservationStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store("cassandra")
