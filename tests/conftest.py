"""
Pytest configuration and fixtures

Every test runs against an in-memory store or an in-memory SQLite database,
and a pinned clock. Nothing touches the network or the working directory.
"""
import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from insight_engine.core.database import Base, create_session_factory
from insight_engine.core.store import InMemoryObservationStore
from insight_engine.services.behavior_ledger import Observation, ObservationContext

FIXED_NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)  # A Monday


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock pinned at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def make_observation():
    """
    Observation factory.

    Context defaults to the timestamp's own hour and weekday (0 = Sunday) so
    tests only spell out what they are asserting on.
    """
    def _make(
        timestamp=None,
        pillar="body",
        duration=30.0,
        performance=70.0,
        mood=6.0,
        energy=5.0,
        hour=None,
        day=None,
        **context,
    ):
        timestamp = timestamp or FIXED_NOW
        return Observation(
            timestamp=timestamp,
            pillar=pillar,
            duration=duration,
            performance=performance,
            mood=mood,
            energy=energy,
            context=ObservationContext(
                hour_of_day=timestamp.hour if hour is None else hour,
                day_of_week=(timestamp.isoweekday() % 7) if day is None else day,
                **context,
            ),
        )

    return _make


@pytest.fixture
def observation_series(make_observation):
    """`count` observations one hour apart, ending at FIXED_NOW."""
    def _series(count, **kwargs):
        start = FIXED_NOW - timedelta(hours=count - 1)
        return [make_observation(timestamp=start + timedelta(hours=i), **kwargs) for i in range(count)]

    return _series


@pytest.fixture
def memory_store():
    return InMemoryObservationStore(prefix="test")


@pytest.fixture
def sql_session_factory():
    """
    Session factory over a private in-memory SQLite database.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    from insight_engine import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = create_session_factory(engine)

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
