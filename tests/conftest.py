"""Shared pytest fixtures for contextsync tests."""

from datetime import datetime, timedelta, timezone

import pytest
from dotenv import load_dotenv

from contextsync.context import Context
from contextsync.core.container import ContextContainer

load_dotenv()

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)
T2 = T0 + timedelta(hours=2)


@pytest.fixture
def t0():
    """Oldest fixed timestamp."""
    return T0


@pytest.fixture
def t1():
    return T1


@pytest.fixture
def t2():
    """Newest fixed timestamp."""
    return T2


@pytest.fixture
def player_container():
    """Container with nested player data, all stamped at T0."""
    container = ContextContainer(timestamp=T0)
    container.set_item("player.name", "Ada", timestamp=T0)
    container.set_item("player.stats.hp", 100, timestamp=T0)
    container.set_item("level", 3, timestamp=T0)
    return container


@pytest.fixture
def context_pair():
    """Factory for two contexts whose ``data`` components are populated.

    Usage::

        source, target = context_pair(
            {"score": (10, T1)}, {"score": (5, T0)}
        )
    """

    def _create(source_data, target_data):
        source = Context(timestamp=T0)
        target = Context(timestamp=T0)
        for context, data in ((source, source_data), (target, target_data)):
            for key, (value, stamp) in data.items():
                context.set_item(f"data.{key}", value, timestamp=stamp)
        return source, target

    return _create
