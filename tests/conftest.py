"""Shared fixtures.

Settings are read when app.config is first imported, so the environment
is pinned here before any test module imports the app.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")
os.environ.setdefault("LINE_CHANNEL_SECRET", "")
os.environ.setdefault("TIMEZONE", "Asia/Tokyo")

from datetime import date  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402

from app.core.intelligence.session.manager import ConversationStateStore  # noqa: E402
from app.core.scheduling.engine import SchedulingEngine  # noqa: E402
from app.core.scheduling.store import InMemoryScheduleStore  # noqa: E402


TODAY = date(2026, 10, 17)


@pytest.fixture
def today():
    """Fixed reference date."""
    return TODAY


@pytest.fixture
def no_redis():
    """Force the conversation state store onto its in-memory fallback."""
    with patch(
        "app.core.intelligence.session.manager.get_redis",
        return_value=None,
    ):
        yield


@pytest.fixture
def schedule_store():
    """Empty in-memory schedule store."""
    return InMemoryScheduleStore()


@pytest.fixture
def state_store(no_redis):
    """Conversation state store backed by process memory."""
    return ConversationStateStore()


@pytest.fixture
def engine(schedule_store, state_store):
    """Engine wired to in-memory stores."""
    return SchedulingEngine(schedule_store=schedule_store, state_store=state_store)
