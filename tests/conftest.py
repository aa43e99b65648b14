"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta
from typing import Dict

import pytest

from campusmatch.database import create_db_engine, get_session_factory, init_database
from campusmatch.engine import MatchingEngine
from campusmatch.logger import StructuredLogger
from campusmatch.models import Profile
from campusmatch.profiles import SqlProfileStore

# A Wednesday; its Sunday-based week runs 2026-10-11 .. 2026-10-18
WEDNESDAY_NOON = datetime(2026, 10, 14, 12, 0)


class FakeClock:
    """Controllable stand-in for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(WEDNESDAY_NOON)


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database with all tables."""
    path = tmp_path / "test.db"
    init_database(path)
    return path


@pytest.fixture
def session_factory(db_path):
    engine = create_db_engine(db_path)
    yield get_session_factory(engine)
    engine.dispose()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="campusmatch-test", enable_console=False, enable_file=False)


@pytest.fixture
def profile_store(session_factory) -> SqlProfileStore:
    return SqlProfileStore(session_factory)


@pytest.fixture
def make_engine(session_factory, clock, quiet_logger):
    """Build engines on the temporary database with fast retries."""
    def _make(**kwargs) -> MatchingEngine:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("logger", quiet_logger)
        kwargs.setdefault("quota", 3)
        kwargs.setdefault("week_start", "sunday")
        kwargs.setdefault("reciprocity", "lenient")
        kwargs.setdefault("base_delay", 0.001)
        kwargs.setdefault("max_delay", 0.01)
        return MatchingEngine(session_factory, **kwargs)
    return _make


@pytest.fixture
def engine(make_engine) -> MatchingEngine:
    return make_engine()


@pytest.fixture
def students(profile_store) -> Dict[str, Profile]:
    """Seed a small campus population."""
    profiles = [
        Profile(
            user_key="alice",
            campus="north",
            course="cs",
            department="engineering",
            year_of_study=2,
            interests=frozenset({"music", "chess", "hiking"}),
            study_habits=frozenset({"library", "mornings"}),
            extracurriculars=frozenset({"debate"}),
        ),
        Profile(
            user_key="bob",
            campus="north",
            course="cs",
            department="engineering",
            year_of_study=2,
            interests=frozenset({"music", "chess", "hiking"}),
            study_habits=frozenset({"library", "mornings"}),
            extracurriculars=frozenset({"debate"}),
        ),
        Profile(
            user_key="carol",
            campus="north",
            course="ee",
            department="engineering",
            year_of_study=3,
            interests=frozenset({"music"}),
        ),
        Profile(
            user_key="dave",
            campus="south",
            course="law",
            department="humanities",
            year_of_study=4,
            interests=frozenset({"rugby"}),
        ),
        Profile(user_key="erin", campus="south"),
        Profile(user_key="frank"),
    ]
    for profile in profiles:
        profile_store.upsert_profile(profile)
    return {p.user_key: p for p in profiles}
