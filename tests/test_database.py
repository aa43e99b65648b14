"""
Tests for database.py - schema, sessions and transaction boundaries.
"""

import sqlite3
from datetime import datetime

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from campusmatch.database import (
    ActionEntry,
    CrushRow,
    MatchRow,
    ProfileRow,
    create_db_engine,
    get_session,
    get_session_factory,
    init_database,
    transaction,
)
from campusmatch.errors import Contention, PersistenceFailed, QuotaExceeded


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        session = get_session(db_path)
        for model in (ProfileRow, ActionEntry, CrushRow, MatchRow):
            assert session.query(model).count() == 0
        session.close()

    def test_init_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "test.db"
        assert not db_path.parent.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_is_repeatable(self, db_path):
        init_database(db_path)
        assert db_path.exists()


class TestConstraints:
    """Uniqueness guarantees the ledgers rely on."""

    def test_duplicate_action_entry_fails(self, db_path):
        session = get_session(db_path)
        session.add(ActionEntry(owner="alice", target="bob", kind="liked"))
        session.commit()

        session.add(ActionEntry(owner="alice", target="bob", kind="liked"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.close()

    def test_same_target_different_kind_allowed(self, db_path):
        session = get_session(db_path)
        session.add(ActionEntry(owner="alice", target="bob", kind="liked"))
        session.add(ActionEntry(owner="alice", target="bob", kind="matched"))
        session.commit()
        assert session.query(ActionEntry).count() == 2
        session.close()

    def test_crush_gets_generated_id(self, db_path):
        session = get_session(db_path)
        crush = CrushRow(sender="alice", recipient="bob", created_at=datetime(2026, 10, 14))
        session.add(crush)
        session.commit()

        assert crush.id
        assert crush.status == "pending"
        session.close()


class TestTransaction:
    def test_commits_on_success(self, session_factory):
        with transaction(session_factory) as session:
            session.add(MatchRow(pair_key="a|b", user_a="a", user_b="b", channel="direct"))

        with session_factory() as session:
            assert session.get(MatchRow, "a|b") is not None

    def test_rolls_back_on_domain_error(self, session_factory):
        with pytest.raises(QuotaExceeded):
            with transaction(session_factory) as session:
                session.add(MatchRow(pair_key="a|b", user_a="a", user_b="b", channel="direct"))
                session.flush()
                raise QuotaExceeded("stop")

        with session_factory() as session:
            assert session.get(MatchRow, "a|b") is None

    def test_pair_key_collision_is_contention(self, session_factory):
        with transaction(session_factory) as session:
            session.add(MatchRow(pair_key="a|b", user_a="a", user_b="b", channel="direct"))

        with pytest.raises(Contention) as exc:
            with transaction(session_factory) as session:
                session.add(MatchRow(pair_key="a|b", user_a="a", user_b="b", channel="crush"))

        assert isinstance(exc.value.__cause__, IntegrityError)

    def test_other_database_errors_are_persistence_failures(self, session_factory):
        with pytest.raises(PersistenceFailed) as exc:
            with transaction(session_factory) as session:
                session.execute(text("SELECT * FROM no_such_table"))

        assert isinstance(exc.value.__cause__, OperationalError)

    def test_non_unique_integrity_error_is_persistence_failure(self, session_factory):
        """A NOT NULL violation is a bug, not a lost race, and must not be retried."""
        with pytest.raises(PersistenceFailed) as exc:
            with transaction(session_factory) as session:
                session.add(ActionEntry(owner="alice", target=None, kind="liked"))

        assert isinstance(exc.value.__cause__, IntegrityError)
        assert not isinstance(exc.value, Contention)


class TestLocking:
    """Writers take the lock when they begin; readers do not."""

    @pytest.fixture
    def impatient_factory(self, db_path):
        engine = create_db_engine(db_path, busy_timeout=0.05)
        yield get_session_factory(engine)
        engine.dispose()

    @pytest.fixture
    def pending_writer(self, db_path):
        conn = sqlite3.connect(str(db_path), isolation_level=None, check_same_thread=False)
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.execute("ROLLBACK")
        conn.close()

    def test_write_transaction_contends_with_pending_writer(self, impatient_factory, pending_writer):
        with pytest.raises(Contention) as exc:
            with transaction(impatient_factory) as session:
                session.add(MatchRow(pair_key="a|b", user_a="a", user_b="b", channel="direct"))

        assert isinstance(exc.value.__cause__, OperationalError)

    def test_read_transaction_proceeds_beside_pending_writer(self, impatient_factory, pending_writer):
        with transaction(impatient_factory, write=False) as session:
            assert session.query(MatchRow).count() == 0

    def test_plain_session_reads_beside_pending_writer(self, impatient_factory, pending_writer):
        with impatient_factory() as session:
            assert session.get(ProfileRow, "alice") is None
