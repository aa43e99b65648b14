"""
Database schema, connection and transaction management.

Uses SQLite with SQLAlchemy for profiles, action ledgers, crushes and
matches. Write transactions are opened with BEGIN IMMEDIATE so that two
reciprocity checks on the same pair can never interleave; reads use a
deferred BEGIN and never queue behind a writer that has not yet committed.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import Contention, PersistenceFailed
from .models import STATUS_PENDING, CrushRecord, Match, Profile
from .retry import is_transient_error

Base = declarative_base()

KIND_LIKED = "liked"
KIND_DISLIKED = "disliked"
KIND_MATCHED = "matched"

# Connection execution option that makes the "begin" listener take the write lock
IMMEDIATE_LOCK = "campusmatch_immediate"


class ProfileRow(Base):
    """Profile document as held by the profile store."""

    __tablename__ = "profiles"

    user_key = Column(String, primary_key=True)
    display_name = Column(String, nullable=True)
    campus = Column(String, nullable=True)
    course = Column(String, nullable=True)
    department = Column(String, nullable=True)
    year_of_study = Column(Integer, nullable=True)
    interests = Column(JSON, nullable=False, default=list)
    study_habits = Column(JSON, nullable=False, default=list)
    extracurriculars = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def to_profile(self) -> Profile:
        return Profile(
            user_key=self.user_key,
            display_name=self.display_name,
            campus=self.campus,
            course=self.course,
            department=self.department,
            year_of_study=self.year_of_study,
            interests=frozenset(self.interests or ()),
            study_habits=frozenset(self.study_habits or ()),
            extracurriculars=frozenset(self.extracurriculars or ()),
        )


class ActionEntry(Base):
    """One member of a user's liked, disliked or matched set."""

    __tablename__ = "action_entries"
    __table_args__ = (
        UniqueConstraint("owner", "target", "kind", name="uq_action_entry"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner = Column(String, nullable=False, index=True)
    target = Column(String, nullable=False)
    kind = Column(String, nullable=False)  # liked, disliked, matched
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class CrushRow(Base):
    """Anonymous interest record, one per accepted send."""

    __tablename__ = "crushes"
    __table_args__ = (
        Index("ix_crushes_sender_created", "sender", "created_at"),
        Index("ix_crushes_reverse", "sender", "recipient", "status"),
    )

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    sender = Column(String, nullable=False)
    recipient = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING)  # pending, matched

    def to_record(self) -> CrushRecord:
        return CrushRecord(
            id=self.id,
            sender=self.sender,
            recipient=self.recipient,
            created_at=self.created_at,
            status=self.status,
        )


class MatchRow(Base):
    """Confirmed match, keyed by the unordered pair."""

    __tablename__ = "matches"

    pair_key = Column(String, primary_key=True)  # sorted "a|b"
    user_a = Column(String, nullable=False, index=True)
    user_b = Column(String, nullable=False, index=True)
    channel = Column(String, nullable=False)  # direct, crush
    source_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def to_match(self) -> Match:
        return Match(
            pair_key=self.pair_key,
            users=(self.user_a, self.user_b),
            channel=self.channel,
            created_at=self.created_at,
            source_ids=tuple(self.source_ids or ()),
        )


def create_db_engine(db_path: Path, busy_timeout: float = 5.0) -> Engine:
    """
    Create an engine whose write transactions take the database lock up front.

    Args:
        db_path: Path to SQLite database file
        busy_timeout: Seconds a transaction waits for the lock before failing

    Returns:
        SQLAlchemy engine
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit a deferred BEGIN on its own
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        # Writers take the lock up front; readers only wait out a commit
        if conn.get_execution_options().get(IMMEDIATE_LOCK):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    engine = create_db_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_session(db_path: Path) -> Session:
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    return get_session_factory(create_db_engine(db_path))()


def is_unique_violation(error: IntegrityError) -> bool:
    """True for a unique or primary-key collision, the only race an insert can lose."""
    return "unique constraint failed" in str(error.orig).lower()


@contextmanager
def transaction(session_factory: Callable[[], Session], write: bool = True) -> Iterator[Session]:
    """
    Run a unit of work in one transaction, committing on success.

    Args:
        session_factory: Factory for sessions on the database
        write: Take the write lock when the transaction begins. Read-only
            units pass False and start with a deferred BEGIN.

    Lock and serialization failures and pair-key collisions surface as
    Contention; any other database failure as PersistenceFailed. Either
    way the transaction is rolled back first.
    """
    session = session_factory()
    try:
        with session.begin():
            if write:
                session.connection(execution_options={IMMEDIATE_LOCK: True})
            yield session
    except OperationalError as e:
        if is_transient_error(e):
            raise Contention(str(e.orig)) from e
        raise PersistenceFailed(str(e.orig)) from e
    except IntegrityError as e:
        if is_unique_violation(e):
            raise Contention(str(e.orig)) from e
        raise PersistenceFailed(str(e.orig)) from e
    except SQLAlchemyError as e:
        raise PersistenceFailed(str(e)) from e
    finally:
        session.close()
