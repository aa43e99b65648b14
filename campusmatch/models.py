"""Domain records returned by the matching engine.

Plain immutable data, detached from any database session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional, Tuple

CHANNEL_DIRECT = "direct"
CHANNEL_CRUSH = "crush"

STATUS_PENDING = "pending"
STATUS_MATCHED = "matched"

RESULT_SENT = "sent"
RESULT_MATCHED = "matched"


@dataclass(frozen=True)
class Profile:
    """Attributes of a user consumed by the compatibility scorer."""
    user_key: str
    display_name: Optional[str] = None
    campus: Optional[str] = None
    course: Optional[str] = None
    department: Optional[str] = None
    year_of_study: Optional[int] = None
    interests: FrozenSet[str] = frozenset()
    study_habits: FrozenSet[str] = frozenset()
    extracurriculars: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ActionRecord:
    """A user's outgoing likes and dislikes, and established direct matches."""
    owner: str
    liked: FrozenSet[str] = frozenset()
    disliked: FrozenSet[str] = frozenset()
    matched: FrozenSet[str] = frozenset()

    @property
    def acted_on(self) -> FrozenSet[str]:
        return self.liked | self.disliked | self.matched


@dataclass(frozen=True)
class CrushRecord:
    id: str
    sender: str
    recipient: str
    created_at: datetime
    status: str = STATUS_PENDING

    def is_expired(self, window: Tuple[datetime, datetime]) -> bool:
        """A crush is inert once its timestamp falls outside the weekly window."""
        start, end = window
        return not (start <= self.created_at < end)


@dataclass(frozen=True)
class Match:
    """Canonical record of mutual interest between two users."""
    pair_key: str
    users: Tuple[str, str]
    channel: str
    created_at: datetime
    source_ids: Tuple[str, ...] = ()

    def partner_of(self, user_key: str) -> str:
        a, b = self.users
        return b if user_key == a else a


@dataclass(frozen=True)
class ActionResult:
    status: str
    match: Optional[Match] = None

    @property
    def matched(self) -> bool:
        return self.status == RESULT_MATCHED


@dataclass(frozen=True)
class CrushResult:
    status: str
    crush_id: str
    match: Optional[Match] = None

    @property
    def matched(self) -> bool:
        return self.status == RESULT_MATCHED


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Profile
    score: int

    @property
    def candidate_key(self) -> str:
        return self.candidate.user_key


@dataclass(frozen=True)
class SearchCriteria:
    """Optional filters for candidate search; unset fields do not filter."""
    campus: Optional[str] = None
    course: Optional[str] = None
    department: Optional[str] = None
    year_of_study: Optional[int] = None
    interests: FrozenSet[str] = field(default_factory=frozenset)
    study_habits: FrozenSet[str] = field(default_factory=frozenset)
    extracurriculars: FrozenSet[str] = field(default_factory=frozenset)
