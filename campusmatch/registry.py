"""
Match Registry.

Responsibilities:
- Create a match for an unordered pair at most once, ever.
- List the matches a user takes part in.

Invariant:
The pair key is the primary key of the matches table; a second match for
the same pair, from either channel or from a retry, is never written.
"""

from datetime import datetime
from typing import Iterable, Optional, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .database import MatchRow, transaction
from .models import Match
from .normalize import compute_pair_key, ordered_pair


class MatchRegistry:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create_if_absent(
        self,
        session: Session,
        user_a: str,
        user_b: str,
        channel: str,
        source_ids: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> Tuple[Match, bool]:
        """
        Return the pair's existing match, or create one inside ``session``.

        Returns:
            Tuple of (match, created)
        """
        pair_key = compute_pair_key(user_a, user_b)
        existing = session.get(MatchRow, pair_key)
        if existing is not None:
            return existing.to_match(), False

        first, second = ordered_pair(user_a, user_b)
        row = MatchRow(
            pair_key=pair_key,
            user_a=first,
            user_b=second,
            channel=channel,
            source_ids=[str(s) for s in source_ids],
            created_at=now or datetime.now(),
        )
        session.add(row)
        # Surface a concurrent insert of the same pair inside this transaction
        session.flush()
        return row.to_match(), True

    def get(self, user_a: str, user_b: str) -> Optional[Match]:
        with transaction(self.session_factory, write=False) as session:
            row = session.get(MatchRow, compute_pair_key(user_a, user_b))
            return row.to_match() if row is not None else None

    def matches_for(self, user_key: str) -> Set[Match]:
        stmt = select(MatchRow).where(
            or_(MatchRow.user_a == user_key, MatchRow.user_b == user_key)
        )
        with transaction(self.session_factory, write=False) as session:
            return {row.to_match() for row in session.scalars(stmt)}
