"""
Action Ledger and direct-channel reciprocity.

Responsibilities:
- Record likes and dislikes as append-only set members.
- Detect a reciprocal like and promote the pair to a match.

Non-Responsibilities:
- No input validation against the profile store.
- No retrying; callers re-run a unit of work that lost a race.

Invariant:
Every write is idempotent, so re-running a like after a failure or
timeout converges on the same ledger state and the same single match.
"""

from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .database import KIND_DISLIKED, KIND_LIKED, KIND_MATCHED, ActionEntry, transaction
from .errors import ConflictingAction
from .models import CHANNEL_DIRECT, RESULT_MATCHED, RESULT_SENT, ActionRecord, ActionResult
from .registry import MatchRegistry


def _find(session: Session, owner: str, target: str, kind: str) -> Optional[ActionEntry]:
    stmt = select(ActionEntry).where(
        ActionEntry.owner == owner,
        ActionEntry.target == target,
        ActionEntry.kind == kind,
    )
    return session.scalars(stmt).first()


def _add(session: Session, owner: str, target: str, kind: str, now: datetime) -> ActionEntry:
    entry = _find(session, owner, target, kind)
    if entry is None:
        entry = ActionEntry(owner=owner, target=target, kind=kind, created_at=now)
        session.add(entry)
        session.flush()
    return entry


class ActionLedger:
    def __init__(self, session_factory, registry: MatchRegistry):
        self.session_factory = session_factory
        self.registry = registry

    def record_for(self, owner: str) -> ActionRecord:
        sets = {KIND_LIKED: set(), KIND_DISLIKED: set(), KIND_MATCHED: set()}
        with transaction(self.session_factory, write=False) as session:
            for entry in session.scalars(select(ActionEntry).where(ActionEntry.owner == owner)):
                sets[entry.kind].add(entry.target)
        return ActionRecord(
            owner=owner,
            liked=frozenset(sets[KIND_LIKED]),
            disliked=frozenset(sets[KIND_DISLIKED]),
            matched=frozenset(sets[KIND_MATCHED]),
        )

    def like(self, sender: str, recipient: str, now: Optional[datetime] = None) -> Tuple[ActionResult, bool]:
        """
        Record that sender likes recipient and check for the reverse like.

        Returns:
            Tuple of (result, whether this call created the match)

        Raises:
            ConflictingAction: sender already disliked recipient
        """
        now = now or datetime.now()
        with transaction(self.session_factory) as session:
            if _find(session, sender, recipient, KIND_DISLIKED) is not None:
                raise ConflictingAction(
                    f"{sender} already disliked {recipient}", sender=sender, recipient=recipient
                )

            own_like = _add(session, sender, recipient, KIND_LIKED, now)
            their_like = _find(session, recipient, sender, KIND_LIKED)
            if their_like is None:
                return ActionResult(RESULT_SENT), False

            _add(session, sender, recipient, KIND_MATCHED, now)
            _add(session, recipient, sender, KIND_MATCHED, now)
            match, created = self.registry.create_if_absent(
                session,
                sender,
                recipient,
                CHANNEL_DIRECT,
                source_ids=(their_like.id, own_like.id),
                now=now,
            )
            return ActionResult(RESULT_MATCHED, match), created

    def dislike(self, sender: str, recipient: str, now: Optional[datetime] = None) -> None:
        """
        Record that sender passed on recipient. No reciprocity check.

        Raises:
            ConflictingAction: sender already liked recipient
        """
        now = now or datetime.now()
        with transaction(self.session_factory) as session:
            if _find(session, sender, recipient, KIND_LIKED) is not None:
                raise ConflictingAction(
                    f"{sender} already liked {recipient}", sender=sender, recipient=recipient
                )
            _add(session, sender, recipient, KIND_DISLIKED, now)
