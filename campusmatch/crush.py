"""
Crush Ledger, weekly quota and crush-channel reciprocity.

Responsibilities:
- Compute the current weekly window from the clock.
- Enforce the weekly send quota and one crush per recipient per week.
- Detect a pending reverse crush and promote both records to a match.

Non-Responsibilities:
- No input validation against the profile store.
- No retrying; callers re-run a unit of work that lost a race.

Invariant:
Quota counting, duplicate detection, creation and promotion share one
transaction, so a burst of concurrent sends cannot exceed the quota.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func, select

from . import config
from .database import CrushRow, transaction
from .errors import DuplicateThisWeek, QuotaExceeded
from .models import (
    CHANNEL_CRUSH,
    RESULT_MATCHED,
    RESULT_SENT,
    STATUS_MATCHED,
    STATUS_PENDING,
    CrushRecord,
    CrushResult,
)
from .registry import MatchRegistry

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

RECIPROCITY_LENIENT = "lenient"
RECIPROCITY_STRICT = "strict"
RECIPROCITY_POLICIES = (RECIPROCITY_LENIENT, RECIPROCITY_STRICT)


def week_window(now: datetime, week_start: str = "sunday") -> Tuple[datetime, datetime]:
    """
    Weekly window containing ``now``: [start, start + 7 days).

    Args:
        now: Current time
        week_start: Weekday name the week starts on, at midnight
    """
    try:
        start_day = WEEKDAYS[week_start.lower()]
    except KeyError:
        raise ValueError(f"Unknown week start day: {week_start!r}") from None

    days_back = (now.weekday() - start_day) % 7
    start = (now - timedelta(days=days_back)).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=7)


class CrushLedger:
    def __init__(
        self,
        session_factory,
        registry: MatchRegistry,
        quota: int = config.CRUSHES_PER_WEEK,
        week_start: str = config.WEEK_START,
        reciprocity: str = config.CRUSH_RECIPROCITY,
    ):
        if reciprocity not in RECIPROCITY_POLICIES:
            raise ValueError(
                f"Unknown crush reciprocity policy: {reciprocity!r} (expected one of {RECIPROCITY_POLICIES})"
            )
        week_window(datetime.now(), week_start)  # validates the day name
        self.session_factory = session_factory
        self.registry = registry
        self.quota = quota
        self.week_start = week_start
        self.reciprocity = reciprocity

    def window(self, now: datetime) -> Tuple[datetime, datetime]:
        return week_window(now, self.week_start)

    def send(self, sender: str, recipient: str, now: datetime) -> Tuple[CrushResult, bool]:
        """
        Record a crush from sender to recipient and check for the reverse crush.

        Returns:
            Tuple of (result, whether this call created the match)

        Raises:
            QuotaExceeded: sender already used the weekly allowance
            DuplicateThisWeek: sender already sent a crush to recipient this week
        """
        start, end = self.window(now)
        in_window = (CrushRow.created_at >= start, CrushRow.created_at < end)

        with transaction(self.session_factory) as session:
            sent_this_week = session.scalar(
                select(func.count()).select_from(CrushRow).where(CrushRow.sender == sender, *in_window)
            )
            if sent_this_week >= self.quota:
                raise QuotaExceeded(
                    f"You can only send {self.quota} crushes per week",
                    sender=sender,
                    window_end=end,
                )

            duplicate = session.scalars(
                select(CrushRow.id).where(
                    CrushRow.sender == sender, CrushRow.recipient == recipient, *in_window
                )
            ).first()
            if duplicate is not None:
                raise DuplicateThisWeek(
                    "You already sent a crush to this user this week",
                    sender=sender,
                    recipient=recipient,
                )

            crush = CrushRow(sender=sender, recipient=recipient, created_at=now, status=STATUS_PENDING)
            session.add(crush)
            session.flush()

            reverse = select(CrushRow).where(
                CrushRow.sender == recipient,
                CrushRow.recipient == sender,
                CrushRow.status == STATUS_PENDING,
            )
            if self.reciprocity == RECIPROCITY_STRICT:
                reverse = reverse.where(*in_window)
            mutual = session.scalars(reverse.order_by(CrushRow.created_at, CrushRow.id)).first()

            if mutual is None:
                return CrushResult(RESULT_SENT, crush_id=crush.id), False

            crush.status = STATUS_MATCHED
            mutual.status = STATUS_MATCHED
            match, created = self.registry.create_if_absent(
                session,
                sender,
                recipient,
                CHANNEL_CRUSH,
                source_ids=(mutual.id, crush.id),
                now=now,
            )
            return CrushResult(RESULT_MATCHED, crush_id=crush.id, match=match), created

    def sent_this_week(self, sender: str, now: datetime) -> List[CrushRecord]:
        start, end = self.window(now)
        stmt = (
            select(CrushRow)
            .where(CrushRow.sender == sender, CrushRow.created_at >= start, CrushRow.created_at < end)
            .order_by(CrushRow.created_at)
        )
        with transaction(self.session_factory, write=False) as session:
            return [row.to_record() for row in session.scalars(stmt)]

    def remaining(self, sender: str, now: datetime) -> int:
        return max(0, self.quota - len(self.sent_this_week(sender, now)))

    def get(self, crush_id: str) -> Optional[CrushRecord]:
        with transaction(self.session_factory, write=False) as session:
            row = session.get(CrushRow, crush_id)
            return row.to_record() if row is not None else None
