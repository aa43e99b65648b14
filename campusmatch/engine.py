"""
Matching engine facade.

Exposes the operations the UI and chat collaborators call: ranking,
likes and dislikes, crushes and match listing. Validation happens here,
before any write; each mutating unit of work is re-run with exponential
backoff when it loses a race on the backing store.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from . import config
from .actions import ActionLedger
from .crush import CrushLedger
from .database import create_db_engine, get_session_factory, init_database
from .errors import (
    AccessDenied,
    Contention,
    ContentionExhausted,
    FetchFailed,
    MatchingError,
    PersistenceFailed,
    RecipientNotFound,
    SelfInteraction,
    UnknownUser,
)
from .logger import StructuredLogger, get_logger
from .models import (
    ActionRecord,
    ActionResult,
    CrushRecord,
    CrushResult,
    Match,
    Profile,
    SearchCriteria,
)
from .profiles import ProfileStore, SqlProfileStore
from .ranking import CandidateRanker
from .registry import MatchRegistry
from .retry import RetryError, exponential_backoff
from .scoring import CompatibilityScorer


class MatchingEngine:
    def __init__(
        self,
        session_factory,
        profile_store: Optional[ProfileStore] = None,
        scorer: Optional[CompatibilityScorer] = None,
        quota: int = config.CRUSHES_PER_WEEK,
        week_start: str = config.WEEK_START,
        reciprocity: str = config.CRUSH_RECIPROCITY,
        fetch_limit: int = config.CANDIDATE_FETCH_LIMIT,
        max_retries: int = config.RETRY_MAX,
        base_delay: float = config.RETRY_BASE_DELAY,
        max_delay: float = config.RETRY_MAX_DELAY,
        clock: Callable[[], datetime] = datetime.now,
        access_predicate: Optional[Callable[[str], bool]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            session_factory: Factory for sessions on the ledger database
            profile_store: Profile lookups (default: profiles table in the same database)
            scorer: Compatibility scorer (default: configured policy)
            quota: Crushes a user may send per week
            week_start: Weekday the crush week starts on
            reciprocity: "lenient" or "strict" reverse-crush lookup
            fetch_limit: Candidate superset size fetched per ranking
            max_retries: Re-runs of a unit of work that lost a race
            base_delay: Initial backoff delay in seconds
            max_delay: Maximum backoff delay in seconds
            clock: Source of the current time
            access_predicate: Subscription check for senders; None allows everyone
            logger: Structured logger (default: global logger)
        """
        self.session_factory = session_factory
        self.profile_store = profile_store or SqlProfileStore(session_factory)
        self.ranker = CandidateRanker(self.profile_store, scorer or CompatibilityScorer(), fetch_limit)
        self.registry = MatchRegistry(session_factory)
        self.actions = ActionLedger(session_factory, self.registry)
        self.crushes = CrushLedger(
            session_factory, self.registry, quota=quota, week_start=week_start, reciprocity=reciprocity
        )
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.clock = clock
        self.access_predicate = access_predicate
        self.logger = logger or get_logger()

    @classmethod
    def from_path(cls, db_path: Path = Path(config.DB_PATH), busy_timeout: float = config.BUSY_TIMEOUT, **kwargs):
        """Open (creating if needed) a SQLite database and build an engine on it."""
        init_database(db_path)
        engine = create_db_engine(db_path, busy_timeout=busy_timeout)
        return cls(get_session_factory(engine), **kwargs)

    # Internal helpers

    @contextmanager
    def _reporting(self, operation: str, **context):
        try:
            yield
        except (FetchFailed, PersistenceFailed, ContentionExhausted) as e:
            self.logger.record_error(type(e).__name__)
            self.logger.error(f"{operation} failed: {e}", error=type(e).__name__, **context)
            raise
        except MatchingError as e:
            self.logger.record_rejection(type(e).__name__)
            self.logger.info(f"{operation} rejected: {e}", reason=type(e).__name__, **context)
            raise

    def _on_retry(self, attempt: int, exception: Exception, delay: float):
        self.logger.record_contention_retry()
        self.logger.warning(
            "Transaction contention, retrying",
            attempt=attempt,
            delay=round(delay, 3),
            error=str(exception),
        )

    def _with_retries(self, func: Callable, *args):
        retrying = exponential_backoff(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exceptions=(Contention,),
            on_retry=self._on_retry,
        )(func)
        try:
            return retrying(*args)
        except RetryError as e:
            raise ContentionExhausted(str(e)) from e

    def _lookup(self, user_key: str) -> Optional[Profile]:
        try:
            return self.profile_store.get_profile(user_key)
        except (FetchFailed, Contention):
            raise
        except Exception as e:
            raise FetchFailed(f"Profile store failed for {user_key}: {e}", user_key=user_key) from e

    def _require_user(self, user_key: str) -> Profile:
        profile = self._with_retries(self._lookup, user_key)
        if profile is None:
            raise UnknownUser(f"No profile for user {user_key}", user_key=user_key)
        return profile

    def _validate_interest(self, sender: str, recipient: str, gated: bool = True) -> None:
        if sender == recipient:
            raise SelfInteraction("Users cannot act on themselves", user_key=sender)
        if gated and self.access_predicate is not None and not self.access_predicate(sender):
            raise AccessDenied(f"{sender} has no active subscription", user_key=sender)
        if self._with_retries(self._lookup, recipient) is None:
            raise RecipientNotFound("Recipient not found", recipient=recipient)

    # Ranking

    def rank(self, user_key: str, limit: int = config.RANK_LIMIT) -> List[Tuple[str, int]]:
        """Candidates for user_key not yet acted on, as (candidate_key, score), best first."""
        with self._reporting("rank", user=user_key):
            user = self._require_user(user_key)
            record = self._with_retries(self.actions.record_for, user_key)
            ranked = self._with_retries(self.ranker.rank, user, record.acted_on, limit)
        return [(r.candidate_key, r.score) for r in ranked]

    def search(self, user_key: str, criteria: SearchCriteria, limit: int = config.RANK_LIMIT) -> List[Tuple[str, int]]:
        """Like rank, restricted to candidates satisfying ``criteria``."""
        with self._reporting("search", user=user_key):
            user = self._require_user(user_key)
            record = self._with_retries(self.actions.record_for, user_key)
            ranked = self._with_retries(self.ranker.search, user, criteria, record.acted_on, limit)
        return [(r.candidate_key, r.score) for r in ranked]

    # Direct channel

    def record_like(self, sender: str, recipient: str) -> ActionResult:
        with self._reporting("like", sender=sender, recipient=recipient):
            self._validate_interest(sender, recipient)
            result, created = self._with_retries(self.actions.like, sender, recipient, self.clock())

        self.logger.record_like()
        if created:
            self.logger.record_match(result.match.channel)
            self.logger.info("Match created", pair=result.match.pair_key, channel=result.match.channel)
        else:
            self.logger.debug("Like recorded", sender=sender, recipient=recipient, status=result.status)
        return result

    def record_dislike(self, sender: str, recipient: str) -> None:
        with self._reporting("dislike", sender=sender, recipient=recipient):
            self._validate_interest(sender, recipient, gated=False)
            self._with_retries(self.actions.dislike, sender, recipient, self.clock())
        self.logger.record_dislike()
        self.logger.debug("Dislike recorded", sender=sender, recipient=recipient)

    def action_record(self, user_key: str) -> ActionRecord:
        with self._reporting("action_record", user=user_key):
            return self._with_retries(self.actions.record_for, user_key)

    # Crush channel

    def send_crush(self, sender: str, recipient: str) -> CrushResult:
        with self._reporting("crush", sender=sender, recipient=recipient):
            self._validate_interest(sender, recipient)
            result, created = self._with_retries(self.crushes.send, sender, recipient, self.clock())

        self.logger.record_crush()
        if created:
            self.logger.record_match(result.match.channel)
            self.logger.info("Match created", pair=result.match.pair_key, channel=result.match.channel)
        else:
            self.logger.debug("Crush recorded", crush_id=result.crush_id, status=result.status)
        return result

    def sent_crushes(self, user_key: str) -> List[CrushRecord]:
        """Crushes user_key sent in the current week, oldest first."""
        with self._reporting("sent_crushes", user=user_key):
            return self._with_retries(self.crushes.sent_this_week, user_key, self.clock())

    def remaining_crushes(self, user_key: str) -> int:
        with self._reporting("remaining_crushes", user=user_key):
            return self._with_retries(self.crushes.remaining, user_key, self.clock())

    # Registry

    def matches_for(self, user_key: str) -> Set[Match]:
        with self._reporting("matches", user=user_key):
            return self._with_retries(self.registry.matches_for, user_key)
