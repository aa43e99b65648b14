"""
Candidate Ranking.

Responsibilities:
- Fetch a bounded set of candidates from the profile store.
- Score, sort and truncate them for the requesting user.

Non-Responsibilities:
- No ledger reads or writes; the caller supplies the exclude set.

Invariant:
Ties are broken by candidate key so pagination is deterministic.
"""

from typing import AbstractSet, Iterable, List, Optional

from . import config
from .errors import Contention, FetchFailed
from .models import Profile, RankedCandidate, SearchCriteria
from .profiles import ProfileStore
from .scoring import CompatibilityScorer


def _shares_any(wanted: AbstractSet[str], have: AbstractSet[str]) -> bool:
    return not wanted or bool(wanted & have)


def matches_criteria(candidate: Profile, criteria: SearchCriteria) -> bool:
    """Exact match on the given scalar fields, any-overlap on the given tag sets."""
    for field_name in ("campus", "course", "department", "year_of_study"):
        wanted = getattr(criteria, field_name)
        if wanted is not None and getattr(candidate, field_name) != wanted:
            return False
    return (
        _shares_any(criteria.interests, candidate.interests)
        and _shares_any(criteria.study_habits, candidate.study_habits)
        and _shares_any(criteria.extracurriculars, candidate.extracurriculars)
    )


class CandidateRanker:
    def __init__(
        self,
        profile_store: ProfileStore,
        scorer: Optional[CompatibilityScorer] = None,
        fetch_limit: int = config.CANDIDATE_FETCH_LIMIT,
    ):
        self.profile_store = profile_store
        self.scorer = scorer or CompatibilityScorer()
        self.fetch_limit = fetch_limit

    def _fetch(self, user: Profile, exclude: Iterable[str]) -> List[Profile]:
        excluded = set(exclude) | {user.user_key}
        try:
            candidates = self.profile_store.list_profiles(excluding=excluded, limit=self.fetch_limit)
        except (FetchFailed, Contention):
            raise
        except Exception as e:
            raise FetchFailed(f"Profile store failed while listing candidates: {e}") from e
        # Stores are not trusted to honour the exclusion
        return [c for c in candidates if c.user_key not in excluded]

    def _order(self, user: Profile, candidates: Iterable[Profile], limit: int) -> List[RankedCandidate]:
        ranked = [RankedCandidate(c, self.scorer.score(user, c)) for c in candidates]
        ranked.sort(key=lambda r: (-r.score, r.candidate_key))
        return ranked[:max(0, limit)]

    def rank(self, user: Profile, exclude: Iterable[str] = (), limit: int = config.RANK_LIMIT) -> List[RankedCandidate]:
        """Top candidates for ``user`` by compatibility, highest first."""
        return self._order(user, self._fetch(user, exclude), limit)

    def search(
        self,
        user: Profile,
        criteria: SearchCriteria,
        exclude: Iterable[str] = (),
        limit: int = config.RANK_LIMIT,
    ) -> List[RankedCandidate]:
        """Like rank, keeping only candidates that satisfy ``criteria``."""
        candidates = [c for c in self._fetch(user, exclude) if matches_criteria(c, criteria)]
        return self._order(user, candidates, limit)
