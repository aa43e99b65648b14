"""
Compatibility Scoring.

Responsibilities:
- Compute a deterministic 0-100 compatibility score for a user and a candidate.
- Emit a per-category breakdown for explanation.

Non-Responsibilities:
- No database access.
- No candidate selection.
- No sorting or truncation.

Invariant:
Given identical inputs, this module must always return the same score.
Missing data never raises; it only forfeits that category's points.
"""

import math
from typing import AbstractSet, Dict, Optional

from . import config
from .models import Profile

CAMPUS_POINTS = 25
COURSE_POINTS = 20
DEPARTMENT_POINTS = 15
YEAR_POINTS = {0: 15, 1: 10, 2: 5}
INTERESTS_POINTS = 20
STUDY_HABITS_POINTS = 10
EXTRACURRICULARS_POINTS = 10

CATEGORY_WEIGHTS = {
    "campus": CAMPUS_POINTS,
    "course": COURSE_POINTS,
    "year_of_study": max(YEAR_POINTS.values()),
    "interests": INTERESTS_POINTS,
    "study_habits": STUDY_HABITS_POINTS,
    "extracurriculars": EXTRACURRICULARS_POINTS,
}

POLICY_STRICT = "strict"
POLICY_RENORMALIZED = "renormalized"
POLICIES = (POLICY_STRICT, POLICY_RENORMALIZED)


def overlap_points(a: AbstractSet[str], b: AbstractSet[str], max_points: int) -> Optional[float]:
    """Shared tags over the larger set, scaled to max_points. None if either side is empty."""
    if not a or not b:
        return None
    return len(a & b) / max(len(a), len(b)) * max_points


def departments_agree(user: Profile, candidate: Profile) -> bool:
    # A user without a recorded department accepts any candidate department.
    return user.department is None or user.department == candidate.department


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CompatibilityScorer:
    """Weighted category scorer with a configurable denominator policy.

    ``strict`` always divides by the full 100 points, so sparse profiles
    cannot reach 100. ``renormalized`` scales the earned points by the
    weights of the categories both profiles actually filled in.
    """

    def __init__(self, policy: str = config.SCORING_POLICY):
        if policy not in POLICIES:
            raise ValueError(f"Unknown scoring policy: {policy!r} (expected one of {POLICIES})")
        self.policy = policy

    def breakdown(self, user: Profile, candidate: Profile) -> Dict[str, Optional[float]]:
        """Points per category; None where either profile lacks the data."""
        points: Dict[str, Optional[float]] = {}

        if user.campus is not None and candidate.campus is not None:
            points["campus"] = CAMPUS_POINTS if user.campus == candidate.campus else 0
        else:
            points["campus"] = None

        if user.course is not None and candidate.course is not None:
            if user.course == candidate.course:
                points["course"] = COURSE_POINTS
            elif departments_agree(user, candidate):
                points["course"] = DEPARTMENT_POINTS
            else:
                points["course"] = 0
        else:
            points["course"] = None

        if user.year_of_study is not None and candidate.year_of_study is not None:
            diff = abs(user.year_of_study - candidate.year_of_study)
            points["year_of_study"] = YEAR_POINTS.get(diff, 0)
        else:
            points["year_of_study"] = None

        points["interests"] = overlap_points(user.interests, candidate.interests, INTERESTS_POINTS)
        points["study_habits"] = overlap_points(
            user.study_habits, candidate.study_habits, STUDY_HABITS_POINTS
        )
        points["extracurriculars"] = overlap_points(
            user.extracurriculars, candidate.extracurriculars, EXTRACURRICULARS_POINTS
        )
        return points

    def score(self, user: Profile, candidate: Profile) -> int:
        points = self.breakdown(user, candidate)
        earned = sum(p for p in points.values() if p is not None)

        if self.policy == POLICY_RENORMALIZED:
            applicable = sum(CATEGORY_WEIGHTS[k] for k, p in points.items() if p is not None)
            if applicable == 0:
                return 0
            earned = earned * 100 / applicable

        return max(0, min(100, round_half_up(earned)))
