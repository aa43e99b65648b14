"""
Profile Store.

Responsibilities:
- Look up a single profile by user key.
- List a bounded set of profiles, excluding given keys.
- Upsert profiles for seeding and imports.

Non-Responsibilities:
- No scoring.
- No ranking.
- No ledger writes.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .database import ProfileRow, transaction
from .errors import Contention, FetchFailed, MatchingError, PersistenceFailed
from .models import Profile
from .retry import is_transient_error


class ProfileStore:
    """Interface the engine consumes; other backends subclass this.

    Implementations raise Contention when a read loses a lock race and
    FetchFailed for any other failure.
    """

    def get_profile(self, user_key: str) -> Optional[Profile]:
        raise NotImplementedError

    def list_profiles(self, excluding: Iterable[str], limit: int) -> List[Profile]:
        raise NotImplementedError


class SqlProfileStore(ProfileStore):
    """Profile store backed by the profiles table."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get_profile(self, user_key: str) -> Optional[Profile]:
        try:
            with self.session_factory() as session:
                row = session.get(ProfileRow, user_key)
                return row.to_profile() if row is not None else None
        except OperationalError as e:
            if is_transient_error(e):
                raise Contention(str(e.orig), user_key=user_key) from e
            raise FetchFailed(f"Could not read profile {user_key}: {e}", user_key=user_key) from e
        except SQLAlchemyError as e:
            raise FetchFailed(f"Could not read profile {user_key}: {e}", user_key=user_key) from e

    def list_profiles(self, excluding: Iterable[str], limit: int) -> List[Profile]:
        excluded = list(excluding)
        stmt = select(ProfileRow).order_by(ProfileRow.user_key).limit(limit)
        if excluded:
            stmt = stmt.where(ProfileRow.user_key.not_in(excluded))
        try:
            with self.session_factory() as session:
                return [row.to_profile() for row in session.scalars(stmt)]
        except OperationalError as e:
            if is_transient_error(e):
                raise Contention(str(e.orig)) from e
            raise FetchFailed(f"Could not list profiles: {e}") from e
        except SQLAlchemyError as e:
            raise FetchFailed(f"Could not list profiles: {e}") from e

    def upsert_profile(self, profile: Profile) -> Dict[str, str]:
        """
        Insert or update a profile.

        Returns:
            {"status": "new" | "updated" | "no-change"}
        """
        values = {
            "display_name": profile.display_name,
            "campus": profile.campus,
            "course": profile.course,
            "department": profile.department,
            "year_of_study": profile.year_of_study,
            "interests": sorted(profile.interests),
            "study_habits": sorted(profile.study_habits),
            "extracurriculars": sorted(profile.extracurriculars),
        }
        try:
            with transaction(self.session_factory) as session:
                row = session.get(ProfileRow, profile.user_key)
                if row is None:
                    session.add(ProfileRow(user_key=profile.user_key, **values))
                    return {"status": "new"}
                if all(getattr(row, k) == v for k, v in values.items()):
                    return {"status": "no-change"}
                for k, v in values.items():
                    setattr(row, k, v)
                return {"status": "updated"}
        except MatchingError as e:
            raise PersistenceFailed(f"Could not save profile {profile.user_key}: {e}") from e
