from typing import Any, Dict, List

from .errors import InvalidProfile
from .models import Profile
from .normalize import normalize_optional, normalize_tags

# Field names as written by the mobile/web client documents
FIELD_ALIASES = {
    "uid": "user_key",
    "displayName": "display_name",
    "universityCampus": "campus",
    "yearOfStudy": "year_of_study",
    "studyHabits": "study_habits",
}

REQUIRED_STR_FIELDS = ["user_key"]
OPTIONAL_STR_FIELDS = ["display_name", "campus", "course", "department"]
TAG_FIELDS = ["interests", "study_habits", "extracurriculars"]

MIN_YEAR_OF_STUDY = 1
MAX_YEAR_OF_STUDY = 10


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def canonical_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename client-side aliases to canonical field names."""
    out = {}
    for key, value in data.items():
        out[FIELD_ALIASES.get(key, key)] = value
    return out


def validate_profile(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Accepts canonical or client-side field names.
    """
    data = canonical_fields(data)
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    year = data.get("year_of_study")
    if year is not None:
        # bool is an int subclass
        if isinstance(year, bool) or not isinstance(year, int):
            errors.append("Field 'year_of_study' must be an integer if provided")
        elif not MIN_YEAR_OF_STUDY <= year <= MAX_YEAR_OF_STUDY:
            errors.append(
                f"Field 'year_of_study' must be between {MIN_YEAR_OF_STUDY} and {MAX_YEAR_OF_STUDY}"
            )

    for f in TAG_FIELDS:
        tags = data.get(f)
        if tags is None:
            continue
        if isinstance(tags, str) or not isinstance(tags, (list, tuple, set, frozenset)):
            errors.append(f"Field '{f}' must be a list of strings if provided")
        elif not all(isinstance(t, str) for t in tags):
            errors.append(f"Field '{f}' must contain only strings")

    return errors


def profile_from_document(data: Dict[str, Any]) -> Profile:
    """Validate a profile document and build a Profile from it.

    Raises:
        InvalidProfile: listing every schema violation
    """
    errors = validate_profile(data)
    if errors:
        raise InvalidProfile(errors, user_key=data.get("user_key") or data.get("uid"))

    data = canonical_fields(data)
    return Profile(
        user_key=data["user_key"].strip(),
        display_name=normalize_optional(data.get("display_name")),
        campus=normalize_optional(data.get("campus")),
        course=normalize_optional(data.get("course")),
        department=normalize_optional(data.get("department")),
        year_of_study=data.get("year_of_study"),
        interests=normalize_tags(data.get("interests")),
        study_habits=normalize_tags(data.get("study_habits")),
        extracurriculars=normalize_tags(data.get("extracurriculars")),
    )
