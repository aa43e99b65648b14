"""
Tests for schema validation of profile documents.
"""

import pytest

from campusmatch.errors import InvalidProfile
from campusmatch.schema import profile_from_document, validate_profile


@pytest.fixture
def client_document():
    """Profile document as written by the client app."""
    return {
        "uid": "u123",
        "displayName": "Ada",
        "universityCampus": "North Campus",
        "course": "Computer Science",
        "department": "Engineering",
        "yearOfStudy": 2,
        "interests": ["Music", " chess ", "music"],
        "studyHabits": ["Library"],
        "extracurriculars": [],
    }


class TestValidateProfile:
    def test_client_document_is_valid(self, client_document):
        assert validate_profile(client_document) == []

    def test_minimal_document_is_valid(self):
        assert validate_profile({"user_key": "u1"}) == []

    def test_missing_user_key(self):
        errors = validate_profile({"course": "CS"})
        assert any("user_key" in err for err in errors)

    def test_blank_user_key(self):
        assert validate_profile({"user_key": "   "}) != []

    def test_non_string_optional_field(self):
        errors = validate_profile({"user_key": "u1", "campus": 5})
        assert any("campus" in err for err in errors)

    @pytest.mark.parametrize("year", ["2", 2.0, True, 0, 11])
    def test_invalid_year_of_study(self, year):
        errors = validate_profile({"user_key": "u1", "year_of_study": year})
        assert any("year_of_study" in err for err in errors)

    def test_tags_must_be_a_list(self):
        errors = validate_profile({"user_key": "u1", "interests": "music,chess"})
        assert any("interests" in err for err in errors)

    def test_tags_must_be_strings(self):
        errors = validate_profile({"user_key": "u1", "study_habits": ["library", 3]})
        assert any("study_habits" in err for err in errors)

    def test_collects_every_error(self):
        errors = validate_profile({"campus": 1, "year_of_study": "x"})
        assert len(errors) == 3


class TestProfileFromDocument:
    def test_aliases_and_normalization(self, client_document):
        profile = profile_from_document(client_document)

        assert profile.user_key == "u123"
        assert profile.display_name == "Ada"
        assert profile.campus == "North Campus"
        assert profile.year_of_study == 2
        assert profile.interests == {"music", "chess"}
        assert profile.study_habits == {"library"}
        assert profile.extracurriculars == frozenset()

    def test_blank_strings_become_missing(self):
        profile = profile_from_document({"user_key": "u1", "department": "  "})
        assert profile.department is None

    def test_invalid_document_raises(self):
        with pytest.raises(InvalidProfile) as exc:
            profile_from_document({"uid": "u1", "yearOfStudy": "second"})

        assert exc.value.status_code == 400
        assert exc.value.errors
        assert exc.value.context["user_key"] == "u1"
