"""Unit tests for faculty codes and eligibility."""

import pytest

from campus_vote.core.faculties import faculty_code, is_all_faculties, is_faculty_eligible


@pytest.mark.parametrize(
    ("value", "code"),
    [
        ("SITE", "SITE"),
        (" site ", "SITE"),
        ("School of Business", "SB"),
        ("school of public and international affairs", "SPIA"),
        ("Medicine", "MEDICINE"),
    ],
)
def test_faculty_code(value: str, code: str) -> None:
    assert faculty_code(value) == code


class TestEligibility:
    def test_empty_or_all_admits_everyone(self) -> None:
        assert is_all_faculties([])
        assert is_all_faculties(None)
        assert is_all_faculties(["All"])
        assert is_faculty_eligible("SB", [])
        assert is_faculty_eligible(None, ["all"])

    def test_listed_faculty_is_eligible(self) -> None:
        assert is_faculty_eligible("SITE", ["SITE", "SB"])
        assert is_faculty_eligible("School of IT and Engineering", ["site"])

    def test_unlisted_faculty_is_not_eligible(self) -> None:
        assert not is_faculty_eligible("SB", ["SITE"])
        assert not is_faculty_eligible(None, ["SITE"])
        assert not is_faculty_eligible("", ["SITE"])
