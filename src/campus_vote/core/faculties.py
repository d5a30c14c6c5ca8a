"""University faculty codes and eligibility matching."""

from collections.abc import Iterable

FACULTY_NAMES: dict[str, str] = {
    "SITE": "School of IT and Engineering",
    "SB": "School of Business",
    "SPIA": "School of Public and International Affairs",
    "SESD": "School of Education and Social Development",
}

ALL_FACULTIES = "all"

_NAME_TO_CODE = {name.lower(): code for code, name in FACULTY_NAMES.items()}


def faculty_code(value: str) -> str:
    """Normalize a faculty code or full name to its code.

    Unknown values are returned stripped and upper-cased so that comparisons
    stay case-insensitive.
    """
    cleaned = value.strip()
    if cleaned.upper() in FACULTY_NAMES:
        return cleaned.upper()
    return _NAME_TO_CODE.get(cleaned.lower(), cleaned.upper())


def is_all_faculties(eligible: Iterable[str] | None) -> bool:
    """True when the eligible set is empty or carries the ``all`` sentinel."""
    values = [v for v in (eligible or []) if v and v.strip()]
    return not values or any(v.strip().lower() == ALL_FACULTIES for v in values)


def is_faculty_eligible(faculty: str | None, eligible: Iterable[str] | None) -> bool:
    """Check whether a student's faculty may vote given an election's eligible set."""
    eligible_list = list(eligible or [])
    if is_all_faculties(eligible_list):
        return True
    if not faculty:
        return False
    return faculty_code(faculty) in {faculty_code(v) for v in eligible_list}
