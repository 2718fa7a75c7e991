"""
Controlled Vocabularies

Grade levels and audiences are closed vocabularies. Range shorthand such as
"K-5" is expanded to individual grades before anything is written, and a value
containing any out-of-vocabulary token is rejected as a whole.

Version: catalog_engine_v1
"""

from typing import Any, Iterable, List, Optional, Set

from appcatalog.shared.errors import AudienceError, GradeLevelError


# ============================================================================
# GRADE VOCABULARY
# ============================================================================

VALID_GRADES: List[str] = [
    "Pre-K",
    "Kindergarten",
    "Grade 1",
    "Grade 2",
    "Grade 3",
    "Grade 4",
    "Grade 5",
    "Grade 6",
    "Grade 7",
    "Grade 8",
    "Grade 9",
    "Grade 10",
    "Grade 11",
    "Grade 12",
]

_GRADE_ORDER = {grade: index for index, grade in enumerate(VALID_GRADES)}

# Pre-K = -1, Kindergarten = 0, Grade n = n
GRADE_NUMBERS = {grade: index - 1 for index, grade in enumerate(VALID_GRADES)}

ELEMENTARY_GRADES = VALID_GRADES[0:7]
MIDDLE_GRADES = VALID_GRADES[7:10]
HIGH_GRADES = VALID_GRADES[10:14]


def _span(first: str, last: str) -> List[str]:
    return VALID_GRADES[_GRADE_ORDER[first]:_GRADE_ORDER[last] + 1]


# Legacy shorthand found in historical spreadsheets. "K-n" includes Pre-K
# because the elementary division starts at Pre-K.
GRADE_RANGE_TABLE = {
    "PRE-K": ["Pre-K"],
    "PREK": ["Pre-K"],
    "K": ["Kindergarten"],
    "KINDERGARTEN": ["Kindergarten"],
    "PREK-K": _span("Pre-K", "Kindergarten"),
    "PRE-K-K": _span("Pre-K", "Kindergarten"),
    "K-5": _span("Pre-K", "Grade 5"),
    "K-8": _span("Pre-K", "Grade 8"),
    "K-12": _span("Pre-K", "Grade 12"),
    "PREK-5": _span("Pre-K", "Grade 5"),
    "PRE-K-5": _span("Pre-K", "Grade 5"),
    "PREK-12": _span("Pre-K", "Grade 12"),
    "PRE-K-12": _span("Pre-K", "Grade 12"),
    "1-2": _span("Grade 1", "Grade 2"),
    "1-3": _span("Grade 1", "Grade 3"),
    "1-4": _span("Grade 1", "Grade 4"),
    "1-5": _span("Grade 1", "Grade 5"),
    "2-5": _span("Grade 2", "Grade 5"),
    "3-5": _span("Grade 3", "Grade 5"),
    "3-8": _span("Grade 3", "Grade 8"),
    "3-12": _span("Grade 3", "Grade 12"),
    "4-5": _span("Grade 4", "Grade 5"),
    "6-8": _span("Grade 6", "Grade 8"),
    "6-12": _span("Grade 6", "Grade 12"),
    "7-8": _span("Grade 7", "Grade 8"),
    "7-12": _span("Grade 7", "Grade 12"),
    "9-10": _span("Grade 9", "Grade 10"),
    "9-12": _span("Grade 9", "Grade 12"),
    "10-12": _span("Grade 10", "Grade 12"),
    "11-12": _span("Grade 11", "Grade 12"),
}
for _n in range(1, 13):
    GRADE_RANGE_TABLE[f"GRADE {_n}"] = [f"Grade {_n}"]


def _split_tokens(raw: Any) -> List[str]:
    """Split a comma-list (or list) into trimmed, unquoted tokens."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        parts = [str(p) for p in raw]
    else:
        parts = str(raw).split(",")
    tokens = []
    for part in parts:
        token = part.replace('"', "").replace("'", "").strip()
        if token:
            tokens.append(token)
    return tokens


def expand_grade_ranges(raw: Any) -> List[str]:
    """
    Expand range shorthand into individual grade tokens.

    Unrecognized tokens are passed through unchanged so that validation can
    report them.

    Args:
        raw: Comma-separated string ("K-5, 9-12") or list of tokens

    Returns:
        Expanded tokens in input order, duplicates removed
    """
    expanded: List[str] = []
    for token in _split_tokens(raw):
        key = " ".join(token.upper().split())
        candidates = GRADE_RANGE_TABLE.get(key, [token])
        for grade in candidates:
            if grade not in expanded:
                expanded.append(grade)
    return expanded


def validate_grade_levels(raw: Any) -> List[str]:
    """
    Expand and validate a grade-level value.

    Returns:
        Vocabulary grades in canonical order (empty list for empty input)

    Raises:
        GradeLevelError: if any token is outside the grade vocabulary
    """
    tokens = expand_grade_ranges(raw)
    invalid = [t for t in tokens if t not in _GRADE_ORDER]
    if invalid:
        raise GradeLevelError(str(raw), invalid)
    return sorted(tokens, key=_GRADE_ORDER.__getitem__)


def format_grade_levels(grades: Iterable[str]) -> str:
    return ", ".join(grades)


def grade_numbers(values: Iterable[str]) -> Set[int]:
    """Map grade tokens (ranges allowed) to numbers, ignoring unknown tokens."""
    numbers = set()
    for token in expand_grade_ranges(list(values)):
        if token in GRADE_NUMBERS:
            numbers.add(GRADE_NUMBERS[token])
    return numbers


def infer_grade_levels(
    division: str,
    audience: Any = None,
    staff_placeholder: str = "Grade 1",
) -> List[str]:
    """
    Infer grade levels from division membership and audience.

    Rules, in order:
    1. Audience given and does not include students -> staff placeholder
    2. Division mentions "central" (staff-only division) -> nothing
    3. Elementary / early learning, middle, high -> their grade spans
    4. No division match -> all grades
    """
    audience_text = ", ".join(_split_tokens(audience)).lower()
    if audience_text and "student" not in audience_text:
        return [staff_placeholder] if staff_placeholder else []

    division_text = (division or "").lower()
    if not division_text.strip():
        return []
    if "central" in division_text:
        return []

    grades: List[str] = []
    if "elementary" in division_text or "early learning" in division_text:
        grades.extend(ELEMENTARY_GRADES)
    if "middle" in division_text:
        grades.extend(MIDDLE_GRADES)
    if "high" in division_text:
        grades.extend(HIGH_GRADES)

    if not grades:
        return list(VALID_GRADES)
    return grades


# ============================================================================
# AUDIENCE VOCABULARY
# ============================================================================

VALID_AUDIENCES: List[str] = ["Teachers", "Students", "Staff", "Parents"]

_AUDIENCE_ALIASES = {
    "teacher": "Teachers",
    "teachers": "Teachers",
    "student": "Students",
    "students": "Students",
    "staff": "Staff",
    "parent": "Parents",
    "parents": "Parents",
}


def validate_audience(raw: Any) -> List[str]:
    """
    Normalize an audience value to the plural vocabulary form.

    Raises:
        AudienceError: if any token is outside the audience vocabulary
    """
    result: List[str] = []
    invalid: List[str] = []
    for token in _split_tokens(raw):
        canonical: Optional[str] = _AUDIENCE_ALIASES.get(token.lower())
        if canonical is None:
            invalid.append(token)
        elif canonical not in result:
            result.append(canonical)
    if invalid:
        raise AudienceError(str(raw), invalid)
    return sorted(result, key=VALID_AUDIENCES.index)


def split_list(raw: Any) -> List[str]:
    """Public comma-list splitter used by the normalizer."""
    return _split_tokens(raw)
