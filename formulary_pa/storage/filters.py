"""
Patient-restriction filters shared by both storage backends.

Restriction text in a formulary is free-form ("10 years and older",
"Female only", "None"). Only the shapes below are understood; anything
else is treated as unrestricted so a search never hides a drug because
its restriction could not be read.
"""

import re
from typing import Optional

from formulary_pa.schemas import Medication, SearchQuery

_NO_RESTRICTION = {"", "none", "n/a", "na", "no restrictions"}

_AND_OLDER = re.compile(r"(\d+)\s*(?:years?|yrs?)?\s*(?:and|&|or)\s*(?:older|over|above)")
_MIN_AGE = re.compile(r"(?:at least|minimum(?: age)?(?: of)?|age)\s*(\d+)")
_UNDER = re.compile(r"(?:under|younger than|less than|below)\s*(\d+)")
_AND_YOUNGER = re.compile(r"(\d+)\s*(?:years?|yrs?)?\s*(?:and|&|or)\s*(?:younger|under)")
_RANGE = re.compile(r"(\d+)\s*(?:-|to|–)\s*(\d+)")
_NEGATED = re.compile(r"\b(?:not|no|non|except|excluding|avoid|contraindicated)\b")


def parse_age_range(text: Optional[str]) -> Optional[tuple[Optional[int], Optional[int]]]:
    """
    Turn age-restriction text into an inclusive (min, max) pair.
    Returns None when the text is empty or not understood.
    """
    if text is None:
        return None
    lowered = text.strip().lower()
    if lowered in _NO_RESTRICTION:
        return None

    m = _RANGE.search(lowered)
    if m:
        return int(m.group(1)), int(m.group(2))
    m = _AND_OLDER.search(lowered)
    if m:
        return int(m.group(1)), None
    m = _AND_YOUNGER.search(lowered)
    if m:
        return None, int(m.group(1))
    m = _UNDER.search(lowered)
    if m:
        return None, int(m.group(1)) - 1
    m = _MIN_AGE.search(lowered)
    if m:
        return int(m.group(1)), None
    return None


def matches_age(medication: Medication, age: Optional[int]) -> bool:
    if age is None:
        return True
    bounds = parse_age_range(medication.age_restrictions)
    if bounds is None:
        return True
    low, high = bounds
    if low is not None and age < low:
        return False
    if high is not None and age > high:
        return False
    return True


def matches_gender(medication: Medication, gender: Optional[str]) -> bool:
    if gender is None:
        return True
    text = (medication.gender_restrictions or "").strip().lower()
    if text in _NO_RESTRICTION:
        return True
    # "Not recommended for women" names the excluded group; not understood
    if _NEGATED.search(text):
        return True
    # "female" contains "male", so check it first
    if re.search(r"\bfemales?\b|\bwom[ae]n\b", text):
        return gender == "female"
    if re.search(r"\bmales?\b|\bm[ae]n\b", text):
        return gender == "male"
    return True


def matches_dosage_form(medication: Medication, dosage_form: Optional[str]) -> bool:
    if not dosage_form:
        return True
    needle = dosage_form.strip().lower()
    return any(needle in form.lower() for form in (medication.dosage_forms or []))


def apply_patient_filters(medications: list[Medication], query: SearchQuery) -> list[Medication]:
    return [
        med for med in medications
        if matches_age(med, query.patient_age)
        and matches_gender(med, query.patient_gender)
        and matches_dosage_form(med, query.dosage_form)
    ]
