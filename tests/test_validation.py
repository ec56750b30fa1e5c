"""
Tests for structural validation of LLM decision payloads.
"""

from formulary_pa.validation import validate_decision


def test_valid_decision_passes():
    payload = {
        "decision": "DENIED",
        "confidence": 0.82,
        "rationale": "Patient has not tried simvastatin or pravastatin.",
        "missingInformation": ["Lipid panel"],
        "suggestedAlternatives": ["simvastatin"],
    }
    assert validate_decision(payload) == []


def test_list_fields_are_optional():
    payload = {"decision": "APPROVED", "confidence": 1, "rationale": "Criteria met."}
    assert validate_decision(payload) == []


def test_missing_required_fields():
    errors = validate_decision({"decision": "APPROVED"})
    assert any("confidence" in e for e in errors)
    assert any("rationale" in e for e in errors)


def test_unknown_decision():
    payload = {"decision": "MAYBE", "confidence": 0.5, "rationale": "Unsure."}
    errors = validate_decision(payload)
    assert any("Invalid decision" in e for e in errors)


def test_confidence_out_of_range():
    payload = {"decision": "APPROVED", "confidence": 1.5, "rationale": "Criteria met."}
    errors = validate_decision(payload)
    assert any("outside [0, 1]" in e for e in errors)


def test_confidence_must_be_numeric():
    for bad in ("0.9", True, None):
        payload = {"decision": "APPROVED", "confidence": bad, "rationale": "Criteria met."}
        assert validate_decision(payload), bad


def test_blank_rationale():
    payload = {"decision": "DENIED", "confidence": 0.4, "rationale": "   "}
    assert any("rationale" in e for e in validate_decision(payload))


def test_list_fields_must_hold_strings():
    payload = {
        "decision": "NEEDS_REVIEW",
        "confidence": 0.3,
        "rationale": "Missing diagnosis.",
        "missingInformation": "diagnosis code",
        "suggestedAlternatives": [1, 2],
    }
    errors = validate_decision(payload)
    assert any("'missingInformation' must be a list" in e for e in errors)
    assert any("'suggestedAlternatives' must contain only strings" in e for e in errors)


def test_non_dict_payload():
    assert validate_decision(["APPROVED"]) == ["Decision payload must be a JSON object"]
