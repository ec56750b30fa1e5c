"""
Structural validation for PA decision payloads returned by the LLM.
Catches missing fields, wrong types and out-of-range values before the
payload is trusted as a PADecision.
"""

VALID_DECISIONS = {"APPROVED", "DENIED", "NEEDS_REVIEW"}
LIST_FIELDS = ("missingInformation", "suggestedAlternatives")


def validate_decision(payload: dict) -> list[str]:
    """
    Validate a raw decision dict (camelCase keys, as the LLM is asked to emit).

    Missing list fields are allowed and treated as empty.

    Returns a list of error strings. Empty list means the payload is valid.
    """
    errors: list[str] = []

    if not isinstance(payload, dict):
        return ["Decision payload must be a JSON object"]

    # --- Required fields ---
    for field in ("decision", "confidence", "rationale"):
        if field not in payload:
            errors.append(f"Missing required field: '{field}'")

    decision = payload.get("decision")
    if "decision" in payload and decision not in VALID_DECISIONS:
        errors.append(
            f"Invalid decision '{decision}'. Must be one of: {sorted(VALID_DECISIONS)}"
        )

    # bool is an int subclass; a True/False confidence is a model mistake
    confidence = payload.get("confidence")
    if "confidence" in payload:
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            errors.append("'confidence' must be a number")
        elif not 0 <= confidence <= 1:
            errors.append(f"'confidence' {confidence} is outside [0, 1]")

    rationale = payload.get("rationale")
    if "rationale" in payload and (not isinstance(rationale, str) or not rationale.strip()):
        errors.append("'rationale' must be a non-empty string")

    # --- lists ---
    for field in LIST_FIELDS:
        value = payload.get(field)
        if value is None:
            continue
        if not isinstance(value, list):
            errors.append(f"'{field}' must be a list")
        elif not all(isinstance(item, str) for item in value):
            errors.append(f"'{field}' must contain only strings")

    return errors
