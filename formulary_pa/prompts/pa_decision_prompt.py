"""
Prompt builder for the PA decision: medication record + patient → decision JSON.

The prompt is deterministic for a given input so identical requests send
identical text.
"""

import json

from formulary_pa.schemas import Medication, PatientInfo

SYSTEM_PROMPT = """You are an expert pharmacy benefits manager AI assistant specializing in Prior Authorization (PA) decisions.
Your primary responsibility is to analyze medication requests against formulary criteria and determine if the request should be approved or denied.

Use only the provided formulary and patient information to make your determination. Base your decision strictly on:
1. Whether the medication requires PA according to the formulary
2. If PA is required, whether the patient meets the specific PA criteria
3. Age restrictions, gender restrictions, quantity limits, and specific clinical criteria in the PA requirements
4. The appropriateness of the patient's diagnosis code for the requested medication

Format your response as valid JSON with the following structure:
{
  "decision": "APPROVED" or "DENIED" or "NEEDS_REVIEW",
  "confidence": (a number between 0 and 1 indicating confidence in the decision),
  "rationale": (brief explanation of the decision),
  "missingInformation": (array of strings indicating what information would be needed for a definitive decision, if any),
  "suggestedAlternatives": (array of alternative medication names if the request is denied)
}

Apply strict objective criteria. Do not make assumptions or creative interpretations beyond what's explicitly stated.
Output ONLY the JSON, with no markdown fences, no commentary."""


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _or_not_provided(value) -> str:
    return "Not provided" if value is None or value == "" else str(value)


def build_pa_decision_prompt(medication: Medication, patient: PatientInfo) -> str:
    med_lines = [
        f"- Name: {medication.name}",
        f"- Brand Name: {medication.brand_name or 'N/A'}",
        f"- Drug Class: {medication.drug_class or 'N/A'}",
        f"- Formulary Status: {medication.formulary_status}",
        f"- Requires Prior Authorization: {'Yes' if medication.requires_pa else 'No'}",
    ]
    if medication.dosage_forms:
        med_lines.append(f"- Available Dosage Forms: {json.dumps(medication.dosage_forms)}")
    if medication.quantity_limits:
        med_lines.append(f"- Quantity Limits: {medication.quantity_limits}")
    if medication.age_restrictions:
        med_lines.append(f"- Age Restrictions: {medication.age_restrictions}")
    if medication.gender_restrictions:
        med_lines.append(f"- Gender Restrictions: {medication.gender_restrictions}")
    if medication.pa_type:
        med_lines.append(f"- PA Type: {medication.pa_type}")
    if medication.authorization_duration:
        med_lines.append(f"- Authorization Duration: {medication.authorization_duration}")

    criteria = _numbered(medication.pa_criteria) if medication.pa_criteria else "No specific PA criteria listed"

    documentation = ""
    if medication.required_documentation:
        documentation = f"## Required Documentation\n{_numbered(medication.required_documentation)}\n\n"

    if medication.alternatives:
        alternatives = "\n".join(
            f"- {alt.name}{f' ({alt.brand_name})' if alt.brand_name else ''}: "
            f"{alt.formulary_status}, Requires PA: {'Yes' if alt.requires_pa else 'No'}"
            for alt in medication.alternatives
        )
    else:
        alternatives = "No alternatives listed"

    med_block = "\n".join(med_lines)
    return f"""# Prior Authorization Request Assessment

## Medication Information
{med_block}

## PA Criteria
{criteria}

{documentation}## Patient Information
- Age: {_or_not_provided(patient.age)}
- Gender: {_or_not_provided(patient.gender)}
- Diagnosis Code: {_or_not_provided(patient.diagnosis_code)}
- Requested Dosage: {_or_not_provided(patient.dosage)}
- Requested Quantity: {_or_not_provided(patient.quantity)}

## Alternative Medications
{alternatives}

Based on the information provided, please determine if this prior authorization request should be APPROVED, DENIED, or sent for manual NEEDS_REVIEW. Provide your decision with rationale, confidence score, any missing information needed, and suggested alternatives if appropriate."""
