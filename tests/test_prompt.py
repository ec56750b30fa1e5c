"""
Tests for the PA decision prompt text.
"""

from formulary_pa.prompts.pa_decision_prompt import build_pa_decision_prompt
from formulary_pa.schemas import AlternativeSummary, Medication, PatientInfo


def _atorvastatin():
    return Medication(
        id=1,
        formulary_id=1,
        name="atorvastatin",
        brand_name="LIPITOR",
        drug_class="Cardiovascular Agents",
        formulary_status="preferred-with-pa",
        requires_pa=True,
        dosage_forms=["Tablet: 10mg"],
        age_restrictions="10 years and older",
        pa_criteria=["Tried simvastatin", "Baseline lipids documented"],
        required_documentation=["Recent lipid panel"],
        alternatives=[
            AlternativeSummary(id=2, name="simvastatin", brand_name="ZOCOR",
                               formulary_status="preferred", requires_pa=False),
        ],
    )


def test_prompt_includes_medication_and_numbered_criteria():
    prompt = build_pa_decision_prompt(_atorvastatin(), PatientInfo(age=45, gender="male"))

    assert "- Name: atorvastatin" in prompt
    assert "- Brand Name: LIPITOR" in prompt
    assert "- Requires Prior Authorization: Yes" in prompt
    assert '- Available Dosage Forms: ["Tablet: 10mg"]' in prompt
    assert "1. Tried simvastatin\n2. Baseline lipids documented" in prompt
    assert "## Required Documentation\n1. Recent lipid panel" in prompt
    assert "- simvastatin (ZOCOR): preferred, Requires PA: No" in prompt


def test_prompt_marks_missing_patient_fields():
    prompt = build_pa_decision_prompt(_atorvastatin(), PatientInfo(age=45))

    assert "- Age: 45" in prompt
    assert "- Gender: Not provided" in prompt
    assert "- Diagnosis Code: Not provided" in prompt
    assert "- Requested Quantity: Not provided" in prompt


def test_prompt_placeholders_for_sparse_medication():
    med = Medication(id=3, formulary_id=1, name="rosiglitazone",
                     formulary_status="non-formulary", requires_pa=True)
    prompt = build_pa_decision_prompt(med, PatientInfo())

    assert "- Brand Name: N/A" in prompt
    assert "- Drug Class: N/A" in prompt
    assert "No specific PA criteria listed" in prompt
    assert "No alternatives listed" in prompt
    assert "## Required Documentation" not in prompt


def test_prompt_is_deterministic():
    patient = PatientInfo(age=30, gender="female", diagnosis_code="E78.5")
    assert build_pa_decision_prompt(_atorvastatin(), patient) == build_pa_decision_prompt(_atorvastatin(), patient)
