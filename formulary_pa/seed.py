"""
Static seed data for the demo formulary.

StaticSeedProvider is not a document parser: it always hands
back the same records. A real ingestion component would live beside it
with its own contract.
"""

import logging

from formulary_pa.schemas import (
    FormularyCreate,
    InsuranceProviderCreate,
    MedicationRecord,
    PASubmissionInfo,
)

logger = logging.getLogger(__name__)


DEFAULT_PROVIDER = InsuranceProviderCreate(
    name="Molina Healthcare",
    description="Molina Healthcare of Washington",
    website="https://www.molinahealthcare.com",
    phone="800-869-7175",
    fax_number="800-869-7791",
    portal_url="https://provider.molinahealthcare.com",
    logo_url="/logo/molina.svg",
)


def default_formulary(provider_id: int) -> FormularyCreate:
    return FormularyCreate(
        provider_id=provider_id,
        name="Washington Apple Health PDL",
        description="Molina Healthcare of Washington Apple Health (Medicaid) Preferred Drug List",
        year=2025,
        state="WA",
        type="medicaid",
        pa_submission_info=PASubmissionInfo(
            fax_number="800-869-7791",
            phone="800-869-7175",
            website="https://www.molinahealthcare.com",
            portal_url="https://provider.molinahealthcare.com",
            instructions=[
                "Complete all required fields on the PA form",
                "Include patient diagnosis and clinical indication",
                "Document previous treatment history and response",
            ],
            checklist=[
                "Recent laboratory results (within last 3 months)",
                "Medical records documenting previous trials",
                "Current medication list",
                "Provider contact information",
            ],
        ),
    )


_SEED_MEDICATIONS = [
    {
        "name": "atorvastatin",
        "brandName": "LIPITOR",
        "drugClass": "Cardiovascular Agents",
        "formularyStatus": "preferred-with-pa",
        "requiresPA": True,
        "dosageForms": ["Tablet: 10mg, 20mg, 40mg, 80mg"],
        "quantityLimits": "30 tablets per 30 days",
        "ageRestrictions": "10 years and older",
        "genderRestrictions": "None",
        "paType": "Clinical Criteria",
        "authorizationDuration": "12 months",
        "paCriteria": [
            "Patient has a diagnosis of hyperlipidemia or hypercholesterolemia",
            "Patient has tried and failed therapy with simvastatin for at least 12 weeks",
            "Patient has tried and failed therapy with pravastatin for at least 12 weeks",
            "Documentation of baseline lipid levels is provided",
            "For doses exceeding 40mg daily: documented trial of 40mg daily for at least 12 weeks without adequate response",
        ],
        "requiredDocumentation": [
            "Recent lipid panel (within last 3 months)",
            "Medical records documenting previous trials",
            "Current medication list",
        ],
        "alternatives": [
            {"name": "simvastatin", "brandName": "ZOCOR", "formularyStatus": "preferred", "requiresPA": False},
            {"name": "pravastatin", "brandName": "PRAVACHOL", "formularyStatus": "preferred", "requiresPA": False},
        ],
        "tags": ["Quantity Limits"],
    },
    {
        "name": "metformin",
        "brandName": "GLUCOPHAGE",
        "drugClass": "Antidiabetics",
        "formularyStatus": "preferred",
        "requiresPA": False,
        "dosageForms": ["Tablet: 500mg, 850mg, 1000mg", "ER Tablet: 500mg, 750mg, 1000mg"],
        "quantityLimits": "60 tablets per 30 days",
        "ageRestrictions": "None",
        "genderRestrictions": "None",
        "tags": ["Preferred"],
    },
    {
        "name": "rosiglitazone",
        "brandName": "AVANDIA",
        "drugClass": "Antidiabetics",
        "formularyStatus": "non-formulary",
        "requiresPA": True,
        "alternatives": [
            {"name": "pioglitazone", "brandName": "ACTOS", "formularyStatus": "preferred", "requiresPA": False},
        ],
    },
]


class StaticSeedProvider:
    """Produces the fixed demo medication list for any formulary."""

    source = "static"

    def load(self) -> list[MedicationRecord]:
        records = [MedicationRecord.model_validate(raw) for raw in _SEED_MEDICATIONS]
        logger.info("Loaded %d seed medications from %s provider", len(records), self.source)
        return records
