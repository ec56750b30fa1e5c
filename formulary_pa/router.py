"""
REST endpoints for formulary lookup and PA analysis. Mounted under /api.

Handlers stay thin: validate (FastAPI/pydantic), call storage or the
analyzer, map absence to 404 and unexpected failures to 500.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from formulary_pa.config import settings
from formulary_pa.deps import get_analyzer, get_seed_provider, get_storage
from formulary_pa.schemas import (
    Formulary,
    Gender,
    InsuranceProvider,
    Medication,
    MedicationCreate,
    MedicationUpdate,
    MessageResponse,
    PAAnalysisRequest,
    PADecision,
    PASubmissionInfo,
    SearchQuery,
    UploadFormularyRequest,
)
from formulary_pa.seed import StaticSeedProvider
from formulary_pa.services.pa_analyzer import PAAnalyzer, auto_approval
from formulary_pa.storage.base import FormularyStorage

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------
# Medications
# ---------------------------------------------------------

@router.get("/medications", response_model=list[Medication])
def list_medications(
    formulary_id: Optional[int] = Query(None, alias="formularyId"),
    storage: FormularyStorage = Depends(get_storage),
):
    try:
        return storage.get_medications(formulary_id)
    except Exception:
        logger.exception("Fetching medications failed (formulary=%s)", formulary_id)
        raise HTTPException(status_code=500, detail="Error fetching medications")


@router.post("/medications", response_model=Medication, status_code=201)
def create_medication(
    medication: MedicationCreate,
    storage: FormularyStorage = Depends(get_storage),
):
    if storage.get_formulary_by_id(medication.formulary_id) is None:
        raise HTTPException(status_code=404, detail="Formulary not found")
    try:
        return storage.create_medication(medication)
    except Exception:
        logger.exception("Creating medication '%s' failed", medication.name)
        raise HTTPException(status_code=500, detail="Error creating medication")


@router.get("/medications/class/{class_name}", response_model=list[Medication])
def list_medications_by_class(
    class_name: str,
    formulary_id: Optional[int] = Query(None, alias="formularyId"),
    storage: FormularyStorage = Depends(get_storage),
):
    try:
        return storage.get_medications_by_class(class_name, formulary_id)
    except Exception:
        logger.exception("Fetching medications for class '%s' failed", class_name)
        raise HTTPException(status_code=500, detail="Error fetching medications by class")


@router.get("/medications/{medication_id}", response_model=Medication)
def get_medication(medication_id: int, storage: FormularyStorage = Depends(get_storage)):
    try:
        medication = storage.get_medication_by_id(medication_id)
    except Exception:
        logger.exception("Fetching medication id=%d failed", medication_id)
        raise HTTPException(status_code=500, detail="Error fetching medication")

    if medication is None:
        raise HTTPException(status_code=404, detail="Medication not found")
    return medication


@router.patch("/medications/{medication_id}", response_model=Medication)
def update_medication(
    medication_id: int,
    changes: MedicationUpdate,
    storage: FormularyStorage = Depends(get_storage),
):
    try:
        medication = storage.update_medication(medication_id, changes)
    except Exception:
        logger.exception("Updating medication id=%d failed", medication_id)
        raise HTTPException(status_code=500, detail="Error updating medication")

    if medication is None:
        raise HTTPException(status_code=404, detail="Medication not found")
    return medication


@router.delete("/medications/{medication_id}", response_model=MessageResponse)
def delete_medication(medication_id: int, storage: FormularyStorage = Depends(get_storage)):
    try:
        deleted = storage.delete_medication(medication_id)
    except Exception:
        logger.exception("Deleting medication id=%d failed", medication_id)
        raise HTTPException(status_code=500, detail="Error deleting medication")

    if not deleted:
        raise HTTPException(status_code=404, detail="Medication not found")
    return MessageResponse(message="Medication deleted")


@router.get("/drug-classes", response_model=list[str])
def list_drug_classes(
    formulary_id: Optional[int] = Query(None, alias="formularyId"),
    storage: FormularyStorage = Depends(get_storage),
):
    try:
        return storage.get_drug_classes(formulary_id)
    except Exception:
        logger.exception("Fetching drug classes failed (formulary=%s)", formulary_id)
        raise HTTPException(status_code=500, detail="Error fetching drug classes")


# ---------------------------------------------------------
# Formularies & providers
# ---------------------------------------------------------

@router.get("/formularies", response_model=list[Formulary])
def list_formularies(storage: FormularyStorage = Depends(get_storage)):
    try:
        return storage.get_formularies()
    except Exception:
        logger.exception("Fetching formularies failed")
        raise HTTPException(status_code=500, detail="Error fetching formularies")


@router.get("/formularies/{formulary_id}", response_model=Formulary)
def get_formulary(formulary_id: int, storage: FormularyStorage = Depends(get_storage)):
    formulary = storage.get_formulary_by_id(formulary_id)
    if formulary is None:
        raise HTTPException(status_code=404, detail="Formulary not found")
    return formulary


@router.get("/formularies/{formulary_id}/submission-info", response_model=PASubmissionInfo)
def get_submission_info(formulary_id: int, storage: FormularyStorage = Depends(get_storage)):
    info = storage.get_formulary_submission_info(formulary_id)
    if info is None:
        raise HTTPException(status_code=404, detail="PA submission info not found")
    return info


@router.get("/insurance-providers", response_model=list[InsuranceProvider])
def list_insurance_providers(storage: FormularyStorage = Depends(get_storage)):
    try:
        return storage.get_insurance_providers()
    except Exception:
        logger.exception("Fetching insurance providers failed")
        raise HTTPException(status_code=500, detail="Error fetching insurance providers")


@router.get("/insurance-providers/{provider_id}", response_model=InsuranceProvider)
def get_insurance_provider(provider_id: int, storage: FormularyStorage = Depends(get_storage)):
    provider = storage.get_insurance_provider_by_id(provider_id)
    if provider is None:
        raise HTTPException(status_code=404, detail="Insurance provider not found")
    return provider


# ---------------------------------------------------------
# Search
# ---------------------------------------------------------

def _run_search(query: SearchQuery, storage: FormularyStorage) -> list[Medication]:
    try:
        return storage.search_medications(query)
    except Exception:
        logger.exception("Search failed for %s", query.model_dump(exclude_none=True))
        raise HTTPException(status_code=500, detail="Error searching medications")


@router.post("/search", response_model=list[Medication])
def search_medications(query: SearchQuery, storage: FormularyStorage = Depends(get_storage)):
    """Search with a JSON body. Without formularyId every formulary is searched."""
    return _run_search(query, storage)


@router.get("/search", response_model=list[Medication])
def search_medications_get(
    formulary_id: Optional[int] = Query(None, alias="formularyId"),
    medication_name: Optional[str] = Query(None, alias="medicationName"),
    drug_class: Optional[str] = Query(None, alias="drugClass"),
    patient_age: Optional[int] = Query(None, alias="patientAge", ge=0),
    patient_gender: Optional[Gender] = Query(None, alias="patientGender"),
    dosage_form: Optional[str] = Query(None, alias="dosageForm"),
    dosage: Optional[str] = Query(None),
    quantity: Optional[int] = Query(None),
    requires_pa: Optional[bool] = Query(None, alias="requiresPA"),
    storage: FormularyStorage = Depends(get_storage),
):
    """
    Query-string search. Values are coerced to the SearchQuery types.

    A missing formularyId falls back to DEFAULT_FORMULARY_ID rather than
    searching everything; the fallback is logged so it is visible.
    """
    if formulary_id is None:
        formulary_id = settings.DEFAULT_FORMULARY_ID
        logger.info("GET /search without formularyId, using default formulary %d", formulary_id)

    query = SearchQuery(
        formulary_id=formulary_id,
        medication_name=medication_name,
        drug_class=drug_class,
        patient_age=patient_age,
        patient_gender=patient_gender,
        dosage_form=dosage_form,
        dosage=dosage,
        quantity=quantity,
        requires_pa=requires_pa,
    )
    return _run_search(query, storage)


# ---------------------------------------------------------
# Formulary upload (static seed)
# ---------------------------------------------------------

@router.post("/upload-formulary", response_model=MessageResponse)
def upload_formulary(
    body: UploadFormularyRequest,
    storage: FormularyStorage = Depends(get_storage),
    seed_provider: StaticSeedProvider = Depends(get_seed_provider),
):
    """
    Re-seed a formulary. No document is read: the records come from the
    static seed provider, and existing medications are replaced.
    """
    if storage.get_formulary_by_id(body.formulary_id) is None:
        raise HTTPException(status_code=404, detail="Formulary not found")

    try:
        storage.initialize_medications(seed_provider.load(), body.formulary_id)
    except Exception:
        logger.exception("Re-seeding formulary id=%d failed", body.formulary_id)
        raise HTTPException(status_code=500, detail="Error uploading formulary")

    return MessageResponse(message="Formulary uploaded and processed successfully")


# ---------------------------------------------------------
# PA analysis
# ---------------------------------------------------------

@router.post("/analyze-pa", response_model=PADecision)
def analyze_pa(
    request: PAAnalysisRequest,
    storage: FormularyStorage = Depends(get_storage),
    analyzer: PAAnalyzer = Depends(get_analyzer),
) -> PADecision:
    """
    Recommend APPROVED / DENIED / NEEDS_REVIEW for a PA request.

    Medications without a PA requirement are approved here without calling
    the LLM. LLM trouble comes back as a NEEDS_REVIEW decision (HTTP 200);
    only failures of this service itself produce an HTTP error.
    """
    try:
        medication = storage.get_medication_by_id(request.medication_id)
    except Exception:
        logger.exception("Loading medication id=%d for PA analysis failed", request.medication_id)
        raise HTTPException(status_code=500, detail="Error analyzing PA request")

    if medication is None or medication.formulary_id != request.formulary_id:
        raise HTTPException(status_code=404, detail="Medication not found")

    if not medication.requires_pa:
        logger.info("Medication id=%d does not require PA, auto-approving", medication.id)
        return auto_approval()

    try:
        return analyzer.analyze(medication, request.patient_info())
    except Exception:
        logger.exception("PA analysis failed for medication id=%d", medication.id)
        raise HTTPException(status_code=500, detail="Error analyzing PA request")
