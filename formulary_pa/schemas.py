"""
Pydantic models shared by the API and the storage layer.
This is the source of truth for the JSON shapes (camelCase on the wire).
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

FormularyStatus = Literal["preferred", "preferred-with-pa", "non-preferred", "non-formulary"]
Gender = Literal["male", "female", "other"]
DecisionKind = Literal["APPROVED", "DENIED", "NEEDS_REVIEW"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Users ---

class UserCreate(CamelModel):
    username: str
    password: str


class User(UserCreate):
    id: int


# --- Insurance providers ---

class InsuranceProviderCreate(CamelModel):
    name: str
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    fax_number: Optional[str] = None
    portal_url: Optional[str] = None
    logo_url: Optional[str] = None


class InsuranceProviderUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    fax_number: Optional[str] = None
    portal_url: Optional[str] = None
    logo_url: Optional[str] = None


class InsuranceProvider(InsuranceProviderCreate):
    id: int


# --- Formularies ---

class PASubmissionInfo(CamelModel):
    fax_number: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    portal_url: Optional[str] = None
    instructions: list[str] = []
    checklist: list[str] = []


class FormularyCreate(CamelModel):
    provider_id: int
    name: str
    description: Optional[str] = None
    year: int
    state: Optional[str] = Field(default=None, max_length=2)
    type: str
    effective_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    pa_submission_info: Optional[PASubmissionInfo] = None


class FormularyUpdate(CamelModel):
    provider_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    year: Optional[int] = None
    state: Optional[str] = Field(default=None, max_length=2)
    type: Optional[str] = None
    effective_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    pa_submission_info: Optional[PASubmissionInfo] = None


class Formulary(FormularyCreate):
    id: int


# --- Medications ---

class AlternativeSummary(CamelModel):
    id: int
    name: str
    brand_name: Optional[str] = None
    formulary_status: FormularyStatus
    requires_pa: bool = Field(alias="requiresPA")


class AlternativeSeed(CamelModel):
    """An alternative as it appears nested inside a seed record (no id yet)."""
    name: str
    brand_name: Optional[str] = None
    formulary_status: FormularyStatus
    requires_pa: bool = Field(alias="requiresPA")


class MedicationFields(CamelModel):
    name: str
    brand_name: Optional[str] = None
    drug_class: Optional[str] = None
    formulary_status: FormularyStatus
    requires_pa: bool = Field(alias="requiresPA")
    dosage_forms: Optional[list[str]] = None
    quantity_limits: Optional[str] = None
    age_restrictions: Optional[str] = None
    gender_restrictions: Optional[str] = None
    pa_type: Optional[str] = None
    pa_criteria: Optional[list[str]] = None
    authorization_duration: Optional[str] = None
    page: Optional[int] = None
    required_documentation: Optional[list[str]] = None
    tags: Optional[list[str]] = None


class MedicationRecord(MedicationFields):
    """Seed/bulk-load record: not yet bound to a formulary."""
    alternatives: list[AlternativeSeed] = []


class MedicationCreate(MedicationFields):
    formulary_id: int


class MedicationUpdate(CamelModel):
    name: Optional[str] = None
    brand_name: Optional[str] = None
    drug_class: Optional[str] = None
    formulary_status: Optional[FormularyStatus] = None
    requires_pa: Optional[bool] = Field(default=None, alias="requiresPA")
    dosage_forms: Optional[list[str]] = None
    quantity_limits: Optional[str] = None
    age_restrictions: Optional[str] = None
    gender_restrictions: Optional[str] = None
    pa_type: Optional[str] = None
    pa_criteria: Optional[list[str]] = None
    authorization_duration: Optional[str] = None
    page: Optional[int] = None
    required_documentation: Optional[list[str]] = None
    tags: Optional[list[str]] = None

    @field_validator("name", "formulary_status", "requires_pa")
    @classmethod
    def _not_null(cls, value):
        # may be omitted, but an explicit null would clear a NOT NULL column
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class Medication(MedicationFields):
    id: int
    formulary_id: int
    alternatives: list[AlternativeSummary] = []


# --- Search ---

class SearchQuery(CamelModel):
    formulary_id: Optional[int] = None
    medication_name: Optional[str] = None
    drug_class: Optional[str] = None
    patient_age: Optional[int] = Field(default=None, ge=0)
    patient_gender: Optional[Gender] = None
    dosage_form: Optional[str] = None
    dosage: Optional[str] = None
    quantity: Optional[int] = None
    requires_pa: Optional[bool] = Field(default=None, alias="requiresPA")


# --- Upload ---

class UploadFormularyRequest(CamelModel):
    formulary_id: int


class MessageResponse(BaseModel):
    message: str


# --- PA analysis ---

class PatientInfo(CamelModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    diagnosis_code: Optional[str] = None
    dosage: Optional[str] = None
    quantity: Optional[int] = None


class PAAnalysisRequest(CamelModel):
    medication_id: int
    formulary_id: int
    patient_age: Optional[int] = Field(default=None, ge=0)
    patient_gender: Optional[Gender] = None
    diagnosis_code: Optional[str] = None
    dosage: Optional[str] = None
    quantity: Optional[int] = None

    def patient_info(self) -> PatientInfo:
        return PatientInfo(
            age=self.patient_age,
            gender=self.patient_gender,
            diagnosis_code=self.diagnosis_code,
            dosage=self.dosage,
            quantity=self.quantity,
        )


class PADecision(CamelModel):
    decision: DecisionKind
    confidence: float = Field(ge=0.0, le=1.0)
    rationale: str
    missing_information: list[str] = []
    suggested_alternatives: list[str] = []
