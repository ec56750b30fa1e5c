"""
Storage contract shared by the relational and in-memory backends.

Absence is never an error here: lookups return None, collections return
[], deletes return False. Callers above decide the HTTP status.
"""

from abc import ABC, abstractmethod
from typing import Optional

from formulary_pa.schemas import (
    Formulary,
    FormularyCreate,
    FormularyUpdate,
    InsuranceProvider,
    InsuranceProviderCreate,
    InsuranceProviderUpdate,
    Medication,
    MedicationCreate,
    MedicationRecord,
    MedicationUpdate,
    PASubmissionInfo,
    SearchQuery,
    User,
    UserCreate,
)

ALTERNATIVE_REASON = "Preferred formulary alternative"
ALTERNATIVE_TAG = "Alternative"


class FormularyStorage(ABC):

    def ensure_schema(self) -> None:
        """Create backing tables if the backend has any."""

    # --- Users ---

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, data: UserCreate) -> User: ...

    # --- Insurance providers ---

    @abstractmethod
    def get_insurance_providers(self) -> list[InsuranceProvider]: ...

    @abstractmethod
    def get_insurance_provider_by_id(self, provider_id: int) -> Optional[InsuranceProvider]: ...

    @abstractmethod
    def create_insurance_provider(self, data: InsuranceProviderCreate) -> InsuranceProvider: ...

    @abstractmethod
    def update_insurance_provider(
        self, provider_id: int, data: InsuranceProviderUpdate
    ) -> Optional[InsuranceProvider]: ...

    @abstractmethod
    def delete_insurance_provider(self, provider_id: int) -> bool: ...

    # --- Formularies ---

    @abstractmethod
    def get_formularies(self) -> list[Formulary]: ...

    @abstractmethod
    def get_formulary_by_id(self, formulary_id: int) -> Optional[Formulary]: ...

    @abstractmethod
    def create_formulary(self, data: FormularyCreate) -> Formulary: ...

    @abstractmethod
    def update_formulary(self, formulary_id: int, data: FormularyUpdate) -> Optional[Formulary]: ...

    @abstractmethod
    def delete_formulary(self, formulary_id: int) -> bool: ...

    def get_formulary_submission_info(self, formulary_id: int) -> Optional[PASubmissionInfo]:
        formulary = self.get_formulary_by_id(formulary_id)
        if formulary is None:
            return None
        return formulary.pa_submission_info

    # --- Medications ---

    @abstractmethod
    def get_medications(self, formulary_id: Optional[int] = None) -> list[Medication]: ...

    @abstractmethod
    def get_medication_by_id(self, medication_id: int) -> Optional[Medication]: ...

    @abstractmethod
    def get_medication_by_name(
        self, name: str, formulary_id: Optional[int] = None
    ) -> Optional[Medication]: ...

    @abstractmethod
    def search_medications(self, query: SearchQuery) -> list[Medication]: ...

    @abstractmethod
    def get_drug_classes(self, formulary_id: Optional[int] = None) -> list[str]: ...

    @abstractmethod
    def get_medications_by_class(
        self, class_name: str, formulary_id: Optional[int] = None
    ) -> list[Medication]: ...

    @abstractmethod
    def initialize_medications(self, records: list[MedicationRecord], formulary_id: int) -> None: ...

    @abstractmethod
    def create_medication(self, data: MedicationCreate) -> Medication: ...

    @abstractmethod
    def update_medication(self, medication_id: int, data: MedicationUpdate) -> Optional[Medication]: ...

    @abstractmethod
    def delete_medication(self, medication_id: int) -> bool: ...


def build_storage(settings) -> FormularyStorage:
    """Pick the backend named by STORAGE_BACKEND."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        from formulary_pa.storage.memory import MemoryStorage

        return MemoryStorage()
    if backend == "database":
        from formulary_pa.storage.database import DatabaseStorage

        return DatabaseStorage.from_url(settings.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'. Use 'database' or 'memory'.")
