"""
Dict-backed storage for single-process demos and tests.
No locking: it is never shared across processes or worker threads in that use.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Optional

from formulary_pa.schemas import (
    AlternativeSummary,
    Formulary,
    FormularyCreate,
    FormularyUpdate,
    InsuranceProvider,
    InsuranceProviderCreate,
    InsuranceProviderUpdate,
    Medication,
    MedicationCreate,
    MedicationFields,
    MedicationRecord,
    MedicationUpdate,
    SearchQuery,
    User,
    UserCreate,
)
from formulary_pa.storage.base import ALTERNATIVE_REASON, ALTERNATIVE_TAG, FormularyStorage
from formulary_pa.storage.filters import apply_patient_filters

logger = logging.getLogger(__name__)


@dataclass
class _DrugClassRow:
    id: int
    name: str
    formulary_id: int
    description: Optional[str] = None


@dataclass
class _AlternativeRow:
    id: int
    medication_id: int
    alternative_id: int
    reason: Optional[str] = None


class MemoryStorage(FormularyStorage):

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.providers: dict[int, InsuranceProvider] = {}
        self.formularies: dict[int, Formulary] = {}
        self.drug_classes: dict[int, _DrugClassRow] = {}
        # stored without alternatives; those are resolved on read
        self.medications: dict[int, Medication] = {}
        self.medication_drug_classes: set[tuple[int, int]] = set()
        self.alternatives: dict[int, _AlternativeRow] = {}
        self._ids = {
            name: itertools.count(1)
            for name in ("user", "provider", "formulary", "drug_class", "medication", "alternative")
        }

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    # --- Users ---

    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    def create_user(self, data: UserCreate) -> User:
        user = User(id=self._next_id("user"), **data.model_dump())
        self.users[user.id] = user
        return user

    # --- Insurance providers ---

    def get_insurance_providers(self) -> list[InsuranceProvider]:
        return list(self.providers.values())

    def get_insurance_provider_by_id(self, provider_id: int) -> Optional[InsuranceProvider]:
        return self.providers.get(provider_id)

    def create_insurance_provider(self, data: InsuranceProviderCreate) -> InsuranceProvider:
        provider = InsuranceProvider(id=self._next_id("provider"), **data.model_dump())
        self.providers[provider.id] = provider
        return provider

    def update_insurance_provider(
        self, provider_id: int, data: InsuranceProviderUpdate
    ) -> Optional[InsuranceProvider]:
        current = self.providers.get(provider_id)
        if current is None:
            return None
        updated = current.model_copy(update=data.model_dump(exclude_unset=True))
        self.providers[provider_id] = updated
        return updated

    def delete_insurance_provider(self, provider_id: int) -> bool:
        if self.providers.pop(provider_id, None) is None:
            return False
        for formulary in [f for f in self.formularies.values() if f.provider_id == provider_id]:
            self.delete_formulary(formulary.id)
        return True

    # --- Formularies ---

    def get_formularies(self) -> list[Formulary]:
        return list(self.formularies.values())

    def get_formulary_by_id(self, formulary_id: int) -> Optional[Formulary]:
        return self.formularies.get(formulary_id)

    def create_formulary(self, data: FormularyCreate) -> Formulary:
        formulary = Formulary(id=self._next_id("formulary"), **dict(data))
        self.formularies[formulary.id] = formulary
        return formulary

    def update_formulary(self, formulary_id: int, data: FormularyUpdate) -> Optional[Formulary]:
        current = self.formularies.get(formulary_id)
        if current is None:
            return None
        changes = {name: getattr(data, name) for name in data.model_fields_set}
        updated = current.model_copy(update=changes)
        self.formularies[formulary_id] = updated
        return updated

    def delete_formulary(self, formulary_id: int) -> bool:
        if self.formularies.pop(formulary_id, None) is None:
            return False
        self._delete_formulary_contents(formulary_id)
        return True

    # --- Medications ---

    def get_medications(self, formulary_id: Optional[int] = None) -> list[Medication]:
        return [
            self._resolve(med) for med in self.medications.values()
            if formulary_id is None or med.formulary_id == formulary_id
        ]

    def get_medication_by_id(self, medication_id: int) -> Optional[Medication]:
        med = self.medications.get(medication_id)
        return self._resolve(med) if med else None

    def get_medication_by_name(self, name: str, formulary_id: Optional[int] = None) -> Optional[Medication]:
        needle = name.strip().lower()
        for med in self.medications.values():
            if formulary_id is not None and med.formulary_id != formulary_id:
                continue
            if med.name.lower() == needle or (med.brand_name or "").lower() == needle:
                return self._resolve(med)
        return None

    def search_medications(self, query: SearchQuery) -> list[Medication]:
        candidates = list(self.medications.values())

        if query.formulary_id is not None:
            candidates = [m for m in candidates if m.formulary_id == query.formulary_id]

        if query.medication_name:
            term = query.medication_name.strip().lower()
            candidates = [
                m for m in candidates
                if term in m.name.lower() or term in (m.brand_name or "").lower()
            ]

        if query.requires_pa is not None:
            candidates = [m for m in candidates if m.requires_pa == query.requires_pa]

        if query.drug_class:
            ids = self._medication_ids_for_class(query.drug_class, query.formulary_id)
            if not ids:
                return []
            candidates = [m for m in candidates if m.id in ids]

        return apply_patient_filters([self._resolve(m) for m in candidates], query)

    def get_drug_classes(self, formulary_id: Optional[int] = None) -> list[str]:
        return sorted({
            dc.name for dc in self.drug_classes.values()
            if formulary_id is None or dc.formulary_id == formulary_id
        })

    def get_medications_by_class(self, class_name: str, formulary_id: Optional[int] = None) -> list[Medication]:
        ids = self._medication_ids_for_class(class_name, formulary_id)
        return [self._resolve(self.medications[i]) for i in sorted(ids)]

    def initialize_medications(self, records: list[MedicationRecord], formulary_id: int) -> None:
        self._delete_formulary_contents(formulary_id)

        inserted: list[tuple[MedicationRecord, Medication]] = []
        by_name: dict[str, Medication] = {}
        for record in records:
            med = self._insert_medication(formulary_id, record)
            inserted.append((record, med))
            by_name.setdefault(record.name.lower(), med)

        class_ids = {}
        for record, med in inserted:
            if not record.drug_class:
                continue
            if record.drug_class not in class_ids:
                row = _DrugClassRow(
                    id=self._next_id("drug_class"),
                    name=record.drug_class,
                    formulary_id=formulary_id,
                    description=f"{record.drug_class} drug class",
                )
                self.drug_classes[row.id] = row
                class_ids[record.drug_class] = row.id
            self.medication_drug_classes.add((med.id, class_ids[record.drug_class]))

        alternative_count = 0
        for record, med in inserted:
            for alt in record.alternatives:
                target = by_name.get(alt.name.lower())
                if target is None:
                    target = self._insert_medication(formulary_id, MedicationFields(
                        name=alt.name,
                        brand_name=alt.brand_name,
                        formulary_status=alt.formulary_status,
                        requires_pa=alt.requires_pa,
                        tags=[ALTERNATIVE_TAG],
                    ))
                    by_name[alt.name.lower()] = target
                link = _AlternativeRow(
                    id=self._next_id("alternative"),
                    medication_id=med.id,
                    alternative_id=target.id,
                    reason=ALTERNATIVE_REASON,
                )
                self.alternatives[link.id] = link
                alternative_count += 1

        logger.info(
            "Formulary %s initialized: %d medications, %d drug classes, %d alternative links",
            formulary_id, len(records), len(class_ids), alternative_count,
        )

    def create_medication(self, data: MedicationCreate) -> Medication:
        med = self._insert_medication(data.formulary_id, data)
        if data.drug_class:
            self._link_drug_class(med.id, data.drug_class, data.formulary_id)
        return self._resolve(med)

    def update_medication(self, medication_id: int, data: MedicationUpdate) -> Optional[Medication]:
        current = self.medications.get(medication_id)
        if current is None:
            return None
        changes = data.model_dump(exclude_unset=True)
        updated = Medication.model_validate({**current.model_dump(), **changes})
        self.medications[medication_id] = updated

        if "drug_class" in changes and changes["drug_class"] != current.drug_class:
            self.medication_drug_classes = {
                pair for pair in self.medication_drug_classes if pair[0] != medication_id
            }
            if updated.drug_class:
                self._link_drug_class(medication_id, updated.drug_class, updated.formulary_id)
            self._drop_empty_drug_classes()
        return self._resolve(updated)

    def delete_medication(self, medication_id: int) -> bool:
        if self.medications.pop(medication_id, None) is None:
            return False
        self.medication_drug_classes = {
            pair for pair in self.medication_drug_classes if pair[0] != medication_id
        }
        self.alternatives = {
            key: row for key, row in self.alternatives.items()
            if medication_id not in (row.medication_id, row.alternative_id)
        }
        self._drop_empty_drug_classes()
        return True

    # --- helpers ---

    def _insert_medication(self, formulary_id: int, fields: MedicationFields) -> Medication:
        values = fields.model_dump(include=set(MedicationFields.model_fields))
        med = Medication(id=self._next_id("medication"), formulary_id=formulary_id, **values)
        self.medications[med.id] = med
        return med

    def _resolve(self, med: Medication) -> Medication:
        links = sorted(
            (row for row in self.alternatives.values() if row.medication_id == med.id),
            key=lambda row: row.id,
        )
        alternatives = [
            AlternativeSummary(
                id=alt.id,
                name=alt.name,
                brand_name=alt.brand_name,
                formulary_status=alt.formulary_status,
                requires_pa=alt.requires_pa,
            )
            for alt in (self.medications.get(link.alternative_id) for link in links)
            if alt is not None
        ]
        return med.model_copy(update={"alternatives": alternatives})

    def _medication_ids_for_class(self, class_name: str, formulary_id: Optional[int]) -> set[int]:
        class_ids = {
            dc.id for dc in self.drug_classes.values()
            if dc.name == class_name and (formulary_id is None or dc.formulary_id == formulary_id)
        }
        return {med_id for med_id, dc_id in self.medication_drug_classes if dc_id in class_ids}

    def _link_drug_class(self, medication_id: int, class_name: str, formulary_id: int) -> None:
        existing = next(
            (dc for dc in self.drug_classes.values()
             if dc.name == class_name and dc.formulary_id == formulary_id),
            None,
        )
        if existing is None:
            existing = _DrugClassRow(id=self._next_id("drug_class"), name=class_name, formulary_id=formulary_id)
            self.drug_classes[existing.id] = existing
        self.medication_drug_classes.add((medication_id, existing.id))

    def _drop_empty_drug_classes(self) -> None:
        linked = {dc_id for _, dc_id in self.medication_drug_classes}
        self.drug_classes = {key: row for key, row in self.drug_classes.items() if key in linked}

    def _delete_formulary_contents(self, formulary_id: int) -> None:
        medication_ids = {m.id for m in self.medications.values() if m.formulary_id == formulary_id}
        for med_id in medication_ids:
            del self.medications[med_id]
        self.medication_drug_classes = {
            pair for pair in self.medication_drug_classes if pair[0] not in medication_ids
        }
        self.alternatives = {
            key: row for key, row in self.alternatives.items()
            if row.medication_id not in medication_ids and row.alternative_id not in medication_ids
        }
        self.drug_classes = {
            key: row for key, row in self.drug_classes.items() if row.formulary_id != formulary_id
        }
