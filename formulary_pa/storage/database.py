"""
Relational storage backed by SQLAlchemy. One session (and transaction) per call.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from formulary_pa import models
from formulary_pa.db import Base, make_engine, make_session_factory
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
    MedicationRecord,
    MedicationUpdate,
    SearchQuery,
    User,
    UserCreate,
)
from formulary_pa.storage.base import ALTERNATIVE_REASON, ALTERNATIVE_TAG, FormularyStorage
from formulary_pa.storage.filters import apply_patient_filters

logger = logging.getLogger(__name__)

_MEDICATION_COLUMNS = (
    "name", "brand_name", "drug_class", "formulary_status", "requires_pa",
    "dosage_forms", "quantity_limits", "age_restrictions", "gender_restrictions",
    "pa_type", "pa_criteria", "authorization_duration", "page",
    "required_documentation", "tags",
)


def _columns(row, dto_cls) -> dict:
    return {name: getattr(row, name) for name in dto_cls.model_fields if hasattr(row, name)}


def _bulk_delete(session: Session, stmt) -> None:
    session.execute(stmt, execution_options={"synchronize_session": False})


def _dump_formulary(data) -> dict:
    values = data.model_dump(exclude_unset=True, exclude={"pa_submission_info"})
    if "pa_submission_info" in data.model_fields_set:
        info = data.pa_submission_info
        values["pa_submission_info"] = info.model_dump(by_alias=True) if info is not None else None
    return values


class DatabaseStorage(FormularyStorage):

    def __init__(self, engine: Engine, session_factory: Optional[sessionmaker] = None) -> None:
        self.engine = engine
        self._session_factory = session_factory or make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseStorage":
        return cls(make_engine(database_url))

    def ensure_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(self.engine)

    # --- Users ---

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session_factory() as session:
            row = session.get(models.User, user_id)
            return User(**_columns(row, User)) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._session_factory() as session:
            row = session.scalars(select(models.User).where(models.User.username == username)).first()
            return User(**_columns(row, User)) if row else None

    def create_user(self, data: UserCreate) -> User:
        with self._session_factory.begin() as session:
            row = models.User(**data.model_dump())
            session.add(row)
            session.flush()
            return User(**_columns(row, User))

    # --- Insurance providers ---

    def get_insurance_providers(self) -> list[InsuranceProvider]:
        with self._session_factory() as session:
            rows = session.scalars(select(models.InsuranceProvider).order_by(models.InsuranceProvider.id))
            return [InsuranceProvider(**_columns(row, InsuranceProvider)) for row in rows]

    def get_insurance_provider_by_id(self, provider_id: int) -> Optional[InsuranceProvider]:
        with self._session_factory() as session:
            row = session.get(models.InsuranceProvider, provider_id)
            return InsuranceProvider(**_columns(row, InsuranceProvider)) if row else None

    def create_insurance_provider(self, data: InsuranceProviderCreate) -> InsuranceProvider:
        with self._session_factory.begin() as session:
            row = models.InsuranceProvider(**data.model_dump())
            session.add(row)
            session.flush()
            return InsuranceProvider(**_columns(row, InsuranceProvider))

    def update_insurance_provider(
        self, provider_id: int, data: InsuranceProviderUpdate
    ) -> Optional[InsuranceProvider]:
        with self._session_factory.begin() as session:
            row = session.get(models.InsuranceProvider, provider_id)
            if row is None:
                return None
            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(row, key, value)
            session.flush()
            return InsuranceProvider(**_columns(row, InsuranceProvider))

    def delete_insurance_provider(self, provider_id: int) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(models.InsuranceProvider, provider_id)
            if row is None:
                return False
            formulary_ids = session.scalars(
                select(models.Formulary.id).where(models.Formulary.provider_id == provider_id)
            ).all()
            for formulary_id in formulary_ids:
                self._delete_formulary_contents(session, formulary_id)
                _bulk_delete(session, delete(models.Formulary).where(models.Formulary.id == formulary_id))
            session.delete(row)
            return True

    # --- Formularies ---

    def get_formularies(self) -> list[Formulary]:
        with self._session_factory() as session:
            rows = session.scalars(select(models.Formulary).order_by(models.Formulary.id))
            return [Formulary(**_columns(row, Formulary)) for row in rows]

    def get_formulary_by_id(self, formulary_id: int) -> Optional[Formulary]:
        with self._session_factory() as session:
            row = session.get(models.Formulary, formulary_id)
            return Formulary(**_columns(row, Formulary)) if row else None

    def create_formulary(self, data: FormularyCreate) -> Formulary:
        with self._session_factory.begin() as session:
            row = models.Formulary(**_dump_formulary(data))
            session.add(row)
            session.flush()
            return Formulary(**_columns(row, Formulary))

    def update_formulary(self, formulary_id: int, data: FormularyUpdate) -> Optional[Formulary]:
        with self._session_factory.begin() as session:
            row = session.get(models.Formulary, formulary_id)
            if row is None:
                return None
            for key, value in _dump_formulary(data).items():
                setattr(row, key, value)
            session.flush()
            return Formulary(**_columns(row, Formulary))

    def delete_formulary(self, formulary_id: int) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(models.Formulary, formulary_id)
            if row is None:
                return False
            self._delete_formulary_contents(session, formulary_id)
            session.delete(row)
            return True

    # --- Medications ---

    def get_medications(self, formulary_id: Optional[int] = None) -> list[Medication]:
        with self._session_factory() as session:
            stmt = select(models.Medication)
            if formulary_id is not None:
                stmt = stmt.where(models.Medication.formulary_id == formulary_id)
            rows = session.scalars(stmt.order_by(models.Medication.id)).all()
            return [self._to_medication(session, row) for row in rows]

    def get_medication_by_id(self, medication_id: int) -> Optional[Medication]:
        with self._session_factory() as session:
            row = session.get(models.Medication, medication_id)
            return self._to_medication(session, row) if row else None

    def get_medication_by_name(self, name: str, formulary_id: Optional[int] = None) -> Optional[Medication]:
        needle = name.strip().lower()
        with self._session_factory() as session:
            stmt = select(models.Medication).where(
                or_(
                    func.lower(models.Medication.name) == needle,
                    func.lower(models.Medication.brand_name) == needle,
                )
            )
            if formulary_id is not None:
                stmt = stmt.where(models.Medication.formulary_id == formulary_id)
            row = session.scalars(stmt.order_by(models.Medication.id)).first()
            return self._to_medication(session, row) if row else None

    def search_medications(self, query: SearchQuery) -> list[Medication]:
        with self._session_factory() as session:
            stmt = select(models.Medication)

            if query.formulary_id is not None:
                stmt = stmt.where(models.Medication.formulary_id == query.formulary_id)

            if query.medication_name:
                term = query.medication_name.strip()
                stmt = stmt.where(
                    or_(
                        models.Medication.name.icontains(term, autoescape=True),
                        models.Medication.brand_name.icontains(term, autoescape=True),
                    )
                )

            if query.requires_pa is not None:
                stmt = stmt.where(models.Medication.requires_pa == query.requires_pa)

            if query.drug_class:
                ids = self._medication_ids_for_class(session, query.drug_class, query.formulary_id)
                if not ids:
                    return []
                stmt = stmt.where(models.Medication.id.in_(ids))

            rows = session.scalars(stmt.order_by(models.Medication.id)).all()
            medications = [self._to_medication(session, row) for row in rows]

        return apply_patient_filters(medications, query)

    def get_drug_classes(self, formulary_id: Optional[int] = None) -> list[str]:
        with self._session_factory() as session:
            stmt = select(models.DrugClass.name).distinct()
            if formulary_id is not None:
                stmt = stmt.where(models.DrugClass.formulary_id == formulary_id)
            return list(session.scalars(stmt.order_by(models.DrugClass.name)))

    def get_medications_by_class(self, class_name: str, formulary_id: Optional[int] = None) -> list[Medication]:
        with self._session_factory() as session:
            ids = self._medication_ids_for_class(session, class_name, formulary_id)
            if not ids:
                return []
            rows = session.scalars(
                select(models.Medication).where(models.Medication.id.in_(ids)).order_by(models.Medication.id)
            ).all()
            return [self._to_medication(session, row) for row in rows]

    def initialize_medications(self, records: list[MedicationRecord], formulary_id: int) -> None:
        with self._session_factory.begin() as session:
            self._delete_formulary_contents(session, formulary_id)

            if not records:
                logger.info("Formulary %s cleared; no medications to insert", formulary_id)
                return

            inserted: list[tuple[MedicationRecord, models.Medication]] = []
            by_name: dict[str, models.Medication] = {}
            for record in records:
                row = models.Medication(formulary_id=formulary_id, **record.model_dump(include=set(_MEDICATION_COLUMNS)))
                session.add(row)
                inserted.append((record, row))
                by_name.setdefault(record.name.lower(), row)
            session.flush()

            class_names = list(dict.fromkeys(r.drug_class for r, _ in inserted if r.drug_class))
            classes = {}
            for class_name in class_names:
                drug_class = models.DrugClass(
                    name=class_name, formulary_id=formulary_id, description=f"{class_name} drug class"
                )
                session.add(drug_class)
                classes[class_name] = drug_class
            session.flush()

            for record, row in inserted:
                if record.drug_class:
                    session.add(models.MedicationDrugClass(
                        medication_id=row.id, drug_class_id=classes[record.drug_class].id
                    ))

            alternative_count = 0
            for record, row in inserted:
                for alt in record.alternatives:
                    target = by_name.get(alt.name.lower())
                    if target is None:
                        target = models.Medication(
                            formulary_id=formulary_id,
                            name=alt.name,
                            brand_name=alt.brand_name,
                            formulary_status=alt.formulary_status,
                            requires_pa=alt.requires_pa,
                            tags=[ALTERNATIVE_TAG],
                        )
                        session.add(target)
                        session.flush()
                        by_name[alt.name.lower()] = target
                    session.add(models.MedicationAlternative(
                        medication_id=row.id, alternative_id=target.id, reason=ALTERNATIVE_REASON
                    ))
                    alternative_count += 1

            logger.info(
                "Formulary %s initialized: %d medications, %d drug classes, %d alternative links",
                formulary_id, len(records), len(class_names), alternative_count,
            )

    def create_medication(self, data: MedicationCreate) -> Medication:
        with self._session_factory.begin() as session:
            row = models.Medication(**data.model_dump())
            session.add(row)
            session.flush()
            if data.drug_class:
                self._link_drug_class(session, row.id, data.drug_class, data.formulary_id)
            return self._to_medication(session, row)

    def update_medication(self, medication_id: int, data: MedicationUpdate) -> Optional[Medication]:
        with self._session_factory.begin() as session:
            row = session.get(models.Medication, medication_id)
            if row is None:
                return None

            changes = data.model_dump(exclude_unset=True)
            class_changed = "drug_class" in changes and changes["drug_class"] != row.drug_class
            for key, value in changes.items():
                setattr(row, key, value)

            if class_changed:
                _bulk_delete(session, delete(models.MedicationDrugClass).where(
                    models.MedicationDrugClass.medication_id == medication_id
                ))
                if row.drug_class:
                    self._link_drug_class(session, medication_id, row.drug_class, row.formulary_id)
            session.flush()
            if class_changed:
                self._drop_empty_drug_classes(session)
            return self._to_medication(session, row)

    def delete_medication(self, medication_id: int) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(models.Medication, medication_id)
            if row is None:
                return False
            _bulk_delete(session, delete(models.MedicationDrugClass).where(
                models.MedicationDrugClass.medication_id == medication_id
            ))
            _bulk_delete(session, delete(models.MedicationAlternative).where(
                or_(
                    models.MedicationAlternative.medication_id == medication_id,
                    models.MedicationAlternative.alternative_id == medication_id,
                )
            ))
            session.delete(row)
            self._drop_empty_drug_classes(session)
            return True

    # --- helpers ---

    def _to_medication(self, session: Session, row: models.Medication) -> Medication:
        medication = Medication(**_columns(row, Medication))
        medication.alternatives = self._alternatives_for(session, row.id)
        return medication

    def _alternatives_for(self, session: Session, medication_id: int) -> list[AlternativeSummary]:
        rows = session.scalars(
            select(models.Medication)
            .join(models.MedicationAlternative, models.MedicationAlternative.alternative_id == models.Medication.id)
            .where(models.MedicationAlternative.medication_id == medication_id)
            .order_by(models.MedicationAlternative.id)
        ).all()
        return [AlternativeSummary(**_columns(row, AlternativeSummary)) for row in rows]

    def _medication_ids_for_class(
        self, session: Session, class_name: str, formulary_id: Optional[int]
    ) -> list[int]:
        stmt = select(models.DrugClass.id).where(models.DrugClass.name == class_name)
        if formulary_id is not None:
            stmt = stmt.where(models.DrugClass.formulary_id == formulary_id)
        class_ids = session.scalars(stmt).all()
        if not class_ids:
            return []
        return list(session.scalars(
            select(models.MedicationDrugClass.medication_id)
            .where(models.MedicationDrugClass.drug_class_id.in_(class_ids))
        ))

    def _link_drug_class(self, session: Session, medication_id: int, class_name: str, formulary_id: int) -> None:
        drug_class = session.scalars(
            select(models.DrugClass).where(
                models.DrugClass.name == class_name,
                models.DrugClass.formulary_id == formulary_id,
            )
        ).first()
        if drug_class is None:
            drug_class = models.DrugClass(name=class_name, formulary_id=formulary_id)
            session.add(drug_class)
            session.flush()
        session.add(models.MedicationDrugClass(medication_id=medication_id, drug_class_id=drug_class.id))

    def _drop_empty_drug_classes(self, session: Session) -> None:
        linked = select(models.MedicationDrugClass.drug_class_id)
        _bulk_delete(session, delete(models.DrugClass).where(models.DrugClass.id.not_in(linked)))

    def _delete_formulary_contents(self, session: Session, formulary_id: int) -> None:
        medication_ids = select(models.Medication.id).where(models.Medication.formulary_id == formulary_id)
        _bulk_delete(session, delete(models.MedicationDrugClass).where(
            models.MedicationDrugClass.medication_id.in_(medication_ids)
        ))
        _bulk_delete(session, delete(models.MedicationAlternative).where(
            or_(
                models.MedicationAlternative.medication_id.in_(medication_ids),
                models.MedicationAlternative.alternative_id.in_(medication_ids),
            )
        ))
        _bulk_delete(session, delete(models.Medication).where(models.Medication.formulary_id == formulary_id))
        _bulk_delete(session, delete(models.DrugClass).where(models.DrugClass.formulary_id == formulary_id))
