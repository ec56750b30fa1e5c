from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from formulary_pa.db import Base


class User(Base):
    """Login credentials. Not wired to any session logic."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(Text, unique=True, nullable=False)
    password = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<User(username={self.username})>"


class InsuranceProvider(Base):
    __tablename__ = "insurance_providers"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    fax_number = Column(Text, nullable=True)
    portal_url = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    formularies = relationship("Formulary", back_populates="provider")

    def __repr__(self):
        return f"<InsuranceProvider(name={self.name})>"


class Formulary(Base):
    """
    One payer drug list, scoped by year / state / plan type
    (medicaid, medicare, commercial, ...).
    """

    __tablename__ = "formularies"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("insurance_providers.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    year = Column(Integer, nullable=False)
    state = Column(String(2), nullable=True)
    type = Column(Text, nullable=False)
    effective_date = Column(DateTime, nullable=True)
    expiration_date = Column(DateTime, nullable=True)
    # faxNumber / phone / website / portalUrl / instructions[] / checklist[]
    pa_submission_info = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    provider = relationship("InsuranceProvider", back_populates="formularies")

    def __repr__(self):
        return f"<Formulary(name={self.name}, year={self.year}, state={self.state})>"


class DrugClass(Base):
    __tablename__ = "drug_classes"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    formulary_id = Column(Integer, ForeignKey("formularies.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<DrugClass(name={self.name}, formulary_id={self.formulary_id})>"


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True)
    formulary_id = Column(Integer, ForeignKey("formularies.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    brand_name = Column(Text, nullable=True)
    drug_class = Column(Text, nullable=True)
    formulary_status = Column(Text, nullable=False)
    requires_pa = Column(Boolean, nullable=False, default=False)
    dosage_forms = Column(JSON, nullable=True)
    quantity_limits = Column(Text, nullable=True)
    age_restrictions = Column(Text, nullable=True)
    gender_restrictions = Column(Text, nullable=True)
    pa_type = Column(Text, nullable=True)
    pa_criteria = Column(JSON, nullable=True)
    authorization_duration = Column(Text, nullable=True)
    page = Column(Integer, nullable=True)
    required_documentation = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Medication(name={self.name}, formulary_id={self.formulary_id})>"


class MedicationDrugClass(Base):
    __tablename__ = "medication_drug_classes"

    medication_id = Column(Integer, ForeignKey("medications.id"), primary_key=True)
    drug_class_id = Column(Integer, ForeignKey("drug_classes.id"), primary_key=True)


class MedicationAlternative(Base):
    """Directed: medication_id -> alternative_id."""

    __tablename__ = "medication_alternatives"

    id = Column(Integer, primary_key=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False, index=True)
    alternative_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
