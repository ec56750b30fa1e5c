"""
Storage behaviour. Every test runs against MemoryStorage and against
DatabaseStorage on in-memory SQLite.
"""

from formulary_pa.init_db import init_db
from formulary_pa.schemas import (
    FormularyUpdate,
    InsuranceProviderUpdate,
    MedicationCreate,
    MedicationRecord,
    MedicationUpdate,
    SearchQuery,
    UserCreate,
)
from formulary_pa.seed import StaticSeedProvider


def _names(medications):
    return sorted(m.name for m in medications)


# --- seeding ---

def test_seed_creates_provider_formulary_and_medications(seeded_storage):
    providers = seeded_storage.get_insurance_providers()
    formularies = seeded_storage.get_formularies()
    assert [p.name for p in providers] == ["Molina Healthcare"]
    assert len(formularies) == 1
    assert formularies[0].provider_id == providers[0].id

    # 3 seed records + 3 materialized alternatives
    meds = seeded_storage.get_medications(formularies[0].id)
    assert _names(meds) == [
        "atorvastatin", "metformin", "pioglitazone", "pravastatin", "rosiglitazone", "simvastatin",
    ]


def test_init_db_is_idempotent(seeded_storage):
    assert init_db(seeded_storage) is False
    assert len(seeded_storage.get_insurance_providers()) == 1
    assert len(seeded_storage.get_medications()) == 6


def test_alternatives_are_resolved(seeded_storage):
    atorvastatin = seeded_storage.get_medication_by_name("atorvastatin")
    alts = atorvastatin.alternatives
    assert [a.name for a in alts] == ["simvastatin", "pravastatin"]
    assert alts[0].brand_name == "ZOCOR"
    assert alts[0].requires_pa is False

    simvastatin = seeded_storage.get_medication_by_name("simvastatin")
    assert simvastatin.tags == ["Alternative"]
    assert simvastatin.alternatives == []


def test_submission_info(seeded_storage):
    formulary = seeded_storage.get_formularies()[0]
    info = seeded_storage.get_formulary_submission_info(formulary.id)
    assert info.fax_number == "800-869-7791"
    assert "Current medication list" in info.checklist
    assert seeded_storage.get_formulary_submission_info(999) is None


# --- lookups ---

def test_get_medication_by_id_missing(seeded_storage):
    assert seeded_storage.get_medication_by_id(9999) is None


def test_get_medication_by_name_matches_brand_case_insensitively(seeded_storage):
    med = seeded_storage.get_medication_by_name("lipitor")
    assert med is not None
    assert med.name == "atorvastatin"
    assert seeded_storage.get_medication_by_name("nope") is None


def test_drug_classes_sorted_and_distinct(seeded_storage):
    formulary_id = seeded_storage.get_formularies()[0].id
    assert seeded_storage.get_drug_classes(formulary_id) == ["Antidiabetics", "Cardiovascular Agents"]
    assert seeded_storage.get_drug_classes(999) == []


def test_medications_by_class(seeded_storage):
    assert _names(seeded_storage.get_medications_by_class("Antidiabetics")) == ["metformin", "rosiglitazone"]
    assert seeded_storage.get_medications_by_class("Unknown Class") == []


# --- search ---

def test_search_name_is_case_insensitive_substring(seeded_storage):
    formulary_id = seeded_storage.get_formularies()[0].id
    results = seeded_storage.search_medications(
        SearchQuery(formulary_id=formulary_id, medication_name="LIPI")
    )
    assert _names(results) == ["atorvastatin"]

    results = seeded_storage.search_medications(SearchQuery(medication_name="statin"))
    assert _names(results) == ["atorvastatin", "pravastatin", "simvastatin"]


def test_search_unknown_drug_class_is_empty(seeded_storage):
    assert seeded_storage.search_medications(SearchQuery(drug_class="Nonexistent")) == []


def test_search_requires_pa_filter(seeded_storage):
    results = seeded_storage.search_medications(SearchQuery(requires_pa=True))
    assert _names(results) == ["atorvastatin", "rosiglitazone"]
    assert all(m.requires_pa for m in results)


def test_search_combines_filters(seeded_storage):
    results = seeded_storage.search_medications(
        SearchQuery(drug_class="Antidiabetics", requires_pa=False)
    )
    assert _names(results) == ["metformin"]


def test_search_patient_age_uses_age_restrictions(seeded_storage):
    # atorvastatin is "10 years and older"
    young = seeded_storage.search_medications(SearchQuery(medication_name="atorvastatin", patient_age=8))
    adult = seeded_storage.search_medications(SearchQuery(medication_name="atorvastatin", patient_age=40))
    assert young == []
    assert _names(adult) == ["atorvastatin"]


def test_search_dosage_form_and_ignored_fields(seeded_storage):
    results = seeded_storage.search_medications(
        SearchQuery(drug_class="Antidiabetics", dosage_form="er tablet", dosage="500mg", quantity=60)
    )
    assert _names(results) == ["metformin"]


def test_search_other_formulary_is_empty(seeded_storage):
    assert seeded_storage.search_medications(SearchQuery(formulary_id=999)) == []


# --- medication writes ---

def test_create_then_lookup_by_class(seeded_storage):
    formulary_id = seeded_storage.get_formularies()[0].id
    created = seeded_storage.create_medication(MedicationCreate(
        formulary_id=formulary_id,
        name="lisinopril",
        brand_name="ZESTRIL",
        drug_class="Antihypertensives",
        formulary_status="preferred",
        requires_pa=False,
    ))

    assert created.id is not None
    assert seeded_storage.get_medication_by_id(created.id).name == "lisinopril"
    assert [m.id for m in seeded_storage.get_medications_by_class("Antihypertensives")] == [created.id]
    assert "Antihypertensives" in seeded_storage.get_drug_classes(formulary_id)


def test_update_medication_moves_drug_class(seeded_storage):
    metformin = seeded_storage.get_medication_by_name("metformin")
    updated = seeded_storage.update_medication(
        metformin.id, MedicationUpdate(drug_class="Biguanides", requires_pa=True)
    )

    assert updated.drug_class == "Biguanides"
    assert updated.requires_pa is True
    assert updated.brand_name == "GLUCOPHAGE"
    assert _names(seeded_storage.get_medications_by_class("Antidiabetics")) == ["rosiglitazone"]
    assert _names(seeded_storage.get_medications_by_class("Biguanides")) == ["metformin"]


def test_update_missing_medication_returns_none(storage):
    assert storage.update_medication(42, MedicationUpdate(name="x")) is None


def test_delete_medication_removes_links(seeded_storage):
    simvastatin = seeded_storage.get_medication_by_name("simvastatin")
    assert seeded_storage.delete_medication(simvastatin.id) is True
    assert seeded_storage.delete_medication(simvastatin.id) is False

    atorvastatin = seeded_storage.get_medication_by_name("atorvastatin")
    assert [a.name for a in atorvastatin.alternatives] == ["pravastatin"]

    assert seeded_storage.delete_medication(atorvastatin.id) is True
    assert seeded_storage.get_medications_by_class("Cardiovascular Agents") == []


def test_initialize_medications_replaces_existing(seeded_storage):
    formulary_id = seeded_storage.get_formularies()[0].id
    seeded_storage.initialize_medications([
        MedicationRecord(name="insulin glargine", drug_class="Insulins",
                         formulary_status="preferred", requires_pa=False),
    ], formulary_id)

    assert _names(seeded_storage.get_medications(formulary_id)) == ["insulin glargine"]
    assert seeded_storage.get_drug_classes(formulary_id) == ["Insulins"]

    seeded_storage.initialize_medications(StaticSeedProvider().load(), formulary_id)
    assert len(seeded_storage.get_medications(formulary_id)) == 6
    assert seeded_storage.get_drug_classes(formulary_id) == ["Antidiabetics", "Cardiovascular Agents"]


# --- users, providers, formularies ---

def test_users(storage):
    user = storage.create_user(UserCreate(username="pharmacist", password="hashed"))
    assert storage.get_user(user.id).username == "pharmacist"
    assert storage.get_user_by_username("pharmacist").id == user.id
    assert storage.get_user_by_username("nobody") is None
    assert storage.get_user(999) is None


def test_provider_and_formulary_updates(seeded_storage):
    provider = seeded_storage.get_insurance_providers()[0]
    formulary = seeded_storage.get_formularies()[0]

    updated = seeded_storage.update_insurance_provider(provider.id, InsuranceProviderUpdate(phone="555-0100"))
    assert updated.phone == "555-0100"
    assert updated.name == "Molina Healthcare"

    renamed = seeded_storage.update_formulary(formulary.id, FormularyUpdate(year=2026))
    assert renamed.year == 2026
    assert renamed.pa_submission_info.fax_number == "800-869-7791"

    assert seeded_storage.update_formulary(999, FormularyUpdate(year=2026)) is None


def test_delete_provider_cascades(seeded_storage):
    provider = seeded_storage.get_insurance_providers()[0]
    assert seeded_storage.delete_insurance_provider(provider.id) is True
    assert seeded_storage.get_formularies() == []
    assert seeded_storage.get_medications() == []
    assert seeded_storage.delete_insurance_provider(provider.id) is False


def test_empty_drug_classes_are_removed(seeded_storage):
    formulary_id = seeded_storage.get_formularies()[0].id
    for name in ("metformin", "rosiglitazone"):
        med = seeded_storage.get_medication_by_name(name)
        seeded_storage.update_medication(med.id, MedicationUpdate(drug_class="Thiazolidinediones"))

    assert seeded_storage.get_drug_classes(formulary_id) == ["Cardiovascular Agents", "Thiazolidinediones"]

    atorvastatin = seeded_storage.get_medication_by_name("atorvastatin")
    seeded_storage.delete_medication(atorvastatin.id)
    assert seeded_storage.get_drug_classes(formulary_id) == ["Thiazolidinediones"]
