"""
Tests for patient worklists, partial updates, cascade delete and copy-to-date.
"""

import pytest
from conftest import drug_fields, patient_fields
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ivprep import drugs, patients, preparations
from ivprep.errors import ValidationError
from ivprep.models import PreparationPayload


# ── Create / read ────────────────────────────────────────────────────

def test_create_and_get_patient(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    row = patients.get_patient(engine, patient_id)
    assert row["name"] == "Layla Hassan"
    assert row["weight"] == 20.0
    assert row["entry_date"] == "2026-10-16"


def test_create_patient_names_every_missing_field(engine):
    with pytest.raises(ValidationError) as e:
        patients.create_patient(engine, patient_fields(name="  ", dob=None))
    assert "name" in str(e.value)
    assert "dob" in str(e.value)


def test_get_missing_patient_is_none(engine):
    assert patients.get_patient(engine, 404) is None


def test_list_patients_is_scoped_to_one_day(engine):
    first = patients.create_patient(engine, patient_fields(hospital_id="A"))
    patients.create_patient(engine, patient_fields(hospital_id="B", entry_date="2026-10-17"))
    second = patients.create_patient(engine, patient_fields(hospital_id="C"))

    rows = patients.list_patients(engine, "2026-10-16")
    assert [r["id"] for r in rows] == [first, second]
    assert patients.list_patients(engine, "2026-01-01") == []


def test_list_all_patients_newest_first(engine):
    ids = [patients.create_patient(engine, patient_fields(hospital_id=str(i))) for i in range(3)]
    assert [r["id"] for r in patients.list_all_patients(engine)] == list(reversed(ids))


# ── Update ───────────────────────────────────────────────────────────

def test_update_patient_is_partial(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    assert patients.update_patient(engine, patient_id, {"weight": 21.5, "notes": "weighed again"})
    row = patients.get_patient(engine, patient_id)
    assert row["weight"] == 21.5
    assert row["notes"] == "weighed again"
    assert row["name"] == "Layla Hassan"


def test_update_patient_ignores_entry_date_and_unknown_keys(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    patients.update_patient(engine, patient_id, {"entry_date": "2030-01-01", "bogus": 1})
    assert patients.get_patient(engine, patient_id)["entry_date"] == "2026-10-16"


def test_update_patient_cannot_blank_mandatory_field(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    with pytest.raises(ValidationError, match="hospital_id"):
        patients.update_patient(engine, patient_id, {"hospital_id": ""})


def test_update_missing_patient_returns_false(engine):
    assert patients.update_patient(engine, 404, {"notes": "x"}) is False
    assert patients.update_patient(engine, 404, {}) is False


# ── Delete ───────────────────────────────────────────────────────────

def _add_preparations(engine, *patient_ids):
    drug_id = drugs.create_drug(engine, drug_fields())
    payload = PreparationPayload(drug={"id": drug_id}, dose=10, dose_unit="mg/kg/dose")
    return [
        preparations.create_preparation(engine, {
            "patient_id": pid, "drug_id": drug_id, "drug_name": "Testacillin", "payload": payload,
        })
        for pid in patient_ids
    ]


def test_delete_patient_cascades_to_preparations(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    other_id = patients.create_patient(engine, patient_fields(hospital_id="H-2"))
    *deleted_ids, kept_id = _add_preparations(engine, patient_id, patient_id, other_id)

    assert patients.delete_patient(engine, patient_id) is True
    assert patients.get_patient(engine, patient_id) is None
    assert preparations.list_preparations(engine, patient_id) == []
    for prep_id in deleted_ids:
        assert preparations.get_preparation(engine, prep_id) is None
    assert preparations.get_preparation(engine, kept_id) is not None


def test_failed_patient_delete_keeps_its_preparations(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    prep_ids = _add_preparations(engine, patient_id, patient_id)
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TRIGGER keep_patients BEFORE DELETE ON patients "
            "BEGIN SELECT RAISE(ABORT, 'patients are locked'); END"
        ))

    with pytest.raises(SQLAlchemyError):
        patients.delete_patient(engine, patient_id)
    assert patients.get_patient(engine, patient_id) is not None
    for prep_id in prep_ids:
        assert preparations.get_preparation(engine, prep_id) is not None


def test_delete_missing_patient_returns_false(engine):
    assert patients.delete_patient(engine, 404) is False


# ── Copy to date ─────────────────────────────────────────────────────

def test_copy_patients_skips_missing_ids(engine):
    source_id = patients.create_patient(engine, patient_fields(notes="on vancomycin"))
    copied = patients.copy_patients(engine, [source_id, 9999], "2026-10-17")
    assert copied == 1

    (copy,) = patients.list_patients(engine, "2026-10-17")
    source = patients.get_patient(engine, source_id)
    assert copy["id"] != source_id
    for column in ("hospital_id", "name", "dob", "gender", "weight", "height", "department", "notes"):
        assert copy[column] == source[column]
    # Source row is untouched
    assert source["entry_date"] == "2026-10-16"


def test_failed_copy_leaves_no_partial_copies(engine):
    ids = [patients.create_patient(engine, patient_fields(hospital_id=f"H-{n}")) for n in range(3)]
    # The second row inserted onto the target day fails
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TRIGGER one_copy_only BEFORE INSERT ON patients "
            "WHEN (SELECT COUNT(*) FROM patients WHERE entry_date = '2026-10-20') >= 1 "
            "BEGIN SELECT RAISE(ABORT, 'copy interrupted'); END"
        ))

    with pytest.raises(SQLAlchemyError):
        patients.copy_patients(engine, ids, "2026-10-20")
    assert patients.list_patients(engine, "2026-10-20") == []


def test_copy_patients_empty_selection(engine):
    assert patients.copy_patients(engine, [], "2026-10-17") == 0


def test_copy_patients_requires_target_date(engine):
    patient_id = patients.create_patient(engine, patient_fields())
    with pytest.raises(ValidationError):
        patients.copy_patients(engine, [patient_id], "")
