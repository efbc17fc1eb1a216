"""
Patient statements – daily worklists, cascade delete and copy-to-date.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import text

from ivprep.records import insert_values, require_fields, set_clause, update_values

logger = logging.getLogger(__name__)

PATIENT_COLUMNS = (
    "hospital_id", "name", "dob", "gender", "weight", "height",
    "department", "notes", "entry_date",
)
MANDATORY_PATIENT_FIELDS = ("hospital_id", "name", "dob", "gender", "entry_date")

# entry_date scopes the row to a worklist; moving a patient is a copy, not an edit
UPDATABLE_PATIENT_COLUMNS = tuple(c for c in PATIENT_COLUMNS if c != "entry_date")

_INSERT_SQL = text("""
    INSERT INTO patients (hospital_id, name, dob, gender, weight, height, department, notes, entry_date)
    VALUES (:hospital_id, :name, :dob, :gender, :weight, :height, :department, :notes, :entry_date)
""")


def create_patient(engine, fields: Mapping[str, Any]) -> int:
    require_fields(fields, MANDATORY_PATIENT_FIELDS, "Patient")
    with engine.begin() as conn:
        result = conn.execute(_INSERT_SQL, insert_values(fields, PATIENT_COLUMNS))
        return int(result.lastrowid)


def get_patient(engine, patient_id: int) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(
            text("SELECT * FROM patients WHERE id = :id"), {"id": patient_id}
        ).mappings().first()
    return dict(row) if row else None


def list_patients(engine, entry_date: str) -> List[Dict[str, Any]]:
    """Patients on one day's worklist."""
    with engine.connect() as conn:
        rows = conn.execute(
            text("SELECT * FROM patients WHERE entry_date = :d ORDER BY id"),
            {"d": entry_date},
        ).mappings().all()
    return [dict(r) for r in rows]


def list_all_patients(engine) -> List[Dict[str, Any]]:
    with engine.connect() as conn:
        rows = conn.execute(
            text("SELECT * FROM patients ORDER BY created_at DESC, id DESC")
        ).mappings().all()
    return [dict(r) for r in rows]


def update_patient(engine, patient_id: int, fields: Mapping[str, Any]) -> bool:
    values = update_values(fields, UPDATABLE_PATIENT_COLUMNS)
    require_fields(values, [f for f in MANDATORY_PATIENT_FIELDS if f in values], "Patient")
    if not values:
        return get_patient(engine, patient_id) is not None
    sql = text(
        f"UPDATE patients SET {set_clause(values)}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"
    )
    with engine.begin() as conn:
        result = conn.execute(sql, {**values, "id": patient_id})
    return result.rowcount > 0


def delete_patient(engine, patient_id: int) -> bool:
    """Delete a patient and every preparation referencing it, atomically."""
    with engine.begin() as conn:
        preps = conn.execute(
            text("DELETE FROM preparations WHERE patient_id = :id"), {"id": patient_id}
        )
        result = conn.execute(text("DELETE FROM patients WHERE id = :id"), {"id": patient_id})
    if result.rowcount:
        logger.info("Deleted patient %s with %d preparation(s)", patient_id, preps.rowcount)
    return result.rowcount > 0


def copy_patients(engine, patient_ids: Iterable[int], target_date: str) -> int:
    """
    Duplicate patients onto another day's worklist.

    Runs in one transaction. Ids that do not exist are skipped. Returns the
    number of rows actually copied.
    """
    require_fields({"target_date": target_date}, ["target_date"], "Copy")
    copied = 0
    with engine.begin() as conn:
        for patient_id in patient_ids:
            row = conn.execute(
                text("SELECT * FROM patients WHERE id = :id"), {"id": patient_id}
            ).mappings().first()
            if not row:
                continue
            values = insert_values(row, PATIENT_COLUMNS)
            values["entry_date"] = target_date
            conn.execute(_INSERT_SQL, values)
            copied += 1
    return copied
