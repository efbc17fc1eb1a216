"""
Drug catalog statements – preparation protocols for IV drugs.
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text

from ivprep.config import DRUG_CONTAINERS, DRUG_FORMS
from ivprep.records import (
    insert_values,
    require_choice,
    require_fields,
    set_clause,
    update_values,
)

DRUG_COLUMNS = (
    # Naming and presentation
    "trade_name", "generic_name", "localized_name", "form", "container",
    "amount_mg", "amount_volume_ml", "concentration_mg_ml",
    # Reconstitution
    "reconstitution_volume_ml", "reconstitution_concentration_mg_ml",
    "reconstitution_diluent_ns", "reconstitution_diluent_d5w", "reconstitution_diluent_swi",
    "reconstitution_stability_room_hours", "reconstitution_stability_refrigeration_days",
    # Initial dilution of concentrated solutions
    "initial_dilution_volume_ml", "initial_dilution_concentration_mg_ml",
    # Further dilution (standard and fluid-restricted)
    "fd_each_ml_up_to", "fd_concentration_mg_ml",
    "fdfr_each_ml_up_to", "fdfr_concentration_mg_ml",
    "fd_diluent_ns", "fd_diluent_d5w",
    "fd_stability_room_hours", "fd_stability_refrigeration_days",
    # Administration, alerts, dosing limits
    "infusion_time_min", "is_photosensitive", "is_biohazard",
    "min_dose_mg_kg_dose", "max_dose_mg_kg_dose", "max_dose_mg_dose", "max_dose_mg_day",
    "obese_patient_dosage_adjustment", "instructions_text", "target_volume_ml",
)

FLAG_COLUMNS = (
    "reconstitution_diluent_ns", "reconstitution_diluent_d5w", "reconstitution_diluent_swi",
    "fd_diluent_ns", "fd_diluent_d5w", "is_photosensitive", "is_biohazard",
)

MANDATORY_DRUG_FIELDS = ("trade_name", "generic_name", "form", "container")

SEARCH_COLUMNS = ("trade_name", "generic_name", "localized_name")

_INSERT_SQL = text(
    f"INSERT INTO drugs ({', '.join(DRUG_COLUMNS)}) "
    f"VALUES ({', '.join(':' + c for c in DRUG_COLUMNS)})"
)


def _normalise(values: Dict[str, Any]) -> Dict[str, Any]:
    if "form" in values:
        require_choice(values["form"], DRUG_FORMS, "form")
    if "container" in values:
        require_choice(values["container"], DRUG_CONTAINERS, "container")
    for flag in FLAG_COLUMNS:
        if flag in values:
            values[flag] = 1 if values[flag] else 0
    return values


def insert_drug(conn, fields: Mapping[str, Any]) -> int:
    """Insert on an open connection; used directly by catalog seeding."""
    require_fields(fields, MANDATORY_DRUG_FIELDS, "Drug")
    values = _normalise(insert_values(fields, DRUG_COLUMNS))
    result = conn.execute(_INSERT_SQL, values)
    return int(result.lastrowid)


def create_drug(engine, fields: Mapping[str, Any]) -> int:
    with engine.begin() as conn:
        return insert_drug(conn, fields)


def get_drug(engine, drug_id: int) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(
            text("SELECT * FROM drugs WHERE id = :id"), {"id": drug_id}
        ).mappings().first()
    return dict(row) if row else None


def _like_pattern(search: str) -> str:
    escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_drugs(engine, search: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    All drugs ordered by trade name, optionally filtered by a case-insensitive
    substring matched against trade, generic and localized names.
    """
    params: Dict[str, Any] = {}
    where = ""
    if search and search.strip():
        where = "WHERE " + " OR ".join(
            f"LOWER(COALESCE({c}, '')) LIKE :q ESCAPE '\\'" for c in SEARCH_COLUMNS
        )
        params["q"] = _like_pattern(search.strip())
    sql = text(f"SELECT * FROM drugs {where} ORDER BY trade_name COLLATE NOCASE, id")
    with engine.connect() as conn:
        rows = conn.execute(sql, params).mappings().all()
    return [dict(r) for r in rows]


def update_drug(engine, drug_id: int, fields: Mapping[str, Any]) -> bool:
    values = _normalise(update_values(fields, DRUG_COLUMNS))
    require_fields(values, [f for f in MANDATORY_DRUG_FIELDS if f in values], "Drug")
    if not values:
        return get_drug(engine, drug_id) is not None
    sql = text(
        f"UPDATE drugs SET {set_clause(values)}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"
    )
    with engine.begin() as conn:
        result = conn.execute(sql, {**values, "id": drug_id})
    return result.rowcount > 0


def delete_drug(engine, drug_id: int) -> bool:
    # Preparations keep their drug_name snapshot, so history stays readable
    with engine.begin() as conn:
        result = conn.execute(text("DELETE FROM drugs WHERE id = :id"), {"id": drug_id})
    return result.rowcount > 0
