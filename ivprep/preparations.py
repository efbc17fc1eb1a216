"""
Preparation statements – saved worksheets linked to a patient.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import text

from ivprep.config import PREPARATION_STATUSES
from ivprep.errors import ValidationError
from ivprep.models import PreparationPayload
from ivprep.records import require_choice, require_fields, set_clause

logger = logging.getLogger(__name__)

MANDATORY_PREPARATION_FIELDS = ("patient_id", "drug_name", "payload")

PayloadLike = Union[PreparationPayload, Mapping[str, Any]]


def _coerce_payload(payload: PayloadLike) -> PreparationPayload:
    if isinstance(payload, PreparationPayload):
        return payload
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Preparation payload is not valid JSON") from e
    if not isinstance(payload, Mapping):
        raise ValidationError("Preparation payload must be a mapping")
    try:
        return PreparationPayload.from_dict(dict(payload))
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _encode_payload(payload: PayloadLike) -> str:
    return json.dumps(_coerce_payload(payload).to_dict(), default=str)


def decode_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Replace the stored ``data_json`` text with an upgraded payload dict."""
    record = dict(row)
    raw = record.pop("data_json", None)
    try:
        record["payload"] = _coerce_payload(json.loads(raw)).to_dict() if raw else None
    except (TypeError, ValueError) as e:
        logger.warning("Preparation %s has an unreadable payload: %s", record.get("id"), e)
        record["payload"] = None
    return record


def create_preparation(engine, fields: Mapping[str, Any]) -> int:
    require_fields(fields, MANDATORY_PREPARATION_FIELDS, "Preparation")
    status = fields.get("status") or "pending"
    require_choice(status, PREPARATION_STATUSES, "status")
    values = {
        "patient_id": fields["patient_id"],
        "date": fields.get("date") or date.today().isoformat(),
        "drug_id": fields.get("drug_id"),
        "drug_name": fields["drug_name"],
        "data_json": _encode_payload(fields["payload"]),
        "status": status,
    }
    with engine.begin() as conn:
        result = conn.execute(
            text("""
                INSERT INTO preparations (patient_id, date, drug_id, drug_name, data_json, status)
                VALUES (:patient_id, :date, :drug_id, :drug_name, :data_json, :status)
            """),
            values,
        )
        return int(result.lastrowid)


def get_preparation(engine, preparation_id: int) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(
            text("SELECT * FROM preparations WHERE id = :id"), {"id": preparation_id}
        ).mappings().first()
    return decode_row(row) if row else None


def list_preparations(engine, patient_id: int) -> List[Dict[str, Any]]:
    with engine.connect() as conn:
        rows = conn.execute(
            text("SELECT * FROM preparations WHERE patient_id = :p"), {"p": patient_id}
        ).mappings().all()
    return [decode_row(r) for r in rows]


def update_preparation(
    engine,
    preparation_id: int,
    payload: Optional[PayloadLike] = None,
    status: Optional[str] = None,
) -> bool:
    values: Dict[str, Any] = {}
    if payload is not None:
        values["data_json"] = _encode_payload(payload)
    if status is not None:
        require_choice(status, PREPARATION_STATUSES, "status")
        values["status"] = status
    if not values:
        return get_preparation(engine, preparation_id) is not None

    with engine.begin() as conn:
        result = conn.execute(
            text(f"UPDATE preparations SET {set_clause(values)} WHERE id = :id"),
            {**values, "id": preparation_id},
        )
    return result.rowcount > 0
