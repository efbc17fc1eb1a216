"""
Append-only audit trail.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from ivprep.config import AUDIT_LOG_LIMIT
from ivprep.records import require_fields

logger = logging.getLogger(__name__)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _bound(value: str, end_of_day: bool) -> str:
    # Stored timestamps use SQLite's "YYYY-MM-DD HH:MM:SS"
    value = str(value).strip().replace("T", " ")
    if end_of_day and _DATE_ONLY.match(value):
        return value + " 23:59:59"
    return value


def record(
    engine,
    actor_id: Optional[int],
    actor_name: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Any = None,
) -> int:
    """Append one audit entry and return its id."""
    require_fields({"action": action, "entity_type": entity_type}, ["action", "entity_type"], "Audit entry")
    with engine.begin() as conn:
        result = conn.execute(
            text("""
                INSERT INTO audit_logs (user_id, username, action, entity_type, entity_id, details)
                VALUES (:user_id, :username, :action, :entity_type, :entity_id, :details)
            """),
            {
                "user_id": actor_id,
                "username": actor_name,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": json.dumps(details, default=str),
            },
        )
        return int(result.lastrowid)


def query(
    engine,
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: int = AUDIT_LOG_LIMIT,
) -> List[Dict[str, Any]]:
    """Filtered entries, newest first, never more than AUDIT_LOG_LIMIT."""
    clauses = []
    params: Dict[str, Any] = {"limit": max(0, min(int(limit), AUDIT_LOG_LIMIT))}

    if user_id:
        clauses.append("user_id = :user_id")
        params["user_id"] = user_id
    if action:
        clauses.append("action = :action")
        params["action"] = action
    if entity_type:
        clauses.append("entity_type = :entity_type")
        params["entity_type"] = entity_type
    if start_date:
        clauses.append("timestamp >= :start_date")
        params["start_date"] = _bound(start_date, end_of_day=False)
    if end_date:
        clauses.append("timestamp <= :end_date")
        params["end_date"] = _bound(end_date, end_of_day=True)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    sql = text(f"SELECT * FROM audit_logs {where} ORDER BY timestamp DESC, id DESC LIMIT :limit")
    with engine.connect() as conn:
        rows = conn.execute(sql, params).mappings().all()

    entries = []
    for row in rows:
        entry = dict(row)
        try:
            entry["details"] = json.loads(entry["details"]) if entry["details"] else None
        except ValueError:
            logger.warning("Audit entry %s has non-JSON details", entry["id"])
        entries.append(entry)
    return entries
