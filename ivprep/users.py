"""
User account statements. Accounts are never removed, only deactivated.
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text

from ivprep.config import BOOTSTRAP_ADMIN_USERNAME, PERMISSIONS
from ivprep.errors import ValidationError
from ivprep.rbac import decode_permissions, encode_permissions, hash_credential, validate_role
from ivprep.records import is_blank, require_fields, set_clause

MANDATORY_USER_FIELDS = ("username", "password")

# The credential column is never selected for listing
_PUBLIC_COLUMNS = "id, username, display_name, role, permissions, is_active, created_at, updated_at"


def _public(row: Mapping[str, Any]) -> Dict[str, Any]:
    record = dict(row)
    record["permissions"] = decode_permissions(record.get("permissions"))
    record["is_active"] = bool(record.get("is_active"))
    return record


def create_user(engine, fields: Mapping[str, Any]) -> int:
    require_fields(fields, MANDATORY_USER_FIELDS, "User")
    role = validate_role(fields.get("role") or "pharmacist")
    values = {
        "username": str(fields["username"]).strip(),
        "password_hash": hash_credential(fields["password"]),
        "display_name": fields.get("display_name") or str(fields["username"]).strip(),
        "role": role,
        "permissions": encode_permissions(fields.get("permissions")),
    }
    if get_user_by_username(engine, values["username"]) is not None:
        raise ValidationError(f"Username '{values['username']}' is already taken")
    with engine.begin() as conn:
        result = conn.execute(
            text("""
                INSERT INTO users (username, password_hash, display_name, role, permissions, is_active)
                VALUES (:username, :password_hash, :display_name, :role, :permissions, 1)
            """),
            values,
        )
        return int(result.lastrowid)


def get_user(engine, user_id: int) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(
            text(f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE id = :id"), {"id": user_id}
        ).mappings().first()
    return _public(row) if row else None


def get_user_by_username(engine, username: str) -> Optional[Dict[str, Any]]:
    with engine.connect() as conn:
        row = conn.execute(
            text(f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE username = :u"), {"u": username}
        ).mappings().first()
    return _public(row) if row else None


def list_users(engine) -> List[Dict[str, Any]]:
    with engine.connect() as conn:
        rows = conn.execute(
            text(f"SELECT {_PUBLIC_COLUMNS} FROM users ORDER BY created_at DESC, id DESC")
        ).mappings().all()
    return [_public(r) for r in rows]


def _is_bootstrap_admin(user: Mapping[str, Any]) -> bool:
    return user.get("username") == BOOTSTRAP_ADMIN_USERNAME


def update_user(engine, user_id: int, fields: Mapping[str, Any]) -> bool:
    """
    Update profile, role, permissions and active flag.

    The credential changes only when a non-blank ``password`` is supplied.
    The bootstrap admin stays an active admin with every permission.
    """
    current = get_user(engine, user_id)
    if current is None:
        return False

    values: Dict[str, Any] = {}
    if "display_name" in fields:
        values["display_name"] = fields["display_name"]
    if "role" in fields:
        values["role"] = validate_role(fields["role"])
    if "permissions" in fields:
        values["permissions"] = encode_permissions(fields["permissions"])
    if "is_active" in fields:
        values["is_active"] = 1 if fields["is_active"] else 0
    if not is_blank(fields.get("password")):
        values["password_hash"] = hash_credential(fields["password"])

    if _is_bootstrap_admin(current):
        if values.get("role", "admin") != "admin" or values.get("is_active", 1) != 1:
            raise ValidationError("The bootstrap admin account cannot be demoted or deactivated")
        if "permissions" in values:
            values["permissions"] = encode_permissions(PERMISSIONS)

    if not values:
        return True
    with engine.begin() as conn:
        result = conn.execute(
            text(f"UPDATE users SET {set_clause(values)}, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {**values, "id": user_id},
        )
    return result.rowcount > 0


def deactivate_user(engine, user_id: int) -> bool:
    """Soft delete. The bootstrap admin cannot be deactivated."""
    current = get_user(engine, user_id)
    if current is None:
        return False
    if _is_bootstrap_admin(current):
        raise ValidationError("The bootstrap admin account cannot be deactivated")
    with engine.begin() as conn:
        result = conn.execute(
            text("UPDATE users SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": user_id},
        )
    return result.rowcount > 0
