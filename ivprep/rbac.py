"""
Role-Based Access Control – authentication, permission encoding and checks.
"""

import json
import logging
from typing import Iterable, List, Optional

from sqlalchemy import text
from werkzeug.security import check_password_hash, generate_password_hash

from ivprep.config import PERMISSIONS, ROLES
from ivprep.errors import AuthError, ValidationError
from ivprep.models import UserIdentity

logger = logging.getLogger(__name__)

# Prefixes of the hash methods werkzeug emits
_HASH_METHODS = ("scrypt", "pbkdf2")


# ── Credentials ──────────────────────────────────────────────────────

def hash_credential(credential: str) -> str:
    return generate_password_hash(str(credential))


def is_hashed_credential(stored: str) -> bool:
    if not stored or "$" not in stored:
        return False
    method = stored.split("$", 1)[0].split(":", 1)[0]
    return method in _HASH_METHODS


def verify_credential(stored: Optional[str], credential: str) -> bool:
    if not stored or not is_hashed_credential(stored):
        return False
    return check_password_hash(stored, str(credential))


# ── Permissions ──────────────────────────────────────────────────────

def validate_permissions(permissions: Optional[Iterable[str]]) -> List[str]:
    """Return a sorted, de-duplicated list; reject unknown names."""
    if permissions is None:
        return []
    if isinstance(permissions, str):
        raise ValidationError("permissions must be a list of permission names")
    names = {str(p) for p in permissions}
    unknown = sorted(names - set(PERMISSIONS))
    if unknown:
        raise ValidationError(f"Unknown permission(s): {', '.join(unknown)}")
    return sorted(names)


def encode_permissions(permissions: Optional[Iterable[str]]) -> str:
    return json.dumps(validate_permissions(permissions))


def decode_permissions(stored: Optional[str]) -> List[str]:
    if not stored:
        return []
    try:
        value = json.loads(stored)
    except (TypeError, ValueError):
        logger.warning("Stored permissions are not valid JSON: %r", stored[:80])
        return []
    if not isinstance(value, list):
        return []
    return [str(p) for p in value]


def validate_role(role: str) -> str:
    role = str(role or "").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"Unsupported role '{role}'. Expected one of: {', '.join(ROLES)}")
    return role


# ── Evaluator ────────────────────────────────────────────────────────

def can_perform(user: Optional[UserIdentity], permission: str) -> bool:
    """
    Decide whether ``user`` may perform the action gated by ``permission``.

    Admins hold every recognised permission regardless of their stored set.
    """
    if user is None:
        return False
    if permission not in PERMISSIONS:
        return False
    if user.role == "admin":
        return True
    return permission in user.permissions


# ── Authentication ───────────────────────────────────────────────────

def login(engine, username: str, credential: str) -> UserIdentity:
    """Look up an active user by username and verify the credential."""
    sql = text("""
        SELECT id, username, password_hash, display_name, role, permissions
        FROM users
        WHERE username = :u AND is_active = 1
    """)
    with engine.connect() as conn:
        row = conn.execute(sql, {"u": username}).mappings().first()

    if not row or not verify_credential(row["password_hash"], credential):
        raise AuthError()

    return UserIdentity(
        id=int(row["id"]),
        username=str(row["username"]),
        display_name=str(row["display_name"] or row["username"]),
        role=str(row["role"]),
        permissions=set(decode_permissions(row["permissions"])),
    )
