"""
Command surface – the named operations presentation code invokes.

Every command goes through ``CommandSurface.invoke``, which authenticates the
caller, checks the command's permission, runs the statements and records an
audit entry for mutations.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ivprep import audit, drugs, patients, preparations, rbac, users
from ivprep.database import Store
from ivprep.errors import (
    AuthError,
    IVPrepError,
    NotFound,
    PermissionDenied,
    StorageError,
    ValidationError,
)
from ivprep.models import UserIdentity
from ivprep.worksheet import build_worksheet, summarise

logger = logging.getLogger(__name__)

PUBLIC_COMMANDS = {"auth.login"}


# ── Payload helpers ──────────────────────────────────────────────────

def _require(payload: Mapping[str, Any], *keys: str) -> Tuple[Any, ...]:
    missing = [k for k in keys if payload.get(k) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required input(s): {', '.join(missing)}")
    return tuple(payload[k] for k in keys)


def _as_id(value: Any, name: str = "id") -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer (got {value!r})") from None


def _fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k != "id"}


SUCCESS = {"success": True}


class CommandSurface:
    """Dispatches named commands against an open ``Store``."""

    def __init__(self, store: Store):
        self.store = store
        self._handlers: Dict[str, Tuple[Callable, Optional[str]]] = {
            "auth.login": (self._auth_login, None),

            "patient.create": (self._patient_create, "manage_patients"),
            "patient.get": (self._patient_get, None),
            "patient.list": (self._patient_list, None),
            "patient.listAll": (self._patient_list_all, None),
            "patient.update": (self._patient_update, "manage_patients"),
            "patient.delete": (self._patient_delete, "manage_patients"),
            "patient.copyToDate": (self._patient_copy_to_date, "manage_patients"),

            "preparation.create": (self._preparation_create, "manage_preparations"),
            "preparation.get": (self._preparation_get, None),
            "preparation.list": (self._preparation_list, None),
            "preparation.update": (self._preparation_update, "manage_preparations"),
            "worksheet.calculate": (self._worksheet_calculate, None),

            "drug.list": (self._drug_list, None),
            "drug.get": (self._drug_get, None),
            "drug.create": (self._drug_create, "manage_drugs"),
            "drug.update": (self._drug_update, "manage_drugs"),
            "drug.delete": (self._drug_delete, "manage_drugs"),

            "user.list": (self._user_list, "manage_users"),
            "user.create": (self._user_create, "manage_users"),
            "user.update": (self._user_update, "manage_users"),
            "user.delete": (self._user_delete, "manage_users"),

            "audit.log": (self._audit_log, None),
            "audit.list": (self._audit_list, "view_audit_logs"),
        }

    @property
    def engine(self):
        return self.store.engine

    @property
    def command_names(self) -> List[str]:
        return sorted(self._handlers)

    # ── Dispatch ─────────────────────────────────────────────────────

    def invoke(self, name: str, identity: Optional[UserIdentity], payload: Optional[Mapping[str, Any]] = None):
        """Run command ``name`` on behalf of ``identity``."""
        if name not in self._handlers:
            raise ValidationError(f"Unknown command '{name}'")
        handler, permission = self._handlers[name]
        payload = dict(payload or {})

        try:
            if name not in PUBLIC_COMMANDS:
                identity = self._current_identity(identity)
                if permission and not rbac.can_perform(identity, permission):
                    raise PermissionDenied(f"Permission '{permission}' is required for {name}")
            return handler(identity, payload)
        except SQLAlchemyError as e:
            logger.exception("Storage failure while running %s", name)
            raise StorageError(f"Storage failure while running {name}") from e

    def login(self, username: str, password: str) -> UserIdentity:
        try:
            identity = rbac.login(self.engine, username, password)
        except AuthError:
            self._audit(None, "login_failed", "user", None, {"username": username}, actor_name=username)
            raise
        self._audit(identity, "login", "user", identity.id)
        return identity

    def _current_identity(self, identity: Optional[UserIdentity]) -> UserIdentity:
        """Reload the caller so deactivation and permission edits apply at once."""
        if identity is None:
            raise AuthError("Authentication required")
        row = users.get_user(self.engine, identity.id)
        if not row or not row["is_active"]:
            raise AuthError("Authentication required")
        return UserIdentity(
            id=row["id"],
            username=row["username"],
            display_name=row["display_name"] or row["username"],
            role=row["role"],
            permissions=set(row["permissions"]),
        )

    def _audit(
        self,
        identity: Optional[UserIdentity],
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        details: Any = None,
        actor_name: Optional[str] = None,
    ) -> None:
        """Record an audit entry; a failure is logged and never undoes the action."""
        try:
            audit.record(
                self.engine,
                identity.id if identity else None,
                identity.username if identity else actor_name,
                action, entity_type, entity_id, details,
            )
        except (SQLAlchemyError, IVPrepError):
            logger.exception("Failed to write audit entry %s/%s/%s", action, entity_type, entity_id)

    # ── Auth ─────────────────────────────────────────────────────────

    def _auth_login(self, _identity, payload):
        username, password = _require(payload, "username", "password")
        return self.login(username, password).to_dict()

    # ── Patients ─────────────────────────────────────────────────────

    def _patient_create(self, identity, payload):
        patient_id = patients.create_patient(self.engine, payload)
        self._audit(identity, "create", "patient", patient_id, {"hospital_id": payload.get("hospital_id")})
        return patients.get_patient(self.engine, patient_id)

    def _patient_get(self, _identity, payload):
        (patient_id,) = _require(payload, "id")
        return patients.get_patient(self.engine, _as_id(patient_id))

    def _patient_list(self, _identity, payload):
        (entry_date,) = _require(payload, "date")
        return patients.list_patients(self.engine, entry_date)

    def _patient_list_all(self, _identity, _payload):
        return patients.list_all_patients(self.engine)

    def _patient_update(self, identity, payload):
        patient_id = _as_id(_require(payload, "id")[0])
        if not patients.update_patient(self.engine, patient_id, _fields(payload)):
            raise NotFound(f"Patient {patient_id} not found")
        self._audit(identity, "update", "patient", patient_id, _fields(payload))
        return SUCCESS

    def _patient_delete(self, identity, payload):
        patient_id = _as_id(_require(payload, "id")[0])
        if not patients.delete_patient(self.engine, patient_id):
            raise NotFound(f"Patient {patient_id} not found")
        self._audit(identity, "delete", "patient", patient_id)
        return SUCCESS

    def _patient_copy_to_date(self, identity, payload):
        patient_ids, target_date = _require(payload, "patient_ids", "target_date")
        if not isinstance(patient_ids, (list, tuple)):
            raise ValidationError("patient_ids must be a list of ids")
        ids = [_as_id(pid, "patient_ids") for pid in patient_ids]
        copied = patients.copy_patients(self.engine, ids, target_date)
        self._audit(identity, "copy", "patient", None, {
            "source_ids": ids, "target_date": target_date, "copied_count": copied,
        })
        return {"success": True, "copied_count": copied}

    # ── Preparations ─────────────────────────────────────────────────

    def _worksheet_inputs(self, payload):
        patient_id, drug_id = _require(payload, "patient_id", "drug_id")
        patient = patients.get_patient(self.engine, _as_id(patient_id, "patient_id"))
        if patient is None:
            raise NotFound(f"Patient {patient_id} not found")
        drug = drugs.get_drug(self.engine, _as_id(drug_id, "drug_id"))
        if drug is None:
            raise NotFound(f"Drug {drug_id} not found")
        return build_worksheet(
            patient, drug,
            payload.get("dose"),
            payload.get("dose_unit"),
            payload.get("interval", ""),
        ), drug

    def _preparation_create(self, identity, payload):
        patient_id = _as_id(_require(payload, "patient_id")[0], "patient_id")
        if patients.get_patient(self.engine, patient_id) is None:
            raise NotFound(f"Patient {patient_id} not found")

        warnings = []
        fields = {
            "patient_id": patient_id,
            "date": payload.get("date"),
            "status": payload.get("status"),
            "drug_id": payload.get("drug_id"),
        }
        if payload.get("payload") is not None:
            fields["drug_name"] = payload.get("drug_name")
            fields["payload"] = payload["payload"]
        else:
            (worksheet, warnings), drug = self._worksheet_inputs(payload)
            fields["drug_id"] = drug["id"]
            fields["drug_name"] = drug["trade_name"]
            fields["payload"] = worksheet

        preparation_id = preparations.create_preparation(self.engine, fields)
        self._audit(identity, "create", "preparation", preparation_id, {
            "patient_id": patient_id, "drug_name": fields["drug_name"],
            "warnings": [w.kind for w in warnings],
        })
        record = preparations.get_preparation(self.engine, preparation_id)
        record["warnings"] = [w.to_dict() for w in warnings]
        return record

    def _preparation_get(self, _identity, payload):
        (preparation_id,) = _require(payload, "id")
        return preparations.get_preparation(self.engine, _as_id(preparation_id))

    def _preparation_list(self, _identity, payload):
        (patient_id,) = _require(payload, "patient_id")
        return preparations.list_preparations(self.engine, _as_id(patient_id, "patient_id"))

    def _preparation_update(self, identity, payload):
        preparation_id = _as_id(_require(payload, "id")[0])
        updated = preparations.update_preparation(
            self.engine, preparation_id,
            payload=payload.get("payload"),
            status=payload.get("status"),
        )
        if not updated:
            raise NotFound(f"Preparation {preparation_id} not found")
        self._audit(identity, "update", "preparation", preparation_id, {"status": payload.get("status")})
        return SUCCESS

    def _worksheet_calculate(self, _identity, payload):
        (worksheet, warnings), _drug = self._worksheet_inputs(payload)
        return summarise(worksheet, warnings)

    # ── Drugs ────────────────────────────────────────────────────────

    def _drug_list(self, _identity, payload):
        return drugs.list_drugs(self.engine, payload.get("search"))

    def _drug_get(self, _identity, payload):
        (drug_id,) = _require(payload, "id")
        return drugs.get_drug(self.engine, _as_id(drug_id))

    def _drug_create(self, identity, payload):
        drug_id = drugs.create_drug(self.engine, payload)
        self._audit(identity, "create", "drug", drug_id, {"trade_name": payload.get("trade_name")})
        return drugs.get_drug(self.engine, drug_id)

    def _drug_update(self, identity, payload):
        drug_id = _as_id(_require(payload, "id")[0])
        if not drugs.update_drug(self.engine, drug_id, _fields(payload)):
            raise NotFound(f"Drug {drug_id} not found")
        self._audit(identity, "update", "drug", drug_id, sorted(_fields(payload)))
        return SUCCESS

    def _drug_delete(self, identity, payload):
        drug_id = _as_id(_require(payload, "id")[0])
        if not drugs.delete_drug(self.engine, drug_id):
            raise NotFound(f"Drug {drug_id} not found")
        self._audit(identity, "delete", "drug", drug_id)
        return SUCCESS

    # ── Users ────────────────────────────────────────────────────────

    def _user_list(self, _identity, _payload):
        return users.list_users(self.engine)

    def _user_create(self, identity, payload):
        user_id = users.create_user(self.engine, payload)
        self._audit(identity, "create", "user", user_id, {
            "username": payload.get("username"), "role": payload.get("role"),
        })
        return users.get_user(self.engine, user_id)

    def _user_update(self, identity, payload):
        user_id = _as_id(_require(payload, "id")[0])
        if not users.update_user(self.engine, user_id, _fields(payload)):
            raise NotFound(f"User {user_id} not found")
        changed = sorted(k for k in _fields(payload) if k != "password")
        if payload.get("password"):
            changed.append("password")
        self._audit(identity, "update", "user", user_id, {"fields": changed})
        return SUCCESS

    def _user_delete(self, identity, payload):
        user_id = _as_id(_require(payload, "id")[0])
        if not users.deactivate_user(self.engine, user_id):
            raise NotFound(f"User {user_id} not found")
        self._audit(identity, "deactivate", "user", user_id)
        return SUCCESS

    # ── Audit ────────────────────────────────────────────────────────

    def _audit_log(self, identity, payload):
        action, entity_type = _require(payload, "action", "entity_type")
        entity_id = payload.get("entity_id")
        audit.record(
            self.engine, identity.id, identity.username, action, entity_type,
            _as_id(entity_id, "entity_id") if entity_id is not None else None,
            payload.get("details"),
        )
        return SUCCESS

    def _audit_list(self, _identity, payload):
        return audit.query(
            self.engine,
            user_id=payload.get("user_id"),
            action=payload.get("action"),
            entity_type=payload.get("entity_type"),
            start_date=payload.get("start_date"),
            end_date=payload.get("end_date"),
        )
