"""
Helpers shared by the per-entity statement modules.
"""

from typing import Any, Dict, Iterable, Mapping

from ivprep.errors import ValidationError


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(fields: Mapping[str, Any], mandatory: Iterable[str], entity: str) -> None:
    """Raise ValidationError naming every mandatory field that is absent or blank."""
    missing = [name for name in mandatory if is_blank(fields.get(name))]
    if missing:
        raise ValidationError(f"{entity}: missing mandatory field(s): {', '.join(missing)}")


def require_choice(value: Any, choices: Iterable[str], field: str) -> None:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(f"{field} must be one of {', '.join(choices)} (got {value!r})")


def insert_values(fields: Mapping[str, Any], columns: Iterable[str]) -> Dict[str, Any]:
    """Every column bound, absent ones as NULL."""
    return {name: fields.get(name) for name in columns}


def update_values(fields: Mapping[str, Any], columns: Iterable[str]) -> Dict[str, Any]:
    """Only the recognised columns the caller actually supplied."""
    return {name: fields[name] for name in columns if name in fields}


def set_clause(values: Mapping[str, Any]) -> str:
    return ", ".join(f"{name} = :{name}" for name in values)
