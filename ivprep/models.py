"""
Domain dataclasses used across the application.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

PAYLOAD_SCHEMA_VERSION = 1


@dataclass
class UserIdentity:
    """Represents the authenticated user's identity and permissions."""
    id: int
    username: str
    display_name: str
    role: str                  # "admin" or "pharmacist"
    permissions: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "role": self.role,
            "permissions": sorted(self.permissions),
        }


@dataclass
class DoseWarning:
    """An informational out-of-range finding on a worksheet."""
    kind: str                  # "below_min_per_kg", "above_max_per_kg", ...
    limit: float
    value: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "limit": self.limit,
            "value": self.value,
            "message": self.message,
        }


def _as_number(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass
class PreparationPayload:
    """
    Worksheet inputs and computed values stored with a preparation.

    Serialised with a ``schema_version`` tag so that older shapes can be
    upgraded explicitly in ``from_dict``.
    """
    drug: Dict[str, Any]
    dose: Optional[float]
    dose_unit: str
    interval: str = ""
    calculated_dose: Optional[float] = None
    bsa: Optional[float] = None
    bmi: Optional[float] = None
    schema_version: int = PAYLOAD_SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "drug": self.drug,
            "dose": self.dose,
            "dose_unit": self.dose_unit,
            "interval": self.interval,
            "calculated_dose": self.calculated_dose,
            "bsa": self.bsa,
            "bmi": self.bmi,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreparationPayload":
        """Build a payload from any known stored shape."""
        version = data.get("schema_version", 0)
        if version == 0:
            data = _upgrade_v0(data)
        elif version != PAYLOAD_SCHEMA_VERSION:
            raise ValueError(f"Unsupported preparation payload version: {version}")

        drug = data.get("drug") or {}
        if not isinstance(drug, Mapping):
            raise ValueError("Preparation payload drug must be a mapping")

        return cls(
            drug=dict(drug),
            dose=_as_number(data.get("dose")),
            dose_unit=str(data.get("dose_unit") or ""),
            interval=str(data.get("interval") or ""),
            calculated_dose=_as_number(data.get("calculated_dose")),
            bsa=_as_number(data.get("bsa")),
            bmi=_as_number(data.get("bmi")),
        )


def _upgrade_v0(data: Dict[str, Any]) -> Dict[str, Any]:
    """Legacy worksheets: untagged, camelCase keys, numbers kept as strings."""
    return {
        "schema_version": PAYLOAD_SCHEMA_VERSION,
        "drug": data.get("drug"),
        "dose": data.get("dose"),
        "dose_unit": data.get("doseUnit", data.get("dose_unit")),
        "interval": data.get("interval"),
        "calculated_dose": data.get("calculatedDose", data.get("calculated_dose")),
        "bsa": data.get("bsa"),
        "bmi": data.get("bmi"),
    }
