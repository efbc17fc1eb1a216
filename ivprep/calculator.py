"""
Dose and anthropometric calculations for the preparation worksheet.

All functions are pure. ``None`` means "cannot compute" and callers must not
substitute zero for it.
"""

import math
from typing import Any, List, Mapping, Optional

from ivprep.config import DOSING_INTERVALS
from ivprep.models import DoseWarning

# Mass prefix of a dose unit -> factor to milligrams
_MASS_TO_MG = {"mcg": 0.001, "mg": 1.0, "g": 1000.0}


def as_finite(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _positive(value) -> Optional[float]:
    number = as_finite(value)
    if number is None or number <= 0:
        return None
    return number


# ── Anthropometrics ──────────────────────────────────────────────────

def bsa(weight_kg, height_cm) -> Optional[float]:
    """Body surface area (m²), Du Bois formula, rounded to 2 decimals."""
    w, h = _positive(weight_kg), _positive(height_cm)
    if w is None or h is None:
        return None
    return round(0.007184 * w ** 0.425 * h ** 0.725, 2)


def bmi(weight_kg, height_cm) -> Optional[float]:
    """Body mass index (kg/m²), rounded to 2 decimals."""
    w, h = _positive(weight_kg), _positive(height_cm)
    if w is None or h is None:
        return None
    return round(w / (h / 100) ** 2, 2)


# ── Dose ─────────────────────────────────────────────────────────────

def is_per_kg(dose_unit: str) -> bool:
    """True for weight-based units such as ``mg/kg/dose``."""
    parts = [p.strip().lower() for p in (dose_unit or "").split("/")]
    return "kg" in parts[1:]


def to_mg(amount, dose_unit: str) -> Optional[float]:
    """Convert an amount expressed in ``dose_unit``'s mass to milligrams."""
    value = as_finite(amount)
    if value is None:
        return None
    prefix = (dose_unit or "mg").split("/")[0].strip().lower()
    return value * _MASS_TO_MG.get(prefix, 1.0)


def absolute_dose(entered_dose, dose_unit: str, weight_kg) -> Optional[float]:
    """
    Absolute dose in the unit's own mass.

    Per-kg units multiply by weight; absolute units pass the dose through.
    """
    dose = as_finite(entered_dose)
    if dose is None:
        return None
    if not is_per_kg(dose_unit):
        return dose
    weight = _positive(weight_kg)
    if weight is None:
        return None
    return dose * weight


def doses_per_day(interval: str) -> Optional[int]:
    return DOSING_INTERVALS.get((interval or "").strip().lower())


# ── Range feedback ───────────────────────────────────────────────────

def _limit(drug: Mapping[str, Any], key: str) -> Optional[float]:
    # Zero and NULL both mean the limit does not apply
    return _positive(drug.get(key))


def check_dose_range(
    drug: Mapping[str, Any],
    entered_dose,
    dose_unit: str,
    weight_kg=None,
    interval: str = "",
) -> List[DoseWarning]:
    """
    Compare an entered dose against the drug's dosing limits.

    Purely informational: the returned warnings never block a save.
    """
    warnings: List[DoseWarning] = []
    dose = as_finite(entered_dose)
    if dose is None:
        return warnings

    weight = _positive(weight_kg)
    absolute_mg = to_mg(absolute_dose(dose, dose_unit, weight), dose_unit)

    if is_per_kg(dose_unit):
        per_kg_mg = to_mg(dose, dose_unit)
    elif absolute_mg is not None and weight is not None:
        per_kg_mg = absolute_mg / weight
    else:
        per_kg_mg = None

    min_kg = _limit(drug, "min_dose_mg_kg_dose")
    max_kg = _limit(drug, "max_dose_mg_kg_dose")
    max_dose = _limit(drug, "max_dose_mg_dose")
    max_day = _limit(drug, "max_dose_mg_day")

    if per_kg_mg is not None:
        if min_kg is not None and per_kg_mg < min_kg:
            warnings.append(DoseWarning(
                "below_min_per_kg", min_kg, round(per_kg_mg, 4),
                f"Dose {per_kg_mg:g} mg/kg is below the recommended minimum of {min_kg:g} mg/kg/dose.",
            ))
        if max_kg is not None and per_kg_mg > max_kg:
            warnings.append(DoseWarning(
                "above_max_per_kg", max_kg, round(per_kg_mg, 4),
                f"Dose {per_kg_mg:g} mg/kg exceeds the recommended maximum of {max_kg:g} mg/kg/dose.",
            ))

    if absolute_mg is not None:
        if max_dose is not None and absolute_mg > max_dose:
            warnings.append(DoseWarning(
                "above_max_per_dose", max_dose, round(absolute_mg, 4),
                f"Single dose {absolute_mg:g} mg exceeds the maximum of {max_dose:g} mg.",
            ))
        per_day = doses_per_day(interval)
        if max_day is not None and per_day is not None:
            daily = absolute_mg * per_day
            if daily > max_day:
                warnings.append(DoseWarning(
                    "above_max_per_day", max_day, round(daily, 4),
                    f"Daily total {daily:g} mg exceeds the maximum of {max_day:g} mg/day.",
                ))

    return warnings


def diluent_label(ns, d5w, swi=0) -> str:
    """Human-readable list of valid carrier fluids."""
    names = [name for flag, name in ((ns, "NS"), (d5w, "D5W"), (swi, "SWI")) if flag]
    return " / ".join(names) or "N/A"
