"""
Preparation worksheet – combines a patient, a drug and an entered dose.
"""

from typing import Any, Dict, List, Mapping, Tuple

from ivprep import calculator
from ivprep.config import DEFAULT_DOSE_UNIT, DOSE_UNITS
from ivprep.models import DoseWarning, PreparationPayload
from ivprep.records import require_choice

_SNAPSHOT_EXCLUDE = {"created_at", "updated_at"}


def drug_snapshot(drug: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of the catalog entry as it was when the worksheet was filled."""
    return {k: v for k, v in drug.items() if k not in _SNAPSHOT_EXCLUDE}


def build_worksheet(
    patient: Mapping[str, Any],
    drug: Mapping[str, Any],
    dose,
    dose_unit: str = DEFAULT_DOSE_UNIT,
    interval: str = "",
) -> Tuple[PreparationPayload, List[DoseWarning]]:
    """Compute the derived values and range warnings for one worksheet."""
    weight = patient.get("weight")
    height = patient.get("height")
    dose_unit = dose_unit or DEFAULT_DOSE_UNIT
    require_choice(dose_unit, DOSE_UNITS, "dose_unit")

    payload = PreparationPayload(
        drug=drug_snapshot(drug),
        dose=calculator.as_finite(dose),
        dose_unit=dose_unit,
        interval=interval or "",
        calculated_dose=calculator.absolute_dose(dose, dose_unit, weight),
        bsa=calculator.bsa(weight, height),
        bmi=calculator.bmi(weight, height),
    )
    warnings = calculator.check_dose_range(drug, dose, dose_unit, weight, interval)
    return payload, warnings


def summarise(payload: PreparationPayload, warnings: List[DoseWarning]) -> Dict[str, Any]:
    drug = payload.drug
    return {
        **payload.to_dict(),
        "reconstitution_diluents": calculator.diluent_label(
            drug.get("reconstitution_diluent_ns"),
            drug.get("reconstitution_diluent_d5w"),
            drug.get("reconstitution_diluent_swi"),
        ),
        "further_dilution_diluents": calculator.diluent_label(
            drug.get("fd_diluent_ns"), drug.get("fd_diluent_d5w"),
        ),
        "warnings": [w.to_dict() for w in warnings],
    }
