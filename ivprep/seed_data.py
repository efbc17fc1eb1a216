"""
Reference drug catalog loaded into an empty database on first run.

Values are a starting catalog for the pharmacy to review and edit through
``drug.update``; they are not a substitute for the local formulary.
"""

_BASE = {
    "localized_name": None,
    "amount_volume_ml": None,
    "concentration_mg_ml": None,
    "reconstitution_volume_ml": None,
    "reconstitution_concentration_mg_ml": None,
    "reconstitution_diluent_ns": 0,
    "reconstitution_diluent_d5w": 0,
    "reconstitution_diluent_swi": 0,
    "reconstitution_stability_room_hours": None,
    "reconstitution_stability_refrigeration_days": None,
    "initial_dilution_volume_ml": None,
    "initial_dilution_concentration_mg_ml": None,
    "fd_each_ml_up_to": None,
    "fd_concentration_mg_ml": None,
    "fdfr_each_ml_up_to": None,
    "fdfr_concentration_mg_ml": None,
    "fd_diluent_ns": 0,
    "fd_diluent_d5w": 0,
    "fd_stability_room_hours": None,
    "fd_stability_refrigeration_days": None,
    "infusion_time_min": None,
    "is_photosensitive": 0,
    "is_biohazard": 0,
    "min_dose_mg_kg_dose": None,
    "max_dose_mg_kg_dose": None,
    "max_dose_mg_dose": None,
    "max_dose_mg_day": None,
    "obese_patient_dosage_adjustment": None,
    "instructions_text": None,
    "target_volume_ml": None,
}


def _drug(**fields):
    return {**_BASE, **fields}


DRUG_SEED = [
    _drug(
        trade_name="Vancocin", generic_name="Vancomycin", localized_name="فانكومايسين",
        form="Powder", container="Vial", amount_mg=500,
        reconstitution_volume_ml=10, reconstitution_concentration_mg_ml=50,
        reconstitution_diluent_swi=1,
        reconstitution_stability_room_hours=24, reconstitution_stability_refrigeration_days=14,
        fd_each_ml_up_to=100, fd_concentration_mg_ml=5,
        fdfr_each_ml_up_to=50, fdfr_concentration_mg_ml=10,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24, fd_stability_refrigeration_days=14,
        infusion_time_min=60,
        min_dose_mg_kg_dose=10, max_dose_mg_kg_dose=15, max_dose_mg_dose=2000, max_dose_mg_day=4000,
        obese_patient_dosage_adjustment="Use actual body weight; monitor trough levels.",
        instructions_text="Infuse over at least 60 minutes to avoid infusion reactions.",
    ),
    _drug(
        trade_name="Rocephin", generic_name="Ceftriaxone", localized_name="سيفترياكسون",
        form="Powder", container="Vial", amount_mg=1000,
        reconstitution_volume_ml=9.6, reconstitution_concentration_mg_ml=100,
        reconstitution_diluent_swi=1,
        reconstitution_stability_room_hours=24, reconstitution_stability_refrigeration_days=3,
        fd_each_ml_up_to=50, fd_concentration_mg_ml=40,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24, fd_stability_refrigeration_days=3,
        infusion_time_min=30,
        min_dose_mg_kg_dose=50, max_dose_mg_kg_dose=100, max_dose_mg_dose=2000, max_dose_mg_day=4000,
        instructions_text="Do not mix with calcium-containing solutions.",
    ),
    _drug(
        trade_name="Meronem", generic_name="Meropenem", localized_name="ميروبينيم",
        form="Powder", container="Vial", amount_mg=1000,
        reconstitution_volume_ml=20, reconstitution_concentration_mg_ml=50,
        reconstitution_diluent_swi=1,
        reconstitution_stability_room_hours=3, reconstitution_stability_refrigeration_days=0.5,
        fd_each_ml_up_to=100, fd_concentration_mg_ml=20,
        fd_diluent_ns=1,
        fd_stability_room_hours=3, fd_stability_refrigeration_days=0.5,
        infusion_time_min=30,
        min_dose_mg_kg_dose=10, max_dose_mg_kg_dose=40, max_dose_mg_dose=2000, max_dose_mg_day=6000,
    ),
    _drug(
        trade_name="Zovirax", generic_name="Acyclovir", localized_name="أسيكلوفير",
        form="Powder", container="Vial", amount_mg=250,
        reconstitution_volume_ml=10, reconstitution_concentration_mg_ml=25,
        reconstitution_diluent_swi=1,
        reconstitution_stability_room_hours=12,
        fd_each_ml_up_to=50, fd_concentration_mg_ml=5,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24,
        infusion_time_min=60,
        min_dose_mg_kg_dose=5, max_dose_mg_kg_dose=20, max_dose_mg_dose=800,
        obese_patient_dosage_adjustment="Use ideal body weight.",
        instructions_text="Do not refrigerate; precipitation may occur.",
    ),
    _drug(
        trade_name="Tazocin", generic_name="Piperacillin/Tazobactam", localized_name="بيبراسيلين/تازوباكتام",
        form="Powder", container="Vial", amount_mg=4500,
        reconstitution_volume_ml=20, reconstitution_concentration_mg_ml=225,
        reconstitution_diluent_ns=1, reconstitution_diluent_swi=1,
        reconstitution_stability_room_hours=24, reconstitution_stability_refrigeration_days=2,
        fd_each_ml_up_to=100, fd_concentration_mg_ml=45,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24, fd_stability_refrigeration_days=2,
        infusion_time_min=30,
        min_dose_mg_kg_dose=80, max_dose_mg_kg_dose=100, max_dose_mg_dose=4500, max_dose_mg_day=18000,
    ),
    _drug(
        trade_name="Gentamicin", generic_name="Gentamicin", localized_name="جنتاميسين",
        form="Solution", container="Ampoule", amount_mg=80, amount_volume_ml=2,
        concentration_mg_ml=40,
        fd_each_ml_up_to=50, fd_concentration_mg_ml=1.6,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24,
        infusion_time_min=30,
        min_dose_mg_kg_dose=5, max_dose_mg_kg_dose=7.5,
        obese_patient_dosage_adjustment="Use adjusted body weight.",
        instructions_text="Monitor serum levels and renal function.",
    ),
    _drug(
        trade_name="Flagyl", generic_name="Metronidazole", localized_name="ميترونيدازول",
        form="Solution", container="Vial", amount_mg=500, amount_volume_ml=100,
        concentration_mg_ml=5,
        infusion_time_min=60, is_photosensitive=1,
        min_dose_mg_kg_dose=7.5, max_dose_mg_kg_dose=10, max_dose_mg_dose=500, max_dose_mg_day=4000,
        instructions_text="Ready to use. Protect from light; do not refrigerate.",
    ),
    _drug(
        trade_name="Endoxan", generic_name="Cyclophosphamide", localized_name="سيكلوفوسفاميد",
        form="Powder", container="Vial", amount_mg=500,
        reconstitution_volume_ml=25, reconstitution_concentration_mg_ml=20,
        reconstitution_diluent_ns=1,
        reconstitution_stability_room_hours=24, reconstitution_stability_refrigeration_days=6,
        fd_each_ml_up_to=250, fd_concentration_mg_ml=2,
        fd_diluent_ns=1, fd_diluent_d5w=1,
        fd_stability_room_hours=24, fd_stability_refrigeration_days=6,
        infusion_time_min=60, is_biohazard=1,
        instructions_text="Cytotoxic: prepare in a biological safety cabinet.",
    ),
]
