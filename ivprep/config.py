"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Storage ──────────────────────────────────────────────────────────
DB_FILENAME = "iv_drug_manager.db"
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".ivprep")
DB_PATH = os.getenv("IVPREP_DB_PATH", os.path.join(DEFAULT_DATA_DIR, DB_FILENAME))

# ── Access control ───────────────────────────────────────────────────
ROLES = ("admin", "pharmacist")
PERMISSIONS = (
    "manage_patients",
    "manage_drugs",
    "manage_preparations",
    "manage_users",
    "view_audit_logs",
)

BOOTSTRAP_ADMIN_USERNAME = "admin"
BOOTSTRAP_ADMIN_DISPLAY_NAME = "Administrator"
BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "admin")

# ── Catalog / worksheet vocabularies ─────────────────────────────────
DRUG_FORMS = ("Powder", "Solution")
DRUG_CONTAINERS = ("Vial", "Ampoule")
PREPARATION_STATUSES = ("pending", "completed")

DOSE_UNITS = ("mg/kg/dose", "mg/dose", "mcg/kg/dose", "mcg/dose")
DEFAULT_DOSE_UNIT = "mg/kg/dose"

# Administrations per day for each worksheet interval
DOSING_INTERVALS = {
    "q6h": 4,
    "q8h": 3,
    "q12h": 2,
    "q24h": 1,
    "once": 1,
}

# ── Audit / preview limits ───────────────────────────────────────────
AUDIT_LOG_LIMIT = 500
MAX_PREVIEW_ROWS = 20

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = 12
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
