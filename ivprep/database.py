"""
Database engine initialisation, schema upgrades and first-run seeding.
"""

import logging
import os
from typing import Dict, Optional, Set, Tuple

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ivprep.config import (
    BOOTSTRAP_ADMIN_DISPLAY_NAME,
    BOOTSTRAP_ADMIN_PASSWORD,
    BOOTSTRAP_ADMIN_USERNAME,
    DB_PATH,
    PERMISSIONS,
)
from ivprep.drugs import insert_drug
from ivprep.errors import StorageError
from ivprep.rbac import encode_permissions, hash_credential, is_hashed_credential
from ivprep.seed_data import DRUG_SEED

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


# ── Schema ───────────────────────────────────────────────────────────

USERS_DDL = """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        display_name TEXT,
        role TEXT CHECK(role IN ('admin', 'pharmacist')) NOT NULL DEFAULT 'pharmacist',
        permissions TEXT DEFAULT '[]',
        is_active INTEGER DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
"""

TABLES_DDL = [
    USERS_DDL,
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        username TEXT,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id INTEGER,
        details TEXT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS patients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hospital_id TEXT NOT NULL,
        name TEXT NOT NULL,
        dob TEXT NOT NULL,
        gender TEXT NOT NULL,
        weight REAL,
        height REAL,
        department TEXT,
        notes TEXT,
        entry_date TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS drugs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trade_name TEXT NOT NULL,
        generic_name TEXT NOT NULL,
        localized_name TEXT,
        form TEXT CHECK(form IN ('Powder', 'Solution')) NOT NULL,
        container TEXT CHECK(container IN ('Vial', 'Ampoule')) NOT NULL,
        amount_mg REAL,
        amount_volume_ml REAL,
        concentration_mg_ml REAL,
        reconstitution_volume_ml REAL,
        reconstitution_concentration_mg_ml REAL,
        reconstitution_diluent_ns INTEGER DEFAULT 0,
        reconstitution_diluent_d5w INTEGER DEFAULT 0,
        reconstitution_diluent_swi INTEGER DEFAULT 0,
        reconstitution_stability_room_hours REAL,
        reconstitution_stability_refrigeration_days REAL,
        initial_dilution_volume_ml REAL,
        initial_dilution_concentration_mg_ml REAL,
        fd_each_ml_up_to REAL,
        fd_concentration_mg_ml REAL,
        fdfr_each_ml_up_to REAL,
        fdfr_concentration_mg_ml REAL,
        fd_diluent_ns INTEGER DEFAULT 0,
        fd_diluent_d5w INTEGER DEFAULT 0,
        fd_stability_room_hours REAL,
        fd_stability_refrigeration_days REAL,
        infusion_time_min INTEGER,
        is_photosensitive INTEGER DEFAULT 0,
        is_biohazard INTEGER DEFAULT 0,
        min_dose_mg_kg_dose REAL,
        max_dose_mg_kg_dose REAL,
        max_dose_mg_dose REAL,
        max_dose_mg_day REAL,
        obese_patient_dosage_adjustment TEXT,
        instructions_text TEXT,
        target_volume_ml REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS preparations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        drug_id INTEGER,
        drug_name TEXT NOT NULL,
        data_json TEXT NOT NULL,
        status TEXT CHECK(status IN ('pending', 'completed')) DEFAULT 'pending',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(patient_id) REFERENCES patients(id),
        FOREIGN KEY(drug_id) REFERENCES drugs(id)
    )
    """,
]


# ── Engine ───────────────────────────────────────────────────────────

def init_engine(db_path: str) -> Engine:
    """Create a SQLAlchemy engine in WAL mode and verify the connection."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False, future=True)

    @event.listens_for(engine, "connect")
    def _set_journal_mode(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise StorageError(f"Could not open database at {db_path}") from e
    logger.info("Connected to database %s", db_path)
    return engine


def _table_sql(conn: Connection, table: str) -> Optional[str]:
    return conn.execute(
        text("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :t"),
        {"t": table},
    ).scalar()


def _columns(conn: Connection, table: str) -> Set[str]:
    rows = conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()
    return {r["name"] for r in rows}


# ── Upgrades ─────────────────────────────────────────────────────────

def run_migrations(conn: Connection) -> None:
    """Idempotent, non-destructive upgrades of tables left by older installs."""
    users_sql = _table_sql(conn, "users")
    if users_sql and "'user'" in users_sql and "'pharmacist'" not in users_sql:
        logger.info("Migration: rebuilding users table for the pharmacist role")
        user_cols = _columns(conn, "users")
        display = "COALESCE(display_name, username)" if "display_name" in user_cols else "username"
        perms = "COALESCE(permissions, '[]')" if "permissions" in user_cols else "'[]'"
        active = "COALESCE(is_active, 1)" if "is_active" in user_cols else "1"
        conn.execute(text(USERS_DDL.replace("users (", "users_new (", 1)))
        conn.execute(text(f"""
            INSERT INTO users_new (id, username, password_hash, display_name, role,
                                   permissions, is_active, created_at)
            SELECT id, username, password_hash, {display},
                   CASE WHEN role = 'user' THEN 'pharmacist' ELSE role END,
                   {perms}, {active}, created_at
            FROM users
        """))
        conn.execute(text("DROP TABLE users"))
        conn.execute(text("ALTER TABLE users_new RENAME TO users"))

    drug_cols = _columns(conn, "drugs")
    if "arabic_name" in drug_cols and "localized_name" not in drug_cols:
        logger.info("Migration: renaming drugs.arabic_name to localized_name")
        conn.execute(text("ALTER TABLE drugs RENAME COLUMN arabic_name TO localized_name"))

    for ddl in TABLES_DDL:
        table, declared = _declared_columns(ddl)
        existing = _columns(conn, table)
        if not existing:
            continue
        for column, declaration in declared.items():
            if column not in existing:
                logger.info("Migration: adding %s.%s", table, column)
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {declaration}"))


def _declared_columns(ddl: str) -> Tuple[str, Dict[str, str]]:
    """Table name and column declarations usable with ALTER TABLE ADD COLUMN."""
    lines = [line.strip().rstrip(",") for line in ddl.strip().splitlines()]
    table = lines[0].split()[-2]
    declared = {}
    for line in lines[1:]:
        if not line or line.startswith((")", "FOREIGN")):
            continue
        column, declaration = line.split(None, 1)
        # SQLite rejects non-constant defaults and bare NOT NULL on added columns
        declaration = declaration.replace("DEFAULT CURRENT_TIMESTAMP", "").replace("NOT NULL", "")
        declared[column] = " ".join(declaration.split())
    return table, declared


def hash_plaintext_credentials(conn: Connection) -> int:
    """Replace credentials stored verbatim by older installs with salted hashes."""
    rows = conn.execute(text("SELECT id, password_hash FROM users")).mappings().all()
    upgraded = 0
    for row in rows:
        stored = row["password_hash"] or ""
        if is_hashed_credential(stored):
            continue
        conn.execute(
            text("UPDATE users SET password_hash = :h WHERE id = :id"),
            {"h": hash_credential(stored), "id": row["id"]},
        )
        upgraded += 1
    if upgraded:
        logger.info("Migration: hashed %d plaintext credential(s)", upgraded)
    return upgraded


# ── Bootstrap data ───────────────────────────────────────────────────

def ensure_bootstrap_admin(conn: Connection) -> None:
    """The bootstrap admin always exists, is active and holds every permission."""
    all_permissions = encode_permissions(PERMISSIONS)
    row = conn.execute(
        text("SELECT id, display_name FROM users WHERE username = :u"),
        {"u": BOOTSTRAP_ADMIN_USERNAME},
    ).mappings().first()

    if not row:
        conn.execute(
            text("""
                INSERT INTO users (username, password_hash, display_name, role, permissions, is_active)
                VALUES (:u, :p, :d, 'admin', :perms, 1)
            """),
            {
                "u": BOOTSTRAP_ADMIN_USERNAME,
                "p": hash_credential(BOOTSTRAP_ADMIN_PASSWORD),
                "d": BOOTSTRAP_ADMIN_DISPLAY_NAME,
                "perms": all_permissions,
            },
        )
        logger.info("Created bootstrap admin account '%s'", BOOTSTRAP_ADMIN_USERNAME)
        return

    conn.execute(
        text("""
            UPDATE users
            SET role = 'admin', permissions = :perms, is_active = 1,
                display_name = COALESCE(display_name, :d)
            WHERE id = :id
        """),
        {"perms": all_permissions, "d": BOOTSTRAP_ADMIN_DISPLAY_NAME, "id": row["id"]},
    )


def seed_drugs(conn: Connection) -> int:
    """Load the reference catalog when the drugs table is empty."""
    count = conn.execute(text("SELECT COUNT(*) FROM drugs")).scalar()
    if count:
        return 0
    for drug in DRUG_SEED:
        insert_drug(conn, drug)
    logger.info("Seeded %d drugs into the database", len(DRUG_SEED))
    return len(DRUG_SEED)


def initialise_schema(engine: Engine) -> None:
    """Upgrade, create, bootstrap and seed, in that order, in one transaction."""
    with engine.begin() as conn:
        run_migrations(conn)
        for ddl in TABLES_DDL:
            conn.execute(text(ddl))
        hash_plaintext_credentials(conn)
        ensure_bootstrap_admin(conn)
        seed_drugs(conn)


# ── Store lifecycle ──────────────────────────────────────────────────

class Store:
    """
    Owns the engine for one database file.

    Constructed explicitly and passed to the command surface; nothing in the
    package keeps a module-level handle.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DB_PATH
        self._engine: Optional[Engine] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StorageError("Store is not open")
        return self._engine

    def open(self) -> "Store":
        if self._engine is not None:
            return self
        if self.db_path != MEMORY_PATH:
            directory = os.path.dirname(os.path.abspath(self.db_path))
            os.makedirs(directory, exist_ok=True)
        engine = init_engine(self.db_path)
        try:
            initialise_schema(engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise StorageError("Database initialisation failed") from e
        self._engine = engine
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

