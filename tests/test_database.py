"""
Tests for the record store lifecycle, upgrades and first-run seeding.
"""

import pytest
from sqlalchemy import create_engine, text

from ivprep import drugs
from ivprep.config import BOOTSTRAP_ADMIN_PASSWORD, BOOTSTRAP_ADMIN_USERNAME, PERMISSIONS
from ivprep.database import Store
from ivprep.errors import StorageError
from ivprep.rbac import decode_permissions, is_hashed_credential, login
from ivprep.seed_data import DRUG_SEED


def _admin_row(engine):
    with engine.connect() as conn:
        return conn.execute(
            text("SELECT * FROM users WHERE username = :u"), {"u": BOOTSTRAP_ADMIN_USERNAME}
        ).mappings().first()


# ── Lifecycle ────────────────────────────────────────────────────────

def test_store_requires_open(tmp_path):
    store = Store(str(tmp_path / "x.db"))
    assert not store.is_open
    with pytest.raises(StorageError, match="not open"):
        store.engine


def test_store_context_manager_opens_and_closes(tmp_path):
    with Store(str(tmp_path / "nested" / "dir" / "x.db")) as store:
        assert store.is_open
        with store.engine.connect() as conn:
            assert conn.execute(text("SELECT 1")).scalar() == 1
    assert not store.is_open
    assert (tmp_path / "nested" / "dir" / "x.db").exists()


def test_store_uses_write_ahead_logging(engine):
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA journal_mode")).scalar().lower() == "wal"


# ── First run ────────────────────────────────────────────────────────

def test_bootstrap_admin_has_every_permission(engine):
    row = _admin_row(engine)
    assert row["role"] == "admin"
    assert row["is_active"] == 1
    assert set(decode_permissions(row["permissions"])) == set(PERMISSIONS)
    assert is_hashed_credential(row["password_hash"])
    assert login(engine, BOOTSTRAP_ADMIN_USERNAME, BOOTSTRAP_ADMIN_PASSWORD).role == "admin"


def test_seed_runs_once(tmp_path):
    path = str(tmp_path / "seed.db")
    with Store(path) as store:
        assert len(drugs.list_drugs(store.engine)) == len(DRUG_SEED)
        drugs.create_drug(store.engine, {
            "trade_name": "Extra", "generic_name": "Extra", "form": "Solution", "container": "Ampoule",
        })
    with Store(path) as store:
        assert len(drugs.list_drugs(store.engine)) == len(DRUG_SEED) + 1


def test_emptied_catalog_is_reseeded_on_next_start(tmp_path):
    path = str(tmp_path / "seed.db")
    with Store(path) as store:
        with store.engine.begin() as conn:
            conn.execute(text("DELETE FROM drugs"))
    with Store(path) as store:
        assert len(drugs.list_drugs(store.engine)) == len(DRUG_SEED)


def test_reopen_restores_bootstrap_admin_invariant(tmp_path):
    path = str(tmp_path / "admin.db")
    with Store(path) as store:
        with store.engine.begin() as conn:
            conn.execute(text("UPDATE users SET permissions = '[]', is_active = 0 WHERE username = 'admin'"))
    with Store(path) as store:
        row = _admin_row(store.engine)
        assert row["is_active"] == 1
        assert set(decode_permissions(row["permissions"])) == set(PERMISSIONS)


# ── Upgrades from older installs ─────────────────────────────────────

LEGACY_DDL = [
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT CHECK(role IN ('admin', 'user')) NOT NULL DEFAULT 'user',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE patients (
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
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE drugs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trade_name TEXT NOT NULL,
        generic_name TEXT NOT NULL,
        arabic_name TEXT,
        form TEXT NOT NULL,
        container TEXT NOT NULL,
        amount_mg REAL NOT NULL
    )
    """,
]


@pytest.fixture
def legacy_db(tmp_path):
    path = str(tmp_path / "legacy.db")
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for ddl in LEGACY_DDL:
            conn.execute(text(ddl))
        conn.execute(text(
            "INSERT INTO users (username, password_hash, role) VALUES ('nurse', 'plain-pw', 'user')"
        ))
        conn.execute(text(
            "INSERT INTO drugs (trade_name, generic_name, arabic_name, form, container, amount_mg) "
            "VALUES ('Zinacef', 'Cefuroxime', 'سيفوروكسيم', 'Powder', 'Vial', 750)"
        ))
    engine.dispose()
    return path


def test_legacy_user_role_and_columns_are_upgraded(legacy_db):
    with Store(legacy_db) as store:
        identity = login(store.engine, "nurse", "plain-pw")
        assert identity.role == "pharmacist"
        assert identity.display_name == "nurse"
        assert identity.permissions == set()
        with store.engine.connect() as conn:
            stored = conn.execute(
                text("SELECT password_hash FROM users WHERE username = 'nurse'")
            ).scalar()
        assert is_hashed_credential(stored)


def test_legacy_tables_gain_missing_columns(legacy_db):
    with Store(legacy_db) as store:
        with store.engine.connect() as conn:
            patient_cols = {r["name"] for r in conn.execute(text("PRAGMA table_info(patients)")).mappings()}
            drug_cols = {r["name"] for r in conn.execute(text("PRAGMA table_info(drugs)")).mappings()}
        assert "updated_at" in patient_cols
        assert "localized_name" in drug_cols
        assert "arabic_name" not in drug_cols


def test_legacy_catalog_is_kept_and_searchable(legacy_db):
    with Store(legacy_db) as store:
        rows = drugs.list_drugs(store.engine, "سيفور")
        assert [r["trade_name"] for r in rows] == ["Zinacef"]
        # Non-empty catalog: no seeding
        assert len(drugs.list_drugs(store.engine)) == 1


def test_upgrades_are_idempotent(legacy_db):
    with Store(legacy_db):
        pass
    with Store(legacy_db) as store:
        assert login(store.engine, "nurse", "plain-pw").role == "pharmacist"
