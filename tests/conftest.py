"""
Shared fixtures: a real SQLite store per test and ready-made identities.
"""

import pytest

from ivprep import users
from ivprep.commands import CommandSurface
from ivprep.config import BOOTSTRAP_ADMIN_PASSWORD, BOOTSTRAP_ADMIN_USERNAME
from ivprep.database import Store


@pytest.fixture
def store(tmp_path):
    s = Store(str(tmp_path / "ivprep-test.db")).open()
    yield s
    s.close()


@pytest.fixture
def engine(store):
    return store.engine


@pytest.fixture
def surface(store):
    return CommandSurface(store)


@pytest.fixture
def admin(surface):
    return surface.login(BOOTSTRAP_ADMIN_USERNAME, BOOTSTRAP_ADMIN_PASSWORD)


@pytest.fixture
def make_pharmacist(engine, surface):
    """Create an active pharmacist with the given permissions and log them in."""
    counter = {"n": 0}

    def _make(*permissions):
        counter["n"] += 1
        username = f"pharm{counter['n']}"
        users.create_user(engine, {
            "username": username,
            "password": "s3cret",
            "display_name": f"Pharmacist {counter['n']}",
            "role": "pharmacist",
            "permissions": list(permissions),
        })
        return surface.login(username, "s3cret")

    return _make


def patient_fields(**overrides):
    fields = {
        "hospital_id": "H-1001",
        "name": "Layla Hassan",
        "dob": "2019-04-02",
        "gender": "F",
        "weight": 20.0,
        "height": 110.0,
        "department": "Pediatrics",
        "notes": "",
        "entry_date": "2026-10-16",
    }
    fields.update(overrides)
    return fields


def drug_fields(**overrides):
    fields = {
        "trade_name": "Testacillin",
        "generic_name": "Testacillin sodium",
        "localized_name": None,
        "form": "Powder",
        "container": "Vial",
        "amount_mg": 1000,
        "min_dose_mg_kg_dose": 10,
        "max_dose_mg_kg_dose": 20,
        "max_dose_mg_dose": 500,
        "max_dose_mg_day": 1500,
    }
    fields.update(overrides)
    return fields
