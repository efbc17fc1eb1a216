"""
Unit tests for RBAC – permission checks, credentials and login.
"""

import pytest

from ivprep import users
from ivprep.config import PERMISSIONS, get_env
from ivprep.errors import AuthError, ValidationError
from ivprep.models import UserIdentity
from ivprep.rbac import (
    can_perform,
    decode_permissions,
    encode_permissions,
    hash_credential,
    is_hashed_credential,
    login,
    validate_role,
    verify_credential,
)


def _identity(role, permissions=()):
    return UserIdentity(id=1, username="u", display_name="U", role=role, permissions=set(permissions))


# ── Tests: get_env ───────────────────────────────────────────────────

def test_get_env_ok(monkeypatch):
    monkeypatch.setenv("X", "123")
    assert get_env("X") == "123"


def test_get_env_missing_exits(monkeypatch, capsys):
    monkeypatch.delenv("MISSING_ENV", raising=False)
    with pytest.raises(SystemExit) as e:
        get_env("MISSING_ENV")
    assert e.value.code == 1
    err = capsys.readouterr().err
    assert "ERROR: env var MISSING_ENV is not set" in err


# ── Tests: can_perform ───────────────────────────────────────────────

def test_can_perform_no_user_is_always_false():
    for permission in PERMISSIONS:
        assert can_perform(None, permission) is False


@pytest.mark.parametrize("stored", [(), ("manage_drugs",), PERMISSIONS])
def test_can_perform_admin_ignores_stored_permissions(stored):
    admin = _identity("admin", stored)
    for permission in PERMISSIONS:
        assert can_perform(admin, permission) is True


def test_can_perform_pharmacist_is_membership():
    granted = {"manage_patients", "manage_preparations"}
    user = _identity("pharmacist", granted)
    for permission in PERMISSIONS:
        assert can_perform(user, permission) == (permission in granted)


def test_can_perform_unknown_permission_is_false_even_for_admin():
    assert can_perform(_identity("admin"), "launch_rockets") is False
    assert can_perform(_identity("pharmacist", {"launch_rockets"}), "launch_rockets") is False


# ── Tests: permission encoding ───────────────────────────────────────

def test_encode_permissions_sorts_and_dedupes():
    assert encode_permissions(["manage_users", "manage_drugs", "manage_users"]) == \
        '["manage_drugs", "manage_users"]'


def test_encode_permissions_rejects_unknown():
    with pytest.raises(ValidationError, match="Unknown permission"):
        encode_permissions(["manage_patients", "root"])


def test_encode_permissions_rejects_bare_string():
    with pytest.raises(ValidationError):
        encode_permissions("manage_patients")


def test_decode_permissions_tolerates_bad_values():
    assert decode_permissions(None) == []
    assert decode_permissions("not json") == []
    assert decode_permissions('{"a": 1}') == []
    assert decode_permissions('["manage_drugs"]') == ["manage_drugs"]


def test_validate_role():
    assert validate_role(" Admin ") == "admin"
    with pytest.raises(ValidationError, match="Unsupported role"):
        validate_role("nurse")


# ── Tests: credentials ───────────────────────────────────────────────

def test_hash_credential_is_salted_and_verifiable():
    first, second = hash_credential("pw"), hash_credential("pw")
    assert first != second
    assert is_hashed_credential(first)
    assert verify_credential(first, "pw")
    assert not verify_credential(first, "PW")


def test_plaintext_is_not_treated_as_hash():
    assert not is_hashed_credential("admin")
    assert not verify_credential("admin", "admin")


# ── Tests: login ─────────────────────────────────────────────────────

def test_login_active_user_round_trips_permissions(engine):
    users.create_user(engine, {
        "username": "nadia", "password": "pw", "display_name": "Nadia",
        "permissions": ["manage_patients", "manage_drugs"],
    })
    identity = login(engine, "nadia", "pw")
    assert identity.username == "nadia"
    assert identity.display_name == "Nadia"
    assert identity.role == "pharmacist"
    assert identity.permissions == {"manage_patients", "manage_drugs"}


def test_login_inactive_user_fails(engine):
    user_id = users.create_user(engine, {"username": "gone", "password": "pw"})
    users.deactivate_user(engine, user_id)
    with pytest.raises(AuthError, match="Invalid credentials"):
        login(engine, "gone", "pw")


def test_login_wrong_credential_and_unknown_user_look_the_same(engine):
    users.create_user(engine, {"username": "omar", "password": "pw"})
    with pytest.raises(AuthError) as wrong:
        login(engine, "omar", "nope")
    with pytest.raises(AuthError) as unknown:
        login(engine, "nobody", "pw")
    assert str(wrong.value) == str(unknown.value)


def test_login_username_is_exact_match(engine):
    users.create_user(engine, {"username": "Omar", "password": "pw"})
    with pytest.raises(AuthError):
        login(engine, "omar", "pw")
