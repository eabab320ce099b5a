"""Unit tests for auth/service.py -- registration, login, identity management.

All tests run against an in-memory IdentityStore with bcrypt at its minimum
work factor. The concurrent registration test uses a file-backed store so
several connections really contend for the UNIQUE(email) constraint.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from auth.credentials import CredentialStore
from auth.errors import (
    DuplicateEmail,
    IdentityNotFound,
    InvalidCredentials,
    InvalidDisplayName,
    RoleEscalationDenied,
    TokenExpired,
    WeakPassword,
)
from auth.models import Role
from auth.policy import PasswordPolicy
from auth.service import AuthService
from auth.store import IdentityStore


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def test_register_creates_guest_without_secret(auth_service):
    identity = auth_service.register("a@b.co", "Alice", "Strong1!")
    assert identity.role is Role.GUEST
    assert identity.id
    assert identity.created_at
    assert not hasattr(identity, "password_hash")


def test_register_stores_a_bcrypt_hash_not_the_password(auth_service, identity_store):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    stored = identity_store.find_by_email_with_secret("a@b.co")
    assert stored.password_hash != "Strong1!"
    assert stored.password_hash.startswith("$2")


def test_register_then_login_yields_guest_claims(auth_service):
    identity = auth_service.register("a@b.co", "Alice", "Strong1!")
    token = auth_service.login("a@b.co", "Strong1!")
    assert token.claims.subject_id == identity.id
    assert token.claims.email == "a@b.co"
    assert token.claims.display_name == "Alice"
    assert token.claims.role is Role.GUEST


def test_register_weak_password_reports_all_violations(auth_service, identity_store):
    with pytest.raises(WeakPassword) as excinfo:
        auth_service.register("a@b.co", "Alice", "weak")
    assert excinfo.value.violations == ("too_short", "missing_uppercase", "missing_digit", "missing_special")
    assert identity_store.count_by_email("a@b.co") == 0


def test_register_duplicate_email(auth_service, identity_store):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(DuplicateEmail):
        auth_service.register("a@b.co", "Other", "Different2@")
    assert identity_store.count_by_email("a@b.co") == 1


def test_email_comparison_is_exact(auth_service):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    other = auth_service.register("A@b.co", "Upper Alice", "Strong1!")
    assert other.email == "A@b.co"


@pytest.mark.parametrize("requested", [Role.OWNER, "owner", "OWNER", "Owner"])
def test_register_refuses_owner_role(auth_service, identity_store, requested):
    with pytest.raises(RoleEscalationDenied):
        auth_service.register("a@b.co", "Alice", "Strong1!", requested_role=requested)
    assert identity_store.count_by_email("a@b.co") == 0


def test_escalation_is_checked_before_password_policy(auth_service):
    with pytest.raises(RoleEscalationDenied):
        auth_service.register("a@b.co", "Alice", "weak", requested_role="owner")


def test_register_accepts_explicit_guest_role(auth_service):
    assert auth_service.register("a@b.co", "Alice", "Strong1!", requested_role="guest").role is Role.GUEST


def test_register_rejects_unknown_role(auth_service):
    with pytest.raises(ValueError):
        auth_service.register("a@b.co", "Alice", "Strong1!", requested_role="admin")


def test_provision_can_create_owner(auth_service, identity_store):
    owner = auth_service.provision("o@b.co", "Owner", "Strong1!", Role.OWNER)
    assert owner.role is Role.OWNER
    assert identity_store.has_owner()
    assert auth_service.login("o@b.co", "Strong1!").claims.role is Role.OWNER


def test_provision_still_enforces_policy(auth_service):
    with pytest.raises(WeakPassword):
        auth_service.provision("o@b.co", "Owner", "short", "owner")


def test_register_multibyte_password_over_72_bytes(auth_service, identity_store):
    with pytest.raises(WeakPassword) as excinfo:
        auth_service.register("a@b.co", "Alice", "é" * 40 + "Aa1!")
    assert excinfo.value.violations == ("too_long",)
    assert identity_store.count_by_email("a@b.co") == 0


def test_register_multibyte_password_within_72_bytes(auth_service):
    password = "é" * 34 + "Aa1!"
    auth_service.register("a@b.co", "Alice", password)
    assert auth_service.login("a@b.co", password).claims.email == "a@b.co"


def test_register_strips_display_name(auth_service):
    assert auth_service.register("a@b.co", "  Alice  ", "Strong1!").display_name == "Alice"


@pytest.mark.parametrize("blank", ["", "   ", "\t"])
def test_provision_refuses_blank_display_name(auth_service, identity_store, blank):
    with pytest.raises(InvalidDisplayName):
        auth_service.provision("o@b.co", blank, "Strong1!", Role.OWNER)
    assert identity_store.count_by_email("o@b.co") == 0


def test_concurrent_registrations_have_one_winner(tmp_path):
    store = IdentityStore(f"sqlite:///{tmp_path / 'race.db'}")
    service = AuthService(store, CredentialStore(rounds=4), issuer=None, policy=PasswordPolicy())
    workers = 4
    barrier = threading.Barrier(workers)

    def attempt(n):
        barrier.wait()
        try:
            service.register("race@b.co", f"Racer {n}", "Strong1!")
            return "created"
        except DuplicateEmail:
            return "duplicate"

    try:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(attempt, range(workers)))
        assert outcomes.count("created") == 1
        assert outcomes.count("duplicate") == workers - 1
        assert store.count_by_email("race@b.co") == 1
    finally:
        store.close()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_login_wrong_password(auth_service):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(InvalidCredentials):
        auth_service.login("a@b.co", "Wrong1!!")


def test_login_unknown_email_and_wrong_password_are_indistinguishable(auth_service):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(InvalidCredentials) as unknown:
        auth_service.login("nobody@b.co", "Strong1!")
    with pytest.raises(InvalidCredentials) as wrong:
        auth_service.login("a@b.co", "Wrong1!!")
    assert str(unknown.value) == str(wrong.value) == "Invalid email or password."
    assert unknown.value.code == wrong.value.code
    assert unknown.value.status_code == wrong.value.status_code == 401


def test_login_unknown_email_still_runs_bcrypt(auth_service, monkeypatch):
    calls = []
    real_burn = auth_service.credentials.burn

    def spy(password):
        calls.append(password)
        real_burn(password)

    monkeypatch.setattr(auth_service.credentials, "burn", spy)
    with pytest.raises(InvalidCredentials):
        auth_service.login("nobody@b.co", "Strong1!")
    assert calls == ["Strong1!"]


def test_login_is_case_sensitive_on_email(auth_service):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(InvalidCredentials):
        auth_service.login("A@B.CO", "Strong1!")


# ---------------------------------------------------------------------------
# Identity management
# ---------------------------------------------------------------------------


def test_get_identity(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    assert auth_service.get_identity(created.id) == created


def test_get_identity_missing(auth_service):
    with pytest.raises(IdentityNotFound):
        auth_service.get_identity("no-such-id")


def test_list_identities_is_ordered_by_email(auth_service):
    auth_service.register("b@b.co", "B", "Strong1!")
    auth_service.register("a@b.co", "A", "Strong1!")
    assert [i.email for i in auth_service.list_identities()] == ["a@b.co", "b@b.co"]


def test_update_display_name(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    updated = auth_service.update_identity(created.id, display_name="Alicia")
    assert updated.display_name == "Alicia"
    assert updated.email == "a@b.co"


def test_update_password_is_rehashed_and_old_one_stops_working(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    auth_service.update_identity(created.id, password="Newer2@pass")
    assert auth_service.login("a@b.co", "Newer2@pass").claims.subject_id == created.id
    with pytest.raises(InvalidCredentials):
        auth_service.login("a@b.co", "Strong1!")


def test_update_refuses_blank_display_name(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(InvalidDisplayName):
        auth_service.update_identity(created.id, display_name="   ")
    assert auth_service.get_identity(created.id).display_name == "Alice"


def test_update_password_over_72_bytes_is_weak(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(WeakPassword):
        auth_service.update_identity(created.id, password="é" * 40 + "Aa1!")


def test_update_password_enforces_policy(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    with pytest.raises(WeakPassword):
        auth_service.update_identity(created.id, password="weak")


def test_update_email_to_taken_address(auth_service):
    auth_service.register("a@b.co", "Alice", "Strong1!")
    bob = auth_service.register("b@b.co", "Bob", "Strong1!")
    with pytest.raises(DuplicateEmail):
        auth_service.update_identity(bob.id, email="a@b.co")


def test_update_email_to_own_address_is_a_noop(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    assert auth_service.update_identity(created.id, email="a@b.co").email == "a@b.co"


def test_update_role(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    assert auth_service.update_identity(created.id, role="owner").role is Role.OWNER


def test_demoted_owner_token_still_verifies_as_owner(auth_service, verifier):
    owner = auth_service.provision("o@b.co", "Owner", "Strong1!", Role.OWNER)
    token = auth_service.login("o@b.co", "Strong1!")
    auth_service.update_identity(owner.id, role=Role.GUEST)

    assert auth_service.get_identity(owner.id).role is Role.GUEST
    claims = verifier.verify(token.access_token)
    assert claims.role is Role.OWNER
    assert claims.subject_id == owner.id


def test_deleted_owner_token_still_verifies_until_expiry(auth_service, verifier):
    owner = auth_service.provision("o@b.co", "Owner", "Strong1!", Role.OWNER)
    token = auth_service.login("o@b.co", "Strong1!")
    auth_service.delete_identity(owner.id)

    assert verifier.verify(token.access_token).role is Role.OWNER
    with pytest.raises(TokenExpired):
        verifier.verify(token.access_token, now=token.claims.expires_at)


def test_update_missing_identity(auth_service):
    with pytest.raises(IdentityNotFound):
        auth_service.update_identity("no-such-id", display_name="X")


def test_delete_identity(auth_service):
    created = auth_service.register("a@b.co", "Alice", "Strong1!")
    auth_service.delete_identity(created.id)
    with pytest.raises(IdentityNotFound):
        auth_service.get_identity(created.id)
    with pytest.raises(IdentityNotFound):
        auth_service.delete_identity(created.id)
    with pytest.raises(InvalidCredentials):
        auth_service.login("a@b.co", "Strong1!")
