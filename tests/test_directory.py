"""Unit tests for auth/directory.py -- registration, roles, and status rules."""

import pytest

from auth.directory import (
    DirectoryError,
    DuplicateEmailError,
    NoUsersWithStatusError,
    PasswordTooLongError,
    RoleExistsError,
    UnknownRoleError,
    UserNotFoundError,
    add_role,
    register_user,
    update_user_status,
    users_by_status,
)
from auth.store import UserStore


def _hash(plain: str) -> str:
    return f"hashed:{plain}"


def _register(store: UserStore, email: str, roles=None):
    return register_user(
        store,
        full_name="Test User",
        email=email,
        password="pw-123456",
        hash_password=_hash,
        roles=roles,
        cell_number="5550100",
    )


class TestRegistration:
    def test_plain_user_is_active(self, store: UserStore) -> None:
        user, message = _register(store, "ada@example.com", ["user"])
        assert user.status == "active"
        assert user.roles == ["ROLE_USER"]
        assert message == "Registration successful. You can now log in to your account."

    def test_password_is_stored_hashed(self, store: UserStore) -> None:
        _register(store, "ada@example.com", ["user"])
        assert store.get_by_email("ada@example.com").hashed_password == "hashed:pw-123456"

    def test_no_roles_gets_default_role(self, store: UserStore) -> None:
        user, _ = _register(store, "ada@example.com", [])
        assert store.get_by_email("ada@example.com").roles == ["ROLE_USER"]
        assert user.roles == ["ROLE_USER"]

    @pytest.mark.parametrize("role", ["admin", "MODERATOR", "ROLE_ADMIN"])
    def test_privileged_roles_start_pending(self, store: UserStore, role: str) -> None:
        add_role(store, "admin")
        add_role(store, "moderator")
        user, message = _register(store, "boss@example.com", [role])
        assert user.status == "pending"
        assert "pending activation" in message

    def test_mixed_roles_are_pending(self, store: UserStore) -> None:
        add_role(store, "admin")
        user, _ = _register(store, "boss@example.com", ["user", "admin"])
        assert user.status == "pending"
        assert user.roles == ["ROLE_ADMIN", "ROLE_USER"]

    def test_unknown_role_rejected_and_nothing_written(self, store: UserStore) -> None:
        with pytest.raises(UnknownRoleError, match="AUDITOR role not found"):
            _register(store, "ada@example.com", ["auditor"])
        assert store.get_by_email("ada@example.com") is None

    def test_duplicate_email_always_reports_exists(self, store: UserStore) -> None:
        _register(store, "ada@example.com", ["user"])
        for _ in range(2):
            with pytest.raises(DuplicateEmailError, match="already exists"):
                _register(store, "ada@example.com", ["user"])
        assert len(store.list_by_status("active")) == 1


class TestRoles:
    def test_add_role_canonicalizes(self, store: UserStore) -> None:
        assert add_role(store, "auditor") == "AUDITOR role added"
        assert store.get_role("ROLE_AUDITOR") is not None

    def test_prefixed_name_is_not_double_prefixed(self, store: UserStore) -> None:
        add_role(store, "role_auditor")
        assert store.get_role("ROLE_AUDITOR") is not None
        assert store.get_role("ROLE_ROLE_AUDITOR") is None

    def test_existing_role_rejected_case_insensitively(self, store: UserStore) -> None:
        add_role(store, "auditor")
        with pytest.raises(RoleExistsError, match="AUDITOR already exists"):
            add_role(store, "Auditor")

    @pytest.mark.parametrize("role", ["ROLE_", "role_", "   "])
    def test_bare_prefix_is_not_a_role(self, store: UserStore, role: str) -> None:
        with pytest.raises(DirectoryError, match="must not be empty"):
            add_role(store, role)
        assert store.get_role("ROLE_") is None

    def test_default_role_cannot_be_recreated(self, store: UserStore) -> None:
        with pytest.raises(RoleExistsError):
            add_role(store, "user")


class TestStatus:
    def test_update_status(self, store: UserStore) -> None:
        _register(store, "ada@example.com", ["user"])
        assert update_user_status(store, "ada@example.com", "inactive") == "Updated user status to inactive"
        assert store.get_by_email("ada@example.com").status == "inactive"

    def test_update_missing_user(self, store: UserStore) -> None:
        with pytest.raises(UserNotFoundError, match="User not found"):
            update_user_status(store, "ghost@example.com", "active")

    def test_users_by_status(self, store: UserStore) -> None:
        _register(store, "ada@example.com", ["user"])
        assert [u.email for u in users_by_status(store, "active")] == ["ada@example.com"]

    def test_users_by_status_empty_is_an_error(self, store: UserStore) -> None:
        with pytest.raises(NoUsersWithStatusError, match="No users found with inactive status"):
            users_by_status(store, "inactive")


def test_password_over_72_bytes_rejected_before_hashing(store: UserStore) -> None:
    hashed = []

    def _recording_hash(plain: str) -> str:
        hashed.append(plain)
        return _hash(plain)

    with pytest.raises(PasswordTooLongError, match="72 bytes"):
        register_user(
            store,
            full_name="Test User",
            email="long@example.com",
            password="é" * 40,
            hash_password=_recording_hash,
        )
    assert hashed == []
    assert store.get_by_email("long@example.com") is None
