"""
Unit tests for AuthService: sign-in, sessions, permissions and user management
"""
import json

import pytest

from core.auth import AuthService, hash_password


@pytest.fixture
def auth(conn, tmp_path):
    return AuthService(conn, session_file=str(tmp_path / "session.json"))


@pytest.fixture
def admin(auth):
    return auth.sign_in("admin@postpos.com", "123456").value


class TestSignIn:
    """Test AuthService.sign_in and session handling"""

    def test_seeded_admin_can_sign_in(self, auth):
        result = auth.sign_in("Admin@PostPOS.com ", "123456")

        assert result.success
        assert result.value.role == "admin"
        assert result.value.last_login is not None
        assert auth.is_authenticated()

    def test_wrong_pin(self, auth):
        result = auth.sign_in("admin@postpos.com", "000000")

        assert not result.success
        assert result.error == "Invalid email or password"
        assert not auth.is_authenticated()

    def test_session_is_restored_by_a_new_service(self, conn, auth, tmp_path):
        auth.sign_in("manager@postpos.com", "234567", remember=True)

        fresh = AuthService(conn, session_file=str(tmp_path / "session.json"))

        assert fresh.get_current_user().email == "manager@postpos.com"

    def test_expired_session_is_ignored(self, conn, auth, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"user_id": "1", "remember": False, "expires": "2000-01-01T00:00:00+00:00"}))

        assert auth.load_session() is None
        assert not path.exists()

    def test_sign_out_clears_session(self, auth, tmp_path):
        auth.sign_in("admin@postpos.com", "123456")

        auth.sign_out()

        assert auth.current_user is None
        assert not (tmp_path / "session.json").exists()

    def test_deleted_user_cannot_sign_in(self, auth, admin):
        auth.delete_user("3")

        result = auth.sign_in("user@postpos.com", "345678")

        assert not result.success


class TestPermissions:
    """Test role permissions"""

    def test_admin_has_every_permission(self, auth, admin):
        assert auth.has_permission("users.delete")
        assert auth.has_role("admin")

    def test_cashier_permissions(self, auth):
        auth.sign_in("user@postpos.com", "345678")

        assert auth.has_permission("sales.create")
        assert not auth.has_permission("users.create")

    def test_cashier_cannot_create_users(self, auth):
        auth.sign_in("user@postpos.com", "345678")

        result = auth.create_user("new@postpos.com", "111111", "New Person")

        assert not result.success
        assert result.error == "Insufficient permissions"

    def test_signed_out_has_no_permissions(self, auth):
        assert not auth.has_permission("sales.view")


class TestUserManagement:
    """Test creating, updating, deleting and restoring users"""

    def test_create_user(self, auth, admin, conn):
        result = auth.create_user("Barista@PostPOS.com", "654321", "Barista", "user")

        assert result.success
        assert result.value.email == "barista@postpos.com"
        row = conn.execute("SELECT password FROM users WHERE email = ?", ("barista@postpos.com",)).fetchone()
        assert row["password"] == hash_password("654321")

    @pytest.mark.parametrize("pin", ["12345", "1234567", "abcdef", ""])
    def test_pin_must_be_six_digits(self, auth, admin, pin):
        result = auth.create_user("new@postpos.com", pin, "New Person")

        assert not result.success
        assert result.error == "Password must be exactly 6 numbers"

    def test_duplicate_email(self, auth, admin):
        result = auth.create_user("manager@postpos.com", "111111", "Other Manager")

        assert not result.success
        assert result.error == "User with this email already exists"

    def test_cannot_change_own_role(self, auth, admin):
        result = auth.update_user(admin.id, role="user")

        assert not result.success
        assert result.error == "Cannot change your own role"

    def test_role_change_resets_permissions(self, auth, admin):
        result = auth.update_user("3", role="manager")

        assert result.success
        assert "users.view" in result.value.permissions

    def test_cannot_delete_self(self, auth, admin):
        result = auth.delete_user(admin.id)

        assert not result.success
        assert result.error == "Cannot delete your own account"

    def test_delete_and_restore(self, auth, admin):
        assert auth.delete_user("2").success
        assert [u.id for u in auth.get_deleted_users()] == ["2"]
        assert "2" not in [u.id for u in auth.get_users()]

        assert auth.restore_user("2").success
        assert auth.get_deleted_users() == []

    def test_login_picker_sorted_by_name(self, auth):
        assert [u.name for u in auth.get_users_for_login()] == ["Admin User", "John Cashier", "Store Manager"]

    def test_users_paginated(self, auth):
        page = auth.get_users_paginated(page=1, limit=2)

        assert page.total_count == 3
        assert len(page.items) == 2
        assert page.has_next_page


class TestChangePassword:
    def test_change_own_pin(self, auth, admin):
        assert auth.change_password("123456", "999999").success

        auth.sign_out()
        assert auth.sign_in("admin@postpos.com", "999999").success

    def test_wrong_current_pin(self, auth, admin):
        result = auth.change_password("000000", "999999")

        assert not result.success
        assert result.error == "Current password is incorrect"
