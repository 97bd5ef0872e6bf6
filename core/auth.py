"""User accounts, sign-in and role permissions.

Passwords are 6-digit PINs stored as SHA-256 hashes. The signed-in user is
kept on the service instance (one per browser session) and mirrored to a
JSON session file so a reload can restore it.
"""
import hashlib
import json
import logging
import os
import re
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional

from core.company_settings import EMAIL_RE
from core.constants import DEFAULT_PERMISSIONS, SESSION_DURATION_DAYS, SESSION_FILE, USER_ROLES
from core.errors import NotFoundError, PosError, Result, ValidationError
from core.models import APP_TZ, Page, User, now_iso

logger = logging.getLogger(__name__)

PIN_RE = re.compile(r"^[0-9]{6}$")


def hash_password(password: str) -> str:
    """Hash password using SHA-256."""
    return hashlib.sha256(password.encode()).hexdigest()


def _validate_pin(password: str) -> None:
    if not PIN_RE.match(password or ""):
        raise ValidationError("Password must be exactly 6 numbers")


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=str(row["id"]),
        email=row["email"],
        name=row["name"],
        role=row["role"],
        permissions=json.loads(row["permissions"] or "[]"),
        created_at=row["created_at"] or "",
        last_login=row["last_login"],
        deleted_at=row["deleted_at"],
    )


class PermissionDenied(PosError):
    kind = "PermissionDenied"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class AuthService:
    def __init__(self, conn: sqlite3.Connection, session_file: str = SESSION_FILE):
        self.conn = conn
        self.session_file = session_file
        self.current_user: Optional[User] = None

    # ------------------------------------------------------------- session

    def save_session(self, user: User, remember: bool = False) -> None:
        """Save user session to file."""
        session_data = {
            "user_id": user.id,
            "remember": bool(remember),
            "expires": None
            if remember
            else (datetime.now(APP_TZ) + timedelta(days=SESSION_DURATION_DAYS)).isoformat(),
        }
        try:
            directory = os.path.dirname(self.session_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.session_file, "w") as f:
                json.dump(session_data, f)
        except OSError as e:
            logger.warning("Could not save session file: %s", e)

    def load_session(self) -> Optional[str]:
        """Return the user id stored in a still-valid session file, if any."""
        if not os.path.exists(self.session_file):
            return None
        try:
            with open(self.session_file, "r") as f:
                session_data = json.load(f)
            if not session_data.get("remember") and session_data.get("expires"):
                if datetime.now(APP_TZ) > datetime.fromisoformat(session_data["expires"]):
                    self.clear_session()
                    return None
            return session_data.get("user_id")
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file: %s", e)
            return None

    def clear_session(self) -> None:
        """Delete session file."""
        try:
            if os.path.exists(self.session_file):
                os.remove(self.session_file)
        except OSError as e:
            logger.warning("Could not remove session file: %s", e)

    # -------------------------------------------------------------- sign in

    def sign_in(self, email: str, password: str, remember: bool = False) -> Result:
        email = (email or "").strip().lower()
        try:
            row = self.conn.execute(
                "SELECT * FROM users WHERE LOWER(email) = ? AND deleted_at IS NULL", (email,)
            ).fetchone()
            if row is None or row["password"] != hash_password(password or ""):
                raise ValidationError("Invalid email or password")
            now = now_iso()
            self.conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (now, row["id"]))
            self.conn.commit()
            user = _user_from_row(row)
            user.last_login = now
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            logger.exception("Sign in failed: %s", e)
            return Result.failed("Sign in failed")
        self.current_user = user
        self.save_session(user, remember=remember)
        logger.info("User %s signed in", user.email)
        return Result.ok(user)

    def sign_out(self) -> None:
        self.current_user = None
        self.clear_session()

    def get_current_user(self) -> Optional[User]:
        if self.current_user is not None:
            return self.current_user
        user_id = self.load_session()
        if user_id is not None:
            self.current_user = self.get_user(user_id)
        return self.current_user

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    def has_permission(self, permission: str) -> bool:
        user = self.get_current_user()
        if user is None:
            return False
        return "*" in user.permissions or permission in user.permissions

    def has_role(self, role: str) -> bool:
        user = self.get_current_user()
        return user is not None and user.role == role

    def _require(self, permission: str) -> None:
        if not self.has_permission(permission) and not self.has_role("admin"):
            raise PermissionDenied()

    # ---------------------------------------------------------------- users

    def get_user(self, user_id) -> Optional[User]:
        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        row = self.conn.execute(
            "SELECT * FROM users WHERE id = ? AND deleted_at IS NULL", (key,)
        ).fetchone()
        return _user_from_row(row) if row else None

    def get_users(self) -> List[User]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM users WHERE deleted_at IS NULL ORDER BY created_at DESC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read users: %s", e)
            return []
        return [_user_from_row(r) for r in rows]

    def get_users_for_login(self) -> List[User]:
        """Active users for the sign-in picker, by name."""
        return sorted(self.get_users(), key=lambda u: u.name.lower())

    def get_users_paginated(self, page: int = 1, limit: int = 10) -> Page:
        try:
            total = self.conn.execute("SELECT COUNT(*) FROM users WHERE deleted_at IS NULL").fetchone()[0]
            rows = self.conn.execute(
                "SELECT * FROM users WHERE deleted_at IS NULL ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (limit, (page - 1) * limit),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read users page: %s", e)
            return Page(items=[], total_count=0, current_page=page, limit=limit)
        return Page(items=[_user_from_row(r) for r in rows], total_count=total, current_page=page, limit=limit)

    def get_deleted_users(self) -> List[User]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM users WHERE deleted_at IS NOT NULL ORDER BY deleted_at DESC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read deleted users: %s", e)
            return []
        return [_user_from_row(r) for r in rows]

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = "SELECT id FROM users WHERE LOWER(email) = ?"
        params: list = [email.lower()]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        return self.conn.execute(query, params).fetchone() is not None

    def create_user(self, email: str, password: str, name: str, role: str = "user") -> Result:
        email = (email or "").strip().lower()
        try:
            self._require("users.create")
            _validate_pin(password)
            if not (name or "").strip():
                raise ValidationError("Name is required")
            if not EMAIL_RE.match(email):
                raise ValidationError("Invalid email format")
            if role not in USER_ROLES:
                raise ValidationError(f"Invalid role: {role}")
            if self._email_taken(email):
                raise ValidationError("User with this email already exists")
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO users (email, password, name, role, permissions, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (email, hash_password(password), name.strip(), role, json.dumps(DEFAULT_PERMISSIONS[role]), now_iso()),
            )
            self.conn.commit()
            logger.info("Created user %s (%s)", email, role)
            return Result.ok(self.get_user(cur.lastrowid))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to create user: %s", e)
            return Result.failed("Failed to create user")

    def update_user(
        self,
        user_id,
        email: Optional[str] = None,
        name: Optional[str] = None,
        role: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Result:
        try:
            self._require("users.edit")
            user = self.get_user(user_id)
            if user is None:
                raise NotFoundError("User not found or has been deleted")
            actor = self.get_current_user()
            if actor is not None and actor.id == user.id and role and role != actor.role:
                raise ValidationError("Cannot change your own role")

            updates = {}
            if email:
                email = email.strip().lower()
                if not EMAIL_RE.match(email):
                    raise ValidationError("Invalid email format")
                if self._email_taken(email, exclude_id=int(user.id)):
                    raise ValidationError("User with this email already exists")
                updates["email"] = email
            if name:
                updates["name"] = name.strip()
            if role and role != user.role:
                if role not in USER_ROLES:
                    raise ValidationError(f"Invalid role: {role}")
                updates["role"] = role
                updates["permissions"] = json.dumps(DEFAULT_PERMISSIONS[role])
            if password:
                _validate_pin(password)
                updates["password"] = hash_password(password)
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                self.conn.execute(
                    f"UPDATE users SET {assignments} WHERE id = ?", (*updates.values(), int(user.id))
                )
                self.conn.commit()
            updated = self.get_user(user.id)
            if actor is not None and actor.id == user.id:
                self.current_user = updated
            return Result.ok(updated)
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to update user: %s", e)
            return Result.failed("Failed to update user")

    def delete_user(self, user_id) -> Result:
        """Soft delete; a user can never delete their own account."""
        try:
            self._require("users.delete")
            actor = self.get_current_user()
            if actor is not None and actor.id == str(user_id):
                raise ValidationError("Cannot delete your own account")
            if self.get_user(user_id) is None:
                raise NotFoundError("User not found or already deleted")
            self.conn.execute("UPDATE users SET deleted_at = ? WHERE id = ?", (now_iso(), int(user_id)))
            self.conn.commit()
            return Result.ok()
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to delete user: %s", e)
            return Result.failed("Failed to delete user")

    def restore_user(self, user_id) -> Result:
        try:
            self._require("users.edit")
            cur = self.conn.execute(
                "UPDATE users SET deleted_at = NULL WHERE id = ? AND deleted_at IS NOT NULL", (int(user_id),)
            )
            if cur.rowcount == 0:
                raise NotFoundError("Deleted user not found")
            self.conn.commit()
            return Result.ok(self.get_user(user_id))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to restore user: %s", e)
            return Result.failed("Failed to restore user")

    def change_password(self, current_password: str, new_password: str) -> Result:
        user = self.get_current_user()
        try:
            if user is None:
                raise ValidationError("Not authenticated")
            _validate_pin(new_password)
            row = self.conn.execute("SELECT password FROM users WHERE id = ?", (int(user.id),)).fetchone()
            if row is None:
                raise NotFoundError("User not found")
            if row["password"] != hash_password(current_password or ""):
                raise ValidationError("Current password is incorrect")
            self.conn.execute(
                "UPDATE users SET password = ? WHERE id = ?", (hash_password(new_password), int(user.id))
            )
            self.conn.commit()
            return Result.ok()
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to change password: %s", e)
            return Result.failed("Failed to change password")
