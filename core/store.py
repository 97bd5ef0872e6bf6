"""Observable session state for auth and language.

``Store.set`` mutates synchronously and then calls every subscriber, in
subscription order, with a snapshot of the new state. Pages keep one store
of each kind in ``st.session_state``.
"""
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from core.errors import Result
from core.models import User
from core.translations import SUPPORTED_LOCALES

logger = logging.getLogger(__name__)

Subscriber = Callable[[Dict[str, Any]], None]


class Store:
    def __init__(self, **initial):
        self._state: Dict[str, Any] = dict(initial)
        self._subscribers: List[Subscriber] = []

    def get(self, key: str, default=None):
        return self._state.get(key, default)

    @property
    def state(self) -> Dict[str, Any]:
        return dict(self._state)

    def set(self, **changes) -> None:
        self._state.update(changes)
        snapshot = self.state
        for callback in list(self._subscribers):
            callback(snapshot)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; the returned function removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class AuthStore(Store):
    def __init__(self):
        super().__init__(user=None, is_loading=False, error=None)

    @property
    def user(self) -> Optional[User]:
        return self.get("user")

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"

    @property
    def is_manager(self) -> bool:
        return self.user is not None and self.user.role == "manager"

    @property
    def is_user(self) -> bool:
        return self.user is not None and self.user.role == "user"


class LanguageStore(Store):
    def __init__(self, locale: str = "en"):
        super().__init__(
            current_locale=locale,
            is_loading=False,
            available_locales=[loc.code for loc in SUPPORTED_LOCALES],
        )

    @property
    def current_locale(self) -> str:
        return self.get("current_locale")


class AuthActions:
    """Drives ``AuthStore`` through the auth service."""

    def __init__(self, auth_service, store: AuthStore):
        self.auth = auth_service
        self.store = store

    def sign_in(self, email: str, password: str, remember: bool = False) -> Result:
        self.store.set(is_loading=True, error=None)
        try:
            result = self.auth.sign_in(email, password, remember=remember)
            if result.success:
                self.store.set(user=result.value, error=None)
            else:
                self.store.set(user=None, error=result.error or "Sign in failed")
            return result
        finally:
            self.store.set(is_loading=False)

    def sign_out(self) -> None:
        self.store.set(user=None, error=None)
        self.auth.sign_out()

    def initialize_auth(self) -> None:
        self.store.set(is_loading=True)
        try:
            self.store.set(user=self.auth.get_current_user(), error=None)
        finally:
            self.store.set(is_loading=False)

    def clear_error(self) -> None:
        self.store.set(error=None)

    def has_permission(self, permission: str) -> bool:
        user = self.store.user
        if user is None:
            return False
        return "*" in user.permissions or permission in user.permissions

    def has_role(self, role: str) -> bool:
        return self.store.user is not None and self.store.user.role == role


class LanguageActions:
    """Switches the UI language and remembers the choice in company settings."""

    def __init__(self, translations, settings_repo, store: LanguageStore):
        self.translations = translations
        self.settings = settings_repo
        self.store = store

    def change_language(self, locale: str) -> None:
        self.store.set(is_loading=True)
        try:
            self.translations.set_locale(locale)
            self.store.set(current_locale=locale)
            result = self.settings.update_settings(language=locale)
            if not result.success:
                logger.warning("Could not persist language %s: %s", locale, result.error)
        finally:
            self.store.set(is_loading=False)

    def initialize_language(self) -> None:
        try:
            settings = self.settings.get_settings()
        except sqlite3.Error as e:
            logger.exception("Failed to initialize language: %s", e)
            settings = None
        locale = settings.language if settings and settings.language else "en"
        self.translations.set_locale(locale)
        self.store.set(current_locale=locale)
