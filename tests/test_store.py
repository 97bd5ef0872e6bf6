"""
Unit tests for the observable stores and their actions
"""
import sqlite3
from unittest.mock import Mock

import pytest

from core.auth import AuthService
from core.errors import Result
from core.store import AuthActions, AuthStore, LanguageActions, LanguageStore, Store
from core.translations import TranslationService


class TestStore:
    """Test synchronous set/subscribe semantics"""

    def test_subscribers_see_new_state_in_order(self):
        store = Store(count=0)
        calls = []
        store.subscribe(lambda s: calls.append(("first", s["count"])))
        store.subscribe(lambda s: calls.append(("second", s["count"])))

        store.set(count=1)

        assert calls == [("first", 1), ("second", 1)]
        assert store.get("count") == 1

    def test_unsubscribe(self):
        store = Store(count=0)
        callback = Mock()
        unsubscribe = store.subscribe(callback)

        unsubscribe()
        store.set(count=5)

        callback.assert_not_called()

    def test_state_is_a_snapshot(self):
        store = Store(count=0)

        snapshot = store.state
        snapshot["count"] = 99

        assert store.get("count") == 0


class TestAuthActions:
    """Test AuthActions driving AuthStore"""

    @pytest.fixture
    def actions(self, conn, tmp_path):
        auth = AuthService(conn, session_file=str(tmp_path / "session.json"))
        return AuthActions(auth, AuthStore())

    def test_sign_in_updates_store(self, actions):
        seen = []
        actions.store.subscribe(lambda s: seen.append(s["is_loading"]))

        result = actions.sign_in("manager@postpos.com", "234567")

        assert result.success
        assert actions.store.is_authenticated
        assert actions.store.is_manager
        assert not actions.store.is_admin
        assert seen[0] is True
        assert seen[-1] is False

    def test_failed_sign_in_records_error(self, actions):
        actions.sign_in("manager@postpos.com", "000000")

        assert not actions.store.is_authenticated
        assert actions.store.get("error") == "Invalid email or password"

        actions.clear_error()
        assert actions.store.get("error") is None

    def test_sign_out(self, actions):
        actions.sign_in("user@postpos.com", "345678")
        assert actions.store.is_user

        actions.sign_out()

        assert actions.store.user is None

    def test_permission_checks_use_store_user(self, actions):
        actions.sign_in("user@postpos.com", "345678")

        assert actions.has_permission("sales.create")
        assert not actions.has_permission("reports.view")
        assert actions.has_role("user")


class TestLanguageActions:
    """Test LanguageActions persistence and fallbacks"""

    def test_change_language_persists_to_settings(self, settings_repo):
        translations = TranslationService()
        actions = LanguageActions(translations, settings_repo, LanguageStore())

        actions.change_language("es")

        assert actions.store.current_locale == "es"
        assert translations.current_locale == "es"
        assert settings_repo.get_settings().language == "es"

    def test_persist_failure_is_logged(self, caplog):
        settings = Mock()
        settings.update_settings.return_value = Result.failed("Failed to update company settings")
        actions = LanguageActions(TranslationService(), settings, LanguageStore())

        actions.change_language("fr")

        assert actions.store.current_locale == "fr"
        assert "Could not persist language fr" in caplog.text

    def test_initialize_from_settings(self, settings_repo):
        settings_repo.update_settings(language="es")
        actions = LanguageActions(TranslationService(), settings_repo, LanguageStore())

        actions.initialize_language()

        assert actions.store.current_locale == "es"

    def test_initialize_falls_back_to_english(self):
        settings = Mock()
        settings.get_settings.side_effect = sqlite3.OperationalError("no such table")
        actions = LanguageActions(TranslationService(), settings, LanguageStore(locale="de"))

        actions.initialize_language()

        assert actions.store.current_locale == "en"

    def test_available_locales(self):
        assert LanguageStore().get("available_locales")[:2] == ["en", "es"]
