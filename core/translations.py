"""Key-based UI translations loaded from ``locales/<code>.json``."""
import json
import logging
import os
import re
from typing import Dict, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

LOCALES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "locales")
FALLBACK_LOCALE = "en"
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


class Locale(NamedTuple):
    code: str
    name: str
    native_name: str
    flag: str


SUPPORTED_LOCALES: List[Locale] = [
    Locale("en", "English", "English", "\U0001F1FA\U0001F1F8"),
    Locale("es", "Spanish", "Español", "\U0001F1EA\U0001F1F8"),
    Locale("fr", "French", "Français", "\U0001F1EB\U0001F1F7"),
    Locale("de", "German", "Deutsch", "\U0001F1E9\U0001F1EA"),
    Locale("it", "Italian", "Italiano", "\U0001F1EE\U0001F1F9"),
    Locale("pt", "Portuguese", "Português", "\U0001F1F5\U0001F1F9"),
    Locale("zh", "Chinese", "中文", "\U0001F1E8\U0001F1F3"),
    Locale("ja", "Japanese", "日本語", "\U0001F1EF\U0001F1F5"),
]


class TranslationService:
    """Resolves dotted keys in the current locale, then English, then the key itself."""

    def __init__(self, locales_dir: str = LOCALES_DIR, locale: str = FALLBACK_LOCALE):
        self.locales_dir = locales_dir
        self.translations: Dict[str, dict] = {}
        self.current_locale = FALLBACK_LOCALE
        self.load_translation(FALLBACK_LOCALE)
        self.set_locale(locale)

    def load_translation(self, locale: str) -> None:
        path = os.path.join(self.locales_dir, f"{locale}.json")
        try:
            with open(path, encoding="utf-8") as f:
                self.translations[locale] = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load translation for %s: %s", locale, e)

    def set_locale(self, locale: str) -> None:
        if locale not in self.translations:
            self.load_translation(locale)
        self.current_locale = locale

    def _lookup(self, key: str, locale: str) -> Optional[str]:
        current = self.translations.get(locale)
        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
        return current if isinstance(current, str) else None

    def t(self, key: str, **params) -> str:
        text = self._lookup(key, self.current_locale) or self._lookup(key, FALLBACK_LOCALE) or key
        if not params:
            return text

        def _replace(match):
            value = params.get(match.group(1))
            return match.group(0) if value is None else str(value)

        return PLACEHOLDER_RE.sub(_replace, text)

    def get_supported_locales(self) -> List[Locale]:
        return SUPPORTED_LOCALES
