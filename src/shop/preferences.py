from typing import Literal

from shop.storage import LocalStorage
from utils.logger import get_logger

_logger = get_logger(__name__)

AGE_VERIFIED_KEY = "age-verified"
LANGUAGE_KEY = "language"

Language = Literal["en", "sv"]
SUPPORTED_LANGUAGES = ("en", "sv")
DEFAULT_LANGUAGE: Language = "en"


class Preferences:
    """Age gate confirmation and UI language, kept next to the cart in local storage."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage

    @property
    def age_verified(self) -> bool:
        try:
            return self._storage.get_item(AGE_VERIFIED_KEY) == "true"
        except (OSError, ValueError) as e:
            _logger.error(f"Error reading age verification: {e}")
            return False

    def confirm_age(self) -> None:
        try:
            self._storage.set_item(AGE_VERIFIED_KEY, "true")
        except (OSError, ValueError) as e:
            _logger.error(f"Error saving age verification: {e}")

    @property
    def language(self) -> Language:
        try:
            value = self._storage.get_item(LANGUAGE_KEY)
        except (OSError, ValueError) as e:
            _logger.error(f"Error reading language preference: {e}")
            return DEFAULT_LANGUAGE
        return value if value in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

    @language.setter
    def language(self, value: str) -> None:
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {value}")
        try:
            self._storage.set_item(LANGUAGE_KEY, value)
        except (OSError, ValueError) as e:
            _logger.error(f"Error saving language preference: {e}")
