"""
Internationalization (i18n) support for coach card copy
Resolves string keys per locale with English fallback
"""

from typing import Optional
from loguru import logger
from .i18n_strings import STRINGS

# Supported languages
SUPPORTED_LOCALES = ["en", "pt_br"]
DEFAULT_LOCALE = "en"


def normalize_locale(locale: Optional[str]) -> str:
    """
    Map a requested locale onto a supported one.

    Args:
        locale: Locale string (e.g., "en", "pt_br", "pt-BR")

    Returns:
        Supported locale string, DEFAULT_LOCALE when unknown
    """
    if not locale:
        return DEFAULT_LOCALE
    candidate = locale.lower().replace("-", "_")
    if candidate in SUPPORTED_LOCALES:
        return candidate
    logger.warning(f"Unsupported locale '{locale}', falling back to {DEFAULT_LOCALE}")
    return DEFAULT_LOCALE


def get_string(key: str, locale: str = DEFAULT_LOCALE) -> str:
    """Look up a copy string, falling back to English, then to the key itself."""
    table = STRINGS.get(locale) or STRINGS[DEFAULT_LOCALE]
    if key in table:
        return table[key]
    if key in STRINGS[DEFAULT_LOCALE]:
        logger.debug(f"Missing '{key}' for locale {locale}, using {DEFAULT_LOCALE}")
        return STRINGS[DEFAULT_LOCALE][key]
    logger.warning(f"Missing copy string: {key}")
    return key


def get_supported_locales() -> list:
    """Get list of supported locales."""
    return SUPPORTED_LOCALES.copy()


def is_supported_locale(locale: str) -> bool:
    """Check if a locale is supported."""
    return locale in SUPPORTED_LOCALES
