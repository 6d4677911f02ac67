# File: translatable/core/locale.py
"""
Active locale for the current request or task.

The locale is held in a context variable so that concurrent requests served
by the same process do not see each other's locale.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from translatable.core.config import settings

_current_locale: ContextVar[Optional[str]] = ContextVar("translatable_locale", default=None)


def get_locale() -> str:
    """Return the active locale, or the configured default when none is set."""
    return _current_locale.get() or settings.DEFAULT_LOCALE


def set_locale(locale: str) -> None:
    _current_locale.set(locale)


def get_fallback_locale() -> str:
    return settings.DEFAULT_LOCALE


@contextmanager
def use_locale(locale: str) -> Iterator[str]:
    """
    Temporarily switch the active locale.

    Example:
        with use_locale("lv"):
            products = repo.list()
    """
    token = _current_locale.set(locale)
    try:
        yield locale
    finally:
        _current_locale.reset(token)
