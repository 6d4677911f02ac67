# File: translatable/api/deps.py
"""
FastAPI dependencies for locale resolution.

Reads the request locale and the configured missing translation strategy
once per request, so repositories receive them as explicit parameters:

    @router.get("/products")
    def list_products(resolution: ResolutionSettings = Depends(get_resolution_settings)):
        return repo.list(locale=resolution.locale, strategy=resolution.strategy)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, Header, Query

from translatable.core.config import Settings, TranslationStrategy, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionSettings:
    """Locale resolution parameters of one request."""

    locale: str
    fallback_locale: str
    strategy: TranslationStrategy


def get_settings() -> Settings:
    return settings


def parse_accept_language(header: Optional[str]) -> List[str]:
    """
    Locales of an Accept-Language header, most preferred first.

    Example:
        "lv-LV,lv;q=0.9,en;q=0.5" -> ["lv-LV", "lv", "en"]
    """
    if not header:
        return []

    weighted = []
    for position, part in enumerate(header.split(",")):
        pieces = [p.strip() for p in part.split(";")]
        tag = pieces[0]
        if not tag or tag == "*":
            continue
        quality = 1.0
        for param in pieces[1:]:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        if quality > 0:
            weighted.append((-quality, position, tag))

    return [tag for _, _, tag in sorted(weighted)]


def match_locale(candidate: str, supported: List[str]) -> Optional[str]:
    """Match a locale tag against the supported locales, then its primary language."""
    normalized = candidate.replace("_", "-").lower()
    by_lower = {locale.lower(): locale for locale in supported}

    if normalized in by_lower:
        return by_lower[normalized]

    primary = normalized.split("-")[0]
    return by_lower.get(primary)


def get_locale(
    locale: Optional[str] = Query(None, description="Locale code for translations (e.g., 'en', 'lv')"),
    accept_language: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Locale of the current request.

    The ``locale`` query parameter wins over Accept-Language. Locales not in
    SUPPORTED_LOCALES are ignored; DEFAULT_LOCALE is used when nothing matches.
    """
    supported = list(settings.SUPPORTED_LOCALES) or [settings.DEFAULT_LOCALE]

    candidates = ([locale] if locale else []) + parse_accept_language(accept_language)
    for candidate in candidates:
        matched = match_locale(candidate, supported)
        if matched:
            return matched
        logger.debug(f"Unsupported locale '{candidate}' ignored")

    return settings.DEFAULT_LOCALE


def get_resolution_settings(
    locale: str = Depends(get_locale),
    settings: Settings = Depends(get_settings),
) -> ResolutionSettings:
    """Strategy and fallback locale read once for the request."""
    return ResolutionSettings(
        locale=locale,
        fallback_locale=settings.DEFAULT_LOCALE,
        strategy=settings.MISSING_TRANSLATION_STRATEGY,
    )
