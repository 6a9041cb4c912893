from __future__ import annotations

import re

from field_inventory.config import settings

_CATEGORY_SEPARATOR_PATTERN = re.compile(r'[\s_]+')
_NON_DIGIT_PATTERN = re.compile(r'\D')


def clean_text(value: str | None) -> str:
    return (value or '').strip()


def optional_text(value: str | None) -> str | None:
    cleaned = clean_text(value)
    return cleaned or None


def normalize_value(value: str | None) -> str:
    """Matching key for serial numbers and tag ids: trimmed and case-folded."""
    return clean_text(value).casefold()


def normalize_category_key(value: str | None) -> str:
    """Matching key for category names.

    ``'MW Passive'``, ``'mw_passive'`` and ``' MW-Passive '`` all map to
    ``'mw-passive'``.
    """
    return _CATEGORY_SEPARATOR_PATTERN.sub('-', clean_text(value)).lower()


def normalize_provenance(value: str | None) -> str:
    return clean_text(value).lower()


def site_digits(value: str | None) -> str:
    return _NON_DIGIT_PATTERN.sub('', clean_text(value))


def canonical_site_id(value: str | None, *, prefix: str | None = None) -> str:
    digits = site_digits(value)
    if not digits:
        return ''
    return f'{prefix if prefix is not None else settings.site_prefix}{digits}'


def requirement_site_key(canonical: str | None, *, prefix: str | None = None) -> str:
    """Site key used by the requirement table: the canonical id without its prefix."""
    cleaned = clean_text(canonical)
    site_prefix = prefix if prefix is not None else settings.site_prefix
    if site_prefix and cleaned.upper().startswith(site_prefix.upper()):
        return cleaned[len(site_prefix) :]
    return cleaned
