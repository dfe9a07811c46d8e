#!/usr/bin/env python3
"""Shared helpers for Melodi payloads: localized text and filter parameters."""

from urllib.parse import urlencode


# === Functional Core (Pure Functions - No I/O) ===

def get_language_content(items, lang='fr'):
    """Pick the localized content from a list of {lang, content} pairs.

    Args:
        items: List of dicts like [{'lang': 'fr', 'content': 'Décès'}, ...]
        lang: Preferred language code, compared case-insensitively

    Returns:
        Content in the preferred language, or '' if absent
    """
    if not items or not isinstance(items, list):
        return ''
    for item in items:
        if str(item.get('lang', '')).lower() == lang:
            return item.get('content') or ''
    return ''


def label_text(label):
    """Return the French label of a range-table entry, English as fallback."""
    if not label:
        return ''
    return label.get('fr') or label.get('en') or ''


def build_import_params(filters):
    """Merge configured filters into a concept -> values mapping.

    Filters on the same concept are merged; duplicates are removed while
    keeping first-seen order.

    Args:
        filters: List of {'selectedConcept': str, 'selectedValues': [str]}
            dicts, or None

    Returns:
        Dict like {'GEO': ['FR', 'DE'], 'SEXE': ['M']}
    """
    params = {}
    if not filters:
        return params

    for entry in filters:
        code = entry.get('selectedConcept')
        values = entry.get('selectedValues')

        # Skip incomplete entries
        if not code or not values:
            continue

        merged = params.setdefault(code, [])
        for value in values:
            if value not in merged:
                merged.append(value)

    return params


def serialize_params(params):
    """Serialize query parameters, repeating the key for list values.

    The Melodi API expects 'GEO=A&GEO=B', not 'GEO[]=A&GEO[]=B'.

    Args:
        params: Dict of parameter name -> scalar or list; None values omitted

    Returns:
        URL-encoded query string
    """
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            pairs.extend((key, str(v)) for v in value)
        elif isinstance(value, bool):
            pairs.append((key, 'true' if value else 'false'))
        else:
            pairs.append((key, str(value)))
    return urlencode(pairs)
