"""Text normalization utilities for search, slugs and scraped values."""

import re
import unicodedata

_WS_RE = re.compile(r"\s+", re.UNICODE)
_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def clean_text(value):
    """Collapse whitespace runs and strip; non-strings become an empty string."""
    if not isinstance(value, str):
        return ""
    return _WS_RE.sub(" ", value).strip()


def normalize_search_text(value):
    """Normalize text for case-insensitive search comparisons."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = _WS_RE.sub(" ", text)
    return text.lower()


def create_slug(value):
    """Lowercase, collapse non-alphanumeric runs to '-', strip edge dashes."""
    if not value:
        return ""
    return _SLUG_SEPARATOR_RE.sub("-", str(value).lower()).strip("-")


def dedupe_strings(values):
    """Keep the first occurrence of each cleaned, non-empty string."""
    deduped = []
    seen = set()
    for raw in values or ():
        text = clean_text(raw)
        if not text or text in seen:
            continue
        seen.add(text)
        deduped.append(text)
    return deduped
