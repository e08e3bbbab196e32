"""Canonical records produced by the extractors."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse

UNKNOWN_TITLE = "Unknown"
NOT_AVAILABLE = "N/A"
PLACEHOLDER_TITLES = frozenset({"", UNKNOWN_TITLE, "Unknown Title"})


class Source(str, Enum):
    SHOJO = "shojo"
    TOONGOD = "toongod"
    MANGA = "manga"

    @classmethod
    def parse(cls, value):
        """Return the member for ``value`` (a member or its string value) or None."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None

    @classmethod
    def from_url(cls, url):
        host = (urlparse(url or "").hostname or "").lower()
        if "kingofshojo" in host:
            return cls.SHOJO
        if "manhwa18" in host:
            return cls.TOONGOD
        if "mangakakalot" in host:
            return cls.MANGA
        return None


@dataclass
class ListingEntry:
    title: str
    url: str
    cover_image_url: Optional[str] = None


@dataclass
class Chapter:
    title: str
    url: str


@dataclass
class TitleRecord:
    """One cataloged work as scraped from a detail page."""

    title: str
    url: str
    author: str = NOT_AVAILABLE
    updated: str = NOT_AVAILABLE
    cover_image_url: str = NOT_AVAILABLE
    genres: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def has_unknown_title(self) -> bool:
        return self.title == UNKNOWN_TITLE


def is_placeholder_title(value) -> bool:
    return not isinstance(value, str) or value.strip() in PLACEHOLDER_TITLES
