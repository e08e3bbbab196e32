#crawlers/base_crawler.py
import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from utils.text import clean_text, dedupe_strings
from .records import (
    NOT_AVAILABLE,
    UNKNOWN_TITLE,
    Chapter,
    ListingEntry,
    Source,
    TitleRecord,
    is_placeholder_title,
)

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "parsing"

LAZY_IMAGE_ATTRS = ("src", "data-src", "data-lazy-src", "data-original")
MAX_GENRE_LENGTH = 50
IMAGE_EXTENSION_RE = re.compile(r"\.(?:jpe?g|png|webp|gif)(?:$|[?#])", re.IGNORECASE)
DECORATIVE_IMAGE_RE = re.compile(
    r"(?:^|[^a-z])(?:logos?|icons?|placeholders?|avatars?|gravatar|ads?|banners?|widgets?)(?:[^a-z]|$)",
    re.IGNORECASE,
)
CSS_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)")


def make_soup(html):
    return BeautifulSoup(html or "", "lxml")


def resolve_url(href, base_url):
    """Resolve ``href`` against ``base_url`` unless it is already absolute."""
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith("http"):
        return href
    return urljoin(base_url, href)


def origin_of(url):
    parsed = urlparse(url or "")
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def first_attr(tag: Optional[Tag], attrs: Iterable[str] = LAZY_IMAGE_ATTRS) -> str:
    """Return the first non-empty attribute among ``attrs``."""
    if tag is None:
        return ""
    for attr in attrs:
        value = tag.get(attr)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def content_image_src(tag: Optional[Tag]) -> str:
    """Like :func:`first_attr`, but skips inline placeholder images used by lazy loaders."""
    if tag is None:
        return ""
    for attr in LAZY_IMAGE_ATTRS:
        value = tag.get(attr)
        if isinstance(value, str) and value.strip() and not is_inline_image(value):
            return value.strip()
    return ""


def css_background_url(style) -> str:
    if not style:
        return ""
    match = CSS_URL_RE.search(style)
    return match.group(1).strip() if match else ""


def is_inline_image(src) -> bool:
    return "data:image" in (src or "")


def is_decorative_image(src) -> bool:
    """True for logos, icons, ads and similar chrome, judged by file name."""
    path = urlparse(src or "").path
    filename = path.rsplit("/", 1)[-1]
    return bool(DECORATIVE_IMAGE_RE.search(filename))


def clean_genres(values: Iterable[str]) -> List[str]:
    """Dedupe genre labels and drop text too long to be a tag."""
    return [genre for genre in dedupe_strings(values) if len(genre) < MAX_GENRE_LENGTH]


def today_iso() -> str:
    return date.today().isoformat()


class SourceCrawler(ABC):
    """
    Extraction rules for one upstream site.

    Subclasses know the site's URLs and HTML structure. Everything that moves
    data (fetching, batching, persistence, caching) is source-agnostic and
    talks to sites only through this interface.
    """

    source: Source
    DISPLAY_NAME = ""
    BASE_URL = ""
    # Full-crawl page count; None means it must be discovered from page 1.
    FULL_CRAWL_PAGES: Optional[int] = None
    # Whether listing titles are passed to the detail extractor as hints.
    USES_LISTING_TITLE_HINTS = True
    # Whether listing thumbnails are replaced with stored covers when served.
    ENRICH_LISTING_COVERS = False

    @abstractmethod
    def listing_url(self, page: int) -> str:
        raise NotImplementedError

    def request_headers(self, url: str) -> Dict[str, str]:
        """Extra headers for a request to ``url`` on this site."""
        return {"Referer": self.BASE_URL}

    @abstractmethod
    def extract_listing(self, html: str) -> List[ListingEntry]:
        raise NotImplementedError

    @abstractmethod
    def extract_detail(self, html: str, url: str, hinted_title: Optional[str] = None) -> TitleRecord:
        """Build a record from a detail page; raise ``ParseError`` when it can't."""
        raise NotImplementedError

    @abstractmethod
    def extract_chapter_list(self, html: str) -> List[Chapter]:
        """Chapters oldest-first."""
        raise NotImplementedError

    @abstractmethod
    def extract_chapter_images(self, html: str) -> List[str]:
        raise NotImplementedError

    def detail_urls(self, entries: List[ListingEntry]) -> List[str]:
        urls = []
        seen = set()
        for entry in entries:
            if entry.url and entry.url not in seen:
                seen.add(entry.url)
                urls.append(entry.url)
        return urls

    def title_hints(self, entries: List[ListingEntry]) -> Dict[str, str]:
        if not self.USES_LISTING_TITLE_HINTS:
            return {}
        return {entry.url: entry.title for entry in entries if not is_placeholder_title(entry.title)}

    def parse_page_count(self, html: str) -> int:
        return self.FULL_CRAWL_PAGES or 1

    def resolve(self, href: str) -> str:
        return resolve_url(href, self.BASE_URL)

    def resolve_cover(self, src: str) -> str:
        if not src or is_inline_image(src):
            return NOT_AVAILABLE
        return self.resolve(src)

    def resolve_title(self, hinted_title: Optional[str], candidates: Iterable[str], url: str) -> str:
        """Pick the hinted title, else the first usable candidate, else ``Unknown``."""
        if not is_placeholder_title(hinted_title):
            return clean_text(hinted_title)
        for candidate in candidates:
            text = clean_text(candidate)
            if not is_placeholder_title(text):
                return text
        LOGGER.warning("Could not parse title from %s", url, extra={"source": LOG_SOURCE})
        return UNKNOWN_TITLE

    def collect_images(self, elements: Iterable[Tag], *, require_extension=False) -> List[str]:
        """Resolve content image URLs from ``elements``, skipping chrome and dupes."""
        images: List[str] = []
        for element in elements:
            src = content_image_src(element)
            if not src:
                continue
            if require_extension and not IMAGE_EXTENSION_RE.search(src):
                continue
            if is_decorative_image(src):
                continue
            resolved = self.resolve(src)
            if resolved not in images:
                images.append(resolved)
        return images
