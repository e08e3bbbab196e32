import json
import re
from typing import Dict, List, Optional

from utils.text import clean_text
from .base_crawler import (
    SourceCrawler,
    clean_genres,
    css_background_url,
    first_attr,
    is_decorative_image,
    make_soup,
    origin_of,
    today_iso,
)
from .records import NOT_AVAILABLE, Chapter, ListingEntry, Source, TitleRecord

SCRIPT_IMAGE_ARRAY_RE = re.compile(
    r'\["http[^"]+\.(?:jpe?g|png|webp|gif)"(?:\s*,\s*"[^"]+")*\]',
    re.IGNORECASE,
)

COVER_SELECTORS = '.series-cover img, .thumb img, .poster img, img[itemprop="image"]'
AUTHOR_SELECTORS = '[itemprop="author"] a, .author-content a, .author a, .creator a, [data-author] a'
GENRE_SELECTORS = '.genres-content a, .series-genres a, .item-genres a, a[href*="/genre/"]'
UPDATED_SELECTORS = ".time-since, .updated, [data-time], .update-date, .last-update, .chapter-time"


class ToonGodCrawler(SourceCrawler):
    """Manhwa18 (ToonGod catalog)."""

    source = Source.TOONGOD
    DISPLAY_NAME = "ToonGod"
    BASE_URL = "https://manhwa18.net/"
    FULL_CRAWL_PAGES = 62
    ENRICH_LISTING_COVERS = True

    def listing_url(self, page: int) -> str:
        return f"{self.BASE_URL}genre/adult?sort=update&page={page}"

    def request_headers(self, url: str) -> Dict[str, str]:
        return {"Referer": origin_of(url) or self.BASE_URL}

    def extract_listing(self, html: str) -> List[ListingEntry]:
        soup = make_soup(html)
        entries = []
        for item in soup.select(".thumb-item-flow"):
            link = item.select_one(".series-title a[href], .thumb_attr a[href]") or item.select_one(
                'a[href*="/manga/"]'
            )
            if link is None:
                continue
            href = (link.get("href") or "").strip()
            title = clean_text(link.get("title") or "") or clean_text(link.get_text(" ", strip=True))
            if not href or not title or title == "Unknown":
                continue

            image = item.select_one("[data-bg], .img-in-ratio, img")
            cover = ""
            if image is not None:
                raw = first_attr(image, ("data-bg", "data-src", "src")) or image.get("style") or ""
                cover = css_background_url(raw) or raw
            entries.append(
                ListingEntry(
                    title=title,
                    url=self.resolve(href),
                    cover_image_url=self.resolve(cover) if cover else NOT_AVAILABLE,
                )
            )
        return entries

    def detail_urls(self, entries: List[ListingEntry]) -> List[str]:
        return [url for url in super().detail_urls(entries) if "/manga/" in url]

    def extract_detail(self, html: str, url: str, hinted_title: Optional[str] = None) -> TitleRecord:
        soup = make_soup(html)

        candidates = []
        series_name = soup.select_one(".series-name")
        if series_name is not None:
            heading = series_name.find(True) or series_name
            candidates.append(heading.get_text(" ", strip=True))
        header_link = soup.select_one(".series-title a[title]")
        if header_link is not None:
            candidates.append(header_link.get("title") or "")
        title = self.resolve_title(hinted_title, candidates, url)

        record = TitleRecord(title=title, url=url, updated=today_iso())

        cover = ""
        background = soup.select_one(".img-in-ratio")
        if background is not None:
            cover = css_background_url(background.get("style")) or first_attr(background, ("data-bg",))
        if not cover:
            cover = first_attr(soup.select_one(COVER_SELECTORS))
        record.cover_image_url = self.resolve_cover(cover)

        author = soup.select_one(AUTHOR_SELECTORS)
        if author is not None:
            record.author = clean_text(author.get_text(" ", strip=True)) or NOT_AVAILABLE

        record.genres = clean_genres(link.get_text(" ", strip=True) for link in soup.select(GENRE_SELECTORS))

        updated = soup.select_one(UPDATED_SELECTORS)
        if updated is not None:
            time_node = updated.select_one("time[datetime]")
            value = time_node["datetime"] if time_node else updated.get_text(" ", strip=True)
            record.updated = clean_text(value) or record.updated
        return record

    def extract_chapter_list(self, html: str) -> List[Chapter]:
        soup = make_soup(html)
        container = soup.select_one(".list-chapters")
        if container is None:
            return []

        chapters = []
        for item in container.find_all(True, recursive=False):
            link = item if item.name == "a" else item.select_one("a[href]")
            if link is None:
                continue
            href = (link.get("href") or "").strip()
            title = clean_text(link.get("title") or "")
            if not href or not title:
                continue
            chapters.append(Chapter(title=title, url=self.resolve(href)))

        chapters.reverse()
        return chapters

    @staticmethod
    def _script_images(soup) -> List[str]:
        payload = "\n".join(script.string or "" for script in soup.find_all("script"))
        images: List[str] = []
        for match in SCRIPT_IMAGE_ARRAY_RE.findall(payload):
            try:
                urls = json.loads(match)
            except ValueError:
                continue
            for url in urls:
                if isinstance(url, str) and url.startswith("http") and url not in images:
                    images.append(url)
        return images

    def extract_chapter_images(self, html: str) -> List[str]:
        soup = make_soup(html)
        content = soup.select_one("#chapter-content")
        images = self.collect_images(content.find_all("img") if content is not None else [])
        if images:
            return images

        images = [url for url in self._script_images(soup) if not is_decorative_image(url)]
        if images:
            return images

        # Last resort: any content-looking image anywhere on the page.
        return self.collect_images(soup.find_all("img"), require_extension=True)
