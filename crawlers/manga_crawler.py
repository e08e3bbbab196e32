import re
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from utils.text import clean_text
from .base_crawler import SourceCrawler, clean_genres, first_attr, make_soup, today_iso
from .records import NOT_AVAILABLE, Chapter, ListingEntry, Source, TitleRecord

_LABEL_RE = re.compile(r"^\s*(alternative|author\(s\)|last updated|genres?)\s*:\s*", re.IGNORECASE)


def _split_label(text):
    """Split ``"Label : value"`` into a lowercased label and the value."""
    match = _LABEL_RE.match(text or "")
    if not match:
        return None, clean_text(text)
    return match.group(1).lower(), clean_text(text[match.end():])


class MangaCrawler(SourceCrawler):
    """MangaKakalot."""

    source = Source.MANGA
    DISPLAY_NAME = "MangaKakalot"
    BASE_URL = "https://www.mangakakalot.gg/"

    def listing_url(self, page: int) -> str:
        return f"{self.BASE_URL}manga-list/latest-manga?page={page}"

    def parse_page_count(self, html: str) -> int:
        soup = make_soup(html)
        last_page = soup.select_one(".page_last[href], a.page_last")
        if last_page is None:
            return 1
        query = parse_qs(urlparse(last_page.get("href") or "").query)
        try:
            return max(1, int(query.get("page", ["1"])[0]))
        except ValueError:
            return 1

    def extract_listing(self, html: str) -> List[ListingEntry]:
        soup = make_soup(html)
        entries = []
        for item in soup.select(".list-comic-item-wrap"):
            link = item.find("a", href=True)
            if link is None:
                continue
            title = clean_text(link.get("title") or "") or clean_text(link.get_text(" ", strip=True))
            cover = first_attr(link.find("img"), ("data-src", "src"))
            entries.append(
                ListingEntry(
                    title=title,
                    url=self.resolve(link["href"]),
                    cover_image_url=self.resolve(cover) if cover else NOT_AVAILABLE,
                )
            )
        return entries

    def extract_detail(self, html: str, url: str, hinted_title: Optional[str] = None) -> TitleRecord:
        soup = make_soup(html)
        info = soup.select_one(".manga-info-text")

        heading = info.select_one("h1") if info is not None else None
        title = self.resolve_title(hinted_title, [heading.get_text(" ", strip=True) if heading else ""], url)
        record = TitleRecord(title=title, url=url, updated=today_iso())

        cover = first_attr(soup.select_one(".manga-info-pic img"), ("src", "data-src"))
        record.cover_image_url = self.resolve_cover(cover)

        if info is None:
            return record

        alternative = info.select_one("h2")
        if alternative is not None:
            _, value = _split_label(alternative.get_text(" ", strip=True))
            record.alternatives = [part for part in (clean_text(p) for p in value.split(";")) if part]

        for item in info.find_all("li"):
            label, value = _split_label(item.get_text(" ", strip=True))
            if label == "author(s)":
                record.author = value or NOT_AVAILABLE
            elif label == "last updated":
                record.updated = value or record.updated
            elif label in ("genre", "genres"):
                record.genres = clean_genres(link.get_text(" ", strip=True) for link in item.find_all("a"))
        return record

    def extract_chapter_list(self, html: str) -> List[Chapter]:
        soup = make_soup(html)
        rows = soup.select(".chapter-list .row") or soup.select(".row")
        chapters = []
        for row in rows:
            link = row.select_one("span a[href]") or row.select_one("a[href]")
            if link is None:
                continue
            chapters.append(
                Chapter(
                    title=clean_text(link.get_text(" ", strip=True)),
                    url=self.resolve(link["href"]),
                )
            )

        chapters.reverse()
        return chapters

    def extract_chapter_images(self, html: str) -> List[str]:
        soup = make_soup(html)
        reader = soup.select_one(".container-chapter-reader")
        if reader is None:
            return []
        return self.collect_images(reader.find_all("img"), require_extension=True)
