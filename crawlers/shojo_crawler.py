from typing import List, Optional

from utils.text import clean_text
from .base_crawler import SourceCrawler, clean_genres, first_attr, make_soup
from .errors import ParseError
from .records import NOT_AVAILABLE, Chapter, ListingEntry, Source, TitleRecord

# Row positions inside the detail page's ``.infotable``.
ROW_ALTERNATIVES = 0
ROW_AUTHOR = 4
ROW_UPDATED = 8


class ShojoCrawler(SourceCrawler):
    """KingOfShojo (WordPress manga theme)."""

    source = Source.SHOJO
    DISPLAY_NAME = "KingOfShojo"
    BASE_URL = "https://kingofshojo.com/"
    FULL_CRAWL_PAGES = 98
    # Listing cards truncate long names; the detail page heading is authoritative.
    USES_LISTING_TITLE_HINTS = False

    def listing_url(self, page: int) -> str:
        return f"{self.BASE_URL}page/{page}/"

    def extract_listing(self, html: str) -> List[ListingEntry]:
        soup = make_soup(html)
        entries = []
        for item in soup.select("div.bs.styletere.stylefiv"):
            link = item.select_one("a[href]")
            if link is None:
                continue
            title_node = item.select_one(".tt, .series-title, .title")
            title = clean_text(title_node.get_text(" ", strip=True)) if title_node else ""
            if not title:
                title = clean_text(link.get("title") or "") or "Unknown Title"
            cover = first_attr(item.select_one("img"))
            entries.append(
                ListingEntry(
                    title=title,
                    url=self.resolve(link["href"]),
                    cover_image_url=self.resolve(cover) if cover else NOT_AVAILABLE,
                )
            )
        return entries

    @staticmethod
    def _cell(rows, index):
        if index >= len(rows):
            return None
        cells = rows[index].find_all(["td", "th"])
        return cells[1] if len(cells) > 1 else None

    def extract_detail(self, html: str, url: str, hinted_title: Optional[str] = None) -> TitleRecord:
        soup = make_soup(html)
        table = soup.select_one(".infotable")
        if table is None:
            raise ParseError(url, "missing .infotable")

        heading = soup.select_one(".entry-title")
        heading_text = clean_text(heading.get_text(" ", strip=True)) if heading is not None else ""
        if not heading_text:
            raise ParseError(url, "missing .entry-title")
        title = self.resolve_title(hinted_title, [heading_text], url)
        record = TitleRecord(title=title, url=url)

        rows = table.find_all("tr")
        author_cell = self._cell(rows, ROW_AUTHOR)
        record.author = clean_text(author_cell.get_text(" ", strip=True)) if author_cell else ""
        record.author = record.author or NOT_AVAILABLE

        alternatives_cell = self._cell(rows, ROW_ALTERNATIVES)
        if alternatives_cell is not None:
            raw = alternatives_cell.get_text(" ", strip=True)
            record.alternatives = [part for part in (clean_text(p) for p in raw.split(",")) if part]

        updated_cell = self._cell(rows, ROW_UPDATED)
        time_node = updated_cell.select_one("time[datetime]") if updated_cell else None
        record.updated = time_node["datetime"].strip() if time_node else NOT_AVAILABLE

        genres_container = soup.select_one(".seriestugenre, .manga-tags, .seriestumeta .genres")
        if genres_container is not None:
            record.genres = clean_genres(node.get_text(" ", strip=True) for node in genres_container.select("a, span"))

        cover = first_attr(soup.select_one(".thumb img"))
        if not cover:
            og_image = soup.select_one('meta[property="og:image"]')
            cover = (og_image.get("content") or "") if og_image else ""
        record.cover_image_url = self.resolve_cover(cover)
        return record

    def extract_chapter_list(self, html: str) -> List[Chapter]:
        soup = make_soup(html)
        chapter_list = soup.select_one("#chapterlist")
        if chapter_list is None:
            return []

        chapters = []
        for item in chapter_list.select("ul.clstyle li, li[data-num]"):
            link = (
                item.select_one("div.chbox div.eph-num a")
                or item.select_one("div.eph-num a")
                or item.select_one("a")
            )
            href = (link.get("href") or "").strip() if link else ""
            if not href:
                continue
            data_num = item.get("data-num") or ""
            title_span = link.select_one("span.chapternum") or link.select_one("span")
            title = clean_text(title_span.get_text(" ", strip=True)) if title_span else ""
            chapters.append(Chapter(title=title or clean_text(f"Chapter {data_num}"), url=self.resolve(href)))

        chapters.reverse()
        return chapters

    def extract_chapter_images(self, html: str) -> List[str]:
        soup = make_soup(html)
        reader = soup.select_one("#readerarea")
        if reader is None:
            return []
        return self.collect_images(reader.select("img"))
