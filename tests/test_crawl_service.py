import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from crawlers.errors import FetchError, ParseError
from crawlers.fetcher import FetchOutcome
from crawlers.manga_crawler import MangaCrawler
from crawlers.records import ListingEntry, TitleRecord
from crawlers.shojo_crawler import ShojoCrawler
from crawlers.toongod_crawler import ToonGodCrawler
from database import open_and_init_db
from repositories.titles_repo import upsert_title
from services import crawl_service


def _listing(*slugs):
    cards = "".join(
        f'<div class="list-comic-item-wrap"><a href="https://www.mangakakalot.gg/manga/{slug}" '
        f'title="{slug.title()}"></a></div>'
        for slug in slugs
    )
    return f"<div>{cards}</div>"


def _detail(title):
    return f'<ul class="manga-info-text"><li><h1>{title}</h1></li></ul>'


class PageFetcher:
    """Serves canned pages by URL; anything else fails like an exhausted retry."""

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    async def fetch(self, url, headers=None, max_attempts=None):
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(url, ConnectionError("refused"))
        return self.pages[url]

    async def fetch_outcome(self, url, headers=None):
        try:
            return FetchOutcome(url=url, body=await self.fetch(url, headers=headers))
        except FetchError as exc:
            return FetchOutcome(url=url, error=str(exc.cause))


class FakeStore:
    def __init__(self):
        self.saved = []

    def upsert_title(self, record):
        self.saved.append(record)
        return len(self.saved)


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def test_listing_page_crawl_persists_linked_titles():
    crawler = MangaCrawler()
    fetcher = PageFetcher(
        {
            crawler.listing_url(1): _listing("ocean-king", "night-garden"),
            "https://www.mangakakalot.gg/manga/ocean-king": _detail("Ocean King"),
        }
    )
    store = FakeStore()

    ledger = asyncio.run(crawl_service.crawl_listing_page(crawler, 1, store, fetcher, sleep=FakeSleep()))

    assert [record.title for record in store.saved] == ["Ocean-King"]
    assert ledger.urls == ["https://www.mangakakalot.gg/manga/night-garden"]


def test_listing_fetch_failure_is_recorded_not_raised():
    crawler = ShojoCrawler()
    store = FakeStore()

    ledger = asyncio.run(crawl_service.crawl_listing_page(crawler, 7, store, PageFetcher({})))

    assert ledger.urls == ["https://kingofshojo.com/page/7/"]
    assert store.saved == []


def test_crawl_source_pauses_between_listing_pages_only():
    crawler = MangaCrawler()
    pages = {crawler.listing_url(n): "<div></div>" for n in (1, 2, 3)}
    sleep = FakeSleep()

    asyncio.run(
        crawl_service.crawl_source(
            crawler, FakeStore(), PageFetcher(pages), max_pages=3, page_pause_seconds=5.0, sleep=sleep
        )
    )

    assert sleep.delays == [5.0, 5.0]


def test_crawl_source_discovers_page_count_from_first_page():
    crawler = MangaCrawler()
    first_page = '<a class="page_last" href="/manga-list/latest-manga?page=2">Last</a>'
    fetcher = PageFetcher({crawler.listing_url(1): first_page, crawler.listing_url(2): "<div></div>"})

    asyncio.run(crawl_service.crawl_source(crawler, FakeStore(), fetcher, page_pause_seconds=0))

    assert fetcher.requested == [crawler.listing_url(1), crawler.listing_url(1), crawler.listing_url(2)]


def test_refresh_listing_pages_visits_each_configured_page():
    crawler = MangaCrawler()
    fetcher = PageFetcher({})

    ledger = asyncio.run(crawl_service.refresh_listing_pages(crawler, FakeStore(), fetcher, pages=[1, 2, 3]))

    assert ledger.urls == [crawler.listing_url(n) for n in (1, 2, 3)]


def test_fetch_chapters_and_images():
    crawler = MangaCrawler()
    detail_url = "https://www.mangakakalot.gg/manga/ocean-king"
    chapter_url = "https://www.mangakakalot.gg/manga/ocean-king/chapter-1"
    fetcher = PageFetcher(
        {
            detail_url: '<div class="row"><span><a href="/manga/ocean-king/chapter-1">Chapter 1</a></span></div>',
            chapter_url: '<div class="container-chapter-reader"><img src="https://imgs.mangakakalot.gg/1.jpg"></div>',
        }
    )

    chapters = asyncio.run(crawl_service.fetch_chapters(crawler, detail_url, fetcher))
    images = asyncio.run(crawl_service.fetch_chapter_images(crawler, chapter_url, fetcher))

    assert [(chapter.title, chapter.url) for chapter in chapters] == [("Chapter 1", chapter_url)]
    assert images == ["https://imgs.mangakakalot.gg/1.jpg"]


def test_fetch_chapters_wraps_extractor_failure(monkeypatch):
    crawler = MangaCrawler()
    url = "https://www.mangakakalot.gg/manga/ocean-king"

    def broken(html):
        raise KeyError("href")

    monkeypatch.setattr(crawler, "extract_chapter_list", broken)

    with pytest.raises(ParseError):
        asyncio.run(crawl_service.fetch_chapters(crawler, url, PageFetcher({url: ""})))


def _manga_page(page):
    return MangaCrawler().listing_url(page)


def test_fetch_listing_page_reports_page_count_from_html():
    html = _listing("ocean-king") + '<a class="page_last" href="/manga-list/latest-manga?page=1712">Last</a>'
    fetcher = PageFetcher({_manga_page(2): html})

    listing = asyncio.run(crawl_service.fetch_listing_page(MangaCrawler(), 2, fetcher))

    assert listing.page == 2
    assert [entry.title for entry in listing.entries] == ["Ocean-King"]
    assert listing.total_pages == 1712


def test_listing_window_is_clamped_and_deduplicated():
    assert crawl_service.listing_window(MangaCrawler(), 1) == [1, 2]
    assert crawl_service.listing_window(MangaCrawler(), 0) == [1, 2]
    assert crawl_service.listing_window(MangaCrawler(), 5) == [4, 5, 6]
    assert crawl_service.listing_window(ToonGodCrawler(), 62) == [61, 62]
    assert crawl_service.listing_window(ShojoCrawler(), 98) == [97, 98]


def test_listing_window_keeps_failed_pages_as_exceptions():
    fetcher = PageFetcher({_manga_page(4): _listing("a"), _manga_page(6): _listing("c")})

    window = asyncio.run(crawl_service.fetch_listing_window(MangaCrawler(), 5, fetcher))

    assert [number for number, _ in window] == [4, 5, 6]
    assert isinstance(window[1][1], FetchError)
    assert [entry.title for entry in window[2][1].entries] == ["C"]
    assert sorted(fetcher.requested) == sorted(_manga_page(n) for n in (4, 5, 6))


def test_enrich_listing_covers_uses_stored_covers_only(tmp_path):
    conn = open_and_init_db(str(tmp_path / "toongod.db"))
    upsert_title(conn, TitleRecord(title="Night Garden", url="https://manhwa18.net/manga/ng", cover_image_url="https://img.test/big.jpg"))
    upsert_title(conn, TitleRecord(title="No Cover", url="https://manhwa18.net/manga/nc"))
    entries = [
        ListingEntry(title="Night Garden", url="https://manhwa18.net/manga/ng", cover_image_url="https://img.test/thumb.jpg"),
        ListingEntry(title="No Cover", url="https://manhwa18.net/manga/nc", cover_image_url="https://img.test/nc.jpg"),
        ListingEntry(title="Unstored", url="https://manhwa18.net/manga/u", cover_image_url=None),
    ]

    crawl_service.enrich_listing_covers(entries, conn)
    conn.close()

    assert [entry.cover_image_url for entry in entries] == [
        "https://img.test/big.jpg",
        "https://img.test/nc.jpg",
        None,
    ]
