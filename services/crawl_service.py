"""Listing-page and whole-source crawls, plus on-demand chapter lookups."""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import config
from crawlers.errors import FetchError, ParseError
from crawlers.records import Chapter, ListingEntry
from repositories.titles_repo import get_covers_by_title
from .batch_service import ErrorLedger, process_batch

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "parsing"


@dataclass
class ListingPage:
    page: int
    entries: List[ListingEntry]
    total_pages: Optional[int] = None


async def fetch_listing_page(crawler, page, fetcher) -> ListingPage:
    """Fetch one listing page with its entries and the site's page count. Raises FetchError."""
    url = crawler.listing_url(page)
    html = await fetcher.fetch(url, headers=crawler.request_headers(url))
    return ListingPage(page=page, entries=crawler.extract_listing(html), total_pages=crawler.parse_page_count(html))


async def fetch_listing(crawler, page, fetcher) -> List[ListingEntry]:
    """Fetch one listing page and return its entries. Raises FetchError."""
    return (await fetch_listing_page(crawler, page, fetcher)).entries


def listing_window(crawler, page) -> List[int]:
    """The previous, current and next page numbers, kept within the known page range."""
    page = max(1, page)
    last = crawler.FULL_CRAWL_PAGES
    pages = []
    for candidate in (max(1, page - 1), page, page + 1):
        if last and candidate > last:
            continue
        if candidate not in pages:
            pages.append(candidate)
    return pages


async def fetch_listing_window(crawler, page, fetcher) -> List[Tuple[int, Union[ListingPage, Exception]]]:
    """Fetch the pages around ``page`` concurrently; a failed page yields its exception."""
    pages = listing_window(crawler, page)
    results = await asyncio.gather(
        *(fetch_listing_page(crawler, number, fetcher) for number in pages),
        return_exceptions=True,
    )
    return list(zip(pages, results))


def enrich_listing_covers(entries: List[ListingEntry], conn) -> List[ListingEntry]:
    """Swap listing thumbnails for the stored cover wherever the store has one."""
    covers = get_covers_by_title(conn, [entry.title for entry in entries])
    for entry in entries:
        if entry.title in covers:
            entry.cover_image_url = covers[entry.title]
    return entries


async def crawl_listing_page(crawler, page, store, fetcher, **batch_options) -> ErrorLedger:
    """Fetch listing page ``page`` and persist every title it links to.

    Never raises for fetch or parse problems; they end up in the ledger.
    """
    url = crawler.listing_url(page)
    LOGGER.info("Fetching %s page %d: %s", crawler.DISPLAY_NAME, page, url, extra={"source": LOG_SOURCE})
    ledger = ErrorLedger()
    try:
        entries = await fetch_listing(crawler, page, fetcher)
    except FetchError as exc:
        ledger.record(url)
        LOGGER.error(
            "Error fetching %s page %d: %s", crawler.DISPLAY_NAME, page, exc.cause, extra={"source": LOG_SOURCE}
        )
        return ledger
    except Exception as exc:
        ledger.record(url)
        LOGGER.error(
            "Error parsing %s page %d: %s", crawler.DISPLAY_NAME, page, exc, extra={"source": LOG_SOURCE}
        )
        return ledger

    urls = crawler.detail_urls(entries)
    if not urls:
        LOGGER.info("No %s URLs found on this page.", crawler.DISPLAY_NAME, extra={"source": LOG_SOURCE})
        return ledger

    LOGGER.info("Found %d %s detail URLs.", len(urls), crawler.DISPLAY_NAME, extra={"source": LOG_SOURCE})
    return ledger.merge(
        await process_batch(crawler, urls, store, fetcher, crawler.title_hints(entries), **batch_options)
    )


async def discover_page_count(crawler, fetcher) -> int:
    if crawler.FULL_CRAWL_PAGES:
        return crawler.FULL_CRAWL_PAGES
    url = crawler.listing_url(1)
    try:
        html = await fetcher.fetch(url, headers=crawler.request_headers(url))
    except FetchError as exc:
        LOGGER.error("Error fetching max pages: %s", exc.cause, extra={"source": LOG_SOURCE})
        return 1
    return crawler.parse_page_count(html)


async def crawl_source(
    crawler,
    store,
    fetcher,
    max_pages: Optional[int] = None,
    *,
    page_pause_seconds: Optional[float] = None,
    sleep=asyncio.sleep,
    **batch_options,
) -> ErrorLedger:
    """Crawl every listing page of one source, pausing between pages."""
    pages = max_pages or await discover_page_count(crawler, fetcher)
    pause = config.CRAWLER_LISTING_PAGE_PAUSE_SECONDS if page_pause_seconds is None else page_pause_seconds
    LOGGER.info("%s max pages: %d", crawler.DISPLAY_NAME, pages, extra={"source": LOG_SOURCE})

    ledger = ErrorLedger()
    for page in range(1, pages + 1):
        ledger.merge(await crawl_listing_page(crawler, page, store, fetcher, sleep=sleep, **batch_options))
        if page < pages and pause > 0:
            await sleep(pause)

    LOGGER.info("%s fetching routine complete.", crawler.DISPLAY_NAME, extra={"source": LOG_SOURCE})
    return ledger


async def refresh_listing_pages(crawler, store, fetcher, pages=None, **batch_options) -> ErrorLedger:
    """Re-crawl the small fixed set of newest listing pages for one source."""
    ledger = ErrorLedger()
    for page in pages or config.REFRESH_LISTING_PAGES:
        ledger.merge(await crawl_listing_page(crawler, page, store, fetcher, **batch_options))
    return ledger


async def fetch_chapters(crawler, url, fetcher) -> List[Chapter]:
    html = await fetcher.fetch(url, headers=crawler.request_headers(url))
    try:
        return crawler.extract_chapter_list(html)
    except Exception as exc:
        raise ParseError(url, exc) from exc


async def fetch_chapter_images(crawler, url, fetcher, referer=None) -> List[str]:
    headers = crawler.request_headers(url)
    if referer:
        headers = {**headers, "Referer": referer}
    html = await fetcher.fetch(url, headers=headers)
    try:
        return crawler.extract_chapter_images(html)
    except Exception as exc:
        raise ParseError(url, exc) from exc
