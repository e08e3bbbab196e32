# run_all_crawlers.py
"""One-shot full crawl of every listing page of every source, then a cache rebuild."""
import argparse
import asyncio
import logging
import sys
import time

from dotenv import load_dotenv

load_dotenv()

from crawlers.fetcher import Fetcher
from crawlers.registry import all_crawlers, get_crawler
from services.batch_service import ErrorLedger
from services.crawl_service import crawl_source
from services.runtime import close_stores, load_caches, open_stores
from utils.logging_setup import configure_logging

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "parsing"


async def run_one_crawler(crawler, store, fetcher, max_pages=None):
    """
    Crawl one source end to end and return a small report; never raises.
    """
    report = {'crawler_name': crawler.DISPLAY_NAME, 'status': 'ok', 'errs': 0, 'err_list': []}
    started = time.time()
    try:
        ledger = await crawl_source(crawler, store, fetcher, max_pages)
        report.update(ledger.to_dict())
    except Exception as e:
        LOGGER.exception("[%s] crawl failed", crawler.DISPLAY_NAME, extra={'source': LOG_SOURCE})
        report['status'] = 'failed'
        report['error_message'] = str(e)
    report['duration'] = time.time() - started
    return report


def format_final_collection_summary(counts):
    parts = [f"{count} {name}" for name, count in counts.items()]
    return f"Done, fetched {', '.join(parts)} titles."


async def main(sources=None, max_pages=None):
    start_time = time.time()
    crawlers = [get_crawler(source) for source in sources] if sources else all_crawlers()
    stores = open_stores([crawler.source for crawler in crawlers])
    try:
        async with Fetcher() as fetcher:
            results = await asyncio.gather(
                *(run_one_crawler(c, stores[c.source], fetcher, max_pages) for c in crawlers),
                return_exceptions=True,
            )

        total = ErrorLedger()
        for result in results:
            if isinstance(result, Exception):
                LOGGER.warning("A crawler task failed at gather level: %s", result, extra={'source': LOG_SOURCE})
                continue
            total.count += result.get('errs', 0)
            total.urls.extend(result.get('err_list', []))

        if total:
            LOGGER.info("Total Detail Fetch errors: %d", total.count, extra={'source': LOG_SOURCE})

        manager = load_caches(stores)
        print(format_final_collection_summary(manager.counts()))
    finally:
        close_stores(stores)

    LOGGER.info("Full crawl finished in %.2fs", time.time() - start_time, extra={'source': LOG_SOURCE})
    return results


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--source", action="append", choices=["shojo", "toongod", "manga"],
                        help="Limit the crawl to a source (repeatable).")
    parser.add_argument("--max-pages", type=int, default=None,
                        help="Stop after this many listing pages per source.")
    return parser.parse_args(argv)


if __name__ == '__main__':
    configure_logging()
    args = parse_args()
    try:
        asyncio.run(main(args.source, args.max_pages))
    except KeyboardInterrupt:
        sys.exit(130)
