from .base_crawler import SourceCrawler
from .manga_crawler import MangaCrawler
from .records import Source
from .shojo_crawler import ShojoCrawler
from .toongod_crawler import ToonGodCrawler

ALL_CRAWLERS = [
    ShojoCrawler,
    ToonGodCrawler,
    MangaCrawler,
]

_BY_SOURCE = {crawler_class.source: crawler_class for crawler_class in ALL_CRAWLERS}


def get_crawler(source) -> SourceCrawler:
    """Instantiate the crawler for ``source`` (member or string value)."""
    member = Source.parse(source)
    if member is None:
        raise ValueError(f"unknown source: {source!r}")
    return _BY_SOURCE[member]()


def all_crawlers():
    return [crawler_class() for crawler_class in ALL_CRAWLERS]
