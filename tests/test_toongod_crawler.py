import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from crawlers.records import NOT_AVAILABLE
from crawlers.toongod_crawler import ToonGodCrawler

LISTING_HTML = """
<div class="row">
  <div class="thumb-item-flow">
    <div class="thumb-wrapper">
      <a href="/manga/night-garden"><div class="img-in-ratio" data-bg="https://manhwa18.net/covers/night.jpg"></div></a>
    </div>
    <div class="thumb_attr series-title"><a href="/manga/night-garden" title="Night Garden">Night Garden</a></div>
  </div>
  <div class="thumb-item-flow">
    <div class="thumb_attr series-title"><a href="/genre/adult" title="Adult">Adult</a></div>
  </div>
  <div class="thumb-item-flow">
    <div class="thumb_attr series-title"><a href="/manga/nameless" title="Unknown">Unknown</a></div>
  </div>
</div>
"""

DETAIL_HTML = """
<div class="series-name"><a href="/manga/night-garden">Night   Garden</a></div>
<div class="img-in-ratio" style="background-image: url('https://manhwa18.net/covers/night.jpg')"></div>
<div class="author"><a href="/author/kim">Kim Seo</a></div>
<div class="genres-content">
  <a href="/genre/drama">Drama</a>
  <a href="/genre/romance">Romance</a>
</div>
<div class="updated"><time datetime="2024-06-01">June 1</time></div>
"""

CHAPTERS_HTML = """
<ul class="list-chapters">
  <li><a href="/manga/night-garden/chapter-2" title="Chapter 2">Chapter 2</a></li>
  <li><a href="/manga/night-garden/chapter-1" title="Chapter 1">Chapter 1</a></li>
  <li><a href="/manga/night-garden/notice">Notice</a></li>
</ul>
"""


def test_listing_keeps_only_manga_detail_urls():
    crawler = ToonGodCrawler()

    entries = crawler.extract_listing(LISTING_HTML)

    assert [entry.title for entry in entries] == ["Night Garden", "Adult"]
    assert entries[0].cover_image_url == "https://manhwa18.net/covers/night.jpg"
    assert crawler.detail_urls(entries) == ["https://manhwa18.net/manga/night-garden"]
    assert crawler.title_hints(entries)["https://manhwa18.net/manga/night-garden"] == "Night Garden"


def test_request_headers_use_target_origin_as_referer():
    crawler = ToonGodCrawler()

    headers = crawler.request_headers("https://img.manhwa18.net/manga/night-garden/chapter-1")

    assert headers == {"Referer": "https://img.manhwa18.net"}


def test_detail_fields():
    record = ToonGodCrawler().extract_detail(DETAIL_HTML, "https://manhwa18.net/manga/night-garden")

    assert record.title == "Night Garden"
    assert record.cover_image_url == "https://manhwa18.net/covers/night.jpg"
    assert record.author == "Kim Seo"
    assert record.genres == ["Drama", "Romance"]
    assert record.updated == "2024-06-01"


def test_detail_prefers_listing_title_hint():
    record = ToonGodCrawler().extract_detail(
        DETAIL_HTML, "https://manhwa18.net/manga/night-garden", "Night Garden (Uncensored)"
    )

    assert record.title == "Night Garden (Uncensored)"


def test_detail_defaults_when_page_is_bare():
    record = ToonGodCrawler().extract_detail("<div></div>", "https://manhwa18.net/manga/empty")

    assert record.title == "Unknown"
    assert record.author == NOT_AVAILABLE
    assert record.cover_image_url == NOT_AVAILABLE
    assert record.genres == []
    assert record.updated == date.today().isoformat()


def test_chapter_list_requires_title_and_is_oldest_first():
    chapters = ToonGodCrawler().extract_chapter_list(CHAPTERS_HTML)

    assert [chapter.url for chapter in chapters] == [
        "https://manhwa18.net/manga/night-garden/chapter-1",
        "https://manhwa18.net/manga/night-garden/chapter-2",
    ]


def test_chapter_images_from_content_container():
    html = """
    <div id="chapter-content">
      <img data-src="https://img.manhwa18.net/night/01.jpg">
      <img src="https://manhwa18.net/images/banner.gif">
      <img src="https://img.manhwa18.net/night/02.jpg">
    </div>
    """

    images = ToonGodCrawler().extract_chapter_images(html)

    assert images == ["https://img.manhwa18.net/night/01.jpg", "https://img.manhwa18.net/night/02.jpg"]


def test_chapter_images_fall_back_to_script_array():
    html = """
    <div id="chapter-content"></div>
    <script>
      var chapterImages = ["https://img.manhwa18.net/night/01.jpg", "https://img.manhwa18.net/night/02.webp"];
    </script>
    """

    images = ToonGodCrawler().extract_chapter_images(html)

    assert images == ["https://img.manhwa18.net/night/01.jpg", "https://img.manhwa18.net/night/02.webp"]


def test_chapter_images_last_resort_requires_image_extension():
    html = """
    <div class="page">
      <img src="https://manhwa18.net/avatar.png">
      <img src="https://img.manhwa18.net/night/01.png">
      <img src="https://manhwa18.net/tracker">
    </div>
    """

    images = ToonGodCrawler().extract_chapter_images(html)

    assert images == ["https://img.manhwa18.net/night/01.png"]
