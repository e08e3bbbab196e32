# views/chapters.py

import logging

from flask import Blueprint, Response, jsonify, request

from crawlers.errors import FetchError
from crawlers.fetcher import Fetcher
from crawlers.records import NOT_AVAILABLE, Source
from crawlers.registry import get_crawler
from database import get_db
from services.crawl_service import (
    enrich_listing_covers,
    fetch_chapter_images,
    fetch_chapters,
    fetch_listing_page,
    fetch_listing_window,
)
from services.image_service import decode_image_url, image_request_headers
from .titles import resolve_source

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "routes"

chapters_bp = Blueprint('chapters', __name__)


def new_fetcher():
    return Fetcher()


def _crawler_for_request(url):
    source = resolve_source(request.args.get('type')) or Source.from_url(url)
    if source is None:
        return None
    return get_crawler(source)


def _upstream_error(exc):
    LOGGER.error("%s", exc, extra={'source': LOG_SOURCE})
    return jsonify({'error': 'Upstream fetch failed'}), 502


def _listing_results(crawler, source, entries):
    if crawler.ENRICH_LISTING_COVERS:
        enrich_listing_covers(entries, get_db(source))
    return [
        {
            'title': entry.title,
            'url': entry.url,
            'cover_image_url': entry.cover_image_url if entry.cover_image_url != NOT_AVAILABLE else None,
        }
        for entry in entries
    ]


@chapters_bp.route('/api/<source_name>/listing', methods=['GET'])
async def get_listing(source_name):
    source = resolve_source(source_name)
    if source is None:
        return jsonify({'error': f'Unknown source: {source_name}'}), 404
    page = request.args.get('page', default=1, type=int) or 1
    crawler = get_crawler(source)
    try:
        async with new_fetcher() as fetcher:
            listing = await fetch_listing_page(crawler, page, fetcher)
        results = _listing_results(crawler, source, listing.entries)
    except FetchError as exc:
        return _upstream_error(exc)
    except Exception:
        LOGGER.exception("Error fetching %s listing", source.value, extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500

    return jsonify({'page': page, 'results': results, 'total_pages': listing.total_pages})


@chapters_bp.route('/api/<source_name>/listing/batch', methods=['GET'])
async def get_listing_batch(source_name):
    source = resolve_source(source_name)
    if source is None:
        return jsonify({'error': f'Unknown source: {source_name}'}), 404
    page = request.args.get('page', default=1, type=int) or 1
    crawler = get_crawler(source)
    try:
        async with new_fetcher() as fetcher:
            window = await fetch_listing_window(crawler, page, fetcher)
        pages = [_batch_page(crawler, source, number, result) for number, result in window]
    except Exception:
        LOGGER.exception("Error fetching %s listing batch", source.value, extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500
    return jsonify({'page': page, 'pages': pages})


def _batch_page(crawler, source, number, result):
    if isinstance(result, FetchError):
        LOGGER.error("%s", result, extra={'source': LOG_SOURCE})
        return {'page': number, 'results': [], 'success': False, 'error': 'Upstream fetch failed'}
    if isinstance(result, BaseException):
        LOGGER.error("Error fetching %s page %d: %r", source.value, number, result, extra={'source': LOG_SOURCE})
        return {'page': number, 'results': [], 'success': False, 'error': 'Internal server error'}
    return {
        'page': number,
        'results': _listing_results(crawler, source, result.entries),
        'total_pages': result.total_pages,
        'success': True,
    }


@chapters_bp.route('/api/chapters', methods=['GET'])
async def get_chapters():
    url = (request.args.get('url') or '').strip()
    if not url:
        return jsonify({'error': 'URL parameter is required'}), 400
    crawler = _crawler_for_request(url)
    if crawler is None:
        return jsonify({'error': 'Unsupported source'}), 400
    try:
        async with new_fetcher() as fetcher:
            chapters = await fetch_chapters(crawler, url, fetcher)
    except FetchError as exc:
        return _upstream_error(exc)
    except Exception:
        LOGGER.exception("Error fetching chapters", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500
    return jsonify({'chapters': [{'title': c.title, 'url': c.url} for c in chapters]})


@chapters_bp.route('/api/chapter/images', methods=['GET'])
async def get_chapter_images():
    url = (request.args.get('url') or '').strip()
    if not url:
        return jsonify({'error': 'URL parameter is required'}), 400
    crawler = _crawler_for_request(url)
    if crawler is None:
        return jsonify({'error': 'Unsupported source'}), 400
    try:
        async with new_fetcher() as fetcher:
            images = await fetch_chapter_images(crawler, url, fetcher, referer=request.args.get('referer'))
    except FetchError as exc:
        return _upstream_error(exc)
    except Exception:
        LOGGER.exception("Error fetching chapter images", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500
    return jsonify({'images': images})


@chapters_bp.route('/api/img/<path:token>', methods=['GET'])
async def proxy_image(token):
    try:
        image_url = decode_image_url(token)
    except ValueError:
        return jsonify({'error': 'Invalid image URL'}), 400
    headers = image_request_headers(image_url, resolve_source(request.args.get('type')))
    try:
        async with new_fetcher() as fetcher:
            image = await fetcher.fetch_binary(image_url, headers=headers)
    except FetchError as exc:
        return _upstream_error(exc)
    except Exception:
        LOGGER.exception("Error proxying image", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500
    response = Response(image.content, content_type=image.content_type)
    response.headers['Cache-Control'] = 'public, max-age=86400'
    return response
