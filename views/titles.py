# views/titles.py

import logging
from urllib.parse import unquote

from flask import Blueprint, current_app, jsonify, request

import config
from crawlers.records import NOT_AVAILABLE, Source
from database import get_db
from repositories.titles_repo import genre_stats, list_genres
from services.search_service import find_best_match, search, titles_by_genre

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "routes"

titles_bp = Blueprint('titles', __name__)

# Older clients use the short "mg" path segment for MangaKakalot.
SOURCE_ALIASES = {'mg': Source.MANGA.value}


def resolve_source(value):
    if value is None:
        return None
    key = str(value).strip().lower()
    return Source.parse(SOURCE_ALIASES.get(key, key))


def requested_sources(value):
    """A single source when ``value`` names one, otherwise every source."""
    source = resolve_source(value)
    return [source] if source else list(Source)


def snapshots():
    return current_app.extensions['title_snapshots']


def _public_cover(payload):
    cover = payload.get('cover_image_url')
    payload['cover_image_url'] = cover if cover and cover != NOT_AVAILABLE else None
    return payload


@titles_bp.route('/api/<source_name>/search', methods=['GET'])
def search_titles(source_name):
    source = resolve_source(source_name)
    if source is None:
        return jsonify({'error': f'Unknown source: {source_name}'}), 404
    try:
        query = request.args.get('q', '').strip()
        genre = request.args.get('genre') or None
        if not query:
            return jsonify([])

        results = search(
            query,
            snapshots().snapshot(source),
            config.SEARCH_SIMILARITY_THRESHOLD,
            genre,
        )
        payload = [_public_cover(result.to_dict()) for result in results[: config.SEARCH_MAX_RESULTS]]
        return jsonify(payload)
    except Exception:
        LOGGER.exception("Error in %s search", source.value, extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500


@titles_bp.route('/api/manhwa/<path:slug>', methods=['GET'])
def get_title_detail(slug):
    try:
        slug = unquote(slug).lower()
        match = find_best_match(slug, snapshots().iter_sources(), config.DETAIL_FUZZY_THRESHOLD)
        if match is None:
            return jsonify({'error': 'Manhwa not found'}), 404

        payload = match.item.to_dict()
        payload['alternatives'] = match.item.alternatives
        payload['type'] = match.source
        payload['similarity_score'] = round(match.score, 4)
        return jsonify(payload)
    except Exception:
        LOGGER.exception("Error fetching manhwa details", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500


@titles_bp.route('/api/genre/<genre_slug>', methods=['GET'])
def get_titles_by_genre(genre_slug):
    try:
        sources = requested_sources(request.args.get('type'))
        results = titles_by_genre(unquote(genre_slug).lower(), snapshots().iter_sources(sources))
        return jsonify(results)
    except Exception:
        LOGGER.exception("Error fetching genre", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500


@titles_bp.route('/api/genres', methods=['GET'])
def get_genres():
    try:
        genres = set()
        for source in requested_sources(request.args.get('type')):
            genres.update(list_genres(get_db(source)))
        return jsonify(sorted(genres))
    except Exception:
        LOGGER.exception("Error fetching genres", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500


@titles_bp.route('/api/debug/genres/<source_name>', methods=['GET'])
def debug_genres(source_name):
    source = resolve_source(source_name)
    if source is None:
        return jsonify({'error': f'Unknown source: {source_name}'}), 404
    try:
        stats = genre_stats(get_db(source))
        stats['type'] = source.value
        return jsonify(stats)
    except Exception:
        LOGGER.exception("Debug error", extra={'source': LOG_SOURCE})
        return jsonify({'error': 'Internal server error'}), 500
