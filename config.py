# config.py
import os


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return list(default)
    values = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and int(part) > 0:
            values.append(int(part))
    return values or list(default)


# --- Crawler ---
CRAWLER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
}

# --- HTTP Client Defaults ---
CRAWLER_HTTP_TIMEOUT_SECONDS = _env_int('CRAWLER_HTTP_TIMEOUT_SECONDS', 15)
CRAWLER_FETCH_MAX_ATTEMPTS = _env_int('CRAWLER_FETCH_MAX_ATTEMPTS', 3)
CRAWLER_RETRY_BASE_DELAY_SECONDS = _env_float('CRAWLER_RETRY_BASE_DELAY_SECONDS', 3.0)
CRAWLER_HTTP_CONCURRENCY_LIMIT = _env_int('CRAWLER_HTTP_CONCURRENCY_LIMIT', 50)

# --- Batch Controls ---
CRAWLER_BATCH_SIZE = _env_int('CRAWLER_BATCH_SIZE', 40)
CRAWLER_BATCH_PAUSE_SECONDS = _env_float('CRAWLER_BATCH_PAUSE_SECONDS', 1.0)
CRAWLER_LISTING_PAGE_PAUSE_SECONDS = _env_float('CRAWLER_LISTING_PAGE_PAUSE_SECONDS', 5.0)

# --- Refresh Cycles ---
REFRESH_LISTING_PAGES = _env_int_list('REFRESH_LISTING_PAGES', (1, 2, 3))
SLOW_REFRESH_INTERVAL_SECONDS = _env_int('SLOW_REFRESH_INTERVAL_SECONDS', 3600)
FAST_REFRESH_INTERVAL_SECONDS = _env_int('FAST_REFRESH_INTERVAL_SECONDS', 600)
FAST_REFRESH_SOURCE = os.getenv('FAST_REFRESH_SOURCE', 'manga').strip().lower() or 'manga'
ENABLE_BACKGROUND_REFRESH = _env_bool('ENABLE_BACKGROUND_REFRESH', True)

# --- Storage (one SQLite file per source) ---
SHOJO_DB_PATH = os.getenv('SHOJO_DB_PATH', 'shojo.db')
TOONGOD_DB_PATH = os.getenv('TOONGOD_DB_PATH', 'toongod.db')
MANGA_DB_PATH = os.getenv('MANGA_DB_PATH', 'manga.db')

# --- Search ---
SEARCH_SIMILARITY_THRESHOLD = _env_float('SEARCH_SIMILARITY_THRESHOLD', 0.2)
SEARCH_MAX_RESULTS = _env_int('SEARCH_MAX_RESULTS', 50)
DETAIL_FUZZY_THRESHOLD = _env_float('DETAIL_FUZZY_THRESHOLD', 0.6)

# --- Logging ---
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_BUFFER_SIZE = _env_int('LOG_BUFFER_SIZE', 500)

# --- Web ---
CORS_ALLOW_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ALLOW_ORIGINS', '').split(',') if origin.strip()]
CORS_SUPPORTS_CREDENTIALS = _env_bool('CORS_SUPPORTS_CREDENTIALS', False)
IMAGE_PROXY_REFERER = os.getenv('IMAGE_PROXY_REFERER', 'https://www.nelomanga.net/')
