import importlib

import pytest

import config as config_module


@pytest.fixture
def reload_config(monkeypatch):
    yield lambda: importlib.reload(config_module)
    monkeypatch.undo()
    importlib.reload(config_module)


def test_defaults(monkeypatch, reload_config):
    for name in ("CRAWLER_BATCH_SIZE", "REFRESH_LISTING_PAGES", "FAST_REFRESH_SOURCE", "CORS_ALLOW_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    config = reload_config()

    assert config.CRAWLER_BATCH_SIZE == 40
    assert config.CRAWLER_FETCH_MAX_ATTEMPTS == 3
    assert config.CRAWLER_RETRY_BASE_DELAY_SECONDS == 3.0
    assert config.REFRESH_LISTING_PAGES == [1, 2, 3]
    assert config.FAST_REFRESH_SOURCE == "manga"
    assert config.CORS_ALLOW_ORIGINS == []


def test_numeric_overrides_and_invalid_fallback(monkeypatch, reload_config):
    monkeypatch.setenv("CRAWLER_BATCH_SIZE", "10")
    monkeypatch.setenv("CRAWLER_BATCH_PAUSE_SECONDS", "0.5")
    monkeypatch.setenv("SLOW_REFRESH_INTERVAL_SECONDS", "hourly")

    config = reload_config()

    assert config.CRAWLER_BATCH_SIZE == 10
    assert config.CRAWLER_BATCH_PAUSE_SECONDS == 0.5
    assert config.SLOW_REFRESH_INTERVAL_SECONDS == 3600


def test_refresh_pages_skip_garbage(monkeypatch, reload_config):
    monkeypatch.setenv("REFRESH_LISTING_PAGES", "2, 4, x, 0")

    config = reload_config()

    assert config.REFRESH_LISTING_PAGES == [2, 4]


def test_cors_allow_origins_parses_comma_separated(monkeypatch, reload_config):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.com, https://b.com")
    monkeypatch.setenv("CORS_SUPPORTS_CREDENTIALS", "1")

    config = reload_config()

    assert config.CORS_ALLOW_ORIGINS == ["https://a.com", "https://b.com"]
    assert config.CORS_SUPPORTS_CREDENTIALS is True
