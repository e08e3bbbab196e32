"""Decoding and referer selection for the image proxy."""

import base64
from typing import Dict, Optional
from urllib.parse import unquote, urlparse

import config
from crawlers.records import Source
from crawlers.registry import get_crawler


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _b64decode_text(value: str) -> str:
    value = value.strip().replace("-", "+").replace("_", "/")
    value += "=" * (-len(value) % 4)
    return base64.b64decode(value, validate=True).decode("utf-8")


def decode_image_url(token: str) -> str:
    """
    Turn a proxy token back into the image URL.

    Clients encode the URL with base64 once or twice (URL-safe alphabet and
    missing padding are both accepted). Raises ValueError when the token does
    not decode to an http(s) URL.
    """
    text = unquote(token or "")
    for _ in range(2):
        try:
            text = _b64decode_text(text)
        except ValueError as exc:
            raise ValueError("image token is not valid base64") from exc
        if _is_http_url(text):
            return text
    raise ValueError("image token does not decode to an http(s) URL")


def image_request_headers(image_url: str, source: Optional[Source] = None) -> Dict[str, str]:
    source = source or Source.from_url(image_url)
    if source is not None:
        return get_crawler(source).request_headers(image_url)
    return {"Referer": config.IMAGE_PROXY_REFERER}
