import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from .config import get_settings
from .errors import RetriableStatusError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None
_client_lock = asyncio.Lock()


async def get_http_client() -> httpx.AsyncClient:
    global _client

    if _client is None:
        async with _client_lock:
            if _client is None:
                settings = get_settings()
                limits = httpx.Limits(
                    max_connections=settings.http_max_connections,
                    max_keepalive_connections=settings.http_max_keepalive,
                )
                _client = httpx.AsyncClient(
                    timeout=settings.http_timeout,
                    limits=limits,
                    follow_redirects=True,
                    headers={"User-Agent": settings.http_user_agent, "Accept": "*/*"},
                )
    return _client


async def shutdown_http_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
        httpx.URL(value)
    except (ValueError, httpx.InvalidURL):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(slots=True)
class DownloadedImage:
    content: bytes
    content_type: str


async def fetch_bytes(client: httpx.AsyncClient, url: str) -> bytes:
    """Fetch a raw document body, raising on invalid URLs and non-2xx responses."""
    if not is_http_url(url):
        raise ValueError(f"Invalid URL: {url!r}")
    response = await client.get(url)
    response.raise_for_status()
    return response.content


async def fetch_html_or_empty(client: httpx.AsyncClient, url: str) -> str:
    if not is_http_url(url):
        return ""
    try:
        response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Article fetch failed for %s: %s", url, exc)
        return ""
    if not response.is_success:
        return ""
    if "text/html" not in response.headers.get("content-type", ""):
        return ""
    return response.text


async def fetch_image(
    client: httpx.AsyncClient,
    url: str,
    policy: RetryPolicy,
    max_bytes: int,
) -> DownloadedImage | None:
    if not is_http_url(url):
        return None

    async def attempt() -> DownloadedImage | None:
        response = await client.get(url)
        if not response.is_success:
            policy.check_status(response)
            return None
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            return None
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            return None
        if len(response.content) > max_bytes:
            return None
        return DownloadedImage(content=response.content, content_type=content_type)

    try:
        return await policy.call(attempt)
    except (httpx.HTTPError, httpx.InvalidURL, RetriableStatusError) as exc:
        logger.debug("Image download failed for %s: %s", url, exc)
        return None
