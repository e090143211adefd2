"""Identity keys, in-batch merging and the cross-run seen index."""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit

from ..models.news import CollectedNewsItem
from ..models.reports import SeenNewsIndex
from .text import normalize_text

logger = logging.getLogger(__name__)

TRACKING_QUERY_KEYS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "gclid",
        "fbclid",
        "mc_cid",
        "mc_eid",
        "ref",
        "ref_src",
        "source",
        "igshid",
    }
)
MIN_TITLE_KEY_CHARS = 16


class Keyable(Protocol):
    title: str
    url: str
    published_date: str


K = TypeVar("K", bound=Keyable)


def _is_tracking_key(key: str) -> bool:
    lowered = key.lower()
    return lowered in TRACKING_QUERY_KEYS or lowered.startswith("utm_")


def canonical_url(raw_url: str) -> str:
    normalized = normalize_text(raw_url)
    if not normalized:
        return ""
    try:
        parsed = urlsplit(normalized)
        host = (parsed.hostname or "").lower()
    except ValueError:
        host = ""
    if not host:
        return normalized.lower().rstrip("/")

    path = parsed.path.rstrip("/") or "/"
    params = sorted(
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if not _is_tracking_key(key)
    )
    query = urlencode(params)
    return f"{host}{path}?{query}" if query else f"{host}{path}"


def normalize_title_key(title: str) -> str:
    lowered = unicodedata.normalize("NFKC", normalize_text(title).lower())
    stripped = re.sub(r"[^\w\s]|_", " ", lowered)
    return re.sub(r"\s+", " ", stripped).strip()


def news_keys(item: Keyable) -> list[str]:
    keys: list[str] = []
    url_key = canonical_url(item.url)
    if url_key:
        keys.append(f"u:{url_key}")

    title_key = normalize_title_key(item.title)
    if len(title_key) >= MIN_TITLE_KEY_CHARS:
        keys.append(f"t:{title_key}")
        date_key = normalize_text(item.published_date or "")
        if date_key:
            keys.append(f"td:{title_key}|{date_key}")
    return list(dict.fromkeys(keys))


def quality_score(item: CollectedNewsItem) -> int:
    images = len(item.feed_image_candidates) + len(item.article_image_candidates)
    return len(item.content) + 100 * images + (10 if item.published_at else 0)


def dedupe_items(items: Iterable[CollectedNewsItem]) -> list[CollectedNewsItem]:
    """Merge items sharing any identity key, keeping the higher-scoring copy."""
    deduped: list[CollectedNewsItem] = []
    key_to_index: dict[str, int] = {}

    for item in items:
        keys = news_keys(item)
        existing = next((key_to_index[k] for k in keys if k in key_to_index), None)
        if existing is None:
            deduped.append(item)
            existing = len(deduped) - 1
        elif quality_score(item) > quality_score(deduped[existing]):
            deduped[existing] = item
        for key in keys:
            key_to_index[key] = existing
    return deduped


def merge_snapshot(existing: Sequence[K], fresh: Sequence[K]) -> list[K]:
    """Fresh items first, then existing ones; the first holder of a key wins."""
    merged: list[K] = []
    seen: set[str] = set()
    for item in [*fresh, *existing]:
        keys = news_keys(item)
        if any(key in seen for key in keys):
            continue
        merged.append(item)
        seen.update(keys)
    return merged


def seed_seen_index(items: Iterable[Keyable], timestamp: str) -> SeenNewsIndex:
    keys = {key: timestamp for item in items for key in news_keys(item)}
    if keys:
        logger.info("Initialized seen index from current snapshot (%d keys)", len(keys))
    return SeenNewsIndex(updated_at=timestamp, keys=keys)


def filter_already_seen(
    items: Iterable[CollectedNewsItem],
    index: SeenNewsIndex,
    timestamp: str,
) -> tuple[list[CollectedNewsItem], int]:
    """Drop items with any registered key and register the keys of the rest."""
    fresh: list[CollectedNewsItem] = []
    skipped = 0
    for item in items:
        keys = news_keys(item)
        if any(key in index.keys for key in keys):
            skipped += 1
            continue
        fresh.append(item)
        for key in keys:
            index.keys[key] = timestamp
    if skipped:
        logger.info("Skipped %d duplicate/already-seen items", skipped)
    return fresh, skipped
