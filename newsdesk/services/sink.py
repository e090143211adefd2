"""Rows for an external bulk-upsert consumer, plus its item exclusion list."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pydantic import ValidationError

from ..errors import PathEscapeError
from ..models.news import NewsItem
from ..models.sink import ExcludedIdsDocument, SinkRow, SinkScope, SinkSelection
from .dates import timestamp_or_zero, to_iso_or_empty, utc_now_iso
from .dedup import news_keys
from .photo_policy import filter_publishable_photos
from .storage import (
    Loaded,
    Workspace,
    news_items_or_empty,
    read_json,
    short_hash,
    slugify,
    write_json_atomic,
)
from .text import normalize_article_content

logger = logging.getLogger(__name__)

ITEM_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")
MAX_ITEM_ID_CHARS = 200
EXCERPT_CHARS = 320
TIME_RE = re.compile(r"^\d{2}:\d{2}:\d{2}$")
SHORT_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def validate_item_id(value: object) -> str:
    normalized = value.strip() if isinstance(value, str) else ""
    if not normalized:
        raise ValueError("id must be a non-empty string")
    if len(normalized) > MAX_ITEM_ID_CHARS:
        raise ValueError(f"id is too long (max {MAX_ITEM_ID_CHARS} characters)")
    if not ITEM_ID_RE.match(normalized):
        raise ValueError("id contains unsupported characters")
    return normalized


def list_excluded_item_ids(workspace: Workspace) -> list[str]:
    result = read_json(workspace.excluded_ids_path)
    if not isinstance(result, Loaded):
        return []
    try:
        document = ExcludedIdsDocument.model_validate(result.value)
    except ValidationError:
        return []
    return sorted({i.strip() for i in document.excluded_ids if i.strip()})


def add_excluded_item_id(workspace: Workspace, item_id: str) -> tuple[bool, list[str]]:
    """Register an id to skip; returns whether it was new and the full sorted list."""
    item_id = validate_item_id(item_id)
    ids = set(list_excluded_item_ids(workspace))
    if item_id in ids:
        return False, sorted(ids)
    ids.add(item_id)
    ordered = sorted(ids)
    write_json_atomic(
        workspace.excluded_ids_path,
        ExcludedIdsDocument(updated_at=utc_now_iso(), excluded_ids=ordered),
    )
    return True, ordered


def dedupe_key(item: NewsItem) -> str:
    keys = news_keys(item)
    primary = keys[0] if keys else f"fallback:{item.source.strip()}|{item.title.strip()}|{item.published_date.strip()}"
    return short_hash(primary, 40)


def quality(item: NewsItem) -> float:
    return (
        len(item.photos) * 1_000_000
        + len(item.content.strip()) * 1000
        + timestamp_or_zero(item.published_at)
        + timestamp_or_zero(item.scraped_at)
    )


def dedupe_for_sink(items: list[NewsItem]) -> list[NewsItem]:
    by_key: dict[str, NewsItem] = {}
    for item in items:
        key = dedupe_key(item)
        existing = by_key.get(key)
        if existing is None or quality(item) > quality(existing):
            by_key[key] = item
    return list(by_key.values())


def _published_time(value: str) -> str:
    value = value.strip()
    if TIME_RE.match(value):
        return value
    if SHORT_TIME_RE.match(value):
        return f"{value}:00"
    return "00:00:00"


def resolve_published_at(item: NewsItem) -> str | None:
    iso = to_iso_or_empty(item.published_at)
    if iso:
        return iso
    if not item.published_date.strip():
        return None
    return to_iso_or_empty(f"{item.published_date.strip()}T{_published_time(item.published_time)}Z") or None


def excerpt(text: str, max_chars: int = EXCERPT_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars].strip()}..."


def _or_none(value: str) -> str | None:
    return value.strip() or None


def build_row(item: NewsItem, photos: list) -> SinkRow:
    summary = _or_none(normalize_article_content(item.content)) or _or_none(item.content)
    primary = photos[0] if photos else None
    return SinkRow(
        slug=f"{slugify(item.title.strip() or 'news', 64)}-{short_hash(item.id, 8)}",
        external_id=item.id,
        dedupe_key=dedupe_key(item),
        source_id=_or_none(item.source_id),
        source_name=item.source,
        source_url=item.url,
        article_path=item.article_path,
        title=item.title,
        excerpt=excerpt(summary) if summary else None,
        summary=summary,
        content=summary or "",
        image=primary.local_path if primary else None,
        image_url=primary.source_url if primary else None,
        photos=photos,
        date=_or_none(item.published_date),
        published_at=resolve_published_at(item),
        published_date=_or_none(item.published_date),
        published_time=_or_none(item.published_time),
        scraped_at=to_iso_or_empty(item.scraped_at) or utc_now_iso(),
        rights_flag=item.rights_flag,
        license_text=item.license_text,
        category=_or_none(item.source),
    )


def sink_input_path(workspace: Workspace, scope: SinkScope) -> Path:
    if scope == "snapshot":
        return workspace.snapshot_path
    result = read_json(workspace.latest_run_path)
    pointer = result.value if isinstance(result, Loaded) else None
    run_path = pointer.get("run_path") if isinstance(pointer, dict) else None
    if not isinstance(run_path, str) or not run_path.strip():
        return workspace.snapshot_path
    try:
        run_news = workspace.resolve(run_path.strip()) / "news.json"
    except PathEscapeError:
        logger.warning("latest_run.json points outside the workspace: %s", run_path)
        return workspace.snapshot_path
    return run_news if run_news.is_file() else workspace.snapshot_path


def select_sink_rows(workspace: Workspace, scope: SinkScope = "latest_run") -> SinkSelection:
    source_path = sink_input_path(workspace, scope)
    items = news_items_or_empty(source_path)
    excluded = set(list_excluded_item_ids(workspace))
    selected = [item for item in items if item.id not in excluded]

    rows: list[SinkRow] = []
    removed_photos = 0
    for item in dedupe_for_sink(selected):
        photos = filter_publishable_photos(workspace, item.photos)
        removed_photos += len(item.photos) - len(photos)
        rows.append(build_row(item, photos))

    if removed_photos:
        logger.info("Skipped %d unavailable/policy-filtered photo reference(s)", removed_photos)
    if len(items) != len(selected):
        logger.info("Skipped %d excluded item(s)", len(items) - len(selected))
    return SinkSelection(
        scope=scope,
        source_file=workspace.relative(source_path),
        selected_items=len(selected),
        excluded_items=len(items) - len(selected),
        removed_photo_refs=removed_photos,
        rows=rows,
    )
