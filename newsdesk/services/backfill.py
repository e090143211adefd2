"""Re-entrant repair passes over already persisted runs.

Both passes are idempotent: running them again over repaired data finds
nothing left to change.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..config import Settings, get_settings
from ..errors import NewsdeskError, PathEscapeError
from ..models.news import NewsItem, PhotoAsset
from ..models.reports import PhotoBackfillSummary, TranslationBackfillSummary
from .formatting import format_post_translation
from .photo_policy import filter_publishable_photos
from .photos import PhotoResolver
from .storage import (
    Loaded,
    Workspace,
    load_news_items,
    news_items_or_empty,
    read_json,
    save_article_files,
    write_json_atomic,
)
from .translation import TranslationService, script_stats, target_script

logger = logging.getLogger(__name__)

TITLE_MIN_LETTERS = 8
TITLE_LATIN_RATIO = 0.45
CONTENT_MIN_LETTERS = 25
CONTENT_LATIN_RATIO = 0.2


class SnapshotIndex:
    """Looks items up by id first, then by article path."""

    def __init__(self, items: list[NewsItem]) -> None:
        self.by_id: dict[str, int] = {}
        self.by_path: dict[str, int] = {}
        for index, item in enumerate(items):
            if item.id:
                self.by_id[item.id] = index
            if item.article_path:
                self.by_path[item.article_path] = index

    def find(self, item: NewsItem) -> int | None:
        if item.id and item.id in self.by_id:
            return self.by_id[item.id]
        if item.article_path and item.article_path in self.by_path:
            return self.by_path[item.article_path]
        return None


def used_wikimedia_urls(items: list[NewsItem]) -> set[str]:
    return {
        photo.source_url
        for item in items
        for photo in item.photos
        if photo.provider == "wikimedia" and photo.source_url
    }


def resolve_run_dir(workspace: Workspace, run_path: str | None = None) -> Path:
    if run_path:
        return workspace.resolve(run_path)
    result = read_json(workspace.latest_run_path)
    pointer = result.value if isinstance(result, Loaded) else None
    value = pointer.get("run_path") if isinstance(pointer, dict) else None
    if not isinstance(value, str) or not value.strip():
        raise NewsdeskError(f"latest_run.json has no run_path: {workspace.latest_run_path}")
    return workspace.resolve(value.strip())


def _article_dir(workspace: Workspace, item: NewsItem) -> Path | None:
    try:
        return workspace.resolve(item.article_path)
    except PathEscapeError:
        logger.warning("Ignoring item %s with article path outside workspace", item.id)
        return None


async def _backfill_item(
    resolver: PhotoResolver,
    workspace: Workspace,
    item: NewsItem,
    article_dir: Path,
    used: set[str],
    attempts: int,
    delay: float,
) -> list[PhotoAsset]:
    for attempt in range(attempts):
        candidates = await resolver.resolve(
            item.title,
            public_only=item.rights_flag == "quote_only",
            fallback_to_generic=True,
            context_url=item.url,
            context_text=item.content,
            exclude_urls=used,
        )
        photos = await resolver.download(candidates, article_dir, workspace)
        if photos:
            return photos
        if attempt < attempts - 1:
            logger.info("Retrying photo backfill for: %s", item.title[:90])
            await asyncio.sleep(delay * (attempt + 1))
    return []


async def backfill_missing_photos(
    workspace: Workspace,
    resolver: PhotoResolver,
    run_path: str | None = None,
    settings: Settings | None = None,
) -> PhotoBackfillSummary:
    """Drop dangling photo references, then retry photo resolution for items without photos."""
    settings = settings or get_settings()
    run_dir = resolve_run_dir(workspace, run_path)
    run_news_path = run_dir / "news.json"
    run_items = news_items_or_empty(run_news_path)
    snapshot = news_items_or_empty(workspace.snapshot_path)
    snapshot_index = SnapshotIndex(snapshot)
    summary = PhotoBackfillSummary(run_path=workspace.relative(run_dir), scanned_items=len(run_items))

    synced: set[int] = set()
    changed_items: set[int] = set()

    for index, item in enumerate(run_items):
        kept = filter_publishable_photos(workspace, item.photos)
        if len(kept) == len(item.photos):
            continue
        summary.removed_photo_refs += len(item.photos) - len(kept)
        summary.cleaned_items += 1
        item.photos = kept
        changed_items.add(index)

    used = used_wikimedia_urls(run_items)
    summary.missing_before = sum(1 for item in run_items if not item.photos)

    for index, item in enumerate(run_items):
        if item.photos:
            continue
        article_dir = _article_dir(workspace, item)
        if article_dir is None:
            continue
        photos = await _backfill_item(
            resolver,
            workspace,
            item,
            article_dir,
            used,
            settings.backfill_attempts,
            settings.backfill_retry_delay,
        )
        if not photos:
            continue
        item.photos = photos
        changed_items.add(index)
        used.update(p.source_url for p in photos if p.provider == "wikimedia" and p.source_url)
        summary.updated_items += 1
        summary.updated_photos += len(photos)
        logger.info("Backfilled photos for: %s", item.title[:90])

    for index in sorted(changed_items):
        item = run_items[index]
        article_dir = _article_dir(workspace, item)
        if article_dir is not None:
            save_article_files(item, article_dir)
        position = snapshot_index.find(item)
        if position is not None:
            snapshot[position] = snapshot[position].model_copy(update={"photos": list(item.photos)})
            synced.add(position)

    summary.synced_snapshot_items = len(synced)
    summary.remaining_missing = sum(1 for item in run_items if not item.photos)

    if changed_items:
        write_json_atomic(run_news_path, run_items)
        write_json_atomic(workspace.snapshot_path, snapshot)
    logger.info(
        "Photo backfill for %s: cleaned %d, updated %d, still missing %d",
        summary.run_path,
        summary.cleaned_items,
        summary.updated_items,
        summary.remaining_missing,
    )
    return summary


def title_needs_translation(title: str) -> bool:
    stats = script_stats(title)
    return stats.letters >= TITLE_MIN_LETTERS and stats.latin_ratio >= TITLE_LATIN_RATIO


def content_needs_repair(content: str) -> bool:
    stats = script_stats(content)
    return stats.letters >= CONTENT_MIN_LETTERS and stats.latin_ratio >= CONTENT_LATIN_RATIO


@dataclass(slots=True)
class RunFile:
    path: Path
    items: list[NewsItem]
    index: SnapshotIndex = field(init=False)
    changed: bool = False

    def __post_init__(self) -> None:
        self.index = SnapshotIndex(self.items)

    def apply(self, item: NewsItem) -> bool:
        position = self.index.find(item)
        if position is None:
            return False
        self.items[position] = self.items[position].model_copy(
            update={"title": item.title, "content": item.content}
        )
        self.changed = True
        return True


async def backfill_translations(
    workspace: Workspace,
    translator: TranslationService,
    target_language: str | None = None,
) -> TranslationBackfillSummary:
    """Retranslate snapshot titles and content that still look untranslated."""
    target = target_language or translator.settings.target_language
    repair_only = target_script(target) is not None
    snapshot_path = workspace.snapshot_path
    result = load_news_items(snapshot_path)
    items = result.value if isinstance(result, Loaded) else []
    summary = TranslationBackfillSummary(
        output_path=workspace.relative(snapshot_path), scanned_items=len(items)
    )
    run_files: dict[Path, RunFile | None] = {}

    for position, item in enumerate(items):
        title = item.title
        content = item.content

        if title_needs_translation(title):
            translated = (await translator.translate_text(title, target)).strip()
            if translated and translated != title:
                title = translated
                summary.updated_titles += 1

        if content_needs_repair(content):
            if repair_only:
                candidate = await translator.repair_mixed_script(content, target)
            else:
                candidate = await translator.translate_text(content, target)
            candidate = candidate.strip()
            if candidate and candidate != content:
                formatted = format_post_translation(candidate)
                content = formatted or candidate
                summary.updated_contents += 1

        if title == item.title and content == item.content:
            continue

        updated = item.model_copy(update={"title": title, "content": content})
        items[position] = updated
        summary.updated_items += 1
        logger.info("Backfilled translation for: %s", title[:90])

        article_dir = _article_dir(workspace, updated)
        if article_dir is None:
            continue
        save_article_files(updated, article_dir)
        summary.updated_article_files += 1

        run_news_path = article_dir.parent / "news.json"
        if run_news_path not in run_files:
            loaded = load_news_items(run_news_path)
            run_files[run_news_path] = (
                RunFile(run_news_path, loaded.value) if isinstance(loaded, Loaded) else None
            )
        run_file = run_files[run_news_path]
        if run_file is not None:
            run_file.apply(updated)

    if summary.updated_items:
        write_json_atomic(snapshot_path, items)
    for run_file in run_files.values():
        if run_file is not None and run_file.changed:
            write_json_atomic(run_file.path, run_file.items)
            summary.updated_run_files += 1
    return summary
