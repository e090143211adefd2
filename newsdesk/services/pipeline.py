"""One scrape run: collect, filter, translate, save, backfill."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from ..config import Settings, get_settings
from ..models.news import CollectedNewsItem, NewsItem, PhotoAsset, Source
from ..models.progress import PipelineStage, ProgressUpdate
from ..models.reports import (
    PhotoBackfillSummary,
    ResourceRunReport,
    ResourceTotals,
    RunSummary,
    SeenNewsIndex,
)
from ..vocabulary import DEFAULT_VOCABULARY, Vocabulary
from .backfill import backfill_missing_photos
from .collector import SourceCollector
from .dates import run_id_for, utc_now_iso
from .dedup import filter_already_seen, merge_snapshot, seed_seen_index
from .photos import PhotoResolver
from .progress import ProgressCallback, clamp_percent
from .reports import apply_fresh_counts, build_daily_health, upsert_run_history
from .sources import load_sources
from .storage import (
    Invalid,
    Workspace,
    load_run_history,
    load_seen_index,
    news_items_or_empty,
    save_article_files,
    short_hash,
    slugify,
    unique_folder_name,
    write_json_atomic,
)
from .translation import TranslationService

logger = logging.getLogger(__name__)

COLLECT_PROGRESS = (10.0, 45.0)
TRANSLATE_PROGRESS = (50.0, 75.0)
FOLDER_SLUG_CHARS = 56
PROGRESS_TITLE_CHARS = 72


@dataclass(slots=True)
class RunContext:
    """Everything one run needs, passed explicitly through every stage."""

    settings: Settings
    workspace: Workspace
    scraped_at: str
    client: httpx.AsyncClient | None = None
    vocabulary: Vocabulary = DEFAULT_VOCABULARY
    max_items_per_source: int | None = None
    collector: SourceCollector | None = None
    translator: TranslationService | None = None
    photos: PhotoResolver | None = None
    used_wikimedia_urls: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.collector is None:
            self.collector = SourceCollector(settings=self.settings, client=self.client)
        if self.translator is None:
            self.translator = TranslationService(settings=self.settings, client=self.client)
        if self.photos is None:
            self.photos = PhotoResolver(
                settings=self.settings, client=self.client, vocabulary=self.vocabulary
            )

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        **options: object,
    ) -> RunContext:
        settings = settings or get_settings()
        return cls(
            settings=settings,
            workspace=Workspace.from_settings(settings),
            scraped_at=utc_now_iso(),
            client=client,
            **options,
        )

    @property
    def run_id(self) -> str:
        return run_id_for(self.scraped_at)

    @property
    def run_dir(self) -> Path:
        return self.workspace.runs_dir / self.run_id

    @property
    def sources_path(self) -> Path:
        return self.workspace.root / self.settings.sources_path


@dataclass(slots=True)
class PipelineResult:
    run: RunSummary
    backfill: PhotoBackfillSummary
    collected_items: int
    translated_items: int


def _emit(
    on_progress: ProgressCallback | None,
    stage: PipelineStage,
    percent: float,
    message: str,
) -> None:
    if on_progress is None:
        return
    try:
        on_progress(
            ProgressUpdate(stage=stage, progress_percent=clamp_percent(percent), message=message)
        )
    except Exception:
        logger.debug("Progress callback raised; ignoring", exc_info=True)


def stage_percent(done: int, total: int, bounds: tuple[float, float]) -> float:
    start, end = bounds
    ratio = max(0.0, min(1.0, done / (total if total > 0 else 1)))
    return start + (end - start) * ratio


def _title_suffix(title: str) -> str:
    title = title.strip()
    if not title:
        return ""
    ellipsis = "..." if len(title) > PROGRESS_TITLE_CHARS else ""
    return f": {title[:PROGRESS_TITLE_CHARS]}{ellipsis}"


def load_or_seed_seen_index(ctx: RunContext) -> SeenNewsIndex:
    workspace = ctx.workspace
    result = load_seen_index(workspace.seen_index_path)
    if isinstance(result, Invalid):
        logger.info("Seen index unavailable (%s); seeding from snapshot", result.reason)
        return seed_seen_index(news_items_or_empty(workspace.snapshot_path), ctx.scraped_at)
    return result.value


async def resolve_item_photos(
    ctx: RunContext, item: CollectedNewsItem, article_dir: Path
) -> list[PhotoAsset]:
    resolver = ctx.photos
    candidates = await resolver.resolve(
        item.title,
        item.feed_image_candidates,
        item.article_image_candidates,
        public_only=item.rights_flag == "quote_only",
        context_url=item.url,
        exclude_urls=ctx.used_wikimedia_urls,
    )
    photos = await resolver.download(candidates, article_dir, ctx.workspace)
    if not photos:
        candidates = await resolver.resolve(
            item.title,
            public_only=True,
            fallback_to_generic=True,
            context_url=item.url,
            exclude_urls=ctx.used_wikimedia_urls,
        )
        photos = await resolver.download(candidates, article_dir, ctx.workspace)
        if photos:
            logger.info("Found fallback free image for: %s", item.title[:80])

    ctx.used_wikimedia_urls.update(p.source_url for p in photos if p.provider == "wikimedia")
    return photos


async def save_output(
    ctx: RunContext,
    items: list[CollectedNewsItem],
    collected_count: int,
    skipped_seen: int,
    source_reports: list[ResourceRunReport],
    seen_index: SeenNewsIndex,
) -> RunSummary:
    """Write per-item files, then every shared run artifact once all are computed."""
    workspace = ctx.workspace
    run_dir = ctx.run_dir
    run_dir.mkdir(parents=True, exist_ok=True)

    saved: list[NewsItem] = []
    used_folders: set[str] = set()
    for item in items:
        item_id = short_hash(item.url)
        folder = unique_folder_name(f"{slugify(item.title, FOLDER_SLUG_CHARS)}-{item_id}", used_folders)
        article_dir = run_dir / folder
        photos = await resolve_item_photos(ctx, item, article_dir)
        news_item = NewsItem(
            id=item_id,
            source_id=item.source_id,
            title=item.title,
            content=item.content,
            url=item.url,
            source=item.source,
            published_at=item.published_at,
            published_date=item.published_date,
            published_time=item.published_time,
            scraped_at=ctx.scraped_at,
            article_path=workspace.relative(article_dir),
            rights_flag=item.rights_flag,
            license_text=item.license_text,
            photos=photos,
        )
        save_article_files(news_item, article_dir)
        saved.append(news_item)

    snapshot = merge_snapshot(news_items_or_empty(workspace.snapshot_path), saved)
    reports = apply_fresh_counts(source_reports, saved)
    summary = RunSummary(
        run_id=ctx.run_id,
        run_path=workspace.relative(run_dir),
        generated_at=ctx.scraped_at,
        total_items=len(saved),
        collected_items=collected_count,
        skipped_seen_items=skipped_seen,
        resource_totals=ResourceTotals.from_reports(reports),
        source_reports=reports,
    )
    history = upsert_run_history(
        load_run_history(workspace.history_path, ctx.scraped_at), summary, ctx.scraped_at
    )
    health = build_daily_health(history.runs, ctx.scraped_at)
    seen_index.updated_at = ctx.scraped_at

    write_json_atomic(run_dir / "news.json", saved)
    write_json_atomic(workspace.snapshot_path, snapshot)
    write_json_atomic(run_dir / "run_summary.json", summary)
    write_json_atomic(workspace.latest_run_path, summary)
    write_json_atomic(workspace.history_path, history)
    write_json_atomic(workspace.daily_health_path, health)
    write_json_atomic(workspace.seen_index_path, seen_index)

    if summary.resource_totals.failed_resources:
        logger.warning("Resources failed in run: %d", summary.resource_totals.failed_resources)
    logger.info("Run saved to %s", summary.run_path)
    return summary


async def run_pipeline(
    ctx: RunContext, on_progress: ProgressCallback | None = None
) -> PipelineResult:
    _emit(on_progress, "initializing", 2, "Preparing scrape pipeline...")
    _emit(on_progress, "loading_sources", 6, "Loading source configuration...")
    sources = load_sources(ctx.sources_path, ctx.max_items_per_source)

    _emit(
        on_progress,
        "collecting",
        COLLECT_PROGRESS[0],
        f"Collecting items from {len(sources)} source(s)...",
    )

    def on_source(done: int, total: int, source: Source) -> None:
        _emit(
            on_progress,
            "collecting",
            stage_percent(done, total, COLLECT_PROGRESS),
            f"Collecting source {done}/{max(total, 1)}: {source.name or source.id}",
        )

    collected = await ctx.collector.collect(sources, ctx.scraped_at, on_source)
    _emit(on_progress, "collecting", COLLECT_PROGRESS[1], f"Collected {len(collected.items)} item(s).")

    seen_index = load_or_seed_seen_index(ctx)
    fresh, skipped = filter_already_seen(collected.items, seen_index, ctx.scraped_at)

    _emit(on_progress, "translating", TRANSLATE_PROGRESS[0], "Translating and sanitizing content...")

    def on_item(done: int, total: int, title: str) -> None:
        _emit(
            on_progress,
            "translating",
            stage_percent(done, total, TRANSLATE_PROGRESS),
            f"Translating item {done}/{max(total, 1)}{_title_suffix(title)}",
        )

    translated = await ctx.translator.translate_items(fresh, on_item)

    _emit(on_progress, "saving", 80, "Saving run outputs...")
    run = await save_output(
        ctx, translated, len(collected.items), skipped, collected.source_reports, seen_index
    )

    _emit(on_progress, "backfilling", 92, "Backfilling missing photos for latest run items...")
    backfill = await backfill_missing_photos(
        ctx.workspace, ctx.photos, run.run_path, settings=ctx.settings
    )

    _emit(
        on_progress,
        "completed",
        100,
        f"Scrape complete. Run {run.run_id}, backfilled {backfill.updated_photos} photo(s).",
    )
    return PipelineResult(
        run=run,
        backfill=backfill,
        collected_items=len(collected.items),
        translated_items=len(translated),
    )
