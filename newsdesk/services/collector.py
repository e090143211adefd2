from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import feedparser
import httpx

from ..config import Settings, get_settings
from ..http_client import fetch_bytes, fetch_html_or_empty, get_http_client
from ..models.news import CollectedNewsItem, Source
from ..models.reports import ResourceRunReport
from .dates import date_only, time_only
from .dedup import dedupe_items
from .extract import (
    ArticlePage,
    entry_image_urls,
    entry_published_at,
    entry_text,
    parse_article_page,
)
from .reports import create_report, finalize_reports, short_error_message
from .text import excerpt_by_sentences, normalize_text

logger = logging.getLogger(__name__)

QUOTE_ONLY_SENTENCES = 10
QUOTE_ONLY_CHARS = 2200

SourceProgress = Callable[[int, int, Source], None]


@dataclass(slots=True)
class CollectResult:
    items: list[CollectedNewsItem] = field(default_factory=list)
    source_reports: list[ResourceRunReport] = field(default_factory=list)


def best_content(feed_text: str, page_text: str) -> str:
    return page_text if len(page_text) > len(feed_text) else feed_text


def parse_feed(document: bytes) -> list[Mapping[str, Any]]:
    parsed = feedparser.parse(document)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"Unparseable feed: {parsed.get('bozo_exception') or 'no entries'}")
    return list(parsed.entries)


@dataclass(slots=True)
class SourceCollector:
    settings: Settings | None = None
    client: httpx.AsyncClient | None = None

    def __post_init__(self) -> None:
        if self.settings is None:
            self.settings = get_settings()

    async def collect(
        self,
        sources: list[Source],
        scraped_at: str,
        on_progress: SourceProgress | None = None,
    ) -> CollectResult:
        """Fetch every source with bounded parallelism; reports keep source order."""
        client = self.client or await get_http_client()
        semaphore = asyncio.Semaphore(self.settings.source_concurrency)
        total = len(sources)
        done = 0

        async def run(source: Source) -> tuple[ResourceRunReport, list[CollectedNewsItem]]:
            nonlocal done
            try:
                async with semaphore:
                    return await self._collect_source(client, source, scraped_at)
            finally:
                done += 1
                if on_progress is not None:
                    on_progress(done, total, source)

        results = await asyncio.gather(*(run(source) for source in sources), return_exceptions=True)

        items: list[CollectedNewsItem] = []
        reports: list[ResourceRunReport] = []
        for source, result in zip(sources, results, strict=False):
            if isinstance(result, BaseException):
                report = create_report(source)
                report.status = "failed"
                report.error = short_error_message(result)
                logger.warning("Source %s failed: %s", source.id, report.error)
                reports.append(report)
                continue
            report, source_items = result
            reports.append(report)
            items.extend(source_items)

        deduped = dedupe_items(items)
        return CollectResult(items=deduped, source_reports=finalize_reports(reports, deduped))

    async def _collect_source(
        self,
        client: httpx.AsyncClient,
        source: Source,
        scraped_at: str,
    ) -> tuple[ResourceRunReport, list[CollectedNewsItem]]:
        logger.info("Scraping %s - %s", source.id, source.name)
        report = create_report(source)
        try:
            entries = parse_feed(await fetch_bytes(client, source.feed_url))
        except (httpx.HTTPError, ValueError) as exc:
            report.status = "failed"
            report.error = short_error_message(exc)
            logger.warning("Failed to parse feed %s: %s", source.feed_url, report.error)
            return report, []

        entries = entries[: source.max_items]
        report.feed_entries = len(entries)

        items: list[CollectedNewsItem] = []
        for entry in entries:
            item = await self._build_item(client, source, entry, scraped_at)
            if item is not None:
                items.append(item)
        return report, items

    async def _build_item(
        self,
        client: httpx.AsyncClient,
        source: Source,
        entry: Mapping[str, Any],
        scraped_at: str,
    ) -> CollectedNewsItem | None:
        title = normalize_text(entry.get("title") or "")
        url = normalize_text(entry.get("link") or source.url)
        if not title or not url:
            return None

        feed_text = entry_text(entry)
        feed_images = entry_image_urls(entry)
        page = ArticlePage()
        if len(feed_text) < self.settings.min_article_chars or not feed_images:
            html = await fetch_html_or_empty(client, url)
            page = parse_article_page(html, self.settings.max_article_paragraphs)

        content = best_content(feed_text, page.content)
        if source.rights_flag == "quote_only":
            content = excerpt_by_sentences(content, QUOTE_ONLY_SENTENCES, QUOTE_ONLY_CHARS)
        if not content:
            return None

        published_at = entry_published_at(entry)
        return CollectedNewsItem(
            source_id=source.id,
            title=title,
            content=content,
            url=url,
            source=source.label,
            published_at=published_at,
            published_date=date_only(published_at, scraped_at),
            published_time=time_only(published_at, scraped_at),
            rights_flag=source.rights_flag,
            license_text=source.license_text,
            feed_image_candidates=feed_images,
            article_image_candidates=page.image_urls,
        )
