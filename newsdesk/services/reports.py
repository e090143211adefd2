"""Per-source run reports, run history upserts and the daily health rollup."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from ..models.news import Source
from ..models.reports import (
    DailyHealthReport,
    DailyHealthSnapshot,
    DailySourceHealth,
    ResourceRunReport,
    ResourceTotals,
    RunHistorySnapshot,
    RunSummary,
)
from .dates import day_of
from .text import normalize_text

MAX_ERROR_CHARS = 400


def short_error_message(error: BaseException | str | None) -> str:
    value = normalize_text(str(error) if error is not None else "")
    if not value and isinstance(error, BaseException):
        value = type(error).__name__
    return value[:MAX_ERROR_CHARS] if value else "Unknown error"


def create_report(source: Source) -> ResourceRunReport:
    return ResourceRunReport(
        source_id=source.id,
        source_name=source.name,
        source=source.label,
        source_url=source.url,
        feed_url=source.feed_url,
    )


def _count_by_source(items: Iterable[object]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for item in items:
        source_id = (getattr(item, "source_id", "") or "").strip()
        if source_id:
            counts[source_id] += 1
    return counts


def finalize_reports(
    reports: list[ResourceRunReport], items: Iterable[object]
) -> list[ResourceRunReport]:
    counts = _count_by_source(items)
    finalized: list[ResourceRunReport] = []
    for report in reports:
        if report.status == "failed":
            finalized.append(report.model_copy(update={"collected_items": 0}))
            continue
        collected = counts.get(report.source_id, 0)
        finalized.append(
            report.model_copy(
                update={"status": "ok" if collected > 0 else "empty", "collected_items": collected}
            )
        )
    return finalized


def apply_fresh_counts(
    reports: list[ResourceRunReport], fresh_items: Iterable[object]
) -> list[ResourceRunReport]:
    counts = _count_by_source(fresh_items)
    return [r.model_copy(update={"fresh_items": counts.get(r.source_id, 0)}) for r in reports]


def upsert_run_history(
    history: RunHistorySnapshot, summary: RunSummary, updated_at: str
) -> RunHistorySnapshot:
    runs = [summary, *(run for run in history.runs if run.run_id != summary.run_id)]
    runs.sort(key=lambda run: run.generated_at, reverse=True)
    return RunHistorySnapshot(updated_at=updated_at, runs=runs)


def _group_key(report: ResourceRunReport) -> str:
    if report.source_id:
        return report.source_id
    if report.source_name:
        return report.source_name.lower()
    return report.feed_url.lower()


def build_daily_health(runs: Iterable[RunSummary], generated_at: str) -> DailyHealthSnapshot:
    """Bucket every source seen on a day as good, failed or flaky."""
    days: dict[str, DailyHealthReport] = {}
    health: dict[str, dict[str, DailySourceHealth]] = {}

    for run in runs:
        day = day_of(run.generated_at)
        if not day:
            continue
        report = days.setdefault(day, DailyHealthReport(date=day))
        report.run_count += 1
        report.items_saved += run.total_items
        checks = (
            ResourceTotals.from_reports(run.source_reports)
            if run.source_reports
            else run.resource_totals
        )
        report.resource_checks = report.resource_checks + checks

        by_source = health.setdefault(day, {})
        for source_report in run.source_reports:
            entry = by_source.setdefault(
                _group_key(source_report),
                DailySourceHealth(
                    source_id=source_report.source_id,
                    source_name=source_report.source_name,
                    source=source_report.source,
                ),
            )
            if source_report.status == "failed":
                entry.failed_runs += 1
            elif source_report.status == "empty":
                entry.empty_runs += 1
            else:
                entry.ok_runs += 1

    ordered: list[DailyHealthReport] = []
    for day in sorted(days, reverse=True):
        report = days[day]
        for entry in sorted(health.get(day, {}).values(), key=lambda h: h.source_name):
            failed = entry.failed_runs > 0
            succeeded = entry.ok_runs > 0 or entry.empty_runs > 0
            if failed and succeeded:
                report.flaky_resources.append(entry)
            elif failed:
                report.failed_resources.append(entry)
            else:
                report.good_resources.append(entry)
        ordered.append(report)
    return DailyHealthSnapshot(generated_at=generated_at, days=ordered)
