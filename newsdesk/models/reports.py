from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

ResourceStatus = Literal["ok", "empty", "failed"]


def _non_negative(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return int(value)


class ResourceRunReport(BaseModel):
    source_id: str = Field(min_length=1)
    source_name: str = Field(min_length=1)
    source: str = ""
    source_url: str = ""
    feed_url: str = Field(min_length=1)
    status: ResourceStatus = "empty"
    error: str = ""
    feed_entries: int = 0
    collected_items: int = 0
    fresh_items: int = 0

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return value if value in ("ok", "empty", "failed") else "failed"

    @field_validator("feed_entries", "collected_items", "fresh_items", mode="before")
    @classmethod
    def _coerce_count(cls, value: object) -> int:
        return _non_negative(value)

    @model_validator(mode="after")
    def _default_label(self) -> ResourceRunReport:
        if not self.source:
            self.source = self.source_name
        return self


class ResourceTotals(BaseModel):
    total_resources: int = 0
    ok_resources: int = 0
    empty_resources: int = 0
    failed_resources: int = 0

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_count(cls, value: object) -> int:
        return _non_negative(value)

    def __add__(self, other: ResourceTotals) -> ResourceTotals:
        return ResourceTotals(
            total_resources=self.total_resources + other.total_resources,
            ok_resources=self.ok_resources + other.ok_resources,
            empty_resources=self.empty_resources + other.empty_resources,
            failed_resources=self.failed_resources + other.failed_resources,
        )

    @classmethod
    def from_reports(cls, reports: list[ResourceRunReport]) -> ResourceTotals:
        return cls(
            total_resources=len(reports),
            ok_resources=sum(1 for r in reports if r.status == "ok"),
            empty_resources=sum(1 for r in reports if r.status == "empty"),
            failed_resources=sum(1 for r in reports if r.status == "failed"),
        )


class RunSummary(BaseModel):
    run_id: str = Field(min_length=1)
    run_path: str = Field(min_length=1)
    generated_at: str = Field(min_length=1)
    total_items: int = 0
    collected_items: int = 0
    skipped_seen_items: int = 0
    resource_totals: ResourceTotals = Field(default_factory=ResourceTotals)
    source_reports: list[ResourceRunReport] = Field(default_factory=list)

    @field_validator("total_items", "collected_items", "skipped_seen_items", mode="before")
    @classmethod
    def _coerce_count(cls, value: object) -> int:
        return _non_negative(value)

    @model_validator(mode="before")
    @classmethod
    def _drop_invalid_reports(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_reports = data.get("source_reports")
        reports: list[ResourceRunReport] = []
        for raw in raw_reports if isinstance(raw_reports, list) else []:
            if isinstance(raw, ResourceRunReport):
                reports.append(raw)
                continue
            try:
                reports.append(ResourceRunReport.model_validate(raw))
            except ValueError:
                continue
        data["source_reports"] = reports
        if not isinstance(data.get("resource_totals"), (dict, ResourceTotals)):
            data["resource_totals"] = ResourceTotals.from_reports(reports)
        return data


class RunHistorySnapshot(BaseModel):
    updated_at: str
    runs: list[RunSummary] = Field(default_factory=list)


class DailySourceHealth(BaseModel):
    source_id: str
    source_name: str
    source: str
    ok_runs: int = 0
    empty_runs: int = 0
    failed_runs: int = 0


class DailyHealthReport(BaseModel):
    date: str
    run_count: int = 0
    items_saved: int = 0
    resource_checks: ResourceTotals = Field(default_factory=ResourceTotals)
    failed_resources: list[DailySourceHealth] = Field(default_factory=list)
    good_resources: list[DailySourceHealth] = Field(default_factory=list)
    flaky_resources: list[DailySourceHealth] = Field(default_factory=list)


class DailyHealthSnapshot(BaseModel):
    generated_at: str
    days: list[DailyHealthReport] = Field(default_factory=list)


class SeenNewsIndex(BaseModel):
    version: Literal[1] = 1
    updated_at: str
    keys: dict[str, str] = Field(default_factory=dict)


class PhotoBackfillSummary(BaseModel):
    run_path: str
    scanned_items: int = 0
    missing_before: int = 0
    cleaned_items: int = 0
    removed_photo_refs: int = 0
    updated_items: int = 0
    updated_photos: int = 0
    synced_snapshot_items: int = 0
    remaining_missing: int = 0


class TranslationBackfillSummary(BaseModel):
    output_path: str
    scanned_items: int = 0
    updated_items: int = 0
    updated_titles: int = 0
    updated_contents: int = 0
    updated_run_files: int = 0
    updated_article_files: int = 0
