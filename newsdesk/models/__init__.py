from .news import CollectedNewsItem, NewsItem, PhotoAsset, Source
from .progress import ProgressSnapshot, ProgressUpdate
from .reports import (
    DailyHealthSnapshot,
    PhotoBackfillSummary,
    ResourceRunReport,
    ResourceTotals,
    RunHistorySnapshot,
    RunSummary,
    SeenNewsIndex,
    TranslationBackfillSummary,
)

__all__ = [
    "CollectedNewsItem",
    "DailyHealthSnapshot",
    "NewsItem",
    "PhotoAsset",
    "PhotoBackfillSummary",
    "ProgressSnapshot",
    "ProgressUpdate",
    "ResourceRunReport",
    "ResourceTotals",
    "RunHistorySnapshot",
    "RunSummary",
    "SeenNewsIndex",
    "Source",
    "TranslationBackfillSummary",
]
