from .backfill import backfill_missing_photos, backfill_translations
from .collector import CollectResult, SourceCollector
from .photos import PhotoCandidate, PhotoResolver
from .pipeline import PipelineResult, RunContext, run_pipeline
from .progress import ProgressTracker, RunCoordinator
from .sink import add_excluded_item_id, list_excluded_item_ids, select_sink_rows
from .translation import TranslationService

__all__ = [
    "CollectResult",
    "PhotoCandidate",
    "PhotoResolver",
    "PipelineResult",
    "ProgressTracker",
    "RunContext",
    "RunCoordinator",
    "SourceCollector",
    "TranslationService",
    "add_excluded_item_id",
    "backfill_missing_photos",
    "backfill_translations",
    "list_excluded_item_ids",
    "run_pipeline",
    "select_sink_rows",
]
