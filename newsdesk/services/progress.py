"""Single-slot run status and the single-flight coordinator around it."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from threading import Lock
from typing import TYPE_CHECKING

from ..errors import RunAlreadyActiveError
from ..models.progress import ProgressSnapshot, ProgressUpdate
from .dates import utc_now_iso
from .text import normalize_text

if TYPE_CHECKING:
    from .pipeline import PipelineResult

logger = logging.getLogger(__name__)

MAX_STATUS_TEXT_LEN = 240

ProgressCallback = Callable[[ProgressUpdate], None]
PipelineRunner = Callable[[ProgressCallback], Awaitable["PipelineResult"]]


def clamp_percent(value: float) -> int:
    if not math.isfinite(value) or value <= 0:
        return 0
    if value >= 100:
        return 100
    return int(math.floor(value + 0.5))


def status_text(value: str) -> str:
    normalized = normalize_text(value)
    if len(normalized) <= MAX_STATUS_TEXT_LEN:
        return normalized
    return f"{normalized[: MAX_STATUS_TEXT_LEN - 3]}..."


class ProgressTracker:
    """Holds the status of the current (or last) run; readers get copies."""

    def __init__(self) -> None:
        self._state = ProgressSnapshot(updated_at=utc_now_iso())
        self._lock = Lock()

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._state.model_copy()

    def try_start(self) -> bool:
        now = utc_now_iso()
        with self._lock:
            if self._state.state == "running":
                return False
            self._state = ProgressSnapshot(
                state="running",
                stage="initializing",
                progress_percent=0,
                message="Starting scrape...",
                started_at=now,
                updated_at=now,
            )
            return True

    def update(self, progress: ProgressUpdate) -> None:
        with self._lock:
            if self._state.state != "running":
                return
            message = status_text(progress.message)
            self._state = self._state.model_copy(
                update={
                    "stage": progress.stage,
                    "progress_percent": clamp_percent(progress.progress_percent),
                    "message": message or self._state.message,
                    "updated_at": utc_now_iso(),
                }
            )

    def complete(self, result: PipelineResult) -> None:
        now = utc_now_iso()
        photos = result.backfill.updated_photos
        with self._lock:
            self._state = self._state.model_copy(
                update={
                    "state": "success",
                    "stage": "completed",
                    "progress_percent": 100,
                    "message": status_text(
                        f"Scrape complete. Run {result.run.run_id}. Backfilled {photos} photo(s)."
                    ),
                    "updated_at": now,
                    "finished_at": now,
                    "run_id": result.run.run_id,
                    "error": "",
                    "collected_items": result.collected_items,
                    "translated_items": result.translated_items,
                    "backfilled_photos": photos,
                }
            )

    def fail(self, error: str) -> None:
        now = utc_now_iso()
        with self._lock:
            current = self._state.progress_percent
            self._state = self._state.model_copy(
                update={
                    "state": "error",
                    "stage": "failed",
                    "progress_percent": current if current > 0 else 1,
                    "message": "Scrape failed.",
                    "updated_at": now,
                    "finished_at": now,
                    "error": status_text(error),
                }
            )


class RunCoordinator:
    """Starts at most one pipeline run at a time and records its outcome."""

    def __init__(self, runner: PipelineRunner, tracker: ProgressTracker | None = None) -> None:
        self._runner = runner
        self.tracker = tracker or ProgressTracker()
        self._task: asyncio.Task[None] | None = None

    def snapshot(self) -> ProgressSnapshot:
        return self.tracker.snapshot()

    def start(self) -> ProgressSnapshot:
        """Launch a run in the background; raises if one is already active."""
        if not self.tracker.try_start():
            raise RunAlreadyActiveError(self.tracker.snapshot())
        self._task = asyncio.create_task(self._run())
        return self.tracker.snapshot()

    async def wait(self) -> ProgressSnapshot:
        if self._task is not None:
            await self._task
        return self.tracker.snapshot()

    async def _run(self) -> None:
        try:
            result = await self._runner(self.tracker.update)
        except Exception as exc:
            logger.exception("Scrape run failed")
            self.tracker.fail(str(exc) or type(exc).__name__)
            return
        self.tracker.complete(result)
