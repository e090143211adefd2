from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

RunState = Literal["idle", "running", "success", "error"]
PipelineStage = Literal[
    "idle",
    "initializing",
    "loading_sources",
    "collecting",
    "translating",
    "saving",
    "backfilling",
    "completed",
    "failed",
]


class ProgressUpdate(BaseModel):
    stage: PipelineStage
    progress_percent: float
    message: str = ""


class ProgressSnapshot(BaseModel):
    state: RunState = "idle"
    stage: PipelineStage = "idle"
    progress_percent: int = Field(0, ge=0, le=100)
    message: str = ""
    started_at: str = ""
    updated_at: str = ""
    finished_at: str = ""
    run_id: str = ""
    error: str = ""
    collected_items: int = 0
    translated_items: int = 0
    backfilled_photos: int = 0
