import asyncio

import pytest
from fastapi.testclient import TestClient

from api.index import app, get_coordinator
from newsdesk.errors import RunAlreadyActiveError
from newsdesk.models.progress import ProgressUpdate
from newsdesk.models.reports import PhotoBackfillSummary, RunSummary
from newsdesk.services.pipeline import PipelineResult
from newsdesk.services.progress import (
    ProgressTracker,
    RunCoordinator,
    clamp_percent,
    status_text,
)


def make_result() -> PipelineResult:
    return PipelineResult(
        run=RunSummary(
            run_id="2024-05-21T08-00-00-000Z",
            run_path="data/runs/2024-05-21T08-00-00-000Z",
            generated_at="2024-05-21T08:00:00.000Z",
        ),
        backfill=PhotoBackfillSummary(run_path="data/runs/2024-05-21T08-00-00-000Z", updated_photos=2),
        collected_items=5,
        translated_items=4,
    )


def test_clamp_percent_and_status_text() -> None:
    assert clamp_percent(-5) == 0
    assert clamp_percent(float("nan")) == 0
    assert clamp_percent(42.5) == 43
    assert clamp_percent(250) == 100
    assert status_text("  a \n b ") == "a b"
    assert len(status_text("x" * 500)) == 240


def test_tracker_is_single_slot() -> None:
    tracker = ProgressTracker()
    assert tracker.snapshot().state == "idle"

    tracker.update(ProgressUpdate(stage="collecting", progress_percent=30, message="ignored"))
    assert tracker.snapshot().stage == "idle"

    assert tracker.try_start()
    assert not tracker.try_start()
    tracker.update(ProgressUpdate(stage="collecting", progress_percent=30.4, message="Collecting"))
    snapshot = tracker.snapshot()
    assert (snapshot.state, snapshot.stage, snapshot.progress_percent) == ("running", "collecting", 30)


def test_tracker_snapshot_is_a_copy() -> None:
    tracker = ProgressTracker()
    tracker.try_start()

    snapshot = tracker.snapshot()
    snapshot.message = "changed"

    assert tracker.snapshot().message == "Starting scrape..."


def test_tracker_failure_freezes_progress() -> None:
    tracker = ProgressTracker()
    tracker.try_start()
    tracker.fail("boom")

    snapshot = tracker.snapshot()
    assert snapshot.state == "error"
    assert snapshot.stage == "failed"
    assert snapshot.progress_percent == 1
    assert snapshot.error == "boom"
    assert snapshot.finished_at


@pytest.mark.asyncio
async def test_coordinator_rejects_concurrent_runs() -> None:
    release = asyncio.Event()

    async def runner(on_progress):
        on_progress(ProgressUpdate(stage="collecting", progress_percent=20, message="Collecting"))
        await release.wait()
        return make_result()

    coordinator = RunCoordinator(runner)
    started = coordinator.start()
    assert started.state == "running"

    await asyncio.sleep(0)
    with pytest.raises(RunAlreadyActiveError) as excinfo:
        coordinator.start()
    assert excinfo.value.snapshot.progress_percent == 20

    release.set()
    final = await coordinator.wait()
    assert final.state == "success"
    assert final.progress_percent == 100
    assert final.run_id == "2024-05-21T08-00-00-000Z"
    assert final.collected_items == 5
    assert final.translated_items == 4
    assert final.backfilled_photos == 2


@pytest.mark.asyncio
async def test_coordinator_records_runner_failure() -> None:
    async def runner(on_progress):
        on_progress(ProgressUpdate(stage="translating", progress_percent=55, message="Translating"))
        raise OSError("disk full")

    coordinator = RunCoordinator(runner)
    coordinator.start()
    final = await coordinator.wait()

    assert final.state == "error"
    assert final.progress_percent == 55
    assert final.error == "disk full"

    coordinator.start()
    await coordinator.wait()


def test_api_reports_status_and_conflicts() -> None:
    coordinator = RunCoordinator(lambda on_progress: asyncio.sleep(0, make_result()))
    coordinator.tracker.try_start()
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    try:
        with TestClient(app) as client:
            assert client.get("/health").json() == {"status": "ok"}

            status = client.get("/scrape/status")
            assert status.status_code == 200
            assert status.json()["state"] == "running"

            conflict = client.post("/scrape/start")
            assert conflict.status_code == 409
            assert conflict.json()["status"]["state"] == "running"
    finally:
        app.dependency_overrides.clear()


def test_api_starts_a_run() -> None:
    coordinator = RunCoordinator(lambda on_progress: asyncio.sleep(0, make_result()))
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    try:
        with TestClient(app) as client:
            response = client.post("/scrape/start")
            assert response.status_code == 202
            assert response.json()["status"]["state"] == "running"
    finally:
        app.dependency_overrides.clear()
