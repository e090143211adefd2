from __future__ import annotations

from fastapi import Depends, FastAPI, status
from fastapi.responses import ORJSONResponse
from mangum import Mangum

from newsdesk.errors import RunAlreadyActiveError
from newsdesk.http_client import shutdown_http_client
from newsdesk.models.progress import ProgressSnapshot
from newsdesk.services import RunContext, RunCoordinator, run_pipeline
from newsdesk.services.progress import ProgressCallback

app = FastAPI(
    title="Newsdesk Ingestion API",
    version="0.1.0",
    description=(
        "Collects press feeds, translates and illustrates the items, and reports run status."
    ),
    default_response_class=ORJSONResponse,
)


async def _run(on_progress: ProgressCallback):
    return await run_pipeline(RunContext.create(), on_progress)


_coordinator = RunCoordinator(_run)


def get_coordinator() -> RunCoordinator:
    return _coordinator


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/scrape/status", tags=["scrape"], response_model=ProgressSnapshot)
async def scrape_status(coordinator: RunCoordinator = Depends(get_coordinator)):
    return coordinator.snapshot()


@app.post("/scrape/start", tags=["scrape"], status_code=status.HTTP_202_ACCEPTED)
async def scrape_start(coordinator: RunCoordinator = Depends(get_coordinator)):
    try:
        snapshot = coordinator.start()
    except RunAlreadyActiveError as exc:
        return ORJSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc), "status": exc.snapshot.model_dump(mode="json")},
        )
    return {"status": snapshot.model_dump(mode="json")}


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await shutdown_http_client()


handler = Mangum(app)
