from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.progress import ProgressSnapshot


class NewsdeskError(Exception):
    """Base class for errors raised by the ingestion pipeline."""


class RunAlreadyActiveError(NewsdeskError):
    def __init__(self, snapshot: ProgressSnapshot) -> None:
        super().__init__("A scrape run is already in progress")
        self.snapshot = snapshot


class RetriableStatusError(NewsdeskError):
    """Raised inside retry loops for HTTP statuses worth another attempt."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"HTTP {status_code} for {url}")
        self.status_code = status_code
        self.url = url


class PathEscapeError(NewsdeskError, ValueError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Path escapes workspace: {path}")
        self.path = path
