"""Workspace layout, atomic JSON documents and per-item article files."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..errors import PathEscapeError
from ..models.news import NewsItem
from ..models.reports import RunHistorySnapshot, RunSummary, SeenNewsIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Loaded(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reason: str


LoadResult = Loaded[T] | Invalid


@dataclass(frozen=True, slots=True)
class Workspace:
    root: Path
    data_dir: Path

    @classmethod
    def from_settings(cls, settings: Settings) -> Workspace:
        root = Path(settings.workspace_dir).resolve()
        return cls(root=root, data_dir=(root / settings.data_dir).resolve())

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / "news.json"

    @property
    def seen_index_path(self) -> Path:
        return self.data_dir / "seen_news_index.json"

    @property
    def latest_run_path(self) -> Path:
        return self.data_dir / "latest_run.json"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "run_history.json"

    @property
    def daily_health_path(self) -> Path:
        return self.data_dir / "daily_health.json"

    @property
    def excluded_ids_path(self) -> Path:
        return self.data_dir / "sink_excluded_ids.json"

    @property
    def runs_dir(self) -> Path:
        return self.data_dir / "runs"

    def resolve(self, relative: str | Path) -> Path:
        """Resolve a workspace-relative path, refusing anything outside the root."""
        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise PathEscapeError(str(relative))
        return candidate

    def relative(self, path: Path) -> str:
        return Path(os.path.relpath(path.resolve(), self.root)).as_posix()


def dump_json(value: Any) -> bytes:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [v.model_dump(mode="json") if isinstance(v, BaseModel) else v for v in value]
    return orjson.dumps(value, option=orjson.OPT_INDENT_2) + b"\n"


def write_bytes_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, value: Any) -> None:
    write_bytes_atomic(path, dump_json(value))


def write_text_atomic(path: Path, text: str) -> None:
    write_bytes_atomic(path, text.encode("utf-8"))


def read_json(path: Path) -> LoadResult[Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return Invalid("missing")
    except OSError as exc:
        return Invalid(f"unreadable: {exc}")
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    try:
        return Loaded(orjson.loads(raw))
    except orjson.JSONDecodeError as exc:
        return Invalid(f"malformed JSON: {exc}")


def load_model(path: Path, model: type[M]) -> LoadResult[M]:
    result = read_json(path)
    if isinstance(result, Invalid):
        return result
    try:
        return Loaded(model.model_validate(result.value))
    except ValidationError as exc:
        return Invalid(f"schema mismatch: {exc.error_count()} error(s)")


def validate_each(raw: Any, model: type[M]) -> list[M]:
    """Validate list entries one by one, dropping the ones that do not fit."""
    if not isinstance(raw, list):
        return []
    out: list[M] = []
    for entry in raw:
        try:
            out.append(model.model_validate(entry))
        except ValidationError:
            continue
    return out


def load_news_items(path: Path) -> LoadResult[list[NewsItem]]:
    result = read_json(path)
    if isinstance(result, Invalid):
        return result
    if not isinstance(result.value, list):
        return Invalid("expected a list of items")
    return Loaded(validate_each(result.value, NewsItem))


def news_items_or_empty(path: Path) -> list[NewsItem]:
    result = load_news_items(path)
    return result.value if isinstance(result, Loaded) else []


def load_seen_index(path: Path) -> LoadResult[SeenNewsIndex]:
    return load_model(path, SeenNewsIndex)


def load_run_history(path: Path, fallback_timestamp: str) -> RunHistorySnapshot:
    """History documents may be a bare list of runs or ``{updated_at, runs}``."""
    result = read_json(path)
    raw = result.value if isinstance(result, Loaded) else None
    if isinstance(raw, dict) and isinstance(raw.get("runs"), list):
        updated_at = raw.get("updated_at")
        return RunHistorySnapshot(
            updated_at=updated_at if isinstance(updated_at, str) and updated_at else fallback_timestamp,
            runs=validate_each(raw["runs"], RunSummary),
        )
    if isinstance(raw, list):
        return RunHistorySnapshot(updated_at=fallback_timestamp, runs=validate_each(raw, RunSummary))
    return RunHistorySnapshot(updated_at=fallback_timestamp, runs=[])


def slugify(value: str, max_length: int = 80) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    slug = re.sub(r"-{2,}", "-", slug)
    if not slug:
        return "news"
    return slug[:max_length].rstrip("-") or "news"


def short_hash(value: str, length: int = 10) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:length]


def render_article_markdown(item: NewsItem) -> str:
    if item.photos:
        photos = "\n".join(
            "\n".join(
                [
                    f"### Photo {index}",
                    f"- provider: {photo.provider}",
                    f"- source_url: {photo.source_url}",
                    f"- local_path: {photo.local_path}",
                    f"- license: {photo.license}",
                    f"- credit: {photo.credit}",
                    f"- attribution_url: {photo.attribution_url}",
                    "",
                ]
            )
            for index, photo in enumerate(item.photos, start=1)
        )
    else:
        photos = "No photos.\n"
    return "\n".join(
        [
            f"# {item.title}",
            "",
            f"- source: {item.source}",
            f"- url: {item.url}",
            f"- published_date: {item.published_date}",
            f"- published_time: {item.published_time}",
            f"- published_at: {item.published_at}",
            f"- scraped_at: {item.scraped_at}",
            f"- rights_flag: {item.rights_flag}",
            f"- license_text: {item.license_text}",
            "",
            "## Content",
            "",
            item.content,
            "",
            "## Photos",
            "",
            photos,
        ]
    )


def save_article_files(item: NewsItem, article_dir: Path) -> None:
    write_json_atomic(article_dir / "article.json", item)
    write_text_atomic(article_dir / "article.md", render_article_markdown(item))


def unique_folder_name(base: str, used: set[str]) -> str:
    name = base
    suffix = 1
    while name in used:
        name = f"{base}-{suffix}"
        suffix += 1
    used.add(name)
    return name
