from __future__ import annotations

import logging
from pathlib import Path

from ..models.news import Source
from .storage import Invalid, LoadResult, Loaded, read_json, validate_each

logger = logging.getLogger(__name__)


def load_source_config(path: Path) -> LoadResult[list[Source]]:
    result = read_json(path)
    if isinstance(result, Invalid):
        return result
    raw = result.value
    if not isinstance(raw, dict) or not isinstance(raw.get("sources"), list):
        return Invalid("expected an object with a 'sources' list")
    sources = validate_each(raw["sources"], Source)
    dropped = len(raw["sources"]) - len(sources)
    if dropped:
        logger.warning("Ignored %d malformed source definition(s) in %s", dropped, path)
    return Loaded(sources)


def load_sources(path: Path, max_items_override: int | None = None) -> list[Source]:
    """Enabled sources from the config document; an unusable document yields none."""
    result = load_source_config(path)
    if isinstance(result, Invalid):
        logger.warning("Source config %s not usable: %s", path, result.reason)
        return []

    sources: list[Source] = []
    for source in result.value:
        if not source.enabled:
            continue
        updates: dict[str, object] = {"source": source.label}
        if max_items_override is not None and max_items_override > 0:
            updates["max_items"] = max_items_override
        sources.append(source.model_copy(update=updates))
    return sources
