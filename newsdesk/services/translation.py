from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from ..config import Settings, get_settings
from ..errors import RetriableStatusError
from ..http_client import get_http_client
from ..models.news import CollectedNewsItem
from ..retry import RetryPolicy
from .formatting import format_post_translation
from .text import (
    excerpt_by_sentences,
    normalize_article_content,
    normalize_text,
    split_for_translation,
    trim_content,
)

logger = logging.getLogger(__name__)

# Target languages whose script is not Latin, with the code point ranges of that script.
TARGET_SCRIPTS: dict[str, tuple[tuple[int, int], ...]] = {
    "uk": ((0x0400, 0x04FF),),
    "ru": ((0x0400, 0x04FF),),
    "be": ((0x0400, 0x04FF),),
    "bg": ((0x0400, 0x04FF),),
    "sr": ((0x0400, 0x04FF),),
    "mk": ((0x0400, 0x04FF),),
    "kk": ((0x0400, 0x04FF),),
    "el": ((0x0370, 0x03FF), (0x1F00, 0x1FFF)),
}
SOURCE_LINE_LABELS: dict[str, str] = {"uk": "Джерело", "ru": "Источник", "bg": "Източник"}

SEGMENT_RE = re.compile(r"[^.!?\n]+[.!?]*[\"')\]»”]*\s*|\n+")
LATIN_RE = re.compile(r"[A-Za-z]")
MIN_SEGMENT_LETTERS = 20
MAX_RESCUES_PER_TEXT = 40
UNTRANSLATED_LATIN_RATIO = 0.45
MAX_TARGET_RATIO = 0.45
IMPROVEMENT_MARGIN = 0.05

ItemProgress = Callable[[int, int, str], None]


def base_language(code: str) -> str:
    return code.strip().lower().split("-")[0]


def target_script(code: str) -> tuple[tuple[int, int], ...] | None:
    return TARGET_SCRIPTS.get(base_language(code))


@dataclass(slots=True)
class ScriptStats:
    letters: int = 0
    latin: int = 0
    target: int = 0

    @property
    def latin_ratio(self) -> float:
        return self.latin / self.letters if self.letters else 0.0

    @property
    def target_ratio(self) -> float:
        return self.target / self.letters if self.letters else 0.0


def script_stats(text: str, ranges: tuple[tuple[int, int], ...] = ()) -> ScriptStats:
    stats = ScriptStats()
    for char in text:
        if not char.isalpha():
            continue
        stats.letters += 1
        if LATIN_RE.match(char):
            stats.latin += 1
        point = ord(char)
        if any(low <= point <= high for low, high in ranges):
            stats.target += 1
    return stats


def looks_untranslated(segment: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    trimmed = segment.strip()
    if not trimmed:
        return False
    stats = script_stats(trimmed, ranges)
    if stats.letters < MIN_SEGMENT_LETTERS:
        return False
    return stats.latin_ratio >= UNTRANSLATED_LATIN_RATIO and stats.target_ratio <= MAX_TARGET_RATIO


def is_improvement(original: str, translated: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    """Accept a retranslation only if it moves letters toward the target script."""
    if not translated or translated == original:
        return False
    before = script_stats(original, ranges)
    after = script_stats(translated, ranges)
    if after.target_ratio < before.target_ratio:
        return False
    return (
        after.latin_ratio < before.latin_ratio - IMPROVEMENT_MARGIN
        or after.target_ratio > before.target_ratio + IMPROVEMENT_MARGIN
    )


def _keep_whitespace(original: str, translated: str) -> str:
    stripped = original.strip()
    if not stripped:
        return translated
    start = original.index(stripped)
    return f"{original[:start]}{translated}{original[start + len(stripped):]}"


def _extract_payload(payload: object) -> str:
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        return ""
    parts = [
        entry[0]
        for entry in payload[0]
        if isinstance(entry, list) and entry and isinstance(entry[0], str)
    ]
    return "".join(parts).strip()


def quote_only_retelling(url: str, content: str, label: str) -> str:
    normalized = normalize_article_content(content)
    body = excerpt_by_sentences(normalized, 6, 1400) or normalized
    return f"{body}\n\n{label}: {url}"


@dataclass(slots=True)
class TranslationService:
    settings: Settings | None = None
    client: httpx.AsyncClient | None = None
    policy: RetryPolicy | None = None

    def __post_init__(self) -> None:
        if self.settings is None:
            self.settings = get_settings()
        if self.policy is None:
            self.policy = RetryPolicy(
                max_attempts=self.settings.translation_retry_attempts,
                base_delay=self.settings.translation_retry_delay,
            )

    async def translate_chunk(self, text: str, target: str, source: str = "auto") -> str:
        """Translate one chunk; any failure returns the chunk unchanged."""
        client = self.client or await get_http_client()
        params = {"client": "gtx", "sl": source, "tl": target, "dt": "t", "q": text}

        async def attempt() -> str:
            response = await client.get(
                str(self.settings.translate_url),
                params=params,
                headers={"Accept": "application/json"},
            )
            if not response.is_success:
                self.policy.check_status(response)
                return text
            try:
                payload = response.json()
            except ValueError:
                return text
            return _extract_payload(payload) or text

        try:
            return await self.policy.call(attempt)
        except (httpx.HTTPError, RetriableStatusError) as exc:
            logger.warning("Translation failed, keeping original text: %s", exc)
            return text

    async def translate_text(self, text: str, target: str | None = None, enabled: bool = True) -> str:
        if not enabled or not text:
            return text
        target = target or self.settings.target_language
        chunks = split_for_translation(text, self.settings.translation_chunk_chars)
        if not chunks:
            return text
        translated = [await self.translate_chunk(chunk, target) for chunk in chunks]
        joined = "\n".join(translated).strip()
        if target_script(target) is None:
            return joined
        return await self.repair_mixed_script(joined, target)

    async def repair_mixed_script(self, text: str, target: str | None = None) -> str:
        """Retranslate sentences that are still mostly Latin after translation."""
        target = target or self.settings.target_language
        ranges = target_script(target)
        if ranges is None or not text:
            return text

        output: list[str] = []
        rescues = 0
        for match in SEGMENT_RE.finditer(text):
            segment = match.group(0)
            if (
                segment.strip("\n") == ""
                or rescues >= MAX_RESCUES_PER_TEXT
                or not looks_untranslated(segment, ranges)
            ):
                output.append(segment)
                continue

            trimmed = segment.strip()
            hint = base_language(self.settings.source_language_hint) or "auto"
            candidate = await self.translate_chunk(trimmed, target, hint)
            if not is_improvement(trimmed, candidate, ranges):
                candidate = await self.translate_chunk(trimmed, target, "auto")
            if is_improvement(trimmed, candidate, ranges):
                output.append(_keep_whitespace(segment, candidate))
                rescues += 1
            else:
                output.append(segment)

        if not output:
            return text
        if rescues:
            logger.info("Translation rescue applied to %d segment(s)", rescues)
        return "".join(output)

    async def translate_items(
        self,
        items: list[CollectedNewsItem],
        on_progress: ItemProgress | None = None,
        enabled: bool | None = None,
    ) -> list[CollectedNewsItem]:
        settings = self.settings
        enabled = settings.translation_enabled if enabled is None else enabled
        target = settings.target_language
        label = SOURCE_LINE_LABELS.get(base_language(target))
        total = len(items)

        out: list[CollectedNewsItem] = []
        for index, item in enumerate(items, start=1):
            if not enabled:
                title = normalize_text(item.title)
                content = normalize_article_content(item.content)
            else:
                logger.debug("Translating: %s", item.title[:80])
                title = normalize_text(await self.translate_text(item.title, target))
                content = format_post_translation(await self.translate_text(item.content, target))
                if label and item.rights_flag == "quote_only":
                    content = quote_only_retelling(item.url, content, label)
            out.append(
                item.model_copy(
                    update={
                        "title": title,
                        "content": trim_content(content, settings.max_content_chars),
                    }
                )
            )
            if on_progress is not None:
                on_progress(index, total, item.title)
        return out
