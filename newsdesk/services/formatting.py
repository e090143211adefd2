"""Line-break layout for dense statistics blocks left by machine translation."""

from __future__ import annotations

import re

from .text import normalize_article_content

URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
PIPE_SEPARATOR_RE = re.compile(r"\s*\|\s*")
BULLET_SEPARATOR_RE = re.compile(r"\s*•\s*")
LABEL_BODY = r"(?:\d+\.\s*)?[A-ZА-ЯІЇЄҐ][A-Za-zА-Яа-яІіЇїЄєҐґ0-9+/%()'’\- ]{1,42}:"
STAT_LABEL_RE = re.compile(f"({LABEL_BODY})")
VALUE_TO_LABEL_RE = re.compile(rf"([0-9$€£¥₴])\s+({LABEL_BODY})")
INLINE_PLUS_RE = re.compile(r"\s\+\s")


def _is_stat_label(label_with_colon: str) -> bool:
    label = label_with_colon[:-1].strip()
    if not 3 <= len(label) <= 44:
        return False
    if label[-1] in ".!?":
        return False
    return 1 <= len(label.split()) <= 8


def label_positions(text: str) -> list[int]:
    return [m.start() for m in STAT_LABEL_RE.finditer(text) if _is_stat_label(m.group(1))]


def looks_dense(content: str) -> bool:
    signal = URL_RE.sub(" ", content)
    labels = len(label_positions(signal))
    pipes = signal.count("|")
    bullets = signal.count("•")
    colons = signal.count(":")
    single_line = "\n" not in signal

    if labels >= 3 and (pipes >= 1 or bullets >= 1):
        return True
    if single_line and labels >= 3 and colons >= 4:
        return True
    return single_line and colons >= 5 and (pipes >= 2 or bullets >= 2)


def _apply_primary_separators(content: str) -> str:
    out = content
    if out.count("|") >= 2:
        out = PIPE_SEPARATOR_RE.sub("\n", out)
    if out.count("•") >= 2:
        out = BULLET_SEPARATOR_RE.sub("\n• ", out)
    out = VALUE_TO_LABEL_RE.sub(r"\1\n\2", out)
    if len(out) > 220 and " + " in out:
        out = INLINE_PLUS_RE.sub("\n\n+ ", out)
    return out


def _split_by_labels(line: str) -> list[str]:
    points = [p for p in label_positions(line) if p > 0]
    if not points:
        return [line]
    chunks: list[str] = []
    start = 0
    for point in points:
        chunk = line[start:point].strip()
        if chunk:
            chunks.append(chunk)
        start = point
    tail = line[start:].strip()
    if tail:
        chunks.append(tail)
    return chunks if len(chunks) >= 2 else [line]


def _split_by_bullets(line: str) -> list[str]:
    if line.count("•") < 2:
        return [line]
    parts = [part.strip() for part in BULLET_SEPARATOR_RE.split(line) if part.strip()]
    if len(parts) < 2:
        return [line]
    return [parts[0], *(f"- {part}" for part in parts[1:])]


def format_post_translation(content: str) -> str:
    normalized = normalize_article_content(content)
    if not normalized or not looks_dense(normalized):
        return normalized

    lines: list[str] = []
    for raw_line in _apply_primary_separators(normalized).split("\n"):
        line = raw_line.strip()
        if not line:
            lines.append("")
            continue
        for labelled in _split_by_labels(line):
            lines.extend(_split_by_bullets(labelled))
    return normalize_article_content("\n".join(lines))
