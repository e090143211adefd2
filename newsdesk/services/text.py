"""Whitespace normalization, excerpting and chunking helpers shared by the pipeline."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
CONTACT_LABEL_RE = re.compile(r"^(?:media|press)\s+contacts?\b[:\s-]*$", re.IGNORECASE)
PHONE_PREFIX_RE = re.compile(
    r"^(?:tel|phone|mobile|contact|tel\.?|telephone)[:\s-]*", re.IGNORECASE
)
NAME_WORD_RE = re.compile(r"^(?:[^\W\d_]|['-]){2,}$")
SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")


def normalize_text(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", value.replace("\r", "").replace("\u00a0", " ")).strip()


def normalize_paragraph(value: object) -> str:
    if not isinstance(value, str):
        return ""
    text = value.replace("\r", "").replace("\u00a0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def normalize_article_content(value: object) -> str:
    return strip_media_contacts(normalize_paragraph(value))


def trim_content(content: str, max_chars: int) -> str:
    if not content:
        return ""
    if len(content) <= max_chars:
        return content
    return f"{content[:max_chars].strip()}..."


def html_to_text(value: object) -> str:
    """Flatten an HTML fragment to paragraphs separated by blank lines."""
    if not isinstance(value, str) or not value.strip():
        return ""
    soup = BeautifulSoup(value, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    paragraphs = [normalize_paragraph(p.get_text()) for p in soup.find_all("p")]
    paragraphs = [p for p in paragraphs if p]
    if paragraphs:
        return normalize_article_content("\n\n".join(paragraphs))
    return normalize_article_content(soup.get_text())


def split_for_translation(text: str, budget: int) -> list[str]:
    if not text:
        return []
    if len(text) <= budget:
        return [text.strip()] if text.strip() else []

    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + budget, len(text))
        if end < len(text):
            boundary = text.rfind("\n", start, end + 1)
            if boundary > start + budget // 2:
                end = boundary
        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        start = end
    return chunks


def excerpt_by_sentences(content: str, max_sentences: int, max_chars: int) -> str:
    """Cut content at a sentence boundary, never mid-sentence unless nothing fits."""
    normalized = normalize_article_content(content)
    if not normalized:
        return ""

    out: list[str] = []
    for match in SENTENCE_RE.finditer(normalized):
        if len(out) >= max_sentences:
            break
        sentence = normalize_text(match.group(0))
        if not sentence:
            continue
        if len(" ".join([*out, sentence])) > max_chars:
            break
        out.append(sentence)

    result = " ".join(out).strip()
    return result or trim_content(normalized, max_chars)


def _is_phone_line(line: str) -> bool:
    trimmed = line.strip()
    if not trimmed:
        return False
    rest = PHONE_PREFIX_RE.sub("", trimmed).strip()
    if not rest or EMAIL_RE.search(rest):
        return False
    if any(ch.isalpha() for ch in rest):
        return False
    digits = re.sub(r"\D", "", rest)
    if not 7 <= len(digits) <= 18:
        return False
    return bool(re.search(r"[+\-().\s]", rest)) or rest.startswith("+")


def _is_contact_name_line(line: str) -> bool:
    trimmed = line.strip()
    if not 3 <= len(trimmed) <= 80:
        return False
    if EMAIL_RE.search(trimmed) or re.search(r"\d", trimmed):
        return False
    if re.search(r"https?://", trimmed, re.IGNORECASE) or CONTACT_LABEL_RE.match(trimmed):
        return False
    words = trimmed.split()
    if not 2 <= len(words) <= 4:
        return False
    if not all(NAME_WORD_RE.match(word) for word in words):
        return False
    return sum(1 for word in words if word[0].isupper()) >= 2


def _is_contact_info_line(line: str) -> bool:
    trimmed = line.strip()
    if not trimmed:
        return False
    if CONTACT_LABEL_RE.match(trimmed) or EMAIL_RE.search(trimmed):
        return True
    return _is_phone_line(trimmed)


def strip_media_contacts(content: str) -> str:
    """Drop press-contact blocks (labels, emails, phone numbers and the names beside them)."""
    if not content:
        return ""
    lines = content.split("\n")
    count = len(lines)
    drop = [False] * count

    def blank(index: int) -> bool:
        return lines[index].strip() == ""

    def mark_name(index: int) -> None:
        if 0 <= index < count and _is_contact_name_line(lines[index]):
            drop[index] = True

    for index, line in enumerate(lines):
        if not _is_contact_info_line(line):
            continue
        drop[index] = True
        mark_name(index - 1)
        if index >= 2 and blank(index - 1):
            mark_name(index - 2)
        if index + 1 < count and _is_contact_info_line(lines[index + 1]):
            drop[index + 1] = True
        if index + 2 < count and blank(index + 1) and _is_contact_info_line(lines[index + 2]):
            drop[index + 2] = True

    for index, line in enumerate(lines):
        if drop[index] or not _is_contact_name_line(line):
            continue
        neighbours = (
            index > 0 and drop[index - 1],
            index + 1 < count and drop[index + 1],
            index >= 2 and blank(index - 1) and drop[index - 2],
            index + 2 < count and blank(index + 1) and drop[index + 2],
        )
        if any(neighbours):
            drop[index] = True

    cleaned = "\n".join(line for index, line in enumerate(lines) if not drop[index])
    return re.sub(r"\n{3,}", "\n\n", cleaned).strip()
