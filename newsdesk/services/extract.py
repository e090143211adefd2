from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

from ..http_client import is_http_url
from .dates import to_iso_or_empty
from .text import html_to_text, normalize_article_content, normalize_paragraph

CONTENT_SELECTORS: tuple[str, ...] = (
    "article p",
    "main p",
    ".article p",
    ".post p",
    ".entry-content p",
    "p",
)
IMAGE_META_SELECTORS: tuple[str, ...] = (
    "meta[property='og:image']",
    "meta[property='og:image:url']",
    "meta[name='twitter:image']",
    "meta[name='twitter:image:src']",
)
DECORATIVE_MARKERS = ("logo", "icon", "avatar", "favicon", "sprite", "watermark")
MIN_PARAGRAPH_CHARS = 60
ENOUGH_PARAGRAPHS = 10
MAX_PAGE_IMAGES = 12


@dataclass(slots=True)
class ArticlePage:
    content: str = ""
    image_urls: list[str] = field(default_factory=list)


def unique_http_urls(urls: Iterable[str]) -> list[str]:
    """Keep http(s) URLs in order, skipping duplicates and decorative assets."""
    seen: set[str] = set()
    out: list[str] = []
    for url in urls:
        lowered = url.lower()
        if any(marker in lowered for marker in DECORATIVE_MARKERS):
            continue
        if not is_http_url(url) or url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


def entry_text(entry: Mapping[str, Any]) -> str:
    candidates: list[Any] = [block.get("value") for block in entry.get("content") or []]
    candidates += [entry.get("summary"), entry.get("description")]
    for candidate in candidates:
        text = normalize_article_content(html_to_text(candidate))
        if text:
            return text
    return ""


def entry_published_at(entry: Mapping[str, Any]) -> str:
    for key in ("published", "pubDate", "updated", "created"):
        iso = to_iso_or_empty(entry.get(key))
        if iso:
            return iso
    return ""


def entry_image_urls(entry: Mapping[str, Any]) -> list[str]:
    urls: list[str] = []
    for enclosure in entry.get("enclosures") or []:
        link = enclosure.get("href") or enclosure.get("url") or ""
        kind = enclosure.get("type") or ""
        if link and (not kind or kind.startswith("image/")):
            urls.append(link)
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            if media.get("url"):
                urls.append(media["url"])
    return unique_http_urls(urls)


def page_paragraphs(soup: BeautifulSoup, max_paragraphs: int) -> list[str]:
    paragraphs: list[str] = []
    for selector in CONTENT_SELECTORS:
        for element in soup.select(selector):
            if len(paragraphs) >= max_paragraphs:
                break
            paragraph = normalize_paragraph(element.get_text())
            if len(paragraph) >= MIN_PARAGRAPH_CHARS:
                paragraphs.append(paragraph)
        if len(paragraphs) >= ENOUGH_PARAGRAPHS:
            break
    return list(dict.fromkeys(paragraphs))[:max_paragraphs]


def page_image_urls(soup: BeautifulSoup) -> list[str]:
    urls: list[str] = []
    for selector in IMAGE_META_SELECTORS:
        tag = soup.select_one(selector)
        if tag and tag.get("content"):
            urls.append(tag["content"])
    for img in soup.select("article img, main img, img"):
        if len(urls) >= MAX_PAGE_IMAGES:
            break
        src = img.get("src") or img.get("data-src")
        if src:
            urls.append(src)
    return unique_http_urls(urls)


def parse_article_page(html: str, max_paragraphs: int = 24) -> ArticlePage:
    if not html:
        return ArticlePage()
    soup = BeautifulSoup(html, "lxml")
    images = page_image_urls(soup)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    paragraphs = page_paragraphs(soup, max_paragraphs)
    content = normalize_article_content("\n\n".join(paragraphs)) if paragraphs else ""
    return ArticlePage(content=content, image_urls=images)
