"""Photo candidate resolution, ranking and download.

Feed and article images are used when the source rights allow third-party
images. Otherwise, or when those are too few, Wikimedia Commons is searched
with a cascade of progressively looser queries. Every result passes a
non-photographic blocklist and a relevance test whose strictness depends on
the current cascade tier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import httpx
from bs4 import BeautifulSoup

from ..config import Settings, get_settings
from ..errors import RetriableStatusError
from ..http_client import fetch_image, get_http_client, is_http_url
from ..models.news import PhotoAsset, PhotoProvider
from ..retry import RetryPolicy
from ..vocabulary import DEFAULT_VOCABULARY, Vocabulary
from .photo_policy import violates_rights_policy
from .photo_tokens import (
    DIGITS_RE,
    brand_fallback_queries,
    build_search_tokens,
    contextual_fallback_queries,
    has_topic_intent,
    is_model_token,
    match_variants,
    rotate_by_seed,
    strict_queries,
    topic_fallback_queries,
    unique,
)
from .storage import Workspace, write_bytes_atomic
from .text import normalize_text

logger = logging.getLogger(__name__)

RelevanceMode = Literal["strict", "brand_fallback", "visual_only"]

UNVERIFIED_LICENSE = "License unknown. Check original source terms before publication."
UNVERIFIED_CREDIT = "Source website"
WIKIMEDIA_LICENSE_FALLBACK = "Wikimedia Commons (license in attribution URL)"
WIKIMEDIA_CREDIT_FALLBACK = "Wikimedia Commons"

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
}


@dataclass(slots=True)
class PhotoCandidate:
    url: str
    provider: PhotoProvider
    license: str
    credit: str
    attribution_url: str

    @property
    def meta_text(self) -> str:
        return f"{self.url} {self.attribution_url}".lower()

    def violates_rights_policy(self) -> bool:
        return violates_rights_policy(self.license, self.url, self.attribution_url, self.credit)


def unverified_candidates(urls: Iterable[str], provider: PhotoProvider) -> list[PhotoCandidate]:
    return [
        PhotoCandidate(
            url=url,
            provider=provider,
            license=UNVERIFIED_LICENSE,
            credit=UNVERIFIED_CREDIT,
            attribution_url=url,
        )
        for url in unique(u.strip() for u in urls if is_http_url(u.strip()))
    ]


def extension_for(content_type: str) -> str:
    return CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower(), ".img")


def strip_markup(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        return ""
    return normalize_text(BeautifulSoup(value, "lxml").get_text(" "))


def _matches_any(text: str, tokens: Iterable[str]) -> bool:
    return any(variant in text for token in tokens for variant in match_variants(token))


def looks_relevant(
    text: str,
    tokens: list[str],
    mode: RelevanceMode = "strict",
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> bool:
    """Decide whether candidate metadata text is about the item the tokens describe."""
    if mode == "visual_only":
        return True
    if not tokens:
        return False

    brands = [t for t in tokens if vocabulary.is_brand(t)]
    models = [t for t in tokens if is_model_token(t, vocabulary)]
    contexts = [t for t in tokens if vocabulary.is_context(t)]
    fallback = [
        t
        for t in tokens
        if not vocabulary.is_brand(t)
        and not vocabulary.is_context(t)
        and not DIGITS_RE.match(t)
        and len(t) >= 4
    ][:3]
    strong_models = [t for t in models if any(c.isdigit() for c in t) or len(t) >= 8]
    generic_hint = any(hint in text for hint in vocabulary.generic_hints)

    if brands:
        if not _matches_any(text, brands):
            return False
        if mode == "brand_fallback":
            if _matches_any(text, models) or _matches_any(text, contexts) or _matches_any(text, fallback):
                return True
            return generic_hint
        if models:
            if _matches_any(text, models):
                return True
            if strong_models:
                return _matches_any(text, contexts)
        return True

    if models:
        if _matches_any(text, models):
            return True
        if strong_models:
            return False
        return _matches_any(text, contexts) or _matches_any(text, fallback) or generic_hint

    if contexts:
        return _matches_any(text, contexts)
    if fallback:
        return _matches_any(text, fallback)
    return False


def score_candidate(
    candidate: PhotoCandidate,
    tokens: list[str],
    topic_intent: bool,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> int:
    text = candidate.meta_text
    if vocabulary.looks_non_photographic(text):
        return -1000
    score = 0
    for token in tokens:
        if len(token) < 4 or not _matches_any(text, [token]):
            continue
        score += min(len(token), 10)
        if vocabulary.is_brand(token):
            score += 6
        elif vocabulary.is_context(token):
            score += 3
    if topic_intent and vocabulary.looks_visual(text):
        score += 4
    return score


def _first_string(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _meta_value(ext: dict[str, Any], key: str) -> Any:
    entry = ext.get(key)
    return entry.get("value") if isinstance(entry, dict) else None


@dataclass(slots=True)
class PhotoResolver:
    settings: Settings | None = None
    client: httpx.AsyncClient | None = None
    vocabulary: Vocabulary = DEFAULT_VOCABULARY
    search_policy: RetryPolicy | None = None
    image_policy: RetryPolicy | None = None

    def __post_init__(self) -> None:
        if self.settings is None:
            self.settings = get_settings()
        if self.search_policy is None:
            self.search_policy = RetryPolicy(
                max_attempts=self.settings.wikimedia_retry_attempts,
                base_delay=self.settings.wikimedia_retry_delay,
            )
        if self.image_policy is None:
            self.image_policy = RetryPolicy(
                max_attempts=self.settings.image_retry_attempts,
                base_delay=self.settings.image_retry_delay,
            )

    @property
    def candidate_limit(self) -> int:
        return self.settings.max_images_per_item * 4

    @property
    def extended_limit(self) -> int:
        return max(self.candidate_limit * 3, 24)

    async def _client(self) -> httpx.AsyncClient:
        return self.client or await get_http_client()

    async def _search_payload(self, query: str, limit: int) -> dict[str, Any] | None:
        client = await self._client()
        params = {
            "action": "query",
            "generator": "search",
            "gsrsearch": f"{query} filetype:bitmap",
            "gsrnamespace": "6",
            "gsrlimit": str(max(limit, 1)),
            "prop": "imageinfo",
            "iiprop": "url|extmetadata",
            "iiurlwidth": "1280",
            "format": "json",
            "origin": "*",
        }

        async def attempt() -> dict[str, Any] | None:
            response = await client.get(str(self.settings.wikimedia_api_url), params=params)
            if not response.is_success:
                self.search_policy.check_status(response)
                return None
            try:
                payload = response.json()
            except ValueError:
                return None
            return payload if isinstance(payload, dict) else None

        try:
            return await self.search_policy.call(attempt)
        except (httpx.HTTPError, RetriableStatusError) as exc:
            logger.debug("Wikimedia search failed for %r: %s", query, exc)
            return None

    async def search(
        self,
        query: str,
        limit: int,
        tokens: list[str],
        mode: RelevanceMode = "strict",
        require_visual: bool = True,
    ) -> list[PhotoCandidate]:
        query = query.strip()
        if not query:
            return []
        payload = await self._search_payload(query, limit)
        query_block = payload.get("query") if payload else None
        pages = query_block.get("pages") if isinstance(query_block, dict) else None
        if not isinstance(pages, dict):
            return []

        ordered = sorted(
            (page for page in pages.values() if isinstance(page, dict)),
            key=lambda page: page.get("index", 0) if isinstance(page.get("index"), int) else 0,
        )
        out: list[PhotoCandidate] = []
        for page in ordered:
            infos = page.get("imageinfo")
            if not isinstance(infos, list) or not infos or not isinstance(infos[0], dict):
                continue
            info = infos[0]
            image_url = _first_string(info.get("thumburl"), info.get("url"))
            description_url = _first_string(info.get("descriptionurl"), image_url)
            if not is_http_url(image_url):
                continue

            text = f"{_first_string(page.get('title'))} {image_url} {description_url}".lower()
            if self.vocabulary.looks_non_photographic(text):
                continue
            if require_visual and not self.vocabulary.looks_visual(text):
                continue
            if not looks_relevant(text, tokens, mode, self.vocabulary):
                continue

            ext = info.get("extmetadata") if isinstance(info.get("extmetadata"), dict) else {}
            license_text = strip_markup(
                _first_string(_meta_value(ext, "LicenseShortName"), _meta_value(ext, "License"))
            )
            credit = strip_markup(_first_string(_meta_value(ext, "Artist"), _meta_value(ext, "Credit")))
            out.append(
                PhotoCandidate(
                    url=image_url,
                    provider="wikimedia",
                    license=license_text or WIKIMEDIA_LICENSE_FALLBACK,
                    credit=credit or WIKIMEDIA_CREDIT_FALLBACK,
                    attribution_url=description_url,
                )
            )
            if len(out) >= limit:
                break
        logger.debug("Wikimedia query %r (%s) -> %d candidate(s)", query, mode, len(out))
        return out

    async def _run_queries(
        self,
        queries: list[str],
        candidates: list[PhotoCandidate],
        limit: int,
        tokens: list[str],
        mode: RelevanceMode,
        require_visual: bool,
    ) -> None:
        for query in queries:
            candidates.extend(await self.search(query, limit, tokens, mode, require_visual))
            if len(candidates) >= limit:
                break

    async def resolve(
        self,
        title: str,
        feed_image_urls: Iterable[str] = (),
        article_image_urls: Iterable[str] = (),
        *,
        public_only: bool = False,
        fallback_to_generic: bool = False,
        context_url: str = "",
        context_text: str = "",
        exclude_urls: Iterable[str] = (),
    ) -> list[PhotoCandidate]:
        """Ranked candidates for an item, best first."""
        vocabulary = self.vocabulary
        candidates: list[PhotoCandidate] = []
        if not public_only:
            candidates.extend(unverified_candidates(feed_image_urls, "feed"))
            candidates.extend(unverified_candidates(article_image_urls, "article"))
            candidates = self.publishable(candidates)
        if len(candidates) >= self.settings.max_images_per_item:
            return candidates

        tokens = build_search_tokens(title, context_url, context_text, vocabulary)
        topic_intent = has_topic_intent(title, context_url, context_text, tokens, vocabulary)
        limit = self.candidate_limit

        await self._run_queries(
            strict_queries(title, tokens, vocabulary), candidates, limit, tokens, "strict", topic_intent
        )
        if not candidates and fallback_to_generic:
            await self._run_queries(
                brand_fallback_queries(tokens, vocabulary),
                candidates, limit, tokens, "brand_fallback", topic_intent,
            )
        if not candidates and fallback_to_generic:
            await self._run_queries(
                contextual_fallback_queries(tokens, vocabulary),
                candidates, limit, tokens, "strict", topic_intent,
            )
        if not candidates and fallback_to_generic and topic_intent:
            relevance_tokens = [
                t for t in tokens if vocabulary.is_brand(t) or vocabulary.is_context(t)
            ] or list(vocabulary.generic_relevance_tokens)
            await self._run_queries(
                rotate_by_seed(list(vocabulary.generic_queries), title),
                candidates, self.extended_limit, relevance_tokens, "visual_only", True,
            )
        if not candidates and fallback_to_generic and not topic_intent:
            await self._run_queries(
                topic_fallback_queries(title, tokens, vocabulary),
                candidates, self.extended_limit, tokens, "strict", False,
            )

        return self.rank(candidates, tokens, topic_intent, exclude_urls)

    def publishable(self, candidates: list[PhotoCandidate]) -> list[PhotoCandidate]:
        """Drop duplicate, non-photographic and rights-violating candidates, keeping order."""
        seen: set[str] = set()
        kept: list[PhotoCandidate] = []
        for candidate in candidates:
            if self.vocabulary.looks_non_photographic(candidate.meta_text):
                continue
            if candidate.violates_rights_policy() or candidate.url in seen:
                continue
            seen.add(candidate.url)
            kept.append(candidate)
        return kept

    def rank(
        self,
        candidates: list[PhotoCandidate],
        tokens: list[str],
        topic_intent: bool,
        exclude_urls: Iterable[str] = (),
    ) -> list[PhotoCandidate]:
        excluded = {url.strip() for url in exclude_urls if url and url.strip()}
        kept = self.publishable(candidates)
        fresh = [c for c in kept if c.url not in excluded]
        pool = fresh if fresh or not excluded else kept
        return sorted(
            pool,
            key=lambda c: score_candidate(c, tokens, topic_intent, self.vocabulary),
            reverse=True,
        )

    async def download(
        self,
        candidates: list[PhotoCandidate],
        article_dir: Path,
        workspace: Workspace,
    ) -> list[PhotoAsset]:
        if not candidates:
            return []
        client = await self._client()
        image_dir = article_dir / "images"
        image_dir.mkdir(parents=True, exist_ok=True)

        out: list[PhotoAsset] = []
        seen: set[str] = set()
        for candidate in candidates:
            if len(out) >= self.settings.max_images_per_item:
                break
            if candidate.url in seen:
                continue
            seen.add(candidate.url)

            image = await fetch_image(
                client, candidate.url, self.image_policy, self.settings.max_image_bytes
            )
            if image is None:
                logger.info("Skipped photo %s", candidate.url)
                continue
            path = image_dir / f"photo-{len(out) + 1}{extension_for(image.content_type)}"
            write_bytes_atomic(path, image.content)
            out.append(
                PhotoAsset(
                    source_url=candidate.url,
                    local_path=workspace.relative(path),
                    provider=candidate.provider,
                    license=candidate.license,
                    credit=candidate.credit,
                    attribution_url=candidate.attribution_url,
                )
            )
        return out
