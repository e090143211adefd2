"""Search tokens and free-media query strategies for a news item.

Tokens come from the item URL path, its title and, when those are sparse, the
body text. They are ranked brand first, then model-like tokens, then topic
context words, and every query builder below only consumes that ranked list.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import unquote, urlparse

from ..http_client import is_http_url
from ..vocabulary import DEFAULT_VOCABULARY, Vocabulary

CONTENT_TOKEN_CHAR_LIMIT = 3500
CONTENT_SIGNAL_TOKEN_LIMIT = 14
MAX_TOKENS_PER_TEXT = 20
MAX_RAW_TOKENS = 28
MAX_SEARCH_TOKENS = 24

NON_WORD_RE = re.compile(r"[^\w\s-]|_")
WHITESPACE_RE = re.compile(r"\s+")
PATH_SEPARATOR_RE = re.compile(r"[-_/]+")
DIGITS_RE = re.compile(r"^\d+$")
YEAR_RE = re.compile(r"^\d{4}$")
LETTER_RE = re.compile(r"[^\W\d_]")
LATIN_OR_DIGIT_RE = re.compile(r"[a-z0-9]", re.IGNORECASE)


def unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out


def is_year_token(token: str) -> bool:
    return bool(YEAR_RE.match(token)) and 1900 <= int(token) <= 2100


def extract_search_tokens(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    raw_tokens = NON_WORD_RE.sub(" ", text.lower()).split()
    tokens: list[str] = []
    seen: set[str] = set()
    for token in raw_tokens:
        has_digit = any(char.isdigit() for char in token)
        if is_year_token(token):
            continue
        if DIGITS_RE.match(token) and len(token) < 4:
            continue
        if not has_digit and len(token) < 3:
            continue
        if token in vocabulary.stop_words or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
        if len(tokens) >= MAX_TOKENS_PER_TEXT:
            break
    return tokens


def url_path_text(url: str) -> str:
    if not is_http_url(url):
        return ""
    return unquote(urlparse(url).path)


def url_search_tokens(url: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    path = url_path_text(url)
    if not path:
        return []
    return extract_search_tokens(PATH_SEPARATOR_RE.sub(" ", path), vocabulary)


def is_model_token(token: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """Alphanumeric codes (``gr86``, ``id4``) or longer Latin words that are not known brands."""
    if not token or vocabulary.is_brand(token) or vocabulary.is_context(token):
        return False
    if token in vocabulary.stop_words:
        return False
    if any(char.isdigit() for char in token):
        if is_year_token(token):
            return False
        if DIGITS_RE.match(token):
            return len(token) <= 4
        return True
    return len(token) >= 4 and bool(re.search(r"[a-z]", token))


def prioritize_tokens(tokens: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    buckets = (
        [t for t in tokens if vocabulary.is_brand(t)],
        [t for t in tokens if is_model_token(t, vocabulary)],
        [t for t in tokens if vocabulary.is_context(t)],
        tokens,
    )
    return unique(token for bucket in buckets for token in bucket)


def content_search_tokens(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    normalized = WHITESPACE_RE.sub(" ", text or "").strip()
    if not normalized:
        return []
    tokens = prioritize_tokens(
        extract_search_tokens(normalized[:CONTENT_TOKEN_CHAR_LIMIT], vocabulary), vocabulary
    )
    kept = [
        token
        for token in tokens
        if vocabulary.is_brand(token)
        or vocabulary.is_context(token)
        or is_model_token(token, vocabulary)
        or LATIN_OR_DIGIT_RE.search(token)
    ]
    return unique(kept)[:CONTENT_SIGNAL_TOKEN_LIMIT]


def inflection_variants(token: str) -> list[str]:
    variants = [token]
    if len(token) >= 6 and token.endswith("ogo"):
        stem = token[:-3]
        variants.extend((f"{stem}yi", f"{stem}yy", f"{stem}y"))
    if len(token) >= 6 and token.endswith(("yi", "yy")):
        variants.append(f"{token[:-2]}ogo")
    return [value for value in unique(variants) if len(value) >= 3]


def match_variants(token: str) -> list[str]:
    """Spellings a token may take inside candidate URLs and titles."""
    variants = [token]
    if len(token) >= 5:
        variants.append(token[:-1] if token.endswith("s") else f"{token}s")
        if token.endswith("i"):
            variants.append(f"{token[:-1]}y")
        elif token.endswith("y"):
            variants.append(f"{token[:-1]}i")
    variants.extend(inflection_variants(token)[1:])
    return unique(variants)


def build_search_tokens(
    title: str,
    context_url: str = "",
    context_text: str = "",
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> list[str]:
    from_url = url_search_tokens(context_url, vocabulary)
    from_title = extract_search_tokens(title, vocabulary)
    if from_url:
        # URL slugs are canonical; keep only title tokens with Latin letters or digits
        from_title = [t for t in from_title if LATIN_OR_DIGIT_RE.search(t)]
    from_content = content_search_tokens(context_text, vocabulary)

    raw = unique([*from_url, *from_title, *from_content])[:MAX_RAW_TOKENS]
    expanded = unique(variant for token in raw for variant in (token, *inflection_variants(token)))
    return prioritize_tokens(expanded, vocabulary)[:MAX_SEARCH_TOKENS]


def has_topic_intent(
    title: str,
    context_url: str,
    context_text: str,
    tokens: list[str],
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> bool:
    if any(vocabulary.is_brand(t) or vocabulary.is_context(t) for t in tokens):
        return True
    normalized_text = WHITESPACE_RE.sub(" ", (context_text or "").lower())[:CONTENT_TOKEN_CHAR_LIMIT]
    raw = f"{title} {context_url} {url_path_text(context_url)} {normalized_text}".lower()
    return any(pattern.search(raw) for pattern in vocabulary.intent_patterns)


def signal_tokens(
    tokens: list[str], limit: int, vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> list[str]:
    kept = [
        t
        for t in tokens
        if len(t) >= 4 and t not in vocabulary.stop_words and not vocabulary.is_context(t)
    ]
    kept.sort(key=len, reverse=True)
    return unique(kept)[:limit]


def _normalized_title(title: str) -> str:
    return WHITESPACE_RE.sub(" ", NON_WORD_RE.sub(" ", title)).strip()


def _clean_queries(queries: Iterable[str]) -> list[str]:
    cleaned = (WHITESPACE_RE.sub(" ", query).strip() for query in queries)
    return [q for q in unique(cleaned) if len(q) >= 3 and LETTER_RE.search(q)]


def _preferred_brands(tokens: list[str], vocabulary: Vocabulary) -> tuple[str, str]:
    brands = [t for t in tokens if vocabulary.is_brand(t)][:3]
    primary = next((b for b in brands if b not in vocabulary.tuners), brands[0] if brands else "")
    secondary = next((b for b in brands if b != primary), "")
    return primary, secondary


def strict_queries(
    title: str, tokens: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> list[str]:
    trimmed = title.strip()
    if not trimmed:
        return []
    normalized = _normalized_title(trimmed)
    words = normalized.split()
    primary, secondary = _preferred_brands(tokens, vocabulary)
    models = [t for t in tokens if is_model_token(t, vocabulary)]
    model = models[0] if models else ""

    queries = [
        f"{primary} {model}",
        f"{secondary} {model}",
        primary,
        secondary,
        " ".join(tokens[:2]),
        " ".join(tokens[:3]),
        " ".join(models[:3]),
        *signal_tokens(tokens, 6, vocabulary),
        trimmed,
        normalized,
        " ".join(words[:4]),
        " ".join(words[:3]),
    ]
    return [q for q in unique(query.strip() for query in queries) if len(q) >= 3]


def brand_fallback_queries(tokens: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    brands = unique(t for t in tokens if vocabulary.is_brand(t))[:3]
    context = next((t for t in tokens if vocabulary.is_context(t)), vocabulary.secondary_context)
    model = next((t for t in tokens if is_model_token(t, vocabulary)), "")
    return _clean_queries(
        [
            *brands,
            *(f"{brand} {context}" for brand in brands),
            *(f"{brand} {vocabulary.default_context}" for brand in brands),
            *(f"{brand} {model}" for brand in brands),
        ]
    )


def contextual_fallback_queries(
    tokens: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> list[str]:
    models = [t for t in tokens if is_model_token(t, vocabulary)]
    contexts = [t for t in tokens if vocabulary.is_context(t)]
    neutral = [
        t
        for t in tokens
        if not vocabulary.is_brand(t)
        and not vocabulary.is_context(t)
        and len(t) >= 4
        and not DIGITS_RE.match(t)
    ]
    primary_brand, secondary_brand = _preferred_brands(tokens, vocabulary)
    model = models[0] if models else ""
    context = contexts[0] if contexts else vocabulary.default_context
    second_context = contexts[1] if len(contexts) > 1 else vocabulary.secondary_context
    first_neutral = neutral[0] if neutral else ""
    neutral_pair = " ".join(neutral[:2])
    top = " ".join(tokens[:3])

    return _clean_queries(
        [
            context,
            " ".join(contexts[:2]),
            f"{context} {first_neutral}",
            f"{second_context} {first_neutral}",
            f"{primary_brand} {model} {context}",
            f"{secondary_brand} {model} {context}",
            f"{primary_brand} {context}",
            f"{secondary_brand} {context}",
            f"{model} {context}",
            neutral_pair,
            f"{neutral_pair} {context}",
            top,
            f"{top} {second_context}",
        ]
    )


def topic_fallback_queries(
    title: str, tokens: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY
) -> list[str]:
    signals = signal_tokens(tokens, 8, vocabulary)
    pairs = [
        f"{token} {signals[index + 1] if index + 1 < len(signals) else ''}"
        for index, token in enumerate(signals[:4])
    ]
    normalized = _normalized_title(title)
    words = normalized.split(" ")
    return _clean_queries(
        [*signals, *pairs, normalized, " ".join(words[:4]), " ".join(words[:3])]
    )


def rotate_by_seed(values: list[str], seed_text: str) -> list[str]:
    if len(values) <= 1:
        return list(values)
    seed = 0
    for char in seed_text:
        seed = (seed * 31 + ord(char)) % 2147483647
    offset = seed % len(values)
    return [*values[offset:], *values[:offset]]
