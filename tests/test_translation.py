import httpx
import pytest
import respx

from newsdesk.models.news import CollectedNewsItem
from newsdesk.services.translation import (
    TranslationService,
    is_improvement,
    looks_untranslated,
    quote_only_retelling,
    script_stats,
    target_script,
)

TRANSLATE_HOST = "translate.googleapis.com"
TRANSLATE_PATH = "/translate_a/single"
CYRILLIC = target_script("uk")


def payload(text: str) -> list:
    return [[[text, "source", None, None, 10]], None, "en"]


@pytest.mark.asyncio
async def test_translate_text_is_noop_when_disabled_or_empty(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=False) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH)
            assert await service.translate_text("Hello world", "uk", enabled=False) == "Hello world"
            assert await service.translate_text("", "uk") == ""

    assert not route.called


@pytest.mark.asyncio
async def test_translate_text_uses_gtx_endpoint(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).respond(
                200, json=payload("Привіт світ")
            )
            translated = await service.translate_text("Hello world", "uk")

    assert translated == "Привіт світ"
    params = route.calls[0].request.url.params
    assert params["client"] == "gtx"
    assert params["sl"] == "auto"
    assert params["tl"] == "uk"
    assert params["q"] == "Hello world"


@pytest.mark.asyncio
async def test_translate_chunk_returns_original_after_retries(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).respond(503)
            translated = await service.translate_chunk("Hello world", "uk")

    assert translated == "Hello world"
    assert route.call_count == settings.translation_retry_attempts


@pytest.mark.asyncio
async def test_translate_chunk_keeps_text_on_malformed_payload(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).respond(200, json={"error": "x"})
            translated = await service.translate_chunk("Hello world", "uk")

    assert translated == "Hello world"


@pytest.mark.asyncio
async def test_repair_mixed_script_retranslates_latin_sentences(settings) -> None:
    text = (
        "Це український текст про автомобілі. "
        "This sentence remained completely in English language."
    )
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).respond(
                200, json=payload("Це речення залишилося повністю англійською мовою.")
            )
            repaired = await service.repair_mixed_script(text, "uk")

    assert repaired == (
        "Це український текст про автомобілі. "
        "Це речення залишилося повністю англійською мовою."
    )
    assert route.call_count == 1
    assert route.calls[0].request.url.params["sl"] == "en"


@pytest.mark.asyncio
async def test_repair_mixed_script_rejects_non_improvements(settings) -> None:
    text = "This sentence remained completely in English language."
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).respond(
                200, json=payload("This sentence stayed completely in the English language.")
            )
            repaired = await service.repair_mixed_script(text, "uk")

    assert repaired == text
    assert [call.request.url.params["sl"] for call in route.calls] == ["en", "auto"]


def test_repair_is_skipped_for_latin_targets() -> None:
    assert target_script("de") is None
    assert target_script("uk-UA") == CYRILLIC


def test_is_improvement_never_lowers_target_ratio() -> None:
    original = "Привіт друзі hello"

    assert not is_improvement(original, "hello hello hello", CYRILLIC)
    assert is_improvement("Hello my dear friends", "Привіт мої дорогі друзі", CYRILLIC)
    assert not is_improvement(original, original, CYRILLIC)


def test_looks_untranslated_needs_enough_letters() -> None:
    assert not looks_untranslated("Too short", CYRILLIC)
    assert looks_untranslated("This sentence remained completely in English.", CYRILLIC)
    assert not looks_untranslated("Це речення вже повністю перекладене українською.", CYRILLIC)


def test_script_stats_counts_letters_only() -> None:
    stats = script_stats("Abc 123 Где", CYRILLIC)

    assert stats.letters == 6
    assert stats.latin == 3
    assert stats.target == 3


def test_quote_only_retelling_appends_source_line() -> None:
    retelling = quote_only_retelling(
        "https://example.com/a", "First sentence. Second sentence.", "Джерело"
    )

    assert retelling == "First sentence. Second sentence.\n\nДжерело: https://example.com/a"


@pytest.mark.asyncio
async def test_translate_items_disabled_normalizes_and_trims(settings) -> None:
    settings = settings.model_copy(update={"max_content_chars": 20})
    item = CollectedNewsItem(
        source_id="kia",
        title="  Kia   EV9 \n update ",
        content="A long body that will definitely be trimmed.",
        url="https://example.com/kia",
        source="Kia",
    )
    seen: list[tuple[int, int, str]] = []
    service = TranslationService(settings=settings)

    out = await service.translate_items([item], lambda i, t, title: seen.append((i, t, title)))

    assert out[0].title == "Kia EV9 update"
    assert out[0].content == "A long body that wil..."
    assert seen == [(1, 1, item.title)]


@pytest.mark.asyncio
async def test_translate_items_adds_retelling_for_quote_only(settings) -> None:
    settings = settings.model_copy(update={"translation_enabled": True})
    item = CollectedNewsItem(
        source_id="wire",
        title="Заголовок",
        content="Перше речення. Друге речення.",
        url="https://wire.example.com/story",
        source="Wire",
        rights_flag="quote_only",
    )
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).mock(
                side_effect=lambda request: httpx.Response(
                    200, json=payload(request.url.params["q"])
                )
            )
            out = await service.translate_items([item])

    assert out[0].title == "Заголовок"
    assert out[0].content == (
        "Перше речення. Друге речення.\n\nДжерело: https://wire.example.com/story"
    )


@pytest.mark.asyncio
async def test_translate_chunk_returns_original_after_timeouts(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH).mock(
                side_effect=httpx.ConnectTimeout("timed out")
            )
            translated = await service.translate_chunk("Hello world", "uk")

    assert translated == "Hello world"
    assert route.call_count == settings.translation_retry_attempts


@pytest.mark.asyncio
async def test_translate_text_keeps_whitespace_only_input(settings) -> None:
    async with httpx.AsyncClient() as client:
        service = TranslationService(settings=settings, client=client)
        with respx.mock(assert_all_called=False) as mock:
            route = mock.get(host=TRANSLATE_HOST, path=TRANSLATE_PATH)
            assert await service.translate_text("  \n\t ", "uk") == "  \n\t "

    assert not route.called
