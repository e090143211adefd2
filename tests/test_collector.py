import httpx
import pytest
import respx

from newsdesk.models.news import Source
from newsdesk.services.collector import SourceCollector, parse_feed
from newsdesk.services.extract import entry_image_urls, parse_article_page

SCRAPED_AT = "2024-05-21T08:00:00.000Z"

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Motors Newsroom</title>
    <item>
      <title>Example Motors opens a new assembly plant</title>
      <link>https://press.example.com/plant?utm_campaign=rss</link>
      <pubDate>Mon, 20 May 2024 15:20:00 +0000</pubDate>
      <description>&lt;p&gt;Short teaser.&lt;/p&gt;</description>
      <enclosure url="https://img.example.com/plant.jpg" type="image/jpeg" length="100"/>
    </item>
    <item>
      <title>Example Motors opens a new assembly plant</title>
      <link>https://press.example.com/plant?utm_campaign=newsletter</link>
      <pubDate>Mon, 20 May 2024 15:20:00 +0000</pubDate>
      <description>&lt;p&gt;The company opened a new assembly plant with two thousand jobs.&lt;/p&gt;</description>
      <enclosure url="https://img.example.com/plant.jpg" type="image/jpeg" length="100"/>
    </item>
  </channel>
</rss>
"""

ARTICLE_HTML = """
<html>
  <head>
    <meta property="og:image" content="https://img.example.com/og.jpg" />
  </head>
  <body>
    <article>
      <p>The first paragraph is long enough to be treated as real article content here.</p>
      <p>Short.</p>
      <p>The second paragraph also has enough characters to be kept by the extractor.</p>
      <img src="https://img.example.com/logo.png" />
      <img src="https://img.example.com/photo.jpg" />
    </article>
  </body>
</html>
"""


def make_source(source_id: str, feed_url: str, **extra) -> Source:
    return Source(
        id=source_id,
        name=source_id.title(),
        url=f"https://{source_id}.example.com/",
        feed_url=feed_url,
        **extra,
    )


def feed_with(
    description: str,
    link: str = "https://wire.example.com/story",
    title: str = "Wire story about the new assembly plant",
    image: str | None = "https://img.example.com/story.jpg",
) -> bytes:
    enclosure = f'<enclosure url="{image}" type="image/jpeg" length="100"/>' if image else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Wire</title>
    <item>
      <title>{title}</title>
      <link>{link}</link>
      <pubDate>Mon, 20 May 2024 15:20:00 +0000</pubDate>
      <description>{description}</description>
      {enclosure}
    </item>
  </channel>
</rss>
""".encode()


def test_parse_feed_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_feed(b"this is not a feed <<< &&&")


def test_parse_article_page_extracts_paragraphs_and_images() -> None:
    page = parse_article_page(ARTICLE_HTML)

    assert page.content.split("\n\n") == [
        "The first paragraph is long enough to be treated as real article content here.",
        "The second paragraph also has enough characters to be kept by the extractor.",
    ]
    assert page.image_urls == ["https://img.example.com/og.jpg", "https://img.example.com/photo.jpg"]


def test_entry_image_urls_skip_non_images() -> None:
    entry = {
        "enclosures": [
            {"href": "https://img.example.com/a.jpg", "type": "image/jpeg"},
            {"href": "https://media.example.com/a.mp3", "type": "audio/mpeg"},
        ],
        "media_thumbnail": [{"url": "https://img.example.com/a.jpg"}],
    }

    assert entry_image_urls(entry) == ["https://img.example.com/a.jpg"]


@pytest.mark.asyncio
async def test_collect_merges_tracking_duplicates(settings) -> None:
    source = make_source("press", "https://press.example.com/rss.xml")
    progress: list[tuple[int, int, str]] = []
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(source.feed_url).respond(200, content=RSS)
            result = await collector.collect(
                [source], SCRAPED_AT, lambda done, total, s: progress.append((done, total, s.id))
            )

    assert len(result.items) == 1
    item = result.items[0]
    assert item.content == "The company opened a new assembly plant with two thousand jobs."
    assert item.published_at == "2024-05-20T15:20:00.000Z"
    assert item.published_date == "2024-05-20"
    assert item.published_time == "15:20:00"
    assert item.feed_image_candidates == ["https://img.example.com/plant.jpg"]
    report = result.source_reports[0]
    assert report.status == "ok"
    assert report.feed_entries == 2
    assert report.collected_items == 1
    assert progress == [(1, 1, "press")]


@pytest.mark.asyncio
async def test_failing_feed_is_reported_and_others_continue(settings) -> None:
    good = make_source("press", "https://press.example.com/rss.xml")
    broken = make_source("broken", "https://broken.example.com/rss.xml")
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(good.feed_url).respond(200, content=RSS)
            mock.get(broken.feed_url).respond(500)
            result = await collector.collect([broken, good], SCRAPED_AT)

    assert [r.source_id for r in result.source_reports] == ["broken", "press"]
    failed = result.source_reports[0]
    assert failed.status == "failed"
    assert failed.error
    assert "500" in failed.error
    assert len(failed.error) <= 400
    assert failed.collected_items == 0
    assert len(result.items) == 1


@pytest.mark.asyncio
async def test_short_feed_text_pulls_article_page(settings) -> None:
    settings = settings.model_copy(update={"min_article_chars": 200})
    source = make_source("press", "https://press.example.com/rss.xml", max_items=1)
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(source.feed_url).respond(200, content=RSS)
            mock.get("https://press.example.com/plant", params={"utm_campaign": "rss"}).respond(
                200, html=ARTICLE_HTML
            )
            result = await collector.collect([source], SCRAPED_AT)

    item = result.items[0]
    assert item.content.startswith("The first paragraph")
    assert item.article_image_candidates == [
        "https://img.example.com/og.jpg",
        "https://img.example.com/photo.jpg",
    ]


@pytest.mark.asyncio
async def test_quote_only_sources_keep_an_excerpt(settings) -> None:
    sentences = [f"Sentence number {n} describes the new assembly plant." for n in range(1, 15)]
    source = make_source("wire", "https://wire.example.com/rss.xml", rights_flag="quote_only")
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(source.feed_url).respond(200, content=feed_with(" ".join(sentences)))
            result = await collector.collect([source], SCRAPED_AT)

    item = result.items[0]
    assert item.rights_flag == "quote_only"
    assert item.source == "Wire"
    assert item.content == " ".join(sentences[:10])


@pytest.mark.asyncio
async def test_quote_only_excerpt_respects_char_budget(settings) -> None:
    sentences = [f"Fact {chr(65 + n)} " + "y" * 290 + "." for n in range(10)]
    source = make_source("wire", "https://wire.example.com/rss.xml", rights_flag="quote_only")
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(source.feed_url).respond(200, content=feed_with(" ".join(sentences)))
            result = await collector.collect([source], SCRAPED_AT)

    content = result.items[0].content
    assert len(content) <= 2200
    assert content == " ".join(sentences[:7])
    assert content.endswith(".")


@pytest.mark.asyncio
async def test_malformed_feed_url_fails_only_its_source(settings) -> None:
    bad = make_source("bad", "https://bad.example.com:99x/rss")
    good = make_source("press", "https://press.example.com/rss.xml")
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(good.feed_url).respond(200, content=RSS)
            result = await collector.collect([bad, good], SCRAPED_AT)

    assert [r.source_id for r in result.source_reports] == ["bad", "press"]
    assert result.source_reports[0].status == "failed"
    assert result.source_reports[0].error
    assert result.source_reports[1].status == "ok"
    assert len(result.items) == 1


@pytest.mark.asyncio
async def test_malformed_entry_link_keeps_feed_text(settings) -> None:
    odd = make_source("odd", "https://odd.example.com/rss.xml")
    good = make_source("press", "https://press.example.com/rss.xml")
    odd_feed = feed_with(
        "A plant opening story told entirely in the feed.",
        link="https://odd.example.com:99x/plant",
        title="Odd Motors opens a plant in the north",
        image=None,
    )
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(odd.feed_url).respond(200, content=odd_feed)
            mock.get(good.feed_url).respond(200, content=RSS)
            result = await collector.collect([odd, good], SCRAPED_AT)

    assert [r.status for r in result.source_reports] == ["ok", "ok"]
    assert sorted(item.source_id for item in result.items) == ["odd", "press"]
    odd_item = next(item for item in result.items if item.source_id == "odd")
    assert odd_item.content == "A plant opening story told entirely in the feed."
    assert odd_item.article_image_candidates == []


@pytest.mark.asyncio
async def test_unexpected_source_error_becomes_failed_report(settings, monkeypatch) -> None:
    collect_source = SourceCollector._collect_source

    async def flaky(self, client, source, scraped_at):
        if source.id == "flaky":
            raise RuntimeError("parser exploded")
        return await collect_source(self, client, source, scraped_at)

    monkeypatch.setattr(SourceCollector, "_collect_source", flaky)
    flaky_source = make_source("flaky", "https://flaky.example.com/rss.xml")
    good = make_source("press", "https://press.example.com/rss.xml")
    progress: list[str] = []
    async with httpx.AsyncClient() as client:
        collector = SourceCollector(settings=settings, client=client)
        with respx.mock(assert_all_called=True) as mock:
            mock.get(good.feed_url).respond(200, content=RSS)
            result = await collector.collect(
                [flaky_source, good], SCRAPED_AT, lambda done, total, s: progress.append(s.id)
            )

    failed, ok = result.source_reports
    assert (failed.source_id, failed.status, failed.error) == ("flaky", "failed", "parser exploded")
    assert ok.status == "ok"
    assert sorted(progress) == ["flaky", "press"]
    assert len(result.items) == 1
