from newsdesk.models.news import CollectedNewsItem
from newsdesk.models.reports import SeenNewsIndex
from newsdesk.services.dedup import (
    canonical_url,
    dedupe_items,
    filter_already_seen,
    merge_snapshot,
    news_keys,
    seed_seen_index,
)


def make_item(url: str, title: str = "Toyota expands hybrid lineup in Europe", **extra) -> CollectedNewsItem:
    return CollectedNewsItem(
        source_id=extra.pop("source_id", "toyota"),
        title=title,
        content=extra.pop("content", "Body text."),
        url=url,
        source="Toyota",
        published_date=extra.pop("published_date", "2024-05-20"),
        **extra,
    )


def test_canonical_url_ignores_tracking_and_param_order() -> None:
    first = canonical_url("https://News.Example.com/story/?b=2&utm_campaign=spring&a=1")
    second = canonical_url("https://news.example.com/story?a=1&fbclid=xyz&b=2")

    assert first == "news.example.com/story?a=1&b=2"
    assert first == second


def test_canonical_url_without_host_falls_back_to_lowercase() -> None:
    assert canonical_url("  Not A URL/ ") == "not a url"
    assert canonical_url("") == ""


def test_news_keys_skip_short_titles() -> None:
    keys = news_keys(make_item("https://example.com/a", title="Short title"))

    assert keys == ["u:example.com/a"]


def test_news_keys_include_title_and_date_keys() -> None:
    keys = news_keys(make_item("https://example.com/a"))

    assert keys[0] == "u:example.com/a"
    assert "t:toyota expands hybrid lineup in europe" in keys
    assert "td:toyota expands hybrid lineup in europe|2024-05-20" in keys


def test_dedupe_keeps_higher_scoring_copy() -> None:
    short = make_item("https://example.com/a?utm_source=rss", content="Short.")
    long = make_item(
        "https://example.com/a?utm_campaign=spring",
        content="A much longer body that should win the merge.",
    )

    deduped = dedupe_items([short, long])

    assert len(deduped) == 1
    assert deduped[0].content == long.content


def test_dedupe_merges_on_title_across_urls() -> None:
    first = make_item("https://example.com/a")
    second = make_item("https://mirror.example.org/b", feed_image_candidates=["https://img/x.jpg"])

    deduped = dedupe_items([first, second])

    assert len(deduped) == 1
    assert deduped[0].url == "https://mirror.example.org/b"


def test_dedupe_is_idempotent() -> None:
    items = [
        make_item("https://example.com/a"),
        make_item("https://example.com/a?utm_medium=email", content="Longer body text here."),
        make_item("https://example.com/b", title="Kia launches a new electric crossover"),
    ]

    once = dedupe_items(items)
    twice = dedupe_items(once)

    assert once == twice
    assert len(once) == 2


def test_filter_already_seen_is_monotonic() -> None:
    index = SeenNewsIndex(updated_at="2024-05-20T00:00:00.000Z")
    items = [
        make_item("https://example.com/a"),
        make_item("https://example.com/b", title="Kia launches a new electric crossover"),
    ]

    fresh, skipped = filter_already_seen(items, index, "2024-05-20T01:00:00.000Z")
    assert len(fresh) == 2
    assert skipped == 0

    fresh_again, skipped_again = filter_already_seen(items, index, "2024-05-20T02:00:00.000Z")
    assert fresh_again == []
    assert skipped_again == 2
    assert all(value == "2024-05-20T01:00:00.000Z" for value in index.keys.values())


def test_filter_already_seen_matches_on_title_key() -> None:
    index = seed_seen_index([make_item("https://example.com/a")], "2024-05-20T00:00:00.000Z")

    fresh, skipped = filter_already_seen(
        [make_item("https://other.example.org/syndicated")], index, "2024-05-21T00:00:00.000Z"
    )

    assert fresh == []
    assert skipped == 1


def test_merge_snapshot_prefers_fresh_items() -> None:
    existing = [make_item("https://example.com/a", content="Old body.")]
    fresh = [
        make_item("https://example.com/a?utm_source=x", content="New body."),
        make_item("https://example.com/b", title="Kia launches a new electric crossover"),
    ]

    merged = merge_snapshot(existing, fresh)

    assert [item.content for item in merged] == ["New body.", "Body text."]
