from newsdesk.models.news import PhotoAsset
from newsdesk.services.photo_policy import (
    filter_existing_photos,
    filter_publishable_photos,
    has_edit_markers,
    is_unknown_license,
    violates_rights_policy,
)


def make_photo(local_path: str, license: str = "CC BY-SA 4.0", credit: str = "Jane Doe") -> PhotoAsset:
    return PhotoAsset(
        source_url="https://upload.wikimedia.org/a.jpg",
        local_path=local_path,
        provider="wikimedia",
        license=license,
        credit=credit,
        attribution_url="https://commons.wikimedia.org/wiki/File:A.jpg",
    )


def test_unknown_license_with_mirrored_credit_is_rejected() -> None:
    assert violates_rights_policy(
        "unknown", "https://example.com/a.jpg", "https://example.com/a", "mirrored by uploader"
    )


def test_reusable_license_is_never_unknown() -> None:
    assert not is_unknown_license("CC BY-SA 4.0")
    assert not is_unknown_license("Public domain (unknown author)")
    assert not violates_rights_policy(
        "CC BY 2.0", "https://example.com/a.jpg", "https://example.com/a", "mirrored by uploader"
    )


def test_unknown_license_hints() -> None:
    assert is_unknown_license("")
    assert is_unknown_license("License unknown. Check original source terms before publication.")
    assert not is_unknown_license("All rights reserved by Example Motors")


def test_edit_markers_alone_do_not_reject() -> None:
    assert has_edit_markers("https://example.com/ai-generated.jpg", "", "")
    assert not violates_rights_policy(
        "Example Motors press kit", "https://example.com/ai-generated.jpg", "", ""
    )


def test_filter_publishable_photos_checks_files_and_policy(workspace) -> None:
    present = workspace.root / "data" / "runs" / "r1" / "a" / "images" / "photo-1.jpg"
    present.parent.mkdir(parents=True)
    present.write_bytes(b"jpeg")
    empty = present.with_name("photo-2.jpg")
    empty.write_bytes(b"")

    photos = [
        make_photo("data/runs/r1/a/images/photo-1.jpg"),
        make_photo("data/runs/r1/a/images/photo-2.jpg"),
        make_photo("data/runs/r1/a/images/missing.jpg"),
        make_photo("../outside.jpg"),
        make_photo("data/runs/r1/a/images/photo-1.jpg", license="n/a", credit="flipped copy"),
    ]

    assert filter_existing_photos(workspace, photos) == [photos[0], photos[4]]
    assert filter_publishable_photos(workspace, photos) == [photos[0]]
