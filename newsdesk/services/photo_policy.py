"""Photo rights policy and on-disk integrity checks for persisted photo assets."""

from __future__ import annotations

import re
from collections.abc import Iterable

from ..errors import PathEscapeError
from ..models.news import PhotoAsset
from .storage import Workspace

REUSABLE_LICENSE_HINTS = (
    re.compile(r"\bcreative\s+commons\b"),
    re.compile(r"\bcc[-\s]?by(?:[-\s]?[a-z0-9]+)?\b"),
    re.compile(r"\bcc[-\s]?0\b"),
    re.compile(r"\bpublic\s+domain\b"),
    re.compile(r"\bpd\b"),
    re.compile(r"\bgfdl\b"),
    re.compile(r"\bwikimedia\s+commons\b"),
)

UNKNOWN_LICENSE_HINTS = (
    re.compile(r"\blicense\s+unknown\b"),
    re.compile(r"\bunknown\s+license\b"),
    re.compile(r"\brights?\s+unknown\b"),
    re.compile(r"\bunknown\b"),
    re.compile(r"\bnot\s+provided\b"),
    re.compile(r"\bnot\s+specified\b"),
    re.compile(r"\bmanual\s+review\b"),
    re.compile(r"\bcheck\s+original\s+source\s+terms\b"),
    re.compile(r"\bn/a\b"),
    re.compile(r"\btbd\b"),
)

EDITED_OR_MIRRORED_HINTS = (
    re.compile(r"\bmirror(?:ed|ing)?\b"),
    re.compile(r"\bflip(?:ped|ping)?\b"),
    re.compile(r"\bedit(?:ed|ing)?\b"),
    re.compile(r"\bphotoshop(?:ped|ping)?\b"),
    re.compile(r"\bretouch(?:ed|ing)?\b"),
    re.compile(r"\bremix(?:ed|ing)?\b"),
    re.compile(r"\bupscal(?:e|ed|ing)\b"),
    re.compile(r"\bai[-_\s]?(?:generated|edited|enhanced|upscaled)\b"),
    re.compile(r"\bmidjourney\b"),
    re.compile(r"\bstable[-_\s]?diffusion\b"),
)


def is_unknown_license(license_text: str) -> bool:
    normalized = license_text.strip().lower()
    if not normalized:
        return True
    if any(pattern.search(normalized) for pattern in REUSABLE_LICENSE_HINTS):
        return False
    return any(pattern.search(normalized) for pattern in UNKNOWN_LICENSE_HINTS)


def has_edit_markers(source_url: str, attribution_url: str, credit: str) -> bool:
    combined = f"{source_url} {attribution_url} {credit}".strip().lower()
    if not combined:
        return False
    return any(pattern.search(combined) for pattern in EDITED_OR_MIRRORED_HINTS)


def violates_rights_policy(
    license_text: str, source_url: str, attribution_url: str, credit: str
) -> bool:
    """Unknown provenance combined with signs of alteration is always rejected."""
    return is_unknown_license(license_text) and has_edit_markers(source_url, attribution_url, credit)


def photo_allowed(photo: PhotoAsset) -> bool:
    return not violates_rights_policy(
        photo.license, photo.source_url, photo.attribution_url, photo.credit
    )


def photo_file_available(workspace: Workspace, photo: PhotoAsset) -> bool:
    local_path = photo.local_path.strip()
    if not local_path:
        return False
    try:
        path = workspace.resolve(local_path)
    except PathEscapeError:
        return False
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def filter_existing_photos(workspace: Workspace, photos: Iterable[PhotoAsset]) -> list[PhotoAsset]:
    return [photo for photo in photos if photo_file_available(workspace, photo)]


def filter_publishable_photos(workspace: Workspace, photos: Iterable[PhotoAsset]) -> list[PhotoAsset]:
    return [
        photo
        for photo in photos
        if photo_allowed(photo) and photo_file_available(workspace, photo)
    ]
