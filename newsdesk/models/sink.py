from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .news import PhotoAsset, RightsFlag

SinkScope = Literal["latest_run", "snapshot"]


class ExcludedIdsDocument(BaseModel):
    version: Literal[1] = 1
    updated_at: str
    excluded_ids: list[str] = Field(default_factory=list)


class SinkRow(BaseModel):
    slug: str = Field(description="Title slug plus a stable hash of the item id")
    external_id: str
    dedupe_key: str
    source_id: str | None = None
    source_name: str
    source_url: str
    article_path: str
    title: str
    excerpt: str | None = None
    summary: str | None = None
    content: str
    image: str | None = Field(None, description="Local path of the primary photo")
    image_url: str | None = Field(None, description="Source URL of the primary photo")
    photos: list[PhotoAsset] = Field(default_factory=list)
    date: str | None = None
    published_at: str | None = None
    published_date: str | None = None
    published_time: str | None = None
    scraped_at: str
    rights_flag: RightsFlag
    license_text: str
    category: str | None = None
    is_featured: bool = False
    is_popular: bool = False


class SinkSelection(BaseModel):
    scope: SinkScope
    source_file: str
    selected_items: int = 0
    excluded_items: int = 0
    removed_photo_refs: int = 0
    rows: list[SinkRow] = Field(default_factory=list)
