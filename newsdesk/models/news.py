from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RightsFlag = Literal["official_press", "quote_only", "unknown"]
PhotoProvider = Literal["feed", "article", "wikimedia"]

DEFAULT_LICENSE_TEXT = (
    "Use factual information with attribution. "
    "Check media asset usage terms before publishing photos."
)


class Source(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable source identifier")
    name: str = Field(description="Display name")
    source: str = Field(default="", description="Label stamped on collected items")
    url: str = Field(description="Canonical site URL")
    feed_url: str = Field(description="RSS/Atom feed URL")
    enabled: bool = True
    max_items: int = Field(default=4, ge=1, description="Entries taken per run")
    rights_flag: RightsFlag = "official_press"
    license_text: str = DEFAULT_LICENSE_TEXT

    @field_validator("max_items", mode="before")
    @classmethod
    def _clamp_max_items(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return max(1, value)
        return value

    @property
    def label(self) -> str:
        return self.source or self.name


class PhotoAsset(BaseModel):
    source_url: str
    local_path: str = Field(description="Workspace-relative POSIX path")
    provider: PhotoProvider
    license: str
    credit: str
    attribution_url: str


class CollectedNewsItem(BaseModel):
    source_id: str
    title: str
    content: str
    url: str
    source: str
    published_at: str = Field(default="", description="ISO timestamp or empty")
    published_date: str = ""
    published_time: str = ""
    rights_flag: RightsFlag = "official_press"
    license_text: str = DEFAULT_LICENSE_TEXT
    feed_image_candidates: list[str] = Field(default_factory=list)
    article_image_candidates: list[str] = Field(default_factory=list)


class NewsItem(BaseModel):
    id: str = Field(description="Short SHA-1 of the item URL")
    source_id: str = ""
    title: str
    content: str
    url: str
    source: str
    published_at: str = ""
    published_date: str = ""
    published_time: str = ""
    scraped_at: str
    article_path: str = Field(description="Workspace-relative article directory")
    rights_flag: RightsFlag = "unknown"
    license_text: str = ""
    photos: list[PhotoAsset] = Field(default_factory=list)

    @field_validator("rights_flag", mode="before")
    @classmethod
    def _coerce_rights_flag(cls, value: object) -> object:
        if value in ("official_press", "quote_only", "unknown"):
            return value
        return "unknown"
