from functools import lru_cache
from pathlib import Path

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)

    http_timeout: float = Field(12.0, gt=0, alias="HTTP_TIMEOUT")
    http_max_connections: int = Field(20, ge=1, alias="HTTP_MAX_CONNECTIONS")
    http_max_keepalive: int = Field(10, ge=1, alias="HTTP_MAX_KEEPALIVE")
    http_user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        alias="HTTP_USER_AGENT",
    )

    workspace_dir: Path = Field(Path("."), alias="WORKSPACE_DIR")
    data_dir: str = Field("data", alias="DATA_DIR")
    sources_path: str = Field("sources.json", alias="SOURCES_PATH")
    source_concurrency: int = Field(4, ge=1, alias="SOURCE_CONCURRENCY")

    min_article_chars: int = Field(1200, ge=0, alias="MIN_ARTICLE_CHARS")
    max_article_paragraphs: int = Field(24, ge=1, alias="MAX_ARTICLE_PARAGRAPHS")
    max_content_chars: int = Field(6000, ge=1, alias="MAX_CONTENT_CHARS")

    translation_enabled: bool = Field(True, alias="TRANSLATION_ENABLED")
    target_language: str = Field("uk", alias="TARGET_LANGUAGE")
    source_language_hint: str = Field("en", alias="SOURCE_LANGUAGE_HINT")
    translate_url: HttpUrl = Field(
        "https://translate.googleapis.com/translate_a/single", alias="TRANSLATE_URL"
    )
    translation_chunk_chars: int = Field(4500, ge=100, alias="TRANSLATION_CHUNK_CHARS")
    translation_retry_attempts: int = Field(3, ge=1, alias="TRANSLATION_RETRY_ATTEMPTS")
    translation_retry_delay: float = Field(0.35, ge=0, alias="TRANSLATION_RETRY_DELAY")

    wikimedia_api_url: HttpUrl = Field(
        "https://commons.wikimedia.org/w/api.php", alias="WIKIMEDIA_API_URL"
    )
    wikimedia_retry_attempts: int = Field(3, ge=1, alias="WIKIMEDIA_RETRY_ATTEMPTS")
    wikimedia_retry_delay: float = Field(0.35, ge=0, alias="WIKIMEDIA_RETRY_DELAY")
    image_retry_attempts: int = Field(3, ge=1, alias="IMAGE_RETRY_ATTEMPTS")
    image_retry_delay: float = Field(0.35, ge=0, alias="IMAGE_RETRY_DELAY")
    max_image_bytes: int = Field(8 * 1024 * 1024, ge=1, alias="MAX_IMAGE_BYTES")
    max_images_per_item: int = Field(2, ge=1, alias="MAX_IMAGES_PER_ITEM")

    backfill_attempts: int = Field(2, ge=1, alias="BACKFILL_ATTEMPTS")
    backfill_retry_delay: float = Field(0.45, ge=0, alias="BACKFILL_RETRY_DELAY")


@lru_cache
def get_settings() -> Settings:
    return Settings()
