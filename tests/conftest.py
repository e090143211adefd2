import pytest

from newsdesk.config import Settings
from newsdesk.services.storage import Workspace


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        workspace_dir=tmp_path,
        translation_enabled=False,
        translation_retry_delay=0,
        wikimedia_retry_delay=0,
        image_retry_delay=0,
        backfill_retry_delay=0,
        max_images_per_item=1,
        min_article_chars=0,
    )


@pytest.fixture
def workspace(settings: Settings) -> Workspace:
    return Workspace.from_settings(settings)
