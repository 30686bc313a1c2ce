"""
Shared fixtures for Weblate Notifier tests.

Provides common test fixtures for use across all test modules.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from weblate_notifier.changes import ChangeRecord
from weblate_notifier.config import (
    AppConfig,
    Credentials,
    DefaultsConfig,
    DeliveryConfig,
    ProjectConfig,
)

# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Reference time used by recency tests
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample config file."""
    return fixtures_dir / "sample_config.yaml"


@pytest.fixture
def sample_changes_content(fixtures_dir: Path) -> str:
    """Return contents of the sample API response."""
    return (fixtures_dir / "sample_changes.json").read_text(encoding="utf-8")


@pytest.fixture
def sample_feed_content(fixtures_dir: Path) -> str:
    """Return contents of the sample RSS export."""
    return (fixtures_dir / "sample_feed.xml").read_text(encoding="utf-8")


@pytest.fixture
def now() -> datetime:
    """Return the fixed reference time."""
    return NOW


@pytest.fixture
def credentials() -> Credentials:
    """Create valid credentials."""
    return Credentials(
        bot_token="1234567890:ABCdefGHIjklMNOpqrsTUVwxyz",
        chat_id="-1001234567890",
    )


@pytest.fixture
def fast_delivery() -> DeliveryConfig:
    """Create delivery settings without any waiting."""
    return DeliveryConfig(retries=2, retry_delay=0, message_delay=0)


@pytest.fixture
def project() -> ProjectConfig:
    """Create a watched project without filters."""
    return ProjectConfig(slug="metrolist", display_name="Metrolist", emoji="🚇")


@pytest.fixture
def app_config(project: ProjectConfig, fast_delivery: DeliveryConfig) -> AppConfig:
    """Create an app configuration with a single project and no delays."""
    return AppConfig(
        defaults=DefaultsConfig(window_minutes=120, max_notify=3, project_delay=0),
        delivery=fast_delivery,
        projects=[project],
    )


@pytest.fixture
def make_change() -> Callable[..., ChangeRecord]:
    """
    Return a factory for change records of the ``metrolist`` project.

    ``minutes_ago`` is measured from the fixed reference time.
    """

    def factory(
        change_id: int | str = 1,
        minutes_ago: float = 0,
        language: str = "tr",
        component: str = "app",
        project: str = "metrolist",
        **overrides: Any,
    ) -> ChangeRecord:
        base = "https://hosted.weblate.org/api"
        values: dict[str, Any] = {
            "id": str(change_id),
            "action_name": "Translation changed",
            "target_text": "Çalma listesi",
            "timestamp": NOW - timedelta(minutes=minutes_ago),
            "translation_ref": f"{base}/translations/{project}/{component}/{language}/",
            "user_ref": f"{base}/users/ayse/",
            "component_ref": f"{base}/components/{project}/{component}/",
            "detail_url": f"{base}/changes/{change_id}/",
        }
        values.update(overrides)
        return ChangeRecord(**values)

    return factory


@pytest.fixture
def mock_telegram_bot() -> MagicMock:
    """
    Create a mock Telegram bot.

    Returns
    -------
    MagicMock
        A mock Bot instance with common methods mocked.
    """
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.get_me = AsyncMock(return_value=MagicMock(username="test_bot"))
    bot.shutdown = AsyncMock()
    return bot
