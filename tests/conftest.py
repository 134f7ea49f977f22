"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from PIL import Image, ImageDraw

from fakes import BASE_URL, PASSWORD, USERNAME, FakeMautic, FakeSessionClient
from theme_qa.marker import MemoryMarkerStore
from theme_qa.models.config import PhaseTimeouts, QAConfig
from theme_qa.models.results import ScreenshotRecord
from theme_qa.snapshot.model import parse_snapshot


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config(tmp_path: Path) -> QAConfig:
    """A fully configured QAConfig pointing at the fake Mautic."""
    return QAConfig(
        mautic_url=BASE_URL,
        username=USERNAME,
        password=PASSWORD,
        screenshot_dir=str(tmp_path / "screenshots"),
        marker_path=str(tmp_path / "marker" / "current-page-id"),
        settle_ms=0,
        timeouts=PhaseTimeouts(setup=5, create=5, capture=10, cleanup=5),
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove Mautic settings from the environment."""
    for var in ("MAUTIC_URL", "MAUTIC_USERNAME", "MAUTIC_PASSWORD", "THEME_QA_CONFIG_JSON"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


# ============================================================================
# Fake Mautic / Session Fixtures
# ============================================================================


@pytest.fixture
def site() -> FakeMautic:
    return FakeMautic()


@pytest.fixture
def client(site: FakeMautic) -> FakeSessionClient:
    return FakeSessionClient(site)


@pytest.fixture
def marker() -> MemoryMarkerStore:
    return MemoryMarkerStore()


# ============================================================================
# Snapshot Fixtures
# ============================================================================


LISTING_SNAPSHOT = """\
- main [ref=e1]:
  - table [ref=e2]:
    - row [ref=e3]:
      - columnheader "Title" [ref=e4]
      - columnheader "ID" [ref=e5]
    - row [ref=e6]:
      - cell [ref=e7]:
        - button "" [ref=e8]
      - cell "Spring promo" [ref=e9]
      - cell "41" [ref=e10]
    - row [ref=e11]:
      - cell [ref=e12]:
        - button "" [ref=e13]
        - list [ref=e14]:
          - listitem [ref=e15]:
            - link "Edit" [ref=e16]
              - /url: /s/pages/edit/42
          - listitem [ref=e17]:
            - link "Delete" [ref=e18]
      - cell "QA logan" [ref=e19]
      - cell "42" [ref=e20]
"""


@pytest.fixture
def listing_snapshot():
    return parse_snapshot(LISTING_SNAPSHOT, page_name="admin", snapshot_id=1)


# ============================================================================
# Screenshot Fixtures
# ============================================================================


def create_screenshot(path: Path, width: int = 375, height: int = 600, blank: bool = False) -> ScreenshotRecord:
    """Write a PNG screenshot and return its record."""
    img = Image.new("RGB", (width, height), "white")
    if not blank:
        ImageDraw.Draw(img).rectangle([10, 10, 200, 100], fill="navy")
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path)
    return ScreenshotRecord(viewport="mobile-375x812", category="mobile", width=375, height=812, path=str(path))


@pytest.fixture
def create_screenshot_helper():
    """Fixture that provides the create_screenshot function."""
    return create_screenshot


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Create a mock Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock(text='{"issues": []}')]
    mock_response.stop_reason = "end_turn"
    mock_client.messages.create.return_value = mock_response
    return mock_client


@pytest.fixture
def mock_page() -> MagicMock:
    """Create a mock Playwright page."""
    page = MagicMock()
    page.url = BASE_URL + "/s/dashboard"
    page.is_closed.return_value = False
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    page.close = AsyncMock()
    page.set_viewport_size = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    return page


@pytest.fixture
def mock_context(mock_page: MagicMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    return context


@pytest.fixture
def mock_browser() -> AsyncMock:
    """Create a mock Playwright browser."""
    return AsyncMock()


@pytest.fixture
def mock_ai_client() -> Mock:
    """Create a mock AIClient for the vision analyzer.

    Default behavior: the reviewer finds nothing.
    Override review_image.return_value in individual tests to customize.
    """
    client = Mock()
    client.review_image = Mock(return_value='{"issues": []}')
    return client
