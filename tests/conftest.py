"""
Pytest configuration and fixtures for snapcal tests.

Network access is replaced by FakeGemini (tests/utils/fake_gemini.py) behind
an httpx.MockTransport, so no test needs a real API key.
"""
import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from snapcal.config import Settings
from snapcal.service import FoodAnalysisService
from tests.utils.fake_gemini import (
    FakeGemini,
    build_settings,
    make_jpeg_data_url,
    make_png_data_url,
)


# ============================================
# Images
# ============================================

@pytest.fixture
def jpeg_data_url() -> str:
    return make_jpeg_data_url()


@pytest.fixture
def png_data_url() -> str:
    return make_png_data_url()


# ============================================
# Settings & Service
# ============================================

@pytest.fixture
def test_settings() -> Settings:
    return build_settings()


@pytest.fixture
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def mock_client(fake_gemini: FakeGemini) -> httpx.AsyncClient:
    return fake_gemini.client()


@pytest.fixture
def service(test_settings: Settings, mock_client: httpx.AsyncClient) -> FoodAnalysisService:
    return FoodAnalysisService(test_settings, client=mock_client)


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
    config.addinivalue_line(
        "markers", "integration: End-to-end pipeline scenarios against a mocked transport"
    )
