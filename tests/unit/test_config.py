"""Unit tests for configuration module.

Tests for snapcal/config.py - Settings and model descriptors.

Run with:
    pytest tests/unit/test_config.py -v
    pytest tests/unit/test_config.py -v -m fast
"""

import pytest
from pydantic import ValidationError

from snapcal.config import (
    DEFAULT_FALLBACK_ORDER,
    GEMINI_API_BASE_URL,
    GeminiModel,
    ModelDescriptor,
)
from tests.utils.fake_gemini import build_settings


@pytest.mark.fast
class TestGeminiModel:
    """Tests for GeminiModel enum and descriptors."""

    def test_model_values(self):
        """Test GeminiModel enum has expected identifiers."""
        assert GeminiModel.FLASH_2_0.value == "gemini-2.0-flash"
        assert GeminiModel.PRO_1_5.value == "gemini-1.5-pro"
        assert GeminiModel.FLASH_1_5.value == "gemini-1.5-flash"

    def test_descriptor_endpoint(self):
        """Test descriptor builds the generateContent URL."""
        descriptor = GeminiModel.FLASH_2_0.descriptor()
        assert descriptor.endpoint == f"{GEMINI_API_BASE_URL}/gemini-2.0-flash:generateContent"

    def test_descriptor_custom_base_url(self):
        """Test trailing slash on the base URL is ignored."""
        descriptor = GeminiModel.PRO_1_5.descriptor("http://localhost:9000/models/")
        assert descriptor.endpoint == "http://localhost:9000/models/gemini-1.5-pro:generateContent"

    def test_descriptor_budgets(self):
        """Test per-model budgets."""
        assert GeminiModel.FLASH_2_0.descriptor().requests_per_minute == 15
        assert GeminiModel.FLASH_2_0.descriptor().requests_per_day == 1500
        assert GeminiModel.PRO_1_5.descriptor().requests_per_minute == 2
        assert GeminiModel.PRO_1_5.descriptor().requests_per_day == 50

    def test_descriptor_is_frozen(self):
        """Test descriptors are immutable."""
        descriptor = GeminiModel.FLASH_1_5.descriptor()
        with pytest.raises(ValidationError):
            descriptor.requests_per_minute = 100

    def test_descriptor_rejects_zero_budget(self):
        """Test budgets must be positive."""
        with pytest.raises(ValidationError):
            ModelDescriptor(model_id="m", endpoint="http://x", requests_per_minute=0, requests_per_day=1)


@pytest.mark.fast
class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self):
        """Test default configuration values."""
        settings = build_settings(RETRY_BACKOFF=[1, 2, 4, 8], REQUEST_TIMEOUT=30.0)
        assert settings.FALLBACK_ORDER == DEFAULT_FALLBACK_ORDER
        assert settings.RETRY_BACKOFF == [1.0, 2.0, 4.0, 8.0]
        assert settings.REQUEST_TIMEOUT == 30.0
        assert settings.ANALYSIS_CACHE_TTL == 600.0
        assert settings.CREDENTIAL_VALID_TTL == 3600.0
        assert settings.CREDENTIAL_INVALID_TTL == 300.0
        assert settings.CACHE_MAX_ENTRIES == 100
        assert settings.DEMO_REQUESTS_PER_MINUTE == 10
        assert settings.DEMO_REQUESTS_PER_DAY == 100

    def test_fallback_models_follow_order(self):
        """Test descriptors come back in the configured order."""
        settings = build_settings(FALLBACK_ORDER=["gemini-1.5-flash", "gemini-2.0-flash"])
        models = settings.get_fallback_models()
        assert [m.model_id for m in models] == ["gemini-1.5-flash", "gemini-2.0-flash"]

    def test_fallback_models_use_base_url(self):
        """Test the configured base URL is applied to every descriptor."""
        settings = build_settings(GEMINI_API_BASE_URL="http://fake/models")
        assert all(m.endpoint.startswith("http://fake/models/") for m in settings.get_fallback_models())

    def test_fallback_order_rejects_duplicates(self):
        """Test a model may only appear once."""
        with pytest.raises(ValidationError, match="must not repeat"):
            build_settings(FALLBACK_ORDER=["gemini-2.0-flash", "gemini-2.0-flash"])

    def test_fallback_order_rejects_empty(self):
        """Test at least one model is required."""
        with pytest.raises(ValidationError):
            build_settings(FALLBACK_ORDER=[])

    def test_fallback_order_rejects_unknown_model(self):
        """Test unknown model identifiers are rejected."""
        with pytest.raises(ValidationError):
            build_settings(FALLBACK_ORDER=["gpt-4o"])

    def test_negative_backoff_rejected(self):
        """Test backoff delays must be non-negative."""
        with pytest.raises(ValidationError, match="RETRY_BACKOFF"):
            build_settings(RETRY_BACKOFF=[1, -2])

    def test_log_level_normalized(self):
        """Test LOG_LEVEL is uppercased."""
        assert build_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_log_level_rejects_unknown(self):
        """Test unknown LOG_LEVEL values are rejected."""
        with pytest.raises(ValidationError):
            build_settings(LOG_LEVEL="chatty")

    def test_cache_ttls(self):
        """Test cache TTL summary."""
        ttls = build_settings().get_cache_ttls()
        assert ttls == {"analysis": 600.0, "credential_valid": 3600.0, "credential_invalid": 300.0}

    def test_settings_from_environment(self, monkeypatch):
        """Test keys are read from environment variables."""
        from snapcal.config import Settings

        monkeypatch.setenv("GEMINI_API_KEY", "AIzaFromEnvironment123")
        monkeypatch.setenv("REQUEST_TIMEOUT", "12.5")
        settings = Settings(_env_file=None)
        assert settings.GEMINI_API_KEY == "AIzaFromEnvironment123"
        assert settings.REQUEST_TIMEOUT == 12.5
