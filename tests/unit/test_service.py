"""Unit tests for the service facade.

Tests for snapcal/service.py - wiring, validate_credential, correct, lifecycle.

Run with:
    pytest tests/unit/test_service.py -v
"""

import pytest

from snapcal import FoodAnalysisService
from snapcal.config import GeminiModel
from snapcal.core.errors import OperationError
from tests.utils.fake_gemini import TEST_API_KEY, FakeGemini, build_settings


@pytest.mark.fast
class TestFoodAnalysisService:
    """Tests for FoodAnalysisService."""

    @pytest.mark.asyncio
    async def test_analyze_food(self, service, jpeg_data_url):
        """Test the facade returns an analysis result."""
        result = await service.analyze_food(jpeg_data_url)
        assert result.total_calories == 95
        assert result.foods[0].name == "apple"

    @pytest.mark.asyncio
    async def test_analyze_food_errors_are_operation_errors(self, service):
        """Test failures surface as OperationError."""
        with pytest.raises(OperationError):
            await service.analyze_food("invalid-image-data")

    @pytest.mark.asyncio
    async def test_validate_configured_key(self, service, fake_gemini):
        """Test the configured key is validated when none is passed."""
        assert await service.validate_credential() is True
        assert fake_gemini.calls[0].api_key == TEST_API_KEY

    @pytest.mark.asyncio
    async def test_validate_never_raises(self, fake_gemini):
        """Test a missing key yields False instead of an exception."""
        service = FoodAnalysisService(build_settings(GEMINI_API_KEY=None), client=fake_gemini.client())
        assert await service.validate_credential() is False
        assert await service.validate_credential("short") is False

    @pytest.mark.asyncio
    async def test_validate_rejected_key(self, service, fake_gemini):
        """Test a key every model rejects is invalid."""
        for model in GeminiModel:
            fake_gemini.queue(model, "probe", 403)
        assert await service.validate_credential("AIzaRejectedKey12345") is False

    @pytest.mark.asyncio
    async def test_is_model_available(self, service):
        """Test availability reflects cached probes."""
        assert service.is_model_available("gemini-2.0-flash") is False
        await service.validate_credential()
        assert service.is_model_available("gemini-2.0-flash") is True

    @pytest.mark.asyncio
    async def test_correct(self, service):
        """Test text correction through the facade."""
        completion = await service.correct("Actually it was a pear")
        assert completion.text.startswith("Corrected")

    @pytest.mark.asyncio
    async def test_instances_are_isolated(self, fake_gemini, jpeg_data_url):
        """Test two services share neither cache nor counters."""
        settings = build_settings()
        first = FoodAnalysisService(settings, client=fake_gemini.client())
        second = FoodAnalysisService(settings, client=fake_gemini.client())

        await first.analyze_food(jpeg_data_url)
        await second.analyze_food(jpeg_data_url)
        assert fake_gemini.count("analysis") == 2
        assert first.rate_limiter is not second.rate_limiter

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self):
        """Test the async context manager releases its own client."""
        async with FoodAnalysisService(build_settings()) as service:
            client = service.executor.client
        assert client.is_closed is True

    def test_settings_wiring(self):
        """Test configuration flows into the components."""
        service = FoodAnalysisService(
            build_settings(
                CACHE_MAX_ENTRIES=7,
                DEMO_REQUESTS_PER_MINUTE=3,
                REQUEST_TIMEOUT=9.0,
                CREDENTIAL_VALID_TTL=120.0,
                CREDENTIAL_INVALID_TTL=30.0,
            ),
            client=FakeGemini().client(),
        )
        assert service.cache.store.max_entries == 7
        assert service.validator.valid_ttl == 120.0
        assert service.validator.invalid_ttl == 30.0
        assert service.rate_limiter.demo_budget.requests_per_minute == 3
        assert service.executor.timeout == 9.0
        assert [m.model_id for m in service.controller.models] == [m.value for m in GeminiModel]
