"""Food analysis service facade.

FoodAnalysisService wires the pipeline components together and is what the
rest of an application holds on to. Each instance owns its own rate-limit
counters, cache and HTTP client, so independent instances never share state.

Examples:
    >>> async with FoodAnalysisService() as service:
    ...     result = await service.analyze_food("data:image/jpeg;base64,...")
    ...     ok = await service.validate_credential("AIza...")

Tests:
    - tests/unit/test_service.py::TestFoodAnalysisService
"""

import logging

import httpx

from snapcal.config import Settings, get_settings
from snapcal.core.cache import ResultCache, TTLCache
from snapcal.core.cancellation import CancelToken
from snapcal.core.credentials import CredentialValidator, resolve_credential
from snapcal.core.errors import OperationError
from snapcal.core.executor import GeminiRequestExecutor
from snapcal.core.fallback import FallbackController
from snapcal.core.parser import ResponseParser
from snapcal.core.rate_limiter import RateBudget, RateLimiter
from snapcal.schemas.analysis import AnalysisResult, TextCompletion
from snapcal.schemas.request import AnalysisRequest, EncodedImage

logger = logging.getLogger(__name__)


class FoodAnalysisService:
    """Explicitly constructed entry point for analysis and key checks.

    Attributes:
        settings: Configuration in use
        cache: Result and credential cache
        rate_limiter: Request budgets
        validator: Credential validator
        controller: Fallback controller running analyses
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        """Initialize service.

        Args:
            settings: Configuration (defaults to get_settings()).
            client: Optional pre-built HTTP client, e.g. with a mock transport.
            rate_limiter: Optional limiter, e.g. with an injected clock.
            cache: Optional cache, e.g. with an injected clock.
        """
        self.settings = settings or get_settings()
        models = self.settings.get_fallback_models()
        ttls = self.settings.get_cache_ttls()

        self.cache = cache if cache is not None else ResultCache(
            TTLCache(max_entries=self.settings.CACHE_MAX_ENTRIES)
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            demo_budget=RateBudget(
                self.settings.DEMO_REQUESTS_PER_MINUTE,
                self.settings.DEMO_REQUESTS_PER_DAY,
            )
        )
        self.executor = GeminiRequestExecutor(timeout=self.settings.REQUEST_TIMEOUT, client=client)
        self.validator = CredentialValidator(
            self.executor,
            models,
            self.cache,
            valid_ttl=ttls["credential_valid"],
            invalid_ttl=ttls["credential_invalid"],
            probe_timeout=self.settings.PROBE_TIMEOUT,
        )
        self.controller = FallbackController(
            self.settings,
            self.executor,
            ResponseParser(),
            self.rate_limiter,
            self.cache,
            self.validator,
            models=models,
        )

    async def analyze_food(
        self,
        image: EncodedImage | str,
        credential_override: str | None = None,
        cancel: CancelToken | None = None,
    ) -> AnalysisResult:
        """Analyze a food photo.

        Raises:
            OperationError: On any terminal failure (see FallbackController.analyze).
        """
        return await self.controller.analyze(
            AnalysisRequest(image=image, credential_override=credential_override, cancel=cancel)
        )

    async def validate_credential(self, credential: str | None = None) -> bool:
        """Check a key (or the configured default). Never raises."""
        try:
            effective = resolve_credential(credential, self.settings)
            return await self.validator.validate(effective)
        except OperationError as e:
            logger.info(f"Credential validation failed: {e.message}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error validating credential: {e!r}")
            return False

    async def correct(
        self,
        prompt: str,
        credential_override: str | None = None,
        cancel: CancelToken | None = None,
    ) -> TextCompletion:
        """Send a natural-language correction prompt through the fallback order."""
        return await self.controller.complete_text(prompt, credential_override, cancel)

    def is_model_available(self, model_id: str, credential: str | None = None) -> bool:
        """Whether a cached probe showed the model accepting the key."""
        try:
            effective = resolve_credential(credential, self.settings)
        except OperationError:
            return False
        return self.validator.is_model_available(model_id, effective)

    async def close(self) -> None:
        """Release the HTTP client."""
        await self.executor.close()

    async def __aenter__(self) -> "FoodAnalysisService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
