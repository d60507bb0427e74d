"""Model fallback orchestration.

FallbackController is the single entry point of the pipeline. Per call:

    START -> validate image -> cache lookup -> resolve credential
          -> validate credential -> for each model in fallback order:
                 rate check -> {attempt <-> backoff wait}*
          -> SUCCESS | abort | exhausted

Models and retries run strictly one after another. What happens after a
failed attempt is decided by FAILURE_POLICIES alone (see core.errors), with
one override: a rate limit on the shared demo key ends the operation with a
message asking for a personal key. When every model failed on a rate
limit, the caller gets a RateLimitError instead of ModelsExhaustedError; it
carries the same per-model failures and is chained from the aggregate error.

Examples:
    >>> controller = FallbackController(settings, executor, parser, limiter, cache, validator)
    >>> result = await controller.analyze(AnalysisRequest(image=data_url))

Tests:
    - tests/unit/test_fallback.py::TestModelIteration
    - tests/unit/test_fallback.py::TestRetryBackoff
    - tests/unit/test_fallback.py::TestDemoCredential
    - tests/unit/test_fallback.py::TestCorrection
    - tests/integration/test_analyze_scenarios.py
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from snapcal.config import ModelDescriptor, Settings
from snapcal.core.cache import ResultCache
from snapcal.core.cancellation import CancelToken, sleep_unless_cancelled
from snapcal.core.credentials import (
    CredentialValidator,
    is_demo_credential,
    resolve_credential,
)
from snapcal.core.errors import (
    AuthError,
    ErrorKind,
    FailurePolicy,
    ModelsExhaustedError,
    OperationError,
    PayloadValidationError,
    RateLimitError,
    policy_for,
)
from snapcal.core.executor import GeminiRequestExecutor, build_image_body, build_text_body
from snapcal.core.images import coerce_image, content_hash
from snapcal.core.parser import ResponseParser
from snapcal.core.rate_limiter import RateLimiter
from snapcal.prompts import FOOD_ANALYSIS_PROMPT
from snapcal.schemas.analysis import AnalysisResult, TextCompletion
from snapcal.schemas.request import AnalysisRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEMO_LIMIT_MESSAGE = (
    "Rate limit exceeded on the shared demo API key. "
    "Please add your own Gemini API key in settings to keep analyzing photos."
)


def _check_cancelled(cancel: CancelToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


class FallbackController:
    """Runs one analysis across the configured model fallback order.

    Attributes:
        settings: Pipeline configuration
        models: Model descriptors in fallback order
        retry_backoff: Waits in seconds between retries of one model
    """

    def __init__(
        self,
        settings: Settings,
        executor: GeminiRequestExecutor,
        parser: ResponseParser,
        rate_limiter: RateLimiter,
        cache: ResultCache,
        validator: CredentialValidator,
        models: list[ModelDescriptor] | None = None,
        prompt: str = FOOD_ANALYSIS_PROMPT,
    ) -> None:
        self.settings = settings
        self.executor = executor
        self.parser = parser
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.validator = validator
        self.models = models if models is not None else settings.get_fallback_models()
        self.retry_backoff = list(settings.RETRY_BACKOFF)
        self.prompt = prompt

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Analyze one food photo.

        Args:
            request: Image, optional credential override and cancel token.

        Returns:
            AnalysisResult from the first model that succeeded (or the cache).

        Raises:
            PayloadValidationError: Malformed image, before any network call.
            ConfigurationError: No credential could be resolved.
            AuthError: Credential rejected.
            NoFoodRecognizedError: The model saw no food.
            RateLimitError: Demo key budget exhausted.
            CanceledError: The caller cancelled.
            ModelsExhaustedError: Every model failed non-fatally.
        """
        cancel = request.cancel
        _check_cancelled(cancel)

        image = coerce_image(
            request.image,
            self.settings.SUPPORTED_IMAGE_TYPES,
            self.settings.MAX_IMAGE_BYTES,
        )
        cache_key = ResultCache.analysis_key(content_hash(image))
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Analysis cache hit for {cache_key[:24]}")
            return cached

        credential = await self._authorized_credential(request.credential_override, cancel)
        body = build_image_body(self.prompt, image)

        def parse(raw: Any, model: ModelDescriptor) -> AnalysisResult:
            return self.parser.parse(raw, image_url=image.data_url, model_used=model.model_id)

        result = await self._run_models(credential, body, parse, cancel)
        self.cache.set(cache_key, result, self.settings.ANALYSIS_CACHE_TTL)
        logger.info(
            f"Analyzed photo with {result.model_used}: {len(result.foods)} item(s), "
            f"{result.total_calories} cal"
        )
        return result

    async def complete_text(
        self,
        prompt: str,
        credential_override: str | None = None,
        cancel: CancelToken | None = None,
    ) -> TextCompletion:
        """Send a text-only prompt (e.g. a user correction) through the fallback order.

        Raises:
            PayloadValidationError: If the prompt is empty.
        """
        _check_cancelled(cancel)
        if not isinstance(prompt, str) or not prompt.strip():
            raise PayloadValidationError("Prompt must not be empty")

        credential = await self._authorized_credential(credential_override, cancel)
        body = build_text_body(prompt.strip())

        def extract(raw: Any, model: ModelDescriptor) -> TextCompletion:
            return TextCompletion(text=self.parser.extract_text(raw).strip(), model_used=model.model_id)

        return await self._run_models(credential, body, extract, cancel)

    async def _authorized_credential(
        self, override: str | None, cancel: CancelToken | None
    ) -> str:
        credential = resolve_credential(override, self.settings)
        if not await self.validator.validate(credential, cancel=cancel):
            raise AuthError()
        return credential

    async def _run_models(
        self,
        credential: str,
        body: dict[str, Any],
        handle: Callable[[Any, ModelDescriptor], T],
        cancel: CancelToken | None,
    ) -> T:
        demo = is_demo_credential(credential, self.settings)
        failures: list[tuple[str, OperationError]] = []

        for model in self.models:
            _check_cancelled(cancel)
            try:
                self.rate_limiter.check_and_consume(model, credential, demo=demo)
            except RateLimitError as e:
                if demo:
                    raise self._demo_limit_error(e) from e
                failures.append((model.model_id, e))
                logger.warning(f"Skipping {model.model_id}: {e.message}")
                continue

            try:
                return await self._attempt_model(model, credential, body, handle, cancel)
            except OperationError as e:
                if demo and e.kind == ErrorKind.RATE_LIMIT:
                    raise self._demo_limit_error(e) from e
                if policy_for(e) == FailurePolicy.ABORT:
                    raise
                failures.append((model.model_id, e))
                logger.warning(f"{model.model_id} failed ({e.kind.value}), trying next model")

        logger.error(f"All {len(self.models)} models failed")
        exhausted = ModelsExhaustedError(failures)
        if failures and all(error.kind == ErrorKind.RATE_LIMIT for _, error in failures):
            waits = [
                error.retry_after
                for _, error in failures
                if isinstance(error, RateLimitError) and error.retry_after
            ]
            raise RateLimitError(
                exhausted.message,
                retry_after=min(waits) if waits else None,
                failures=failures,
            ) from exhausted
        raise exhausted

    async def _attempt_model(
        self,
        model: ModelDescriptor,
        credential: str,
        body: dict[str, Any],
        handle: Callable[[Any, ModelDescriptor], T],
        cancel: CancelToken | None,
    ) -> T:
        """Call one model, retrying transient failures on the backoff schedule."""
        attempt = 0
        while True:
            try:
                raw = await self.executor.execute(model, credential, body, cancel=cancel)
                return handle(raw, model)
            except OperationError as e:
                if policy_for(e) != FailurePolicy.RETRY or attempt >= len(self.retry_backoff):
                    raise
                delay = self.retry_backoff[attempt]
                attempt += 1
                logger.warning(
                    f"{model.model_id} attempt {attempt} failed ({e.kind.value}), "
                    f"retrying in {delay}s"
                )
                await sleep_unless_cancelled(delay, cancel)

    @staticmethod
    def _demo_limit_error(error: OperationError) -> RateLimitError:
        retry_after = error.retry_after if isinstance(error, RateLimitError) else None
        return RateLimitError(DEMO_LIMIT_MESSAGE, code="demo_limit", retry_after=retry_after)
