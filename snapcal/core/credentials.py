"""Credential resolution and validation.

Examples:
    >>> credential = resolve_credential(override=None, settings=get_settings())
    >>> validator = CredentialValidator(executor, settings.get_fallback_models(), cache)
    >>> await validator.validate(credential)
    True

Tests:
    - tests/unit/test_credentials.py::TestResolveCredential
    - tests/unit/test_credentials.py::TestCredentialValidator
"""

import logging

from snapcal.config import ModelDescriptor, Settings
from snapcal.core.cache import ResultCache
from snapcal.core.cancellation import CancelToken
from snapcal.core.errors import (
    AuthError,
    CanceledError,
    ConfigurationError,
    OperationError,
    RequestTimeoutError,
    TransportError,
)
from snapcal.core.executor import PROBE_BODY, GeminiRequestExecutor
from snapcal.core.rate_limiter import credential_fingerprint

logger = logging.getLogger(__name__)

MIN_CREDENTIAL_LENGTH = 11


def resolve_credential(override: str | None, settings: Settings) -> str:
    """Pick the effective credential: override, configured key, then demo key.

    Raises:
        ConfigurationError: If no credential is available.
    """
    for candidate in (override, settings.GEMINI_API_KEY, settings.DEMO_API_KEY):
        if candidate and candidate.strip():
            return candidate.strip()
    raise ConfigurationError()


def is_demo_credential(credential: str, settings: Settings) -> bool:
    """Whether credential is the shared demo key."""
    return bool(settings.DEMO_API_KEY) and credential == settings.DEMO_API_KEY.strip()


class CredentialValidator:
    """Checks whether a credential is accepted by at least one model.

    Probes are cached by credential fingerprint: positives for valid_ttl,
    negatives for invalid_ttl. A probe that fails on the network moves on to
    the next model. A negative is cached only when every model rejected the
    credential outright.
    """

    def __init__(
        self,
        executor: GeminiRequestExecutor,
        models: list[ModelDescriptor],
        cache: ResultCache,
        valid_ttl: float = 3600.0,
        invalid_ttl: float = 300.0,
        probe_timeout: float = 10.0,
    ) -> None:
        self.executor = executor
        self.models = models
        self.cache = cache
        self.valid_ttl = valid_ttl
        self.invalid_ttl = invalid_ttl
        self.probe_timeout = probe_timeout

    @staticmethod
    def is_well_formed(credential: object) -> bool:
        """Local format check; no network."""
        if not isinstance(credential, str):
            return False
        stripped = credential.strip()
        return len(stripped) >= MIN_CREDENTIAL_LENGTH and not any(c.isspace() for c in stripped)

    async def validate(self, credential: str, cancel: CancelToken | None = None) -> bool:
        """Check a credential, probing models in fallback order on a cache miss.

        Args:
            credential: API key to check.
            cancel: Optional token that aborts an in-flight probe.

        Returns:
            True if some model accepted the credential.
        """
        if not self.is_well_formed(credential):
            logger.info("Rejected malformed API key without probing")
            return False

        credential = credential.strip()
        fingerprint = credential_fingerprint(credential)
        cache_key = ResultCache.credential_key(fingerprint)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Credential {fingerprint} validity cached: {cached}")
            return cached

        rejections = 0
        for model in self.models:
            try:
                await self.executor.execute(
                    model, credential, PROBE_BODY, cancel=cancel, timeout=self.probe_timeout
                )
            except CanceledError:
                raise
            except AuthError:
                logger.debug(f"Probe of {model.model_id} rejected credential {fingerprint}")
                rejections += 1
                continue
            except (TransportError, RequestTimeoutError) as e:
                logger.debug(f"Probe of {model.model_id} failed on the network: {e}")
                continue
            except OperationError as e:
                # Any non-auth answer means the key itself was accepted
                logger.debug(f"Probe of {model.model_id} answered {e.kind.value}, key accepted")

            self.cache.set(cache_key, True, self.valid_ttl)
            self.cache.set(
                ResultCache.model_available_key(model.model_id, fingerprint),
                True,
                self.valid_ttl,
            )
            logger.info(f"Credential {fingerprint} accepted by {model.model_id}")
            return True

        if rejections == len(self.models):
            logger.warning(f"Credential {fingerprint} rejected by every model")
            self.cache.set(cache_key, False, self.invalid_ttl)
        else:
            logger.warning(f"Credential {fingerprint} could not be confirmed by any model")
        return False

    def is_model_available(self, model_id: str, credential: str) -> bool:
        """Whether a cached probe showed model_id accepting credential."""
        fingerprint = credential_fingerprint(credential.strip())
        return bool(self.cache.get(ResultCache.model_available_key(model_id, fingerprint)))
