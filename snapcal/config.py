"""Application configuration with Pydantic Settings.

This module provides centralized configuration management using pydantic-settings.
Settings are loaded from environment variables and .env files.

Examples:
    >>> from snapcal.config import get_settings
    >>> settings = get_settings()
    >>> [m.model_id for m in settings.get_fallback_models()]
    ['gemini-2.0-flash', 'gemini-1.5-pro', 'gemini-1.5-flash']

Tests:
    - tests/unit/test_config.py::TestSettings
    - tests/unit/test_config.py::TestGeminiModel
"""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class ModelDescriptor(BaseModel):
    """Immutable configuration for one backend model variant.

    Attributes:
        model_id: Gemini model identifier
        endpoint: Full generateContent URL for the model
        requests_per_minute: Per-credential budget inside a rolling minute
        requests_per_day: Per-credential budget for one calendar day
    """

    model_config = ConfigDict(frozen=True)

    model_id: str = Field(description="Model identifier")
    endpoint: str = Field(description="generateContent endpoint URL")
    requests_per_minute: int = Field(ge=1, description="Requests allowed per minute")
    requests_per_day: int = Field(ge=1, description="Requests allowed per day")


class GeminiModel(str, Enum):
    """Supported Gemini vision model variants.

    Each member carries its own ModelDescriptor; iteration priority comes
    from Settings.FALLBACK_ORDER, never from enum order.
    """

    FLASH_2_0 = "gemini-2.0-flash"
    PRO_1_5 = "gemini-1.5-pro"
    FLASH_1_5 = "gemini-1.5-flash"

    def descriptor(self, base_url: str = GEMINI_API_BASE_URL) -> ModelDescriptor:
        """Build the descriptor for this model against a base URL."""
        rpm, rpd = MODEL_BUDGETS[self]
        return ModelDescriptor(
            model_id=self.value,
            endpoint=f"{base_url.rstrip('/')}/{self.value}:generateContent",
            requests_per_minute=rpm,
            requests_per_day=rpd,
        )


# Free-tier budgets published for each model (requests/minute, requests/day)
MODEL_BUDGETS: dict[GeminiModel, tuple[int, int]] = {
    GeminiModel.FLASH_2_0: (15, 1500),
    GeminiModel.PRO_1_5: (2, 50),
    GeminiModel.FLASH_1_5: (15, 1500),
}

DEFAULT_FALLBACK_ORDER: list[GeminiModel] = [
    GeminiModel.FLASH_2_0,
    GeminiModel.PRO_1_5,
    GeminiModel.FLASH_1_5,
]


class Settings(BaseSettings):
    """Application settings for the analysis pipeline.

    Settings are loaded from environment variables and .env file.
    No key is strictly required: without GEMINI_API_KEY or DEMO_API_KEY the
    caller must pass a credential override on every request.

    Attributes:
        GEMINI_API_KEY: Configured default Gemini API key
        DEMO_API_KEY: Shared low-budget key bundled for first-run use
        FALLBACK_ORDER: Model variants in the order they are attempted
        REQUEST_TIMEOUT: Per-request timeout in seconds
        RETRY_BACKOFF: Waits in seconds between retries of one model
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Credentials
    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="Gemini API key used when the caller supplies none",
    )
    DEMO_API_KEY: str | None = Field(
        default=None,
        description="Shared demo key with a tighter budget",
    )

    # Models
    GEMINI_API_BASE_URL: str = Field(
        default=GEMINI_API_BASE_URL,
        description="Base URL of the Gemini models API",
    )
    FALLBACK_ORDER: list[GeminiModel] = Field(
        default_factory=lambda: list(DEFAULT_FALLBACK_ORDER),
        min_length=1,
        description="Model variants in fallback priority order",
    )

    # Request execution
    REQUEST_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )
    PROBE_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for credential probe calls",
    )
    RETRY_BACKOFF: list[float] = Field(
        default_factory=lambda: [1.0, 2.0, 4.0, 8.0],
        description="Backoff waits in seconds between retries on one model",
    )

    # Caching
    ANALYSIS_CACHE_TTL: float = Field(default=600.0, gt=0)
    CREDENTIAL_VALID_TTL: float = Field(default=3600.0, gt=0)
    CREDENTIAL_INVALID_TTL: float = Field(default=300.0, gt=0)
    CACHE_MAX_ENTRIES: int = Field(default=100, ge=1)

    # Demo key budget (replaces per-model budgets)
    DEMO_REQUESTS_PER_MINUTE: int = Field(default=10, ge=1)
    DEMO_REQUESTS_PER_DAY: int = Field(default=100, ge=1)

    # Image validation
    MAX_IMAGE_BYTES: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Maximum decoded image size in bytes",
    )
    SUPPORTED_IMAGE_TYPES: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp"],
    )

    # Application
    LOG_LEVEL: str = Field(default="INFO")

    @field_validator("RETRY_BACKOFF")
    @classmethod
    def validate_retry_backoff(cls, v: list[float]) -> list[float]:
        """Backoff waits must be non-negative."""
        if any(delay < 0 for delay in v):
            raise ValueError("RETRY_BACKOFF delays must be >= 0")
        return v

    @field_validator("FALLBACK_ORDER")
    @classmethod
    def validate_fallback_order(cls, v: list[GeminiModel]) -> list[GeminiModel]:
        """Each model may appear only once in the fallback order."""
        if len(set(v)) != len(v):
            raise ValueError("FALLBACK_ORDER must not repeat a model")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level

    def get_fallback_models(self) -> list[ModelDescriptor]:
        """Get model descriptors in fallback order.

        Returns:
            list[ModelDescriptor]: Descriptors bound to GEMINI_API_BASE_URL.
        """
        return [model.descriptor(self.GEMINI_API_BASE_URL) for model in self.FALLBACK_ORDER]

    def get_cache_ttls(self) -> dict[str, float]:
        """Get cache TTL configuration in seconds."""
        return {
            "analysis": self.ANALYSIS_CACHE_TTL,
            "credential_valid": self.CREDENTIAL_VALID_TTL,
            "credential_invalid": self.CREDENTIAL_INVALID_TTL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
