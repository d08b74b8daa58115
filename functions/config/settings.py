"""RoofEstimate configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are resolved through the config.secrets module.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for local configuration (model names, thresholds, endpoints)
load_dotenv()


def _optional_env(name: str) -> Optional[str]:
    """Return an environment variable, treating empty strings as unset."""
    value = os.getenv(name)
    return value or None


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY) are accessed via the config.secrets module.
    The openai_api_key property delegates to it and caches the value.
    """

    # LLM Configuration (both analysis backends are served by the LLM)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.2")))
    analysis_max_tokens: int = field(default_factory=lambda: int(os.getenv("ANALYSIS_MAX_TOKENS", "3000")))

    # Consensus Configuration
    disagreement_threshold_sqft: float = field(
        default_factory=lambda: float(os.getenv("DISAGREEMENT_THRESHOLD_SQFT", "100"))
    )

    # Property data lookups (building age, style, footprint, neighborhood)
    property_data_url: Optional[str] = field(default_factory=lambda: _optional_env("PROPERTY_DATA_URL"))
    property_data_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("PROPERTY_DATA_TIMEOUT_SECONDS", "10"))
    )

    # Prediction cache (owned by the calling layer)
    prediction_cache_size: int = field(default_factory=lambda: int(os.getenv("PREDICTION_CACHE_SIZE", "256")))
    prediction_cache_ttl_seconds: float = field(
        default_factory=lambda: float(os.getenv("PREDICTION_CACHE_TTL_SECONDS", "86400"))
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use openai_api_key property instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from the secrets module."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing.
        """
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required for roof analysis")
        if self.disagreement_threshold_sqft <= 0:
            raise ValueError("DISAGREEMENT_THRESHOLD_SQFT must be positive")


# Singleton settings instance
settings = Settings()
