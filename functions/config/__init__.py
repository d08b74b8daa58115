"""RoofEstimate configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Secret access (environment / .env)
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import RoofEstimateError, BackendError, ConsensusError, ErrorCode
from config.secrets import get_secret, get_openai_api_key, get_property_data_api_key

__all__ = [
    "settings",
    "RoofEstimateError",
    "BackendError",
    "ConsensusError",
    "ErrorCode",
    "get_secret",
    "get_openai_api_key",
    "get_property_data_api_key",
]
