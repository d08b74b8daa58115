"""Pytest configuration and shared fixtures for RoofEstimate tests."""

import os
import sys
from datetime import datetime
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (config/, models/, services/, estimators/, consensus/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from consensus...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """Mock LLMService."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key")
        service._client = mock_chat_openai
        return service


# ============================================================================
# Backend Mocks
# ============================================================================

@pytest.fixture
def mock_analysis_service():
    """Mock RoofAnalysisService returning parsed sample analyses."""
    from services.roof_analysis_service import RoofAnalysisService, parse_analysis
    from tests.fixtures.mock_backend_data import VISION_RESPONSE, GEOMETRY_RESPONSE

    service = MagicMock(spec=RoofAnalysisService)
    service.analyze_image = AsyncMock(return_value=parse_analysis("vision", VISION_RESPONSE))
    service.analyze_structure = AsyncMock(return_value=parse_analysis("geometry", GEOMETRY_RESPONSE))
    return service


@pytest.fixture
def mock_property_context_service():
    """Mock PropertyContextService with a full property record."""
    from services.property_context_service import PropertyContextService
    from tests.fixtures.mock_backend_data import SAMPLE_PROPERTY_CONTEXT

    service = MagicMock(spec=PropertyContextService)
    service.lookup = AsyncMock(return_value=SAMPLE_PROPERTY_CONTEXT)
    return service


@pytest.fixture
def empty_property_context_service():
    """Mock PropertyContextService for an unconfigured provider."""
    from services.property_context_service import PropertyContextService
    from models.inputs import PropertyContext

    service = MagicMock(spec=PropertyContextService)
    service.lookup = AsyncMock(return_value=PropertyContext())
    return service


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def sample_address():
    """Sample property address."""
    return "123 Main St, Springfield, IL 62701"


@pytest.fixture
def afternoon_clock():
    """Clock fixed at a summer afternoon."""
    return lambda: datetime(2025, 7, 15, 14, 30)


@pytest.fixture
def winter_morning_clock():
    """Clock fixed at a winter morning."""
    return lambda: datetime(2025, 1, 10, 8, 0)


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def mock_settings():
    """Pin settings for all tests."""
    from config.settings import settings

    with patch.multiple(
        settings,
        _openai_api_key="test-api-key",
        llm_model="gpt-4o",
        llm_temperature=0.1,
        analysis_max_tokens=3000,
        disagreement_threshold_sqft=100.0,
        property_data_url=None,
        prediction_cache_size=256,
        prediction_cache_ttl_seconds=86400.0,
        log_level="INFO",
    ):
        yield settings
