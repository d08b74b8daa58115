"""Unit tests for the roof analysis backends."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import BackendError, ErrorCode, RoofEstimateError
from models.inputs import GeometryInput, VisionInput
from services.roof_analysis_service import RoofAnalysisService, parse_analysis
from tests.fixtures.mock_backend_data import (
    GEOMETRY_RESPONSE,
    SAMPLE_NEIGHBORHOOD,
    VISION_RESPONSE,
)


@pytest.fixture
def json_llm():
    """LLM service mock whose generate_json returns the vision response."""
    llm = MagicMock()
    llm.generate_json = AsyncMock(return_value={"content": VISION_RESPONSE, "tokens_used": 500})
    return llm


class TestAnalyzeImage:
    """Tests for the image-analysis backend."""

    @pytest.mark.asyncio
    async def test_returns_parsed_analysis(self, json_llm):
        service = RoofAnalysisService(llm_service=json_llm)
        vision_input = VisionInput(address="1 Oak Ln", image_quality=0.85, time_of_day="afternoon")

        analysis = await service.analyze_image(vision_input)

        assert analysis.total_area == 2400
        assert len(analysis.facets) == 3
        assert analysis.confidence == pytest.approx(0.88)

    @pytest.mark.asyncio
    async def test_sends_image_and_context(self, json_llm):
        service = RoofAnalysisService(llm_service=json_llm, max_tokens=1234)
        vision_input = VisionInput(
            address="1 Oak Ln",
            image_data="data:image/png;base64,AAAA",
            season="winter"
        )

        await service.analyze_image(vision_input)

        args, kwargs = json_llm.generate_json.call_args
        assert kwargs["image_url"] == "data:image/png;base64,AAAA"
        assert kwargs["max_tokens"] == 1234
        assert "1 Oak Ln" in args[1]
        assert '"season": "winter"' in args[1]

    @pytest.mark.asyncio
    async def test_notes_missing_image(self, json_llm):
        service = RoofAnalysisService(llm_service=json_llm)

        await service.analyze_image(VisionInput(address="1 Oak Ln"))

        args, kwargs = json_llm.generate_json.call_args
        assert kwargs["image_url"] is None
        assert "No image is attached" in args[1]

    @pytest.mark.asyncio
    async def test_llm_failure_becomes_backend_error(self):
        llm = MagicMock()
        llm.generate_json = AsyncMock(side_effect=RoofEstimateError(
            code=ErrorCode.LLM_RATE_LIMIT,
            message="OpenAI rate limit exceeded"
        ))
        service = RoofAnalysisService(llm_service=llm)

        with pytest.raises(BackendError) as exc_info:
            await service.analyze_image(VisionInput(address="1 Oak Ln"))

        assert exc_info.value.estimator == "vision"
        assert exc_info.value.code == ErrorCode.BACKEND_ERROR
        assert exc_info.value.details["cause_code"] == ErrorCode.LLM_RATE_LIMIT
        assert isinstance(exc_info.value.__cause__, RoofEstimateError)


class TestAnalyzeStructure:
    """Tests for the structural-analysis backend."""

    @pytest.mark.asyncio
    async def test_sends_building_context(self):
        llm = MagicMock()
        llm.generate_json = AsyncMock(return_value={"content": GEOMETRY_RESPONSE, "tokens_used": 400})
        service = RoofAnalysisService(llm_service=llm)
        geometry_input = GeometryInput(
            address="1 Oak Ln",
            footprint_data="40 x 30 ft rectangle",
            building_age=1925,
            architectural_style="Victorian",
            neighborhood_context=SAMPLE_NEIGHBORHOOD
        )

        analysis = await service.analyze_structure(geometry_input)

        args, kwargs = llm.generate_json.call_args
        message = args[1]
        assert "40 x 30 ft rectangle" in message
        assert '"age": 1925' in message
        assert '"style": "Victorian"' in message
        assert '"averageRoofArea": 2200' in message
        assert kwargs["image_url"] is None
        assert analysis.total_area == 2300

    @pytest.mark.asyncio
    async def test_unknown_footprint_is_stated(self):
        llm = MagicMock()
        llm.generate_json = AsyncMock(return_value={"content": GEOMETRY_RESPONSE, "tokens_used": 400})
        service = RoofAnalysisService(llm_service=llm)

        await service.analyze_structure(GeometryInput(address="1 Oak Ln"))

        message = llm.generate_json.call_args[0][1]
        assert "not available" in message
        assert '"neighborhood": null' in message


class TestParseAnalysis:
    """Tests for parse_analysis."""

    def test_rejects_non_object(self):
        with pytest.raises(BackendError) as exc_info:
            parse_analysis("geometry", [GEOMETRY_RESPONSE])

        assert exc_info.value.code == ErrorCode.BACKEND_INVALID_RESPONSE
        assert exc_info.value.estimator == "geometry"

    def test_schema_mismatch_lists_fields(self):
        payload = json.loads(json.dumps(GEOMETRY_RESPONSE))
        del payload["totalArea"]
        payload["facets"][0]["type"] = "porch"

        with pytest.raises(BackendError) as exc_info:
            parse_analysis("geometry", payload)

        fields = [e["field"] for e in exc_info.value.details["errors"]]
        assert "totalArea" in fields
        assert any(f.startswith("facets.0.type") for f in fields)

    def test_invalid_pitch_is_rejected(self):
        payload = json.loads(json.dumps(GEOMETRY_RESPONSE))
        payload["facets"][0]["pitch"] = "steep"

        with pytest.raises(BackendError):
            parse_analysis("geometry", payload)
