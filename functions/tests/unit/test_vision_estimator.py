"""Unit tests for the vision estimator."""

import copy

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import BackendError, ErrorCode
from estimators.vision_estimator import VisionEstimator
from models.inputs import VisionInput
from services.roof_analysis_service import RoofAnalysisService, parse_analysis
from tests.fixtures.mock_backend_data import VISION_RESPONSE


def _service_returning(payload):
    service = MagicMock(spec=RoofAnalysisService)
    service.analyze_image = AsyncMock(return_value=parse_analysis("vision", payload))
    return service


def _extra_facets(count, start=0):
    return [
        {
            "id": f"extra-{start + i}",
            "polygon": [[0, 0], [5, 0], [5, 5]],
            "area": 50,
            "pitch": "6/12",
            "type": "wing",
            "confidence": 0.6,
        }
        for i in range(count)
    ]


@pytest.fixture
def clear_afternoon():
    return VisionInput(
        address="42 Elm St",
        image_quality=0.85,
        season="summer",
        time_of_day="afternoon"
    )


class TestVisionEstimator:
    """Tests for VisionEstimator.predict."""

    @pytest.mark.asyncio
    async def test_clear_afternoon_has_no_risk_factors(self, mock_analysis_service, clear_afternoon):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)

        estimate = await estimator.predict(clear_afternoon)

        assert estimate.estimate == 2400
        assert estimate.model_version == "vision-v2.1"
        assert estimate.uncertainty == 0
        assert estimate.uncertainty_analysis.risk_factors == []
        assert estimate.uncertainty_analysis.needs_verification is False
        assert estimate.uncertainty_analysis.confidence_range.min == pytest.approx(2400)
        assert estimate.confidence == pytest.approx(0.8 * 0.85)
        mock_analysis_service.analyze_image.assert_awaited_once_with(clear_afternoon)

    @pytest.mark.asyncio
    async def test_reasoning(self, mock_analysis_service, clear_afternoon):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)

        estimate = await estimator.predict(clear_afternoon)

        assert estimate.reasoning == [
            "Analyzed satellite imagery for 42 Elm St",
            "Detected 3 roof facets",
            "High-quality satellite imagery provides clear roof boundaries",
            "Vision model confidence: 68%",
        ]

    @pytest.mark.asyncio
    async def test_poor_winter_morning_capture(self, mock_analysis_service):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)
        vision_input = VisionInput(
            address="42 Elm St",
            image_quality=0.5,
            season="winter",
            time_of_day="morning"
        )

        estimate = await estimator.predict(vision_input)

        analysis = estimate.uncertainty_analysis
        assert analysis.variance == pytest.approx(0.55)
        assert analysis.risk_factors == [
            "Poor satellite image quality",
            "Winter imagery may have snow/shadow issues",
            "Long shadows may affect measurement accuracy",
        ]
        assert analysis.needs_verification is True
        # half-width 0.55 * 0.4 = 0.22
        assert analysis.confidence_range.min == pytest.approx(2400 * 0.78)
        assert analysis.confidence_range.max == pytest.approx(2400 * 1.22)
        assert estimate.confidence == pytest.approx(0.4)
        assert "Identified 3 uncertainty factors" in estimate.reasoning

    @pytest.mark.asyncio
    async def test_unknown_quality_does_not_penalize(self, mock_analysis_service):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)

        estimate = await estimator.predict(VisionInput(address="42 Elm St", time_of_day="afternoon"))

        assert estimate.uncertainty == 0
        assert estimate.confidence == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_many_facets_and_complexity(self):
        payload = copy.deepcopy(VISION_RESPONSE)
        payload["facets"].extend(_extra_facets(6))
        payload["reportSummary"]["roofComplexityScore"] = 0.9
        estimator = VisionEstimator(analysis_service=_service_returning(payload))

        estimate = await estimator.predict(VisionInput(address="42 Elm St", image_quality=1.0))

        assert estimate.facet_count == 9
        assert "Complex roof structure with many facets" in estimate.uncertainty_analysis.risk_factors
        assert estimate.uncertainty == pytest.approx(0.2)
        assert estimate.confidence == pytest.approx(0.8 * 0.9 * 0.85)
        assert "Complex roof structure detected - recommend professional verification" in estimate.reasoning

    @pytest.mark.asyncio
    async def test_confidence_floor(self):
        payload = copy.deepcopy(VISION_RESPONSE)
        payload["reportSummary"]["roofComplexityScore"] = 0.95
        estimator = VisionEstimator(analysis_service=_service_returning(payload))

        estimate = await estimator.predict(VisionInput(address="42 Elm St", image_quality=0.3))

        assert estimate.confidence == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_interval_half_width_is_capped(self):
        payload = copy.deepcopy(VISION_RESPONSE)
        payload["facets"].extend(_extra_facets(6))
        estimator = VisionEstimator(analysis_service=_service_returning(payload))
        vision_input = VisionInput(
            address="42 Elm St",
            image_quality=0.2,
            season="winter",
            time_of_day="evening"
        )

        estimate = await estimator.predict(vision_input)

        # score 0.75 * 0.4 = 0.3, at the cap
        assert estimate.uncertainty == pytest.approx(0.75)
        assert estimate.uncertainty_analysis.confidence_range.max == pytest.approx(2400 * 1.3)

    @pytest.mark.asyncio
    async def test_facet_confidence_adjusted_by_type(self, mock_analysis_service, clear_afternoon):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)

        estimate = await estimator.predict(clear_afternoon)

        by_id = {f.id: f for f in estimate.facets}
        assert by_id["front-main"].confidence == pytest.approx(0.85 * 1.1)
        assert by_id["rear-main"].confidence == pytest.approx(0.8 * 1.1)
        assert by_id["front-dormer"].confidence == pytest.approx(0.7 * 0.9)
        assert by_id["rear-main"].pitch == "6/12"

    @pytest.mark.asyncio
    async def test_facet_confidence_clamped(self):
        payload = copy.deepcopy(VISION_RESPONSE)
        payload["facets"][0]["confidence"] = 0.95
        estimator = VisionEstimator(analysis_service=_service_returning(payload))

        estimate = await estimator.predict(VisionInput(address="42 Elm St"))

        assert estimate.facets[0].confidence == 1.0

    @pytest.mark.asyncio
    async def test_degenerate_facets_discarded(self):
        payload = copy.deepcopy(VISION_RESPONSE)
        payload["facets"].append(dict(_extra_facets(1)[0], area=0))
        payload["facets"].append(dict(_extra_facets(1, start=1)[0], area=-20))
        estimator = VisionEstimator(analysis_service=_service_returning(payload))

        estimate = await estimator.predict(VisionInput(address="42 Elm St"))

        assert estimate.facet_count == 3
        assert estimate.reasoning[1] == "Discarded 2 facets with non-positive area"
        assert estimate.reasoning[2] == "Detected 3 roof facets"

    @pytest.mark.asyncio
    async def test_measurements_pass_through(self, mock_analysis_service, clear_afternoon):
        estimator = VisionEstimator(analysis_service=mock_analysis_service)

        estimate = await estimator.predict(clear_afternoon)

        assert estimate.measurements.ridges == 60
        assert estimate.measurements.drip_edge == 200

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self, clear_afternoon):
        service = MagicMock(spec=RoofAnalysisService)
        service.analyze_image = AsyncMock(side_effect=BackendError(
            estimator="vision",
            message="vision analysis backend failed: timeout"
        ))
        estimator = VisionEstimator(analysis_service=service)

        with pytest.raises(BackendError) as exc_info:
            await estimator.predict(clear_afternoon)

        assert exc_info.value.code == ErrorCode.BACKEND_ERROR
