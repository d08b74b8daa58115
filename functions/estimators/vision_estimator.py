"""Vision estimator for RoofEstimate.

Wraps the image-analysis backend and applies vision-specific adjustments
for image quality, lighting, season and roof complexity.
"""

from typing import List

from estimators.base_estimator import BaseEstimator
from models.analysis import AnalysisFacet, RoofAnalysis
from models.estimate import UncertaintyAnalysis
from models.inputs import Season, TimeOfDay, VisionInput
from models.roof import FacetType
from services.roof_analysis_service import VISION_ESTIMATOR


# Uncertainty penalties
POOR_IMAGE_QUALITY_THRESHOLD = 0.7
POOR_IMAGE_QUALITY_PENALTY = 0.3
WINTER_PENALTY = 0.1
SHADOW_PENALTY = 0.15
MANY_FACETS_THRESHOLD = 8
MANY_FACETS_PENALTY = 0.2

# Confidence interval: half-width of score * 0.4, at most 30% of the estimate
INTERVAL_SPREAD = 0.4
MAX_INTERVAL_HALF_WIDTH = 0.3
VERIFICATION_THRESHOLD = 0.4

# Confidence
BASE_CONFIDENCE = 0.8
COMPLEX_FACET_COUNT = 6
COMPLEX_FACET_FACTOR = 0.9
HIGH_COMPLEXITY_SCORE = 0.8
HIGH_COMPLEXITY_FACTOR = 0.85
MIN_CONFIDENCE = 0.3

HIGH_IMAGE_QUALITY = 0.8
COMPLEXITY_WARNING_SCORE = 0.7

# Main roof planes are the easiest to see from overhead; dormers the hardest
FACET_CONFIDENCE_FACTORS = {
    FacetType.MAIN.value: 1.1,
    FacetType.DORMER.value: 0.9,
}


class VisionEstimator(BaseEstimator):
    """Estimator backed by overhead imagery analysis."""

    name = VISION_ESTIMATOR
    model_version = "vision-v2.1"

    async def _analyze(self, estimator_input: VisionInput) -> RoofAnalysis:
        return await self.analysis_service.analyze_image(estimator_input)

    def _assess_uncertainty(
        self,
        estimator_input: VisionInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> UncertaintyAnalysis:
        risk_factors: List[str] = []
        score = 0.0

        quality = estimator_input.image_quality
        if quality is not None and quality < POOR_IMAGE_QUALITY_THRESHOLD:
            risk_factors.append("Poor satellite image quality")
            score += POOR_IMAGE_QUALITY_PENALTY

        if estimator_input.season == Season.WINTER:
            risk_factors.append("Winter imagery may have snow/shadow issues")
            score += WINTER_PENALTY

        if estimator_input.time_of_day in (TimeOfDay.MORNING, TimeOfDay.EVENING):
            risk_factors.append("Long shadows may affect measurement accuracy")
            score += SHADOW_PENALTY

        if len(facets) > MANY_FACETS_THRESHOLD:
            risk_factors.append("Complex roof structure with many facets")
            score += MANY_FACETS_PENALTY

        return self._uncertainty_analysis(
            score,
            risk_factors,
            analysis.total_area,
            spread=INTERVAL_SPREAD,
            max_half_width=MAX_INTERVAL_HALF_WIDTH,
            verification_threshold=VERIFICATION_THRESHOLD
        )

    def _calculate_confidence(
        self,
        estimator_input: VisionInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> float:
        confidence = BASE_CONFIDENCE

        if estimator_input.image_quality is not None:
            confidence *= estimator_input.image_quality

        if len(facets) > COMPLEX_FACET_COUNT:
            confidence *= COMPLEX_FACET_FACTOR

        complexity = analysis.complexity_score
        if complexity is not None and complexity > HIGH_COMPLEXITY_SCORE:
            confidence *= HIGH_COMPLEXITY_FACTOR

        return max(confidence, MIN_CONFIDENCE)

    def _adjust_facet_confidence(self, facet: AnalysisFacet, estimator_input: VisionInput) -> float:
        return facet.confidence * FACET_CONFIDENCE_FACTORS.get(facet.type, 1.0)

    def _build_reasoning(
        self,
        estimator_input: VisionInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet],
        uncertainty: UncertaintyAnalysis,
        confidence: float
    ) -> List[str]:
        reasoning = [
            f"Analyzed satellite imagery for {estimator_input.address}",
            f"Detected {len(facets)} roof facets",
        ]

        if estimator_input.image_quality is not None and estimator_input.image_quality > HIGH_IMAGE_QUALITY:
            reasoning.append("High-quality satellite imagery provides clear roof boundaries")

        if uncertainty.risk_factors:
            reasoning.append(f"Identified {len(uncertainty.risk_factors)} uncertainty factors")

        complexity = analysis.complexity_score
        if complexity is not None and complexity > COMPLEXITY_WARNING_SCORE:
            reasoning.append("Complex roof structure detected - recommend professional verification")

        reasoning.append(f"Vision model confidence: {round(confidence * 100)}%")
        return reasoning
