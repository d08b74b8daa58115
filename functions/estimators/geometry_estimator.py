"""Geometry estimator for RoofEstimate.

Wraps the structural-analysis backend and applies geometry-specific
adjustments for footprint availability, building age, architectural
style and neighborhood comparison.
"""

from typing import Dict, List, Optional

from estimators.base_estimator import BaseEstimator
from models.analysis import AnalysisFacet, RoofAnalysis
from models.estimate import UncertaintyAnalysis
from models.inputs import GeometryInput
from models.roof import FacetType, Measurements
from services.roof_analysis_service import GEOMETRY_ESTIMATOR


# Uncertainty penalties
MISSING_FOOTPRINT_PENALTY = 0.2
MISSING_AGE_PENALTY = 0.1
HISTORIC_AGE_PENALTY = 0.15
MISSING_STYLE_PENALTY = 0.1
MISSING_NEIGHBORHOOD_PENALTY = 0.15
NEIGHBORHOOD_OUTLIER_PENALTY = 0.2
HIGH_COMPLEXITY_PENALTY = 0.25

HISTORIC_BEFORE_YEAR = 1950
TRADITIONAL_BEFORE_YEAR = 1990

# Relative deviation from the neighborhood average roof area
NEIGHBORHOOD_CONSISTENT = 0.2
NEIGHBORHOOD_OUTLIER = 0.5

HIGH_COMPLEXITY_SCORE = 0.8
SIMPLE_COMPLEXITY_SCORE = 0.5

# Confidence interval: half-width of score * 0.3, at most 25% of the estimate
INTERVAL_SPREAD = 0.3
MAX_INTERVAL_HALF_WIDTH = 0.25
VERIFICATION_THRESHOLD = 0.35

# Confidence
BASE_CONFIDENCE = 0.85
FOOTPRINT_FACTOR = 1.1
NO_FOOTPRINT_FACTOR = 0.8
KNOWN_ATTRIBUTE_FACTOR = 1.05
NEIGHBORHOOD_CONSISTENT_FACTOR = 1.1
NEIGHBORHOOD_OUTLIER_FACTOR = 0.8
SIMPLE_STRUCTURE_FACTOR = 1.05
MIN_CONFIDENCE = 0.4
MAX_CONFIDENCE = 1.0

# Facet plausibility
LARGE_MAIN_FACET_AREA = 800
LARGE_MAIN_FACET_FACTOR = 1.1
LARGE_DORMER_AREA = 300
LARGE_DORMER_FACTOR = 0.9

# Linear measurement multipliers by architectural style (keys lowercase).
# Styles without an entry pass measurements through unchanged.
STYLE_MEASUREMENT_MULTIPLIERS: Dict[str, Dict[str, float]] = {
    "victorian": {"ridges": 1.2, "valleys": 1.3, "hips": 0.8},
    "ranch": {"ridges": 0.8, "valleys": 0.7, "eaves": 1.1},
}


def style_multipliers(style: Optional[str]) -> Optional[Dict[str, float]]:
    """Look up measurement multipliers for a style, case-insensitively."""
    if not style:
        return None
    return STYLE_MEASUREMENT_MULTIPLIERS.get(style.strip().lower())


def age_category(year_built: int) -> str:
    """Construction era for a build year."""
    if year_built < HISTORIC_BEFORE_YEAR:
        return "historic"
    if year_built < TRADITIONAL_BEFORE_YEAR:
        return "traditional"
    return "modern"


class GeometryEstimator(BaseEstimator):
    """Estimator backed by footprint and structural analysis."""

    name = GEOMETRY_ESTIMATOR
    model_version = "geometry-v2.1"

    async def _analyze(self, estimator_input: GeometryInput) -> RoofAnalysis:
        return await self.analysis_service.analyze_structure(estimator_input)

    def _assess_uncertainty(
        self,
        estimator_input: GeometryInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> UncertaintyAnalysis:
        risk_factors: List[str] = []
        score = 0.0

        if not estimator_input.footprint_data:
            risk_factors.append("No detailed footprint data available")
            score += MISSING_FOOTPRINT_PENALTY

        if estimator_input.building_age is None:
            risk_factors.append("Unknown building age affects structural assumptions")
            score += MISSING_AGE_PENALTY
        elif estimator_input.building_age < HISTORIC_BEFORE_YEAR:
            risk_factors.append("Older building - non-standard construction practices")
            score += HISTORIC_AGE_PENALTY

        if not estimator_input.architectural_style:
            risk_factors.append("Unknown architectural style")
            score += MISSING_STYLE_PENALTY

        neighborhood = estimator_input.neighborhood_context
        if neighborhood is None:
            risk_factors.append("No neighborhood context for validation")
            score += MISSING_NEIGHBORHOOD_PENALTY
        elif neighborhood.deviation(analysis.total_area) > NEIGHBORHOOD_OUTLIER:
            risk_factors.append("Significantly different from neighborhood average")
            score += NEIGHBORHOOD_OUTLIER_PENALTY

        complexity = analysis.complexity_score
        if complexity is not None and complexity > HIGH_COMPLEXITY_SCORE:
            risk_factors.append("Highly complex roof structure")
            score += HIGH_COMPLEXITY_PENALTY

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
        estimator_input: GeometryInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> float:
        confidence = BASE_CONFIDENCE

        if estimator_input.footprint_data:
            confidence *= FOOTPRINT_FACTOR
        else:
            confidence *= NO_FOOTPRINT_FACTOR

        if estimator_input.building_age is not None:
            confidence *= KNOWN_ATTRIBUTE_FACTOR

        if estimator_input.architectural_style:
            confidence *= KNOWN_ATTRIBUTE_FACTOR

        neighborhood = estimator_input.neighborhood_context
        if neighborhood is not None:
            deviation = neighborhood.deviation(analysis.total_area)
            if deviation < NEIGHBORHOOD_CONSISTENT:
                confidence *= NEIGHBORHOOD_CONSISTENT_FACTOR
            elif deviation > NEIGHBORHOOD_OUTLIER:
                confidence *= NEIGHBORHOOD_OUTLIER_FACTOR

        complexity = analysis.complexity_score
        if complexity is not None and complexity < SIMPLE_COMPLEXITY_SCORE:
            confidence *= SIMPLE_STRUCTURE_FACTOR

        return min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE)

    def _adjust_facet_confidence(self, facet: AnalysisFacet, estimator_input: GeometryInput) -> float:
        confidence = facet.confidence
        if facet.type == FacetType.MAIN.value and facet.area > LARGE_MAIN_FACET_AREA:
            confidence *= LARGE_MAIN_FACET_FACTOR
        if facet.type == FacetType.DORMER.value and facet.area > LARGE_DORMER_AREA:
            confidence *= LARGE_DORMER_FACTOR
        return confidence

    def _adjust_measurements(
        self,
        measurements: Measurements,
        estimator_input: GeometryInput
    ) -> Measurements:
        multipliers = style_multipliers(estimator_input.architectural_style)
        if multipliers is None:
            return measurements
        return measurements.scaled(multipliers)

    def _build_reasoning(
        self,
        estimator_input: GeometryInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet],
        uncertainty: UncertaintyAnalysis,
        confidence: float
    ) -> List[str]:
        reasoning = [f"Analyzed structural footprint for {estimator_input.address}"]

        style = estimator_input.architectural_style
        if style:
            if style_multipliers(style) is not None:
                reasoning.append(f"Applied {style} architectural style adjustments")
            else:
                reasoning.append(f"{style} architectural style has no measurement adjustments")

        if estimator_input.building_age is not None:
            category = age_category(estimator_input.building_age)
            reasoning.append(f"Building age suggests {category} construction methods")

        neighborhood = estimator_input.neighborhood_context
        if neighborhood is not None:
            deviation = neighborhood.deviation(analysis.total_area)
            if deviation < NEIGHBORHOOD_CONSISTENT:
                reasoning.append("Roof area consistent with neighborhood patterns")
            else:
                degree = "significantly" if deviation > NEIGHBORHOOD_OUTLIER else "moderately"
                reasoning.append(f"Roof area {degree} different from neighborhood average")

        reasoning.append(f"Detected {len(facets)} geometric sections")

        if uncertainty.risk_factors:
            reasoning.append(f"Identified {len(uncertainty.risk_factors)} geometric uncertainty factors")

        reasoning.append(f"Geometry model confidence: {round(confidence * 100)}%")
        return reasoning
