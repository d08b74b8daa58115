"""Base estimator for RoofEstimate.

Abstract base class for the roof-area estimators consumed by the
consensus engine. Every estimator produces the same Estimate shape.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple, Union
import math
import time
import structlog

from models.analysis import AnalysisFacet, RoofAnalysis
from models.estimate import ConfidenceRange, Estimate, UncertaintyAnalysis
from models.inputs import GeometryInput, VisionInput
from models.roof import Facet, Measurements
from services.roof_analysis_service import RoofAnalysisService

logger = structlog.get_logger()


EstimatorInput = Union[VisionInput, GeometryInput]


class BaseEstimator(ABC):
    """Abstract base class for estimators.

    Provides:
    - Timing and start/completion logging
    - Degenerate facet filtering
    - Estimate assembly from estimator-specific adjustments

    Subclasses must implement:
    - _analyze(estimator_input) - call the analysis backend
    - _assess_uncertainty(...) - accumulate the uncertainty score
    - _calculate_confidence(...) - estimator confidence (0-1)
    - _build_reasoning(...) - human-readable trace

    Backend failures surface as BackendError and are never replaced with
    default values.
    """

    name: str = "base"
    model_version: str = "base-v0"

    def __init__(self, analysis_service: Optional[RoofAnalysisService] = None):
        """Initialize BaseEstimator.

        Args:
            analysis_service: Optional backend client (created on first use if None).
        """
        self._analysis_service = analysis_service

    @property
    def analysis_service(self) -> RoofAnalysisService:
        """Get the analysis backend client (lazy initialization)."""
        if self._analysis_service is None:
            self._analysis_service = RoofAnalysisService()
        return self._analysis_service

    async def predict(self, estimator_input: EstimatorInput) -> Estimate:
        """Produce an Estimate for one address.

        Args:
            estimator_input: Estimator-specific input.

        Returns:
            Estimate built from the backend analysis.

        Raises:
            BackendError: If the backend call fails or returns unparseable content.
        """
        start_time = time.perf_counter()
        logger.info(
            "estimator_started",
            estimator=self.name,
            model_version=self.model_version,
            address=estimator_input.address
        )

        analysis = await self._analyze(estimator_input)

        facets, discarded = self._split_facets(analysis.facets)
        uncertainty = self._assess_uncertainty(estimator_input, analysis, facets)
        confidence = self._calculate_confidence(estimator_input, analysis, facets)
        reasoning = self._build_reasoning(estimator_input, analysis, facets, uncertainty, confidence)
        if discarded:
            reasoning.insert(1, f"Discarded {discarded} facets with non-positive area")

        estimate = Estimate(
            estimate=analysis.total_area,
            facets=self._adjust_facets(facets, estimator_input),
            measurements=self._adjust_measurements(analysis.measurements, estimator_input),
            confidence=confidence,
            uncertainty=min(uncertainty.variance, 1.0),
            uncertainty_analysis=uncertainty,
            reasoning=reasoning,
            model_version=self.model_version,
            processing_time_ms=int((time.perf_counter() - start_time) * 1000)
        )

        logger.info(
            "estimator_completed",
            estimator=self.name,
            estimate=round(estimate.estimate, 1),
            facet_count=estimate.facet_count,
            discarded_facets=discarded,
            confidence=round(estimate.confidence, 3),
            uncertainty=round(estimate.uncertainty, 3),
            duration_ms=estimate.processing_time_ms
        )
        return estimate

    @abstractmethod
    async def _analyze(self, estimator_input: EstimatorInput) -> RoofAnalysis:
        """Call this estimator's analysis backend."""
        pass

    @abstractmethod
    def _assess_uncertainty(
        self,
        estimator_input: EstimatorInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> UncertaintyAnalysis:
        pass

    @abstractmethod
    def _calculate_confidence(
        self,
        estimator_input: EstimatorInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet]
    ) -> float:
        pass

    @abstractmethod
    def _build_reasoning(
        self,
        estimator_input: EstimatorInput,
        analysis: RoofAnalysis,
        facets: List[AnalysisFacet],
        uncertainty: UncertaintyAnalysis,
        confidence: float
    ) -> List[str]:
        pass

    def _adjust_facet_confidence(self, facet: AnalysisFacet, estimator_input: EstimatorInput) -> float:
        """Estimator-specific facet confidence. Defaults to the backend value."""
        return facet.confidence

    def _adjust_facets(
        self,
        facets: List[AnalysisFacet],
        estimator_input: EstimatorInput
    ) -> List[Facet]:
        """Build immutable Facets with adjusted confidence, clamped to 1.0."""
        return [
            Facet(
                id=facet.id,
                polygon=facet.polygon,
                area=facet.area,
                pitch=facet.pitch,
                type=facet.type,
                confidence=min(self._adjust_facet_confidence(facet, estimator_input), 1.0)
            )
            for facet in facets
        ]

    def _adjust_measurements(
        self,
        measurements: Measurements,
        estimator_input: EstimatorInput
    ) -> Measurements:
        """Estimator-specific measurement adjustments. Defaults to pass-through."""
        return measurements

    @staticmethod
    def _split_facets(facets: List[AnalysisFacet]) -> Tuple[List[AnalysisFacet], int]:
        """Drop facets whose area is non-positive or not finite.

        Returns:
            Kept facets and the number discarded.
        """
        kept = [f for f in facets if math.isfinite(f.area) and f.area > 0]
        return kept, len(facets) - len(kept)

    @staticmethod
    def _uncertainty_analysis(
        score: float,
        risk_factors: List[str],
        base_area: float,
        spread: float,
        max_half_width: float,
        verification_threshold: float
    ) -> UncertaintyAnalysis:
        """Turn an accumulated score into an UncertaintyAnalysis.

        Args:
            score: Accumulated uncertainty score.
            risk_factors: Factors that contributed to the score.
            base_area: Estimate the confidence range is centered on.
            spread: Interval half-width per unit of score.
            max_half_width: Cap on the half-width (fraction of base_area).
            verification_threshold: Score above which verification is needed.
        """
        half_width = min(score * spread, max_half_width)
        return UncertaintyAnalysis(
            variance=score,
            confidence_range=ConfidenceRange.around(base_area, half_width),
            risk_factors=risk_factors,
            needs_verification=score > verification_threshold
        )
