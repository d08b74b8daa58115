"""Consensus result models for RoofEstimate.

The final artifact returned by ConsensusEngine.predict, plus the
observability counters the engine keeps across calls.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.estimate import UncertaintyAnalysis
from models.roof import Facet, Measurements


class ConfidenceLevel(str, Enum):
    """Three-level consensus confidence label."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LearningPriority(str, Enum):
    """Urgency of a verification recommendation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LearningFlag(BaseModel):
    """Recommendation that a professional measurement be obtained."""

    priority: LearningPriority = Field(description="Urgency of the recommendation")
    reason: str = Field(description="Why verification is recommended")
    suggested_action: str = Field(alias="suggestedAction", description="What the user should do")

    class Config:
        frozen = True
        populate_by_name = True
        use_enum_values = True


class AreaByPitch(BaseModel):
    """Roof area sharing one pitch."""

    pitch: str = Field(description="Pitch over a 12 run")
    area: float = Field(ge=0, description="Summed facet area (sq ft)")
    squares: int = Field(ge=0, description="Area in roofing squares (100 sq ft)")
    percentage: int = Field(ge=0, le=100, description="Share of total facet area (%)")
    facet_count: int = Field(default=0, ge=0, alias="facetCount", description="Facets with this pitch")

    class Config:
        frozen = True
        populate_by_name = True


class ReportSummary(BaseModel):
    """Summary figures derived from the merged facets."""

    average_pitch: str = Field(alias="averagePitch", description="Area-weighted pitch")
    roof_complexity_score: float = Field(
        ge=0.0,
        le=1.0,
        alias="roofComplexityScore",
        description="Complexity from facet count (0-1)"
    )

    class Config:
        frozen = True
        populate_by_name = True


class DualModelInsights(BaseModel):
    """How the two estimators contributed and where they disagreed."""

    vision_model_strength: float = Field(
        ge=0.0,
        le=1.0,
        alias="visionModelStrength",
        description="Normalized vision weight"
    )
    geometry_model_strength: float = Field(
        ge=0.0,
        le=1.0,
        alias="geometryModelStrength",
        description="Normalized geometry weight"
    )
    conflict_areas: List[str] = Field(
        default_factory=list,
        alias="conflictAreas",
        description="Aspects the estimators disagree on"
    )
    learning_opportunities: List[str] = Field(
        default_factory=list,
        alias="learningOpportunities",
        description="Where a verified measurement would help most"
    )

    class Config:
        frozen = True
        populate_by_name = True


class QualityChecks(BaseModel):
    """Sanity checks run over a finished prediction."""

    physically_possible: bool = Field(
        alias="physicallyPossible",
        description="Area within the residential range and squares consistent with it"
    )
    internal_consistency: bool = Field(
        alias="internalConsistency",
        description="Facet areas sum to within 15% of the total area"
    )
    outlier_detected: bool = Field(
        alias="outlierDetected",
        description="Area is suspicious for its confidence or its neighborhood"
    )
    confidence_calibration: float = Field(
        ge=0.0,
        le=1.0,
        alias="confidenceCalibration",
        description="Prediction confidence discounted for complex roofs"
    )
    validation_notes: List[str] = Field(
        default_factory=list,
        alias="validationNotes",
        description="One note per failed check; empty when all pass"
    )

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def passed(self) -> bool:
        return not self.validation_notes


class FinalPrediction(BaseModel):
    """Merged roof geometry."""

    facets: List[Facet] = Field(min_length=1, description="Merged facets, never empty")
    total_area: float = Field(gt=0, alias="totalArea", description="Consensus area (sq ft)")
    squares: int = Field(ge=0, description="Consensus area in roofing squares")
    measurements: Measurements = Field(description="Averaged linear measurements (ft)")
    predominant_pitch: str = Field(alias="predominantPitch", description="Pitch covering the most area")
    waste_factor: float = Field(ge=0, alias="wasteFactor", description="Waste allowance (sq ft)")
    confidence: float = Field(ge=0.0, le=1.0, description="Mean estimator confidence")
    areas_by_pitch: List[AreaByPitch] = Field(alias="areasByPitch", description="Area per pitch")
    report_summary: ReportSummary = Field(alias="reportSummary", description="Summary figures")
    uncertainty_analysis: UncertaintyAnalysis = Field(
        alias="uncertaintyAnalysis",
        description="Combined uncertainty"
    )
    dual_model_insights: DualModelInsights = Field(
        alias="dualModelInsights",
        description="Estimator contribution and conflicts"
    )
    quality_checks: Optional[QualityChecks] = Field(
        default=None,
        alias="qualityChecks",
        description="Sanity checks, attached once the prediction is assembled"
    )

    class Config:
        frozen = True
        populate_by_name = True


class ConsensusResult(BaseModel):
    """Reconciled prediction handed to the caller.

    Contains no timestamps or generated ids, so identical estimator
    outputs always produce an identical result.
    """

    estimate: float = Field(gt=0, description="Weighted consensus area (sq ft)")
    confidence: ConfidenceLevel = Field(description="Three-level confidence label")
    model_agreement: float = Field(
        ge=0.0,
        le=1.0,
        alias="modelAgreement",
        description="1 - relative disagreement, clamped to [0, 1]"
    )
    final_prediction: FinalPrediction = Field(alias="finalPrediction", description="Merged geometry")
    reasoning: str = Field(description="Human-readable summary")
    learning_flag: Optional[LearningFlag] = Field(
        default=None,
        alias="learningFlag",
        description="Verification recommendation, if any"
    )

    class Config:
        frozen = True
        populate_by_name = True
        use_enum_values = True


class LearningMetrics(BaseModel):
    """Process-lifetime prediction counters."""

    total_predictions: int = Field(default=0, ge=0, alias="totalPredictions")
    strong_agreements: int = Field(
        default=0,
        ge=0,
        alias="strongAgreements",
        description="Predictions with model agreement above 0.9"
    )
    conflicts: int = Field(
        default=0,
        ge=0,
        description="Predictions with model agreement below 0.8"
    )
    failures: int = Field(default=0, ge=0, description="Predictions that raised")
    average_processing_time_ms: float = Field(
        default=0.0,
        ge=0,
        alias="averageProcessingTimeMs",
        description="Running mean over successful predictions"
    )

    class Config:
        populate_by_name = True
