"""Analysis backend response models for RoofEstimate.

Strict parse step for the JSON returned by the image-analysis and
structural-analysis backends. Missing required fields raise instead of
flowing into consensus math as holes.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from models.roof import FacetType, Measurements, normalize_pitch


def normalize_unit_score(value: float) -> float:
    """Scale a 0-100 score down to 0-1; values already in 0-1 pass through.

    Backends report confidence on a 75-95 scale and complexity on a
    1-100 scale, so anything above 1 is read as a percentage.
    """
    if value > 1:
        return value / 100
    return value


class AnalysisFacet(BaseModel):
    """Facet as reported by a backend.

    Area is not required to be positive here; estimators discard
    degenerate facets before building Facet objects.
    """

    id: str = Field(min_length=1, description="Backend facet identifier")
    polygon: List[Tuple[float, float]] = Field(min_length=3, description="Outline points")
    area: float = Field(description="Area in square feet")
    pitch: str = Field(description="Pitch normalized over a 12 run")
    type: FacetType = Field(description="Facet kind")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence (0-1)")
    notes: Optional[str] = Field(default=None, description="Backend observations")

    class Config:
        frozen = True
        use_enum_values = True

    @field_validator("pitch", mode="before")
    @classmethod
    def validate_pitch(cls, v):
        return normalize_pitch(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def scale_confidence(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return normalize_unit_score(v)
        return v


class AnalysisReportSummary(BaseModel):
    """Backend-reported summary figures."""

    roof_complexity_score: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        alias="roofComplexityScore",
        description="Roof complexity (0-1)"
    )
    average_pitch: Optional[str] = Field(
        default=None,
        alias="averagePitch",
        description="Average pitch as reported"
    )
    total_perimeter: Optional[float] = Field(
        default=None,
        ge=0,
        alias="totalPerimeter",
        description="Roof perimeter (ft)"
    )

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("roof_complexity_score", mode="before")
    @classmethod
    def scale_complexity(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return normalize_unit_score(v)
        return v


class RoofAnalysis(BaseModel):
    """A parsed backend analysis.

    Shared by both backends; only the request context differs.
    """

    total_area: float = Field(
        gt=0,
        allow_inf_nan=False,
        alias="totalArea",
        description="Total roof area (sq ft)"
    )
    facets: List[AnalysisFacet] = Field(description="Per-facet breakdown")
    measurements: Measurements = Field(description="Linear measurements (ft)")
    confidence: float = Field(ge=0.0, le=1.0, description="Backend confidence (0-1)")
    property_details: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="propertyDetails",
        description="Stories, chimneys, skylights and similar details"
    )
    report_summary: Optional[AnalysisReportSummary] = Field(
        default=None,
        alias="reportSummary",
        description="Backend summary figures"
    )

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("confidence", mode="before")
    @classmethod
    def scale_confidence(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return normalize_unit_score(v)
        return v

    @property
    def complexity_score(self) -> Optional[float]:
        """Reported roof-complexity score, if any."""
        if self.report_summary is None:
            return None
        return self.report_summary.roof_complexity_score
