"""Estimator output models for RoofEstimate.

The common result shape every estimator produces, so the consensus engine
never needs to know which estimator produced which result.
"""

from typing import List

from pydantic import BaseModel, Field, model_validator

from models.roof import Facet, Measurements


class ConfidenceRange(BaseModel):
    """Low/high bounds around an area estimate, in square feet."""

    min: float = Field(description="Lower bound (sq ft)")
    max: float = Field(description="Upper bound (sq ft)")

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min > self.max:
            raise ValueError("confidence range min must not exceed max")
        return self

    @classmethod
    def around(cls, estimate: float, half_width: float) -> "ConfidenceRange":
        """Symmetric range of +/- half_width (fraction of estimate)."""
        return cls(min=estimate * (1 - half_width), max=estimate * (1 + half_width))


class UncertaintyAnalysis(BaseModel):
    """Derived uncertainty for an estimate.

    `variance` is an accumulated penalty score rather than a statistical
    variance; it drives the confidence-interval width and the verification
    flag.
    """

    variance: float = Field(ge=0.0, description="Accumulated uncertainty score")
    confidence_range: ConfidenceRange = Field(
        alias="confidenceRange",
        description="Area bounds implied by the variance"
    )
    risk_factors: List[str] = Field(
        default_factory=list,
        alias="riskFactors",
        description="Human-readable risk factors that contributed to the score"
    )
    needs_verification: bool = Field(
        default=False,
        alias="needsVerification",
        description="Whether a professional measurement is recommended"
    )

    class Config:
        frozen = True
        populate_by_name = True


class Estimate(BaseModel):
    """Per-estimator prediction.

    Produced fresh for each request and never persisted by the estimator.
    """

    estimate: float = Field(gt=0, allow_inf_nan=False, description="Total roof area (sq ft)")
    facets: List[Facet] = Field(default_factory=list, description="Per-facet breakdown")
    measurements: Measurements = Field(description="Linear measurements (ft)")
    confidence: float = Field(ge=0.0, le=1.0, description="Self-reported confidence (0-1)")
    uncertainty: float = Field(
        ge=0.0,
        le=1.0,
        description="Self-reported uncertainty (0-1, higher is less certain)"
    )
    uncertainty_analysis: UncertaintyAnalysis = Field(
        alias="uncertaintyAnalysis",
        description="Breakdown of the uncertainty score"
    )
    reasoning: List[str] = Field(default_factory=list, description="Human-readable trace")
    model_version: str = Field(alias="modelVersion", description="Estimator version tag")
    processing_time_ms: int = Field(
        default=0,
        alias="processingTimeMs",
        ge=0,
        description="Wall-clock time spent producing the estimate"
    )

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def facet_count(self) -> int:
        return len(self.facets)
