"""Mock backend data fixtures for testing.

Provides sample analysis-backend responses, property context, and
builders for Estimates and Facets used by the reconciliation tests.
"""

from typing import Any, Dict, List, Optional

from models.estimate import ConfidenceRange, Estimate, UncertaintyAnalysis
from models.inputs import Coordinates, GeometryInput, NeighborhoodContext, PropertyContext, VisionInput
from models.roof import Facet, Measurements


# =============================================================================
# IMAGE-ANALYSIS BACKEND RESPONSE (percent-scaled confidence, 1-100 complexity)
# =============================================================================

VISION_RESPONSE: Dict[str, Any] = {
    "totalArea": 2400,
    "squares": 24,
    "confidence": 88,
    "facets": [
        {
            "id": "front-main",
            "polygon": [[0, 0], [60, 0], [60, 20], [0, 20]],
            "area": 1200,
            "pitch": "6/12",
            "type": "main",
            "confidence": 0.85,
            "notes": "South-facing main plane"
        },
        {
            "id": "rear-main",
            "polygon": [[0, 20], [60, 20], [60, 40], [0, 40]],
            "area": 1000,
            "pitch": "6:12",
            "type": "main",
            "confidence": 0.8
        },
        {
            "id": "front-dormer",
            "polygon": [[10, 5], [20, 5], [15, 15]],
            "area": 200,
            "pitch": "8/12",
            "type": "dormer",
            "confidence": 0.7
        }
    ],
    "measurements": {
        "ridges": 60,
        "valleys": 20,
        "hips": 0,
        "rakes": 80,
        "eaves": 120,
        "gutters": 115,
        "stepFlashing": 12,
        "drip": 200
    },
    "propertyDetails": {
        "stories": 2,
        "chimneys": 1,
        "skylights": 0,
        "vents": 4
    },
    "reportSummary": {
        "totalPerimeter": 200,
        "averagePitch": "6/12",
        "roofComplexityScore": 45
    }
}


# =============================================================================
# STRUCTURAL-ANALYSIS BACKEND RESPONSE (0-1 scaled)
# =============================================================================

GEOMETRY_RESPONSE: Dict[str, Any] = {
    "totalArea": 2300,
    "confidence": 0.82,
    "facets": [
        {
            "id": "main-roof",
            "polygon": [[0, 0], [58, 0], [58, 38], [0, 38]],
            "area": 2100,
            "pitch": "6/12",
            "type": "main",
            "confidence": 0.9
        },
        {
            "id": "garage-roof",
            "polygon": [[60, 0], [80, 0], [80, 10], [60, 10]],
            "area": 200,
            "pitch": "4/12",
            "type": "garage",
            "confidence": 0.75
        }
    ],
    "measurements": {
        "ridges": 50,
        "valleys": 10,
        "hips": 20,
        "rakes": 70,
        "eaves": 110
    },
    "reportSummary": {
        "roofComplexityScore": 0.3
    }
}


# =============================================================================
# PROPERTY CONTEXT
# =============================================================================

SAMPLE_NEIGHBORHOOD = NeighborhoodContext(
    average_roof_area=2200,
    common_pitches=["6/12", "8/12"],
    typical_complexity=0.6,
    sample_size=12
)

SAMPLE_PROPERTY_CONTEXT = PropertyContext(
    coordinates=Coordinates(lat=39.7817, lng=-89.6501),
    footprint_data="Rectangular footprint 58 x 38 ft with attached garage",
    building_age=1985,
    architectural_style="Colonial",
    neighborhood_context=SAMPLE_NEIGHBORHOOD
)


# =============================================================================
# BUILDERS
# =============================================================================

DEFAULT_MEASUREMENTS = Measurements(
    ridges=50, valleys=10, hips=0, rakes=70, eaves=110,
    gutters=100, step_flashing=10, drip_edge=180
)


def make_facet(
    facet_id: str,
    area: float,
    facet_type: str = "main",
    pitch: str = "6/12",
    confidence: float = 0.8,
    polygon: Optional[List] = None
) -> Facet:
    """Build a Facet with a square-ish default outline."""
    return Facet(
        id=facet_id,
        polygon=polygon or [(0, 0), (10, 0), (10, 10), (0, 10)],
        area=area,
        pitch=pitch,
        type=facet_type,
        confidence=confidence
    )


def make_estimate(
    estimate: float,
    confidence: float = 0.9,
    uncertainty: float = 0.1,
    facets: Optional[List[Facet]] = None,
    measurements: Optional[Measurements] = None,
    risk_factors: Optional[List[str]] = None,
    model_version: str = "test-v1"
) -> Estimate:
    """Build an Estimate with a consistent uncertainty analysis."""
    return Estimate(
        estimate=estimate,
        facets=facets if facets is not None else [],
        measurements=measurements or DEFAULT_MEASUREMENTS,
        confidence=confidence,
        uncertainty=uncertainty,
        uncertainty_analysis=UncertaintyAnalysis(
            variance=uncertainty,
            confidence_range=ConfidenceRange.around(estimate, min(uncertainty * 0.3, 0.25)),
            risk_factors=risk_factors or [],
            needs_verification=uncertainty > 0.4
        ),
        reasoning=[f"Test estimate of {estimate} sq ft"],
        model_version=model_version,
        processing_time_ms=5
    )


def plain_vision_input(address: str = "1 Test Way", **overrides) -> VisionInput:
    """Vision input with no weight bonuses (no quality, morning capture)."""
    values = {"address": address, "image_quality": None, "time_of_day": "morning", "season": "spring"}
    values.update(overrides)
    return VisionInput(**values)


def plain_geometry_input(address: str = "1 Test Way", **overrides) -> GeometryInput:
    """Geometry input with no weight bonuses."""
    values = {"address": address}
    values.update(overrides)
    return GeometryInput(**values)
