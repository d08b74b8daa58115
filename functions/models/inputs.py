"""Estimator input models for RoofEstimate.

Vision and geometry estimators take different inputs; both are built by
the consensus engine's input builder for every prediction.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Season(str, Enum):
    """Season the imagery was captured in."""

    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


class TimeOfDay(str, Enum):
    """Capture time bucket, used as a lighting/shadow proxy."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Coordinates(BaseModel):
    """Latitude/longitude pair."""

    lat: float = Field(ge=-90, le=90, description="Latitude")
    lng: float = Field(ge=-180, le=180, description="Longitude")

    class Config:
        frozen = True


class NeighborhoodContext(BaseModel):
    """Roof statistics for comparable nearby properties."""

    average_roof_area: float = Field(
        gt=0,
        alias="averageRoofArea",
        description="Mean roof area of nearby properties (sq ft)"
    )
    common_pitches: List[str] = Field(
        default_factory=list,
        alias="commonPitches",
        description="Most common pitches nearby"
    )
    typical_complexity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        alias="typicalComplexity",
        description="Typical roof complexity score (0-1)"
    )
    sample_size: Optional[int] = Field(
        default=None,
        ge=0,
        alias="sampleSize",
        description="Number of properties the statistics were computed from"
    )

    class Config:
        frozen = True
        populate_by_name = True

    def deviation(self, area: float) -> float:
        """Relative deviation of `area` from the neighborhood average."""
        return abs(area - self.average_roof_area) / self.average_roof_area


class VisionInput(BaseModel):
    """Input to the vision estimator."""

    address: str = Field(min_length=1, description="Property address")
    image_data: Optional[str] = Field(
        default=None,
        alias="imageData",
        description="Overhead image as a data URL or remote URL"
    )
    coordinates: Optional[Coordinates] = Field(default=None, description="Property location")
    image_quality: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        alias="imageQuality",
        description="Assessed image quality (0-1)"
    )
    season: Optional[Season] = Field(default=None, description="Capture season")
    time_of_day: Optional[TimeOfDay] = Field(
        default=None,
        alias="timeOfDay",
        description="Capture time bucket"
    )

    class Config:
        frozen = True
        populate_by_name = True
        use_enum_values = True


class GeometryInput(BaseModel):
    """Input to the geometry estimator."""

    address: str = Field(min_length=1, description="Property address")
    footprint_data: Optional[str] = Field(
        default=None,
        alias="footprintData",
        description="Building footprint description or GeoJSON"
    )
    building_age: Optional[int] = Field(
        default=None,
        alias="buildingAge",
        description="Year the building was constructed"
    )
    architectural_style: Optional[str] = Field(
        default=None,
        alias="architecturalStyle",
        description="Architectural style, e.g. 'Victorian'"
    )
    neighborhood_context: Optional[NeighborhoodContext] = Field(
        default=None,
        alias="neighborhoodContext",
        description="Comparable-property statistics"
    )

    class Config:
        frozen = True
        populate_by_name = True


class PropertyContext(BaseModel):
    """Best-effort property lookups. Every field may be missing."""

    coordinates: Optional[Coordinates] = None
    footprint_data: Optional[str] = Field(default=None, alias="footprintData")
    building_age: Optional[int] = Field(default=None, alias="buildingAge")
    architectural_style: Optional[str] = Field(default=None, alias="architecturalStyle")
    neighborhood_context: Optional[NeighborhoodContext] = Field(
        default=None,
        alias="neighborhoodContext"
    )

    class Config:
        frozen = True
        populate_by_name = True
