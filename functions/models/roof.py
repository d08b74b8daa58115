"""Roof geometry models for RoofEstimate.

Pitch value type, facet and linear-measurement models shared by both
estimators and the consensus engine.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator


# =============================================================================
# PITCH
# =============================================================================


def _format_number(value: float) -> str:
    """Render 6.0 as '6' and 6.5 as '6.5'."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass(frozen=True)
class Pitch:
    """Roof slope expressed as rise over run (e.g. 6/12).

    Parse contract:
        "6/12", "6:12" and " 6 / 12 " parse to Pitch(6, 12).
        A bare rise ("6" or 6) is read against a 12 run.
        Negative rise, non-positive run or non-numeric parts raise ValueError.

    Format contract:
        str(Pitch(6, 12)) == "6/12"; fractional parts are kept ("4.5/12").
    """

    rise: float
    run: float = 12.0

    def __post_init__(self):
        if not math.isfinite(self.rise) or self.rise < 0:
            raise ValueError(f"Pitch rise must be a non-negative number, got {self.rise!r}")
        if not math.isfinite(self.run) or self.run <= 0:
            raise ValueError(f"Pitch run must be a positive number, got {self.run!r}")

    @classmethod
    def parse(cls, value: Union[str, int, float, "Pitch"]) -> "Pitch":
        """Parse a pitch from its string or numeric form."""
        if isinstance(value, Pitch):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid pitch: {value!r}")
        if isinstance(value, (int, float)):
            return cls(float(value))

        text = str(value).strip().replace(" ", "").replace(":", "/")
        if not text:
            raise ValueError("Invalid pitch: empty string")

        rise_text, _, run_text = text.partition("/")
        try:
            rise = float(rise_text)
            run = float(run_text) if run_text else 12.0
        except ValueError:
            raise ValueError(f"Invalid pitch: {value!r}") from None
        return cls(rise, run)

    @classmethod
    def from_ratio(cls, ratio: float, run: float = 12.0, ndigits: int = 0) -> "Pitch":
        """Build a pitch over `run` from a rise/run ratio."""
        return cls(round(ratio * run, ndigits), run)

    @property
    def ratio(self) -> float:
        """Rise divided by run."""
        return self.rise / self.run

    @property
    def degrees(self) -> float:
        """Slope angle in degrees."""
        return math.degrees(math.atan(self.ratio))

    def to_run(self, run: float = 12.0, ndigits: int = 1) -> "Pitch":
        """Express the same slope over a different run (3/6 -> 6/12)."""
        return Pitch.from_ratio(self.ratio, run=run, ndigits=ndigits)

    def format(self) -> str:
        return f"{_format_number(self.rise)}/{_format_number(self.run)}"

    def __str__(self) -> str:
        return self.format()


def normalize_pitch(value: Union[str, int, float, Pitch]) -> str:
    """Parse any accepted pitch form and render it over a 12 run."""
    return str(Pitch.parse(value).to_run())


# =============================================================================
# FACETS
# =============================================================================


class FacetType(str, Enum):
    """Kind of planar roof section."""

    MAIN = "main"
    DORMER = "dormer"
    ADDITION = "addition"
    GARAGE = "garage"
    WING = "wing"


# Deterministic ordering for grouped output
FACET_TYPE_ORDER: List[str] = [t.value for t in FacetType]


class Facet(BaseModel):
    """A planar roof section.

    Immutable once produced by an estimator; the consensus engine only
    reads facets and builds new merged ones.
    """

    id: str = Field(..., min_length=1, description="Identifier, unique within a prediction")
    polygon: List[Tuple[float, float]] = Field(
        ...,
        min_length=3,
        description="Ordered 2D outline, implicitly closed"
    )
    area: float = Field(..., gt=0, allow_inf_nan=False, description="Area in square feet")
    pitch: str = Field(..., description="Rise/run over a 12 run, e.g. '6/12'")
    type: FacetType = Field(..., description="Facet kind")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence (0-1)")

    class Config:
        frozen = True
        use_enum_values = True

    @field_validator("pitch", mode="before")
    @classmethod
    def validate_pitch(cls, v):
        """Normalize pitch strings through the Pitch value type."""
        return normalize_pitch(v)

    @property
    def pitch_value(self) -> Pitch:
        """Parsed pitch."""
        return Pitch.parse(self.pitch)


# =============================================================================
# LINEAR MEASUREMENTS
# =============================================================================


MEASUREMENT_FIELDS: List[str] = [
    "ridges",
    "valleys",
    "hips",
    "rakes",
    "eaves",
    "gutters",
    "step_flashing",
    "drip_edge",
]


class Measurements(BaseModel):
    """Linear roof features in feet. All values are non-negative."""

    ridges: float = Field(..., ge=0, allow_inf_nan=False, description="Ridge length (ft)")
    valleys: float = Field(..., ge=0, allow_inf_nan=False, description="Valley length (ft)")
    hips: float = Field(..., ge=0, allow_inf_nan=False, description="Hip length (ft)")
    rakes: float = Field(..., ge=0, allow_inf_nan=False, description="Rake length (ft)")
    eaves: float = Field(..., ge=0, allow_inf_nan=False, description="Eave length (ft)")
    gutters: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="Gutter length (ft)")
    step_flashing: float = Field(
        default=0.0,
        ge=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("stepFlashing", "step_flashing"),
        serialization_alias="stepFlashing",
        description="Step flashing length (ft)"
    )
    drip_edge: float = Field(
        default=0.0,
        ge=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("dripEdge", "drip", "drip_edge"),
        serialization_alias="dripEdge",
        description="Drip edge length (ft)"
    )

    class Config:
        frozen = True
        populate_by_name = True

    def scaled(self, multipliers: Dict[str, float]) -> "Measurements":
        """Return a new record with the named measurements multiplied.

        Args:
            multipliers: Map of field name to multiplier. Unknown names raise.

        Returns:
            New Measurements instance.
        """
        unknown = set(multipliers) - set(MEASUREMENT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown measurement fields: {sorted(unknown)}")
        values = self.as_dict()
        for name, factor in multipliers.items():
            values[name] = values[name] * factor
        return Measurements(**values)

    def as_dict(self) -> Dict[str, float]:
        """Measurements keyed by field name."""
        return {name: getattr(self, name) for name in MEASUREMENT_FIELDS}
