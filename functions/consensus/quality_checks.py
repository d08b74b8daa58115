"""Quality checks for finished predictions.

Pure checks over a FinalPrediction: is the area physically plausible, do
the facets add up, does the result look like an outlier, and how far its
confidence should be trusted.
"""

from typing import List, Optional

import structlog

from models.consensus import FinalPrediction, QualityChecks
from models.inputs import NeighborhoodContext
from services.property_context_service import (
    MAX_PLAUSIBLE_ROOF_AREA,
    MIN_PLAUSIBLE_ROOF_AREA,
    is_unusual_for_neighborhood,
)

logger = structlog.get_logger()


# =============================================================================
# CONSTANTS
# =============================================================================

SQFT_PER_SQUARE = 100
MAX_SQUARES_DRIFT = 5

FACET_SUM_TOLERANCE = 0.15

# Extreme areas reported with very high confidence are suspicious
LARGE_ROOF_AREA = 8000.0
SMALL_ROOF_AREA = 1000.0
SUSPICIOUS_CONFIDENCE = 0.9

COMPLEX_ROOF_FACETS = 10
COMPLEX_ROOF_DISCOUNT = 0.9
LOW_CALIBRATION = 0.7

NOTE_OUT_OF_RANGE = "Prediction outside typical residential roof range"
NOTE_FACET_MISMATCH = "Facet areas don't sum to total area"
NOTE_OUTLIER = "Prediction flagged as potential outlier"
NOTE_LOW_CALIBRATION = "Low confidence calibration score"


def check_physically_possible(prediction: FinalPrediction) -> bool:
    """Area within 500-15,000 sq ft and squares within 5 of area / 100."""
    area = prediction.total_area
    if area < MIN_PLAUSIBLE_ROOF_AREA or area > MAX_PLAUSIBLE_ROOF_AREA:
        return False
    return abs(area / SQFT_PER_SQUARE - prediction.squares) <= MAX_SQUARES_DRIFT


def check_internal_consistency(prediction: FinalPrediction) -> bool:
    """Facet areas sum to within 15% of the total area."""
    facet_sum = sum(f.area for f in prediction.facets)
    return abs(facet_sum - prediction.total_area) / prediction.total_area < FACET_SUM_TOLERANCE


def detect_outlier(
    prediction: FinalPrediction,
    neighborhood: Optional[NeighborhoodContext] = None
) -> bool:
    area = prediction.total_area
    if prediction.confidence > SUSPICIOUS_CONFIDENCE and (
        area > LARGE_ROOF_AREA or area < SMALL_ROOF_AREA
    ):
        return True
    return neighborhood is not None and is_unusual_for_neighborhood(area, neighborhood)


def calibrate_confidence(prediction: FinalPrediction) -> float:
    """Prediction confidence, discounted 10% for roofs with more than ten facets."""
    factor = COMPLEX_ROOF_DISCOUNT if len(prediction.facets) > COMPLEX_ROOF_FACETS else 1.0
    return prediction.confidence * factor


def perform_quality_checks(
    prediction: FinalPrediction,
    neighborhood: Optional[NeighborhoodContext] = None
) -> QualityChecks:
    """Run every check over a prediction.

    Args:
        prediction: Assembled prediction.
        neighborhood: Neighborhood statistics, when the lookup produced them.

    Returns:
        QualityChecks with one validation note per failed check.
    """
    physically_possible = check_physically_possible(prediction)
    internal_consistency = check_internal_consistency(prediction)
    outlier_detected = detect_outlier(prediction, neighborhood)
    calibration = calibrate_confidence(prediction)

    notes: List[str] = []
    if not physically_possible:
        notes.append(NOTE_OUT_OF_RANGE)
    if not internal_consistency:
        notes.append(NOTE_FACET_MISMATCH)
    if outlier_detected:
        notes.append(NOTE_OUTLIER)
    if calibration < LOW_CALIBRATION:
        notes.append(NOTE_LOW_CALIBRATION)

    if notes:
        logger.info(
            "quality_checks_flagged",
            total_area=round(prediction.total_area, 1),
            notes=notes
        )

    return QualityChecks(
        physically_possible=physically_possible,
        internal_consistency=internal_consistency,
        outlier_detected=outlier_detected,
        confidence_calibration=calibration,
        validation_notes=notes
    )
