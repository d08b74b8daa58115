"""Reconciliation math for RoofEstimate.

Pure, synchronous functions that turn two estimator outputs into one
ConsensusResult. Nothing here suspends, performs I/O or reads the clock,
so identical inputs always give an identical result.

Facet merge is commutative: swapping which estimator is called vision
and which geometry yields the same merged facets. Groups are emitted in
FacetType order and members are put in a canonical order before any
"first member" choice or floating-point sum.
"""

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from config.errors import ConsensusError, ErrorCode
from consensus.quality_checks import perform_quality_checks
from models.consensus import (
    AreaByPitch,
    ConfidenceLevel,
    ConsensusResult,
    DualModelInsights,
    FinalPrediction,
    LearningFlag,
    LearningPriority,
    ReportSummary,
)
from models.estimate import ConfidenceRange, Estimate, UncertaintyAnalysis
from models.inputs import GeometryInput, TimeOfDay, VisionInput
from models.roof import FACET_TYPE_ORDER, MEASUREMENT_FIELDS, Facet, FacetType, Measurements, Pitch

logger = structlog.get_logger()


# =============================================================================
# CONSTANTS
# =============================================================================

DISAGREEMENT_THRESHOLD_SQFT = 100.0

# Estimator weights
BASE_WEIGHT = 0.5
MIN_WEIGHT = 0.1
HIGH_IMAGE_QUALITY = 0.8
HIGH_IMAGE_QUALITY_BONUS = 0.2
AFTERNOON_BONUS = 0.1
FOOTPRINT_BONUS = 0.15
BUILDING_AGE_BONUS = 0.1
NEIGHBORHOOD_BONUS = 0.15

# Combined uncertainty
INTERVAL_SPREAD = 0.3
MAX_INTERVAL_HALF_WIDTH = 0.4
VERIFICATION_VARIANCE = 0.4

# Confidence classification
HIGH_AGREEMENT = 0.9
MEDIUM_AGREEMENT = 0.8
HIGH_ESTIMATOR_CONFIDENCE = 0.8
MEDIUM_ESTIMATOR_CONFIDENCE = 0.7

HIGH_UNCERTAINTY = 0.5
IMPROVEMENT_UNCERTAINTY = 0.4
FACET_COUNT_TOLERANCE = 2

# Default facet substituted when neither estimator reports facets
DEFAULT_FACET_ID = "default-main"
DEFAULT_PITCH = "8/12"
DEFAULT_FACET_CONFIDENCE = 0.5

WASTE_FACTOR_RATE = 0.1
SQFT_PER_SQUARE = 100
COMPLEXITY_FACETS = 10

DISAGREEMENT_RISK_FACTOR = "Model disagreement detected"
REASONING_SEPARATOR = " • "


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


# =============================================================================
# AGREEMENT AND WEIGHTS
# =============================================================================


def model_agreement(estimate_a: float, estimate_b: float) -> float:
    """Normalized inverse of the relative disagreement, clamped to [0, 1].

    Equal to 1 - |a - b| / mean(a, b). Identical estimates agree fully.
    """
    average = (estimate_a + estimate_b) / 2
    if not average > 0:
        return 0.0
    agreement = 1 - abs(estimate_a - estimate_b) / average
    return min(max(agreement, 0.0), 1.0)


def vision_weight(estimate: Estimate, vision_input: VisionInput) -> float:
    """Vision estimator influence before normalization.

    Base 0.5, +0.2 for image quality above 0.8, +0.1 for afternoon capture,
    then scaled by the estimator's confidence and floored at 0.1.
    """
    weight = BASE_WEIGHT
    if vision_input.image_quality is not None and vision_input.image_quality > HIGH_IMAGE_QUALITY:
        weight += HIGH_IMAGE_QUALITY_BONUS
    if vision_input.time_of_day == TimeOfDay.AFTERNOON:
        weight += AFTERNOON_BONUS
    weight *= estimate.confidence
    return max(weight, MIN_WEIGHT)


def geometry_weight(estimate: Estimate, geometry_input: GeometryInput) -> float:
    """Geometry estimator influence before normalization.

    Base 0.5, +0.15 with footprint data, +0.1 with a known building age,
    +0.15 with neighborhood context, then scaled by the estimator's
    confidence and floored at 0.1.
    """
    weight = BASE_WEIGHT
    if geometry_input.footprint_data:
        weight += FOOTPRINT_BONUS
    if geometry_input.building_age is not None:
        weight += BUILDING_AGE_BONUS
    if geometry_input.neighborhood_context is not None:
        weight += NEIGHBORHOOD_BONUS
    weight *= estimate.confidence
    return max(weight, MIN_WEIGHT)


def weighted_estimate(
    estimate_a: float,
    weight_a: float,
    estimate_b: float,
    weight_b: float
) -> float:
    """Weight-normalized average of two estimates."""
    return (estimate_a * weight_a + estimate_b * weight_b) / (weight_a + weight_b)


# =============================================================================
# FACETS
# =============================================================================


def default_facet(area: float) -> Facet:
    """Placeholder facet covering the whole predicted area.

    Its outline is a square of the same area.

    Raises:
        ConsensusError: With FACET_INTEGRITY_VIOLATION if area is not a
            positive finite number.
    """
    if not (math.isfinite(area) and area > 0):
        raise ConsensusError(
            code=ErrorCode.FACET_INTEGRITY_VIOLATION,
            message=f"Cannot build a default facet for area {area!r}",
            details={"area": area}
        )
    side = math.sqrt(area)
    return Facet(
        id=DEFAULT_FACET_ID,
        polygon=[(0.0, 0.0), (side, 0.0), (side, side), (0.0, side)],
        area=area,
        pitch=DEFAULT_PITCH,
        type=FacetType.MAIN,
        confidence=DEFAULT_FACET_CONFIDENCE
    )


def _canonical_key(facet: Facet) -> Tuple:
    return (-facet.confidence, -facet.area, facet.id, facet.pitch, tuple(facet.polygon))


def _dominant_pitch(facets: Sequence[Facet]) -> str:
    """Pitch with the largest summed area; ties go to the lowest pitch string."""
    totals: Dict[str, float] = defaultdict(float)
    for facet in facets:
        totals[facet.pitch] += facet.area
    return max(sorted(totals), key=lambda pitch: totals[pitch])


def _merge_group(facet_type: str, group: List[Facet]) -> Facet:
    """Collapse same-type facets into one with mean area and confidence."""
    members = sorted(group, key=_canonical_key)
    area = sum(f.area for f in members) / len(members)
    confidence = sum(f.confidence for f in members) / len(members)

    if not (math.isfinite(area) and area > 0):
        raise ConsensusError(
            code=ErrorCode.FACET_INTEGRITY_VIOLATION,
            message=f"Merged {facet_type} facet has invalid area {area!r}",
            details={"facet_type": facet_type, "member_count": len(members)}
        )

    return Facet(
        id=f"merged-{facet_type}",
        polygon=members[0].polygon,
        area=area,
        pitch=_dominant_pitch(members),
        type=facet_type,
        confidence=confidence
    )


def merge_facets(
    vision_facets: Sequence[Facet],
    geometry_facets: Sequence[Facet],
    consensus_estimate: float
) -> List[Facet]:
    """Merge both estimators' facets by type.

    A type with one facet passes through unchanged (its id is suffixed only
    if another output facet already uses it). A type with several facets
    collapses into one merged facet: mean area and confidence, polygon of
    the canonical first member, area-weighted dominant pitch and id
    "merged-<type>". When neither estimator reports facets a single
    default facet covering the consensus estimate is returned, so the
    result is never empty.

    Raises:
        ConsensusError: With FACET_INTEGRITY_VIOLATION if a merged facet
            would have a non-positive or NaN area.
    """
    if not vision_facets and not geometry_facets:
        logger.warning("default_facet_substituted", area=round(consensus_estimate, 1))
        return [default_facet(consensus_estimate)]

    groups: Dict[str, List[Facet]] = defaultdict(list)
    for facet in list(vision_facets) + list(geometry_facets):
        groups[facet.type].append(facet)

    merged: List[Facet] = []
    used_ids = set()
    for facet_type in FACET_TYPE_ORDER:
        group = groups.get(facet_type)
        if not group:
            continue

        if len(group) == 1:
            facet = group[0]
        else:
            facet = _merge_group(facet_type, group)

        if facet.id in used_ids:
            suffix = 2
            while f"{facet.id}-{suffix}" in used_ids:
                suffix += 1
            facet = facet.model_copy(update={"id": f"{facet.id}-{suffix}"})

        used_ids.add(facet.id)
        merged.append(facet)

    return merged


# =============================================================================
# MEASUREMENTS AND UNCERTAINTY
# =============================================================================


def merge_measurements(vision: Measurements, geometry: Measurements) -> Measurements:
    """Mean of each linear measurement, rounded to whole feet."""
    a = vision.as_dict()
    b = geometry.as_dict()
    return Measurements(**{
        name: round_half_up((a[name] + b[name]) / 2)
        for name in MEASUREMENT_FIELDS
    })


def _union(*lists: Sequence[str]) -> List[str]:
    """Concatenate lists, dropping repeats and keeping first occurrence order."""
    seen = set()
    result = []
    for items in lists:
        for item in items:
            if item not in seen:
                seen.add(item)
                result.append(item)
    return result


def combine_uncertainty(
    vision: Estimate,
    geometry: Estimate,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> UncertaintyAnalysis:
    """Combined uncertainty for the pair of estimates.

    Variance is the larger of the mean estimator variance and the
    disagreement variance (area difference over the larger estimate).
    The interval is centered on the mean estimate with half-width
    min(variance * 0.3, 0.4).
    """
    area_difference = abs(vision.estimate - geometry.estimate)
    mean_variance = (vision.uncertainty_analysis.variance + geometry.uncertainty_analysis.variance) / 2
    disagreement_variance = area_difference / max(vision.estimate, geometry.estimate)
    variance = max(mean_variance, disagreement_variance)

    average = (vision.estimate + geometry.estimate) / 2
    half_width = min(variance * INTERVAL_SPREAD, MAX_INTERVAL_HALF_WIDTH)

    extra = [DISAGREEMENT_RISK_FACTOR] if area_difference > threshold else []
    risk_factors = _union(
        vision.uncertainty_analysis.risk_factors,
        geometry.uncertainty_analysis.risk_factors,
        extra
    )

    return UncertaintyAnalysis(
        variance=variance,
        confidence_range=ConfidenceRange.around(average, half_width),
        risk_factors=risk_factors,
        needs_verification=variance > VERIFICATION_VARIANCE or area_difference > 2 * threshold
    )


# =============================================================================
# CLASSIFICATION
# =============================================================================


def classify_confidence(agreement: float, confidence_a: float, confidence_b: float) -> ConfidenceLevel:
    """Three-level confidence label.

    high: agreement > 0.9 and both confidences > 0.8
    medium: agreement > 0.8, or both confidences > 0.7
    low: otherwise
    """
    if agreement > HIGH_AGREEMENT and confidence_a > HIGH_ESTIMATOR_CONFIDENCE and confidence_b > HIGH_ESTIMATOR_CONFIDENCE:
        return ConfidenceLevel.HIGH
    if agreement > MEDIUM_AGREEMENT or (
        confidence_a > MEDIUM_ESTIMATOR_CONFIDENCE and confidence_b > MEDIUM_ESTIMATOR_CONFIDENCE
    ):
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def assess_learning_need(
    area_difference: float,
    confidence: ConfidenceLevel,
    vision: Estimate,
    geometry: Estimate,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> Optional[LearningFlag]:
    """Decide whether a professional measurement should be obtained."""
    if area_difference > 2 * threshold:
        return LearningFlag(
            priority=LearningPriority.HIGH,
            reason="Major model disagreement",
            suggested_action="Obtain a professional measurement report to calibrate both models"
        )

    if confidence == ConfidenceLevel.LOW:
        return LearningFlag(
            priority=LearningPriority.MEDIUM,
            reason="Low confidence prediction",
            suggested_action="Consider verifying with a professional measurement report"
        )

    if vision.uncertainty > HIGH_UNCERTAINTY or geometry.uncertainty > HIGH_UNCERTAINTY:
        return LearningFlag(
            priority=LearningPriority.MEDIUM,
            reason="High model uncertainty",
            suggested_action="A professional measurement report would improve future predictions"
        )

    return None


# =============================================================================
# PITCH SUMMARIES
# =============================================================================


def areas_by_pitch(facets: Sequence[Facet]) -> List[AreaByPitch]:
    """Area, squares and share of the facet total per pitch, largest first."""
    areas: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    for facet in facets:
        areas[facet.pitch] += facet.area
        counts[facet.pitch] += 1

    total = sum(areas.values())
    ordered = sorted(areas, key=lambda pitch: (-areas[pitch], pitch))
    return [
        AreaByPitch(
            pitch=pitch,
            area=areas[pitch],
            squares=round_half_up(areas[pitch] / SQFT_PER_SQUARE),
            percentage=min(round_half_up(areas[pitch] / total * 100), 100) if total > 0 else 0,
            facet_count=counts[pitch]
        )
        for pitch in ordered
    ]


def predominant_pitch(facets: Sequence[Facet]) -> str:
    """Pitch covering the most facet area."""
    if not facets:
        return DEFAULT_PITCH
    return _dominant_pitch(facets)


def average_pitch(facets: Sequence[Facet]) -> str:
    """Area-weighted mean pitch, rounded to a whole rise over 12."""
    total = sum(f.area for f in facets)
    if not total > 0:
        return DEFAULT_PITCH
    ratio = sum(f.pitch_value.ratio * f.area for f in facets) / total
    return str(Pitch.from_ratio(ratio))


# =============================================================================
# INSIGHTS AND REASONING
# =============================================================================


def identify_conflict_areas(
    vision: Estimate,
    geometry: Estimate,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> List[str]:
    conflicts = []
    if abs(vision.facet_count - geometry.facet_count) > FACET_COUNT_TOLERANCE:
        conflicts.append("Facet count disagreement")
    if abs(vision.estimate - geometry.estimate) > threshold:
        conflicts.append("Total area disagreement")
    return conflicts


def identify_learning_opportunities(
    vision: Estimate,
    geometry: Estimate,
    area_difference: float,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> List[str]:
    opportunities = []
    if area_difference > threshold:
        opportunities.append("Model calibration from professional measurement comparison")
    if vision.uncertainty > IMPROVEMENT_UNCERTAINTY:
        opportunities.append("Vision model improvement with verified satellite data")
    if geometry.uncertainty > IMPROVEMENT_UNCERTAINTY:
        opportunities.append("Geometry model refinement with structural validation")
    return opportunities


def build_reasoning(
    vision: Estimate,
    geometry: Estimate,
    area_difference: float,
    agreement: float,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> str:
    """One-line summary of both estimates and how well they agree."""
    if agreement > HIGH_AGREEMENT:
        level = "strongly agree"
    elif agreement > MEDIUM_AGREEMENT:
        level = "generally agree"
    else:
        level = "show some disagreement"

    parts = [
        f"Vision model estimated {round_half_up(vision.estimate)} sq ft",
        f"Geometry model estimated {round_half_up(geometry.estimate)} sq ft",
        f"Models {level}",
        f"Area difference: {round_half_up(area_difference)} sq ft",
    ]
    if area_difference > threshold:
        parts.append("Significant model disagreement suggests learning opportunity")

    return REASONING_SEPARATOR.join(parts)


# =============================================================================
# ASSEMBLY
# =============================================================================


def build_consensus(
    vision: Estimate,
    geometry: Estimate,
    vision_input: VisionInput,
    geometry_input: GeometryInput,
    threshold: float = DISAGREEMENT_THRESHOLD_SQFT
) -> ConsensusResult:
    """Reconcile two estimates into a ConsensusResult.

    Args:
        vision: Vision estimator output.
        geometry: Geometry estimator output.
        vision_input: Input the vision estimator ran with.
        geometry_input: Input the geometry estimator ran with.
        threshold: Area difference (sq ft) counted as disagreement.

    Returns:
        Immutable ConsensusResult.

    Raises:
        ConsensusError: With FACET_INTEGRITY_VIOLATION if the facet merge
            cannot produce valid facets.
    """
    area_difference = abs(vision.estimate - geometry.estimate)
    agreement = model_agreement(vision.estimate, geometry.estimate)

    weight_v = vision_weight(vision, vision_input)
    weight_g = geometry_weight(geometry, geometry_input)
    total_weight = weight_v + weight_g
    estimate = weighted_estimate(vision.estimate, weight_v, geometry.estimate, weight_g)

    facets = merge_facets(vision.facets, geometry.facets, estimate)
    confidence = classify_confidence(agreement, vision.confidence, geometry.confidence)

    final_prediction = FinalPrediction(
        facets=facets,
        total_area=estimate,
        squares=round_half_up(estimate / SQFT_PER_SQUARE),
        measurements=merge_measurements(vision.measurements, geometry.measurements),
        predominant_pitch=predominant_pitch(facets),
        waste_factor=(vision.estimate + geometry.estimate) / 2 * WASTE_FACTOR_RATE,
        confidence=(vision.confidence + geometry.confidence) / 2,
        areas_by_pitch=areas_by_pitch(facets),
        report_summary=ReportSummary(
            average_pitch=average_pitch(facets),
            roof_complexity_score=min(len(facets) / COMPLEXITY_FACETS, 1.0)
        ),
        uncertainty_analysis=combine_uncertainty(vision, geometry, threshold),
        dual_model_insights=DualModelInsights(
            vision_model_strength=weight_v / total_weight,
            geometry_model_strength=weight_g / total_weight,
            conflict_areas=identify_conflict_areas(vision, geometry, threshold),
            learning_opportunities=identify_learning_opportunities(
                vision, geometry, area_difference, threshold
            )
        )
    )
    final_prediction = final_prediction.model_copy(update={
        "quality_checks": perform_quality_checks(
            final_prediction, geometry_input.neighborhood_context
        )
    })

    return ConsensusResult(
        estimate=estimate,
        confidence=confidence,
        model_agreement=agreement,
        final_prediction=final_prediction,
        reasoning=build_reasoning(vision, geometry, area_difference, agreement, threshold),
        learning_flag=assess_learning_need(area_difference, confidence, vision, geometry, threshold)
    )
