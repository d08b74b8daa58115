"""Prediction Logger for RoofEstimate.

Provides highly visible, formatted console output for consensus
predictions, alongside structured structlog events.
"""

import json
import structlog
from typing import Any, Dict, List, Optional

from models.consensus import ConsensusResult
from models.estimate import Estimate

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
PREDICTION_BANNER_CHAR = "█"
ESTIMATOR_BANNER_CHAR = "═"
FAILURE_BANNER_CHAR = "!"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _format_json(data: Dict[str, Any], indent: int = 2) -> str:
    """Format dictionary as pretty JSON string."""
    try:
        return json.dumps(data, indent=indent, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(data)


def _format_list(items: List[str]) -> str:
    return ", ".join(items) if items else "None"


def log_prediction_start(address: str, has_image: bool) -> None:
    """Log prediction start with prominent banner."""
    print("\n")
    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PREDICTION_BANNER_CHAR, "ROOF CONSENSUS PREDICTION STARTED"))
    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Address : {address}")
    print(f"║ Image   : {'supplied' if has_image else 'none'}")
    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)

    logger.info("prediction_started", address=address, has_image=has_image)


def log_estimator_result(estimator: str, estimate: Estimate) -> None:
    """Log one estimator's output."""
    analysis = estimate.uncertainty_analysis

    print(ESTIMATOR_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(ESTIMATOR_BANNER_CHAR, f"▶ ESTIMATOR: {estimator.upper()} ({estimate.model_version})"))
    print(f"║ Estimate     : {estimate.estimate:,.0f} sq ft")
    print(f"║ Range        : {analysis.confidence_range.min:,.0f} - {analysis.confidence_range.max:,.0f} sq ft")
    print(f"║ Facets       : {estimate.facet_count}")
    print(f"║ Confidence   : {estimate.confidence:.0%}")
    print(f"║ Uncertainty  : {estimate.uncertainty:.2f}")
    print(f"║ Risk Factors : {_format_list(analysis.risk_factors)}")
    print(f"║ Duration     : {estimate.processing_time_ms:,} ms")

    logger.info(
        "estimator_result_logged",
        estimator=estimator,
        estimate=round(estimate.estimate, 1),
        confidence=round(estimate.confidence, 3),
        uncertainty=round(estimate.uncertainty, 3),
        risk_factor_count=len(analysis.risk_factors)
    )


def log_consensus_result(
    address: str,
    result: ConsensusResult,
    duration_ms: int,
    verbose: bool = False
) -> None:
    """Log the reconciled result with summary."""
    prediction = result.final_prediction
    flag = result.learning_flag

    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PREDICTION_BANNER_CHAR, "✓ CONSENSUS REACHED"))
    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Address          : {address}")
    print(f"║ Estimate         : {result.estimate:,.0f} sq ft ({prediction.squares} squares)")
    print(f"║ Confidence       : {result.confidence}")
    print(f"║ Model Agreement  : {result.model_agreement:.1%}")
    print(f"║ Facets           : {len(prediction.facets)}")
    print(f"║ Predominant Pitch: {prediction.predominant_pitch}")
    print(f"║ Needs Verify     : {prediction.uncertainty_analysis.needs_verification}")
    if flag is not None:
        print(f"║ Learning Flag    : [{flag.priority}] {flag.reason}")
    checks = prediction.quality_checks
    if checks is not None:
        quality = _format_list(checks.validation_notes) if not checks.passed else "All quality checks passed"
        print(f"║ Quality Checks   : {quality}")
    print(f"║ Duration         : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)")
    if verbose:
        print(_format_json(result.model_dump(by_alias=True)))
    print(PREDICTION_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "consensus_reached",
        address=address,
        estimate=round(result.estimate, 1),
        confidence=result.confidence,
        model_agreement=round(result.model_agreement, 3),
        learning_flag=flag.priority if flag else None,
        quality_notes=checks.validation_notes if checks else None,
        duration_ms=duration_ms
    )


def log_prediction_failed(
    address: str,
    error: str,
    estimator: Optional[str] = None
) -> None:
    """Log prediction failure with details."""
    print("\n")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(FAILURE_BANNER_CHAR, "✗ CONSENSUS FAILED"))
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Address          : {address}")
    print(f"║ Failed Estimator : {estimator or 'None'}")
    print(f"║ Error            : {error}")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.error(
        "prediction_failed",
        address=address,
        estimator=estimator,
        error=error
    )
