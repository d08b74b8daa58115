"""Utility modules for RoofEstimate functions."""

from utils.prediction_logger import (
    log_prediction_start,
    log_estimator_result,
    log_consensus_result,
    log_prediction_failed,
)

__all__ = [
    "log_prediction_start",
    "log_estimator_result",
    "log_consensus_result",
    "log_prediction_failed",
]
