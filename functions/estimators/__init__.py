"""RoofEstimate estimators.

This package contains:
- BaseEstimator: shared timing, facet filtering and Estimate assembly
- VisionEstimator: overhead-imagery estimator
- GeometryEstimator: footprint/structure estimator
"""

from estimators.base_estimator import BaseEstimator
from estimators.vision_estimator import VisionEstimator
from estimators.geometry_estimator import GeometryEstimator

__all__ = [
    "BaseEstimator",
    "VisionEstimator",
    "GeometryEstimator",
]
