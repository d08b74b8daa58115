"""RoofEstimate Dual-Estimator Consensus Engine.

This package contains the Python services that estimate a building's roof
geometry from an address using two independent estimators and reconcile
them into one consensus prediction.

Architecture:
- 2 Estimators: Vision (overhead imagery), Geometry (footprint/structure)
- 1 Consensus Engine: Runs both concurrently and reconciles their output
- 1 Prediction Service: Caller-facing entry point with a bounded cache
"""

__version__ = "1.0.0"
