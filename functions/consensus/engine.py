"""Consensus Engine for RoofEstimate.

Runs the vision and geometry estimators concurrently for one address and
reconciles their outputs into a single ConsensusResult.
"""

import asyncio
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Tuple
import structlog

from config.settings import settings
from config.errors import (
    ConsensusError,
    RoofEstimateError,
    ErrorCode
)
from consensus.input_builder import ImageData, build_geometry_input, build_vision_input
from consensus.reconciliation import build_consensus
from estimators.base_estimator import BaseEstimator, EstimatorInput
from estimators.geometry_estimator import GeometryEstimator
from estimators.vision_estimator import VisionEstimator
from models.consensus import ConsensusResult, LearningMetrics
from models.estimate import Estimate
from models.inputs import GeometryInput, PropertyContext, VisionInput
from services.property_context_service import PropertyContextService
from utils.prediction_logger import (
    log_prediction_start,
    log_estimator_result,
    log_consensus_result,
    log_prediction_failed,
)

logger = structlog.get_logger()

# Model agreement bands tracked in metrics
STRONG_AGREEMENT = 0.9
CONFLICT_AGREEMENT = 0.8


class ConsensusEngine:
    """Dual-estimator consensus engine.

    Flow per prediction:
    1. Build vision and geometry inputs (clock heuristics + property lookups)
    2. Run both estimators concurrently; the first failure cancels the other
    3. Reconcile both estimates (pure, deterministic)
    4. Record metrics and return the ConsensusResult

    There is no single-estimator fallback: if either estimator fails the
    prediction raises ConsensusError naming the failed side. The engine
    keeps no per-address state; only the metrics counters live across calls.
    """

    def __init__(
        self,
        vision_estimator: Optional[BaseEstimator] = None,
        geometry_estimator: Optional[BaseEstimator] = None,
        property_context_service: Optional[PropertyContextService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        disagreement_threshold: Optional[float] = None,
        verbose: bool = False
    ):
        """Initialize ConsensusEngine.

        Args:
            vision_estimator: Optional vision estimator instance.
            geometry_estimator: Optional geometry estimator instance.
            property_context_service: Optional property lookup service.
            clock: Returns the current local time (default datetime.now).
            disagreement_threshold: Area difference in sq ft counted as
                disagreement (default from settings).
            verbose: Also print the full result JSON after each prediction.
        """
        self.vision_estimator = vision_estimator or VisionEstimator()
        self.geometry_estimator = geometry_estimator or GeometryEstimator()
        self.property_context = property_context_service or PropertyContextService()
        self.clock = clock or datetime.now
        self.disagreement_threshold = (
            disagreement_threshold
            if disagreement_threshold is not None
            else settings.disagreement_threshold_sqft
        )

        self.verbose = verbose

        self._metrics = LearningMetrics()
        self._metrics_lock = threading.Lock()

    async def predict(
        self,
        address: str,
        image_data: Optional[ImageData] = None
    ) -> ConsensusResult:
        """Produce a consensus roof prediction for an address.

        Args:
            address: Property address.
            image_data: Optional overhead image as raw bytes or a data/remote URL.

        Returns:
            ConsensusResult owned by the caller.

        Raises:
            ConsensusError: VALIDATION_ERROR for an empty address,
                ESTIMATOR_FAILED if either estimator fails (`estimator`
                names the side), FACET_INTEGRITY_VIOLATION if the facet
                merge produces invalid facets.
        """
        if not address or not address.strip():
            raise ConsensusError(
                code=ErrorCode.VALIDATION_ERROR,
                message="Address is required",
                details={"field": "address"}
            )
        address = address.strip()

        start_time = time.perf_counter()
        log_prediction_start(address, has_image=bool(image_data))

        try:
            context = await self.property_context.lookup(address)
            vision_input, geometry_input = self._build_inputs(address, image_data, context)
            vision, geometry = await self._run_estimators(vision_input, geometry_input)
            result = build_consensus(
                vision,
                geometry,
                vision_input,
                geometry_input,
                threshold=self.disagreement_threshold
            )
        except ConsensusError as e:
            self._record_failure()
            log_prediction_failed(address, e.message, estimator=e.estimator)
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self._record_success(result, duration_ms)
        log_consensus_result(address, result, duration_ms, verbose=self.verbose)
        return result

    def _build_inputs(
        self,
        address: str,
        image_data: Optional[ImageData],
        context: PropertyContext
    ) -> Tuple[VisionInput, GeometryInput]:
        now = self.clock()
        return (
            build_vision_input(address, image_data, now, context),
            build_geometry_input(address, context),
        )

    async def _run_estimators(
        self,
        vision_input: VisionInput,
        geometry_input: GeometryInput
    ) -> Tuple[Estimate, Estimate]:
        """Fan out to both estimators and join, failing fast.

        On the first failure the sibling task is cancelled and its result,
        if it ever arrives, is discarded.
        """
        tasks = [
            asyncio.create_task(self._run_estimator(self.vision_estimator, vision_input)),
            asyncio.create_task(self._run_estimator(self.geometry_estimator, geometry_input)),
        ]
        try:
            vision, geometry = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            raise
        return vision, geometry

    async def _run_estimator(
        self,
        estimator: BaseEstimator,
        estimator_input: EstimatorInput
    ) -> Estimate:
        """Run one estimator, annotating any failure with its name."""
        try:
            estimate = await estimator.predict(estimator_input)
        except RoofEstimateError as e:
            logger.error(
                "estimator_failed",
                estimator=estimator.name,
                code=e.code,
                error=e.message
            )
            raise ConsensusError(
                code=ErrorCode.ESTIMATOR_FAILED,
                message=f"{estimator.name} estimator failed: {e.message}",
                estimator=estimator.name,
                details={"cause_code": e.code}
            ) from e
        except Exception as e:
            logger.error(
                "estimator_failed",
                estimator=estimator.name,
                error_type=type(e).__name__,
                error=str(e)
            )
            raise ConsensusError(
                code=ErrorCode.ESTIMATOR_FAILED,
                message=f"{estimator.name} estimator failed: {e}",
                estimator=estimator.name,
                details={"cause_type": type(e).__name__}
            ) from e

        log_estimator_result(estimator.name, estimate)
        return estimate

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _record_success(self, result: ConsensusResult, duration_ms: int) -> None:
        with self._metrics_lock:
            metrics = self._metrics
            metrics.total_predictions += 1
            if result.model_agreement > STRONG_AGREEMENT:
                metrics.strong_agreements += 1
            if result.model_agreement < CONFLICT_AGREEMENT:
                metrics.conflicts += 1
            successes = metrics.total_predictions - metrics.failures
            metrics.average_processing_time_ms += (
                duration_ms - metrics.average_processing_time_ms
            ) / successes

    def _record_failure(self) -> None:
        with self._metrics_lock:
            self._metrics.total_predictions += 1
            self._metrics.failures += 1

    def get_metrics(self) -> LearningMetrics:
        """Snapshot of the metrics counters."""
        with self._metrics_lock:
            return self._metrics.model_copy()
