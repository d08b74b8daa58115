"""RoofEstimate consensus.

This package contains:
- engine: ConsensusEngine (concurrent estimator fan-out/fan-in)
- reconciliation: pure reconciliation math
- input_builder: estimator input construction
"""

from consensus.engine import ConsensusEngine
from consensus.reconciliation import build_consensus, model_agreement

__all__ = [
    "ConsensusEngine",
    "build_consensus",
    "model_agreement",
]
