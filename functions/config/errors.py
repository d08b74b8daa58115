"""RoofEstimate error handling.

Custom exceptions and error codes for the dual-estimator consensus engine.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Backend Errors
    BACKEND_ERROR = "BACKEND_ERROR"
    BACKEND_INVALID_RESPONSE = "BACKEND_INVALID_RESPONSE"

    # LLM Errors
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # Consensus Errors
    ESTIMATOR_FAILED = "ESTIMATOR_FAILED"
    FACET_INTEGRITY_VIOLATION = "FACET_INTEGRITY_VIOLATION"

    # External Service Errors
    PROPERTY_LOOKUP_FAILED = "PROPERTY_LOOKUP_FAILED"


class RoofEstimateError(Exception):
    """Base exception for RoofEstimate errors.

    Provides structured error information for callers.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize RoofEstimateError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class BackendError(RoofEstimateError):
    """An estimator's analysis backend failed or returned unparseable content.

    Never retried by the consensus core and never replaced with a default
    value; the consensus engine decides how to react.
    """

    def __init__(
        self,
        estimator: str,
        message: str,
        code: str = ErrorCode.BACKEND_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "estimator": estimator}
        )
        self.estimator = estimator


class ConsensusError(RoofEstimateError):
    """A consensus could not be formed.

    The only error type raised by ConsensusEngine.predict. For estimator
    failures `estimator` names the failed side and the underlying error is
    chained as __cause__; for facet integrity violations and an empty
    address it is None.
    """

    def __init__(
        self,
        code: str,
        message: str,
        estimator: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "estimator": estimator}
        )
        self.estimator = estimator

    @property
    def is_retryable(self) -> bool:
        """Backend failures are worth retrying; integrity violations are not."""
        return self.code == ErrorCode.ESTIMATOR_FAILED
