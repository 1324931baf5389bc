"""
Exception Hierarchy for the Raydium swap pipeline.

Every failure the quoting and instruction-assembly pipeline can surface is a
subclass of ``RaydiumSwapError``. Each exception carries:
- Unique error code for logging and debugging
- Descriptive message
- Optional context dictionary for additional debugging info
- is_recoverable flag indicating if the operation can be retried by the caller
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from datetime import datetime, timezone


# =============================================================================
# BASE EXCEPTION
# =============================================================================

@dataclass
class RaydiumSwapError(Exception):
    """
    Base exception for all swap pipeline errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique identifier for the error type (e.g., "POOL_001")
        context: Optional dictionary with debugging information
        is_recoverable: Whether the operation can be retried
        retry_after: Seconds to wait before retry
        timestamp: When the error occurred
    """
    message: str
    error_code: str = "GENERAL_001"
    context: dict[str, Any] = field(default_factory=dict)
    is_recoverable: bool = False
    retry_after: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Initialize the exception with the formatted message."""
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message with code and context."""
        base = f"[{self.error_code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" | Context: {context_str}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "is_recoverable": self.is_recoverable,
            "retry_after": self.retry_after,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return self.format_message()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"is_recoverable={self.is_recoverable})"
        )


@dataclass
class ConfigurationError(RaydiumSwapError):
    """Error in pipeline configuration or settings."""
    error_code: str = "CONFIG_001"
    is_recoverable: bool = False


# =============================================================================
# REQUEST / POOL EXCEPTIONS
# =============================================================================

@dataclass
class InvalidRequestError(RaydiumSwapError):
    """Swap request violates an invariant (equal mints, slippage out of range...)."""
    error_code: str = "VAL_001"
    is_recoverable: bool = False
    field_name: Optional[str] = None


@dataclass
class PoolNotFoundError(RaydiumSwapError):
    """No pool could be resolved for the requested mint pair."""
    error_code: str = "POOL_001"
    is_recoverable: bool = False
    input_mint: Optional[str] = None
    output_mint: Optional[str] = None


@dataclass
class PoolDiscoveryError(RaydiumSwapError):
    """Pool discovery API returned an error or an unusable payload."""
    error_code: str = "API_001"
    is_recoverable: bool = True
    status_code: Optional[int] = None


# =============================================================================
# ACCOUNT DATA EXCEPTIONS
# =============================================================================

@dataclass
class MalformedAccountDataError(RaydiumSwapError):
    """Account bytes could not be decoded, or an expected account is missing."""
    error_code: str = "DATA_001"
    is_recoverable: bool = False
    account: Optional[str] = None


@dataclass
class RPCError(RaydiumSwapError):
    """RPC collaborator failed to answer a read."""
    error_code: str = "RPC_001"
    is_recoverable: bool = True


# =============================================================================
# ARITHMETIC EXCEPTIONS
# =============================================================================

@dataclass
class ArithmeticOverflowError(RaydiumSwapError):
    """Fixed-point computation left the u64 range (overflow or underflow)."""
    error_code: str = "MATH_001"
    is_recoverable: bool = False


@dataclass
class DivideByZeroError(RaydiumSwapError):
    """Fee or ratio computation hit a zero denominator."""
    error_code: str = "MATH_002"
    is_recoverable: bool = False


# =============================================================================
# INSTRUCTION / TRANSACTION EXCEPTIONS
# =============================================================================

@dataclass
class InstructionEncodingError(RaydiumSwapError):
    """Required keys for an instruction are missing or invalid."""
    error_code: str = "TX_001"
    is_recoverable: bool = False


@dataclass
class IncompletePlanError(RaydiumSwapError):
    """Instruction plan was finalized without a swap instruction."""
    error_code: str = "TX_002"
    is_recoverable: bool = False


@dataclass
class SimulationUnavailableError(RaydiumSwapError):
    """Transaction simulation could not be performed."""
    error_code: str = "TX_003"
    is_recoverable: bool = True
    simulation_logs: list[str] = field(default_factory=list)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, RaydiumSwapError):
        return error.is_recoverable
    return False


def wrap_exception(
    original: Exception,
    wrapper_class: type[RaydiumSwapError],
    message: Optional[str] = None,
    **kwargs: Any
) -> RaydiumSwapError:
    """Wrap a generic exception in a RaydiumSwapError subclass."""
    msg = message or str(original)
    context = kwargs.pop("context", {})
    context["original_error"] = type(original).__name__
    context["original_message"] = str(original)

    return wrapper_class(
        message=msg,
        context=context,
        **kwargs
    )


# =============================================================================
# EXCEPTION MAPPING
# =============================================================================

ERROR_CODE_MAP: dict[str, type[RaydiumSwapError]] = {
    "GENERAL_001": RaydiumSwapError,
    "CONFIG_001": ConfigurationError,
    "VAL_001": InvalidRequestError,
    "POOL_001": PoolNotFoundError,
    "API_001": PoolDiscoveryError,
    "DATA_001": MalformedAccountDataError,
    "RPC_001": RPCError,
    "MATH_001": ArithmeticOverflowError,
    "MATH_002": DivideByZeroError,
    "TX_001": InstructionEncodingError,
    "TX_002": IncompletePlanError,
    "TX_003": SimulationUnavailableError,
}


__all__ = [
    "RaydiumSwapError", "ConfigurationError", "InvalidRequestError",
    "PoolNotFoundError", "PoolDiscoveryError", "MalformedAccountDataError",
    "RPCError", "ArithmeticOverflowError", "DivideByZeroError",
    "InstructionEncodingError", "IncompletePlanError",
    "SimulationUnavailableError", "is_retryable", "wrap_exception",
    "ERROR_CODE_MAP",
]
