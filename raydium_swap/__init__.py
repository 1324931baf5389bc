"""
Raydium Swap

Quote and assemble swaps against Raydium standard (AMM v4) pools on Solana.
"""

__version__ = "1.0.0"

from .builder import InstructionPlan, SwapInstructionsBuilder
from .executor import RaydiumAmm
from .models import (
    DynamicComputeLimit,
    DynamicMultiplier,
    FixedComputeLimit,
    FixedCuPrice,
    JitoTip,
    Quote,
    SwapConfig,
    SwapConfigOverrides,
    SwapMode,
    SwapRequest,
)
from .quote import compute_quote

__all__ = [
    "InstructionPlan",
    "SwapInstructionsBuilder",
    "RaydiumAmm",
    "DynamicComputeLimit",
    "DynamicMultiplier",
    "FixedComputeLimit",
    "FixedCuPrice",
    "JitoTip",
    "Quote",
    "SwapConfig",
    "SwapConfigOverrides",
    "SwapMode",
    "SwapRequest",
    "compute_quote",
]
