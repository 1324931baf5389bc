from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from solders.pubkey import Pubkey


# ============================================================================
# SWAP REQUEST
# ============================================================================

class SwapMode(str, Enum):
    EXACT_IN = "ExactIn"
    EXACT_OUT = "ExactOut"

    def amount_specified_is_input(self) -> bool:
        return self is SwapMode.EXACT_IN


class SwapDirection(str, Enum):
    COIN_TO_PC = "coin2pc"
    PC_TO_COIN = "pc2coin"


@dataclass(frozen=True)
class SwapRequest:
    """What the caller wants to trade. Validated by ``validators.validate_swap_request``."""
    input_mint: Pubkey
    output_mint: Pubkey
    amount: int
    slippage_bps: int
    mode: SwapMode = SwapMode.EXACT_IN
    pool_override: Optional[Pubkey] = None


# ============================================================================
# FEE / COMPUTE INTENTS
# ============================================================================

@dataclass(frozen=True)
class FixedCuPrice:
    """Pay a fixed compute-unit price, in micro-lamports."""
    micro_lamports: int


@dataclass(frozen=True)
class DynamicMultiplier:
    """Target a total priority fee of ``multiplier * 100_000`` lamports."""
    multiplier: int


@dataclass(frozen=True)
class JitoTip:
    """Tip a Jito block engine tip account, in lamports."""
    lamports: int


PriorityFeeIntent = Union[FixedCuPrice, DynamicMultiplier, JitoTip]


@dataclass(frozen=True)
class DynamicComputeLimit:
    """Estimate the compute-unit limit by simulating the draft transaction."""


@dataclass(frozen=True)
class FixedComputeLimit:
    units: int


ComputeLimitIntent = Union[DynamicComputeLimit, FixedComputeLimit]


# ============================================================================
# SWAP CONFIG
# ============================================================================

@dataclass(frozen=True)
class SwapConfigOverrides:
    priority_fee: Optional[PriorityFeeIntent] = None
    compute_limit: Optional[ComputeLimitIntent] = None
    wrap_and_unwrap_sol: Optional[bool] = None
    destination_token_account: Optional[Pubkey] = None
    as_legacy_transaction: Optional[bool] = None
    address_lookup_table_addresses: Tuple[Pubkey, ...] = ()


@dataclass(frozen=True)
class SwapConfig:
    priority_fee: Optional[PriorityFeeIntent] = None
    compute_limit: Optional[ComputeLimitIntent] = None
    wrap_and_unwrap_sol: Optional[bool] = None
    as_legacy_transaction: Optional[bool] = None

    def merge(self, overrides: Optional[SwapConfigOverrides]) -> "ResolvedSwapConfig":
        """Override wins, else base, field by field."""
        if overrides is None:
            overrides = SwapConfigOverrides()

        def pick(override, base):
            return override if override is not None else base

        wrap = pick(overrides.wrap_and_unwrap_sol, self.wrap_and_unwrap_sol)
        legacy = pick(overrides.as_legacy_transaction, self.as_legacy_transaction)
        return ResolvedSwapConfig(
            priority_fee=pick(overrides.priority_fee, self.priority_fee),
            compute_limit=pick(overrides.compute_limit, self.compute_limit),
            wrap_and_unwrap_sol=True if wrap is None else wrap,
            destination_token_account=overrides.destination_token_account,
            as_legacy_transaction=True if legacy is None else legacy,
            address_lookup_table_addresses=tuple(overrides.address_lookup_table_addresses),
        )


@dataclass(frozen=True)
class ResolvedSwapConfig:
    priority_fee: Optional[PriorityFeeIntent]
    compute_limit: Optional[ComputeLimitIntent]
    wrap_and_unwrap_sol: bool
    destination_token_account: Optional[Pubkey]
    as_legacy_transaction: bool
    address_lookup_table_addresses: Tuple[Pubkey, ...] = ()


# ============================================================================
# POOL KEYS AND STATE
# ============================================================================

@dataclass(frozen=True)
class AmmKeys:
    amm_pool: Pubkey
    amm_coin_mint: Pubkey
    amm_pc_mint: Pubkey
    amm_authority: Pubkey
    amm_target: Pubkey
    amm_coin_vault: Pubkey
    amm_pc_vault: Pubkey
    amm_lp_mint: Pubkey
    amm_open_order: Pubkey
    market_program: Pubkey
    market: Pubkey


@dataclass(frozen=True)
class MarketKeys:
    event_queue: Pubkey
    bids: Pubkey
    asks: Pubkey
    coin_vault: Pubkey
    pc_vault: Pubkey
    vault_signer_key: Pubkey


@dataclass(frozen=True)
class ResolvedPool:
    pool_id: Pubkey
    amm_keys: AmmKeys
    market_keys: Optional[MarketKeys]


@dataclass(frozen=True)
class OrderbookAdjustment:
    """Balances the pool holds as resting orders on its OpenBook market."""
    open_orders_coin_total: int
    open_orders_pc_total: int


@dataclass(frozen=True)
class PoolStateSnapshot:
    """
    Point-in-time view of one pool, read in a single batched RPC call.

    Built fresh for every quote and never reused: reserves move every slot.
    """
    pool_id: Pubkey
    coin_vault_amount: int
    pc_vault_amount: int
    swap_fee_numerator: int
    swap_fee_denominator: int
    coin_decimals: int
    pc_decimals: int
    need_take_pnl_coin: int = 0
    need_take_pnl_pc: int = 0
    orderbook_adjustment: Optional[OrderbookAdjustment] = None

    def effective_reserves(self) -> Tuple[int, int]:
        """Return ``(total_pc, total_coin)`` net of pending pnl."""
        from .amm_math import total_without_take_pnl
        return total_without_take_pnl(self)


# ============================================================================
# QUOTE
# ============================================================================

@dataclass(frozen=True)
class Quote:
    pool_id: Pubkey
    input_mint: Pubkey
    output_mint: Pubkey
    # the amount specified by the caller
    amount: int
    # the computed counter amount
    other_amount: int
    # the counter amount after slippage
    other_amount_threshold: int
    amount_specified_is_input: bool
    input_decimals: int
    output_decimals: int
    amm_keys: AmmKeys
    market_keys: Optional[MarketKeys]

    @property
    def max_input_amount(self) -> int:
        """Most the swap can pull from the source account."""
        if self.amount_specified_is_input:
            return self.amount
        return self.other_amount_threshold


__all__ = [
    "SwapMode",
    "SwapDirection",
    "SwapRequest",
    "FixedCuPrice",
    "DynamicMultiplier",
    "JitoTip",
    "PriorityFeeIntent",
    "DynamicComputeLimit",
    "FixedComputeLimit",
    "ComputeLimitIntent",
    "SwapConfig",
    "SwapConfigOverrides",
    "ResolvedSwapConfig",
    "AmmKeys",
    "MarketKeys",
    "ResolvedPool",
    "OrderbookAdjustment",
    "PoolStateSnapshot",
    "Quote",
]
