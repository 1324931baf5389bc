"""
Constant-product (x*y=k) curve math for Raydium AMM v4 pools.

All amounts are raw u64 token units. Rounding always favors the pool:
outputs round down, required inputs and fees round up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Tuple

from solders.pubkey import Pubkey

from .exceptions import ArithmeticOverflowError, DivideByZeroError
from .models import SwapDirection

if TYPE_CHECKING:
    from .codec import QueueEvent
    from .models import PoolStateSnapshot

MAX_U64 = 2**64 - 1
TEN_THOUSAND = 10_000


def _ceil_div(numerator: int, denominator: int, what: str) -> int:
    if denominator == 0:
        raise DivideByZeroError(f"Division by zero while computing {what}")
    return -(-numerator // denominator)


def _floor_div(numerator: int, denominator: int, what: str) -> int:
    if denominator == 0:
        raise DivideByZeroError(f"Division by zero while computing {what}")
    return numerator // denominator


def _checked_u64(value: int, what: str) -> int:
    if value < 0:
        raise ArithmeticOverflowError(f"Underflow while computing {what}", context={"value": value})
    if value > MAX_U64:
        raise ArithmeticOverflowError(f"Overflow while computing {what}", context={"value": value})
    return value


def open_orders_totals_with_fills(
    native_coin_total: int,
    native_pc_total: int,
    events: Iterable["QueueEvent"],
    open_orders: Pubkey,
) -> Tuple[int, int]:
    """
    Open-orders ``(coin_total, pc_total)`` after the pool's unconsumed maker fills.

    Fills still sitting in the market's event queue have already moved funds
    on the book but are not yet reflected in the open-orders account.
    """
    coin_total, pc_total = native_coin_total, native_pc_total
    for event in events:
        if event.owner != open_orders or not event.is_fill or not event.is_maker:
            continue
        if event.is_bid:
            pc_total = _checked_u64(pc_total - event.native_qty_paid, "open orders pc after fill")
            coin_total = _checked_u64(coin_total + event.native_qty_released, "open orders coin after fill")
        else:
            coin_total = _checked_u64(coin_total - event.native_qty_paid, "open orders coin after fill")
            pc_total = _checked_u64(pc_total + event.native_qty_released, "open orders pc after fill")
    return coin_total, pc_total


def total_without_take_pnl(snapshot: "PoolStateSnapshot") -> Tuple[int, int]:
    """
    Effective ``(total_pc, total_coin)`` reserves of a pool.

    Pools with an active orderbook hold part of their liquidity as resting
    OpenBook orders; those balances are added to the vault amounts. Pnl the
    pool still owes the protocol is not tradable and is deducted.
    """
    pc = snapshot.pc_vault_amount
    coin = snapshot.coin_vault_amount
    if snapshot.orderbook_adjustment is not None:
        pc += snapshot.orderbook_adjustment.open_orders_pc_total
        coin += snapshot.orderbook_adjustment.open_orders_coin_total
    total_pc = _checked_u64(pc - snapshot.need_take_pnl_pc, "total pc without take pnl")
    total_coin = _checked_u64(coin - snapshot.need_take_pnl_coin, "total coin without take pnl")
    return total_pc, total_coin


def swap_token_amount_base_in(
    amount_in: int,
    total_pc: int,
    total_coin: int,
    direction: SwapDirection,
) -> int:
    """Output for a fee-free input: ``reserve_out * in / (reserve_in + in)``, rounded down."""
    if direction is SwapDirection.COIN_TO_PC:
        return _floor_div(total_pc * amount_in, total_coin + amount_in, "swap output")
    return _floor_div(total_coin * amount_in, total_pc + amount_in, "swap output")


def swap_token_amount_base_out(
    amount_out: int,
    total_pc: int,
    total_coin: int,
    direction: SwapDirection,
) -> int:
    """Fee-free input needed for ``amount_out``: ``reserve_in * out / (reserve_out - out)``, rounded up."""
    if direction is SwapDirection.COIN_TO_PC:
        reserve_in, reserve_out = total_coin, total_pc
    else:
        reserve_in, reserve_out = total_pc, total_coin
    remaining = reserve_out - amount_out
    if remaining < 0:
        raise ArithmeticOverflowError(
            "Requested output exceeds pool reserves",
            context={"amount_out": amount_out, "reserve_out": reserve_out},
        )
    return _ceil_div(reserve_in * amount_out, remaining, "swap input")


def swap_exact_amount(
    total_pc: int,
    total_coin: int,
    swap_fee_numerator: int,
    swap_fee_denominator: int,
    direction: SwapDirection,
    amount_specified: int,
    swap_base_in: bool,
) -> int:
    """
    Counter amount for a swap net of the pool's swap fee.

    For ``swap_base_in`` the fee is taken from the input before it hits the
    curve; otherwise the fee-free input is grossed up by ``den / (den - num)``.
    """
    if swap_fee_denominator == 0:
        raise DivideByZeroError("Pool swap fee denominator is zero")
    if not swap_base_in and swap_fee_numerator >= swap_fee_denominator:
        raise DivideByZeroError(
            "Pool swap fee leaves nothing to gross up",
            context={"numerator": swap_fee_numerator, "denominator": swap_fee_denominator},
        )

    if swap_base_in:
        swap_fee = _ceil_div(amount_specified * swap_fee_numerator, swap_fee_denominator, "swap fee")
        amount_after_fee = _checked_u64(amount_specified - swap_fee, "input after fee")
        amount_out = swap_token_amount_base_in(amount_after_fee, total_pc, total_coin, direction)
        return _checked_u64(amount_out, "swap output")

    amount_before_fee = swap_token_amount_base_out(amount_specified, total_pc, total_coin, direction)
    amount_in = _ceil_div(
        amount_before_fee * swap_fee_denominator,
        swap_fee_denominator - swap_fee_numerator,
        "input with fee",
    )
    return _checked_u64(amount_in, "swap input")


def amount_with_slippage(amount: int, slippage_bps: int, round_up: bool) -> int:
    """
    Apply slippage to a counter amount.

    ``round_up`` selects the maximum-input bound (ExactOut); otherwise the
    minimum-output bound (ExactIn) is returned.
    """
    if round_up:
        bounded = _ceil_div(amount * (TEN_THOUSAND + slippage_bps), TEN_THOUSAND, "slippage bound")
    else:
        bounded = (amount * (TEN_THOUSAND - slippage_bps)) // TEN_THOUSAND
    return _checked_u64(bounded, "amount with slippage")


def swap_with_slippage(
    total_pc: int,
    total_coin: int,
    swap_fee_numerator: int,
    swap_fee_denominator: int,
    direction: SwapDirection,
    amount_specified: int,
    swap_base_in: bool,
    slippage_bps: int,
) -> Tuple[int, int]:
    """Return ``(other_amount, other_amount_threshold)``."""
    other_amount = swap_exact_amount(
        total_pc,
        total_coin,
        swap_fee_numerator,
        swap_fee_denominator,
        direction,
        amount_specified,
        swap_base_in,
    )
    threshold = amount_with_slippage(other_amount, slippage_bps, round_up=not swap_base_in)
    return other_amount, threshold
