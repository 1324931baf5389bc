import pytest
from solders.pubkey import Pubkey

from raydium_swap.amm_math import (
    amount_with_slippage,
    open_orders_totals_with_fills,
    swap_exact_amount,
    swap_with_slippage,
    total_without_take_pnl,
)
from raydium_swap.codec import EventFlag, QueueEvent
from raydium_swap.exceptions import ArithmeticOverflowError, DivideByZeroError
from raydium_swap.models import OrderbookAdjustment, PoolStateSnapshot, SwapDirection

from conftest import make_resolved_pool, make_snapshot

PC = 50_000_000_000
COIN = 1_000_000_000_000


def test_scenario_exact_in_coin_to_pc():
    amount = 1_000_000_000
    fee = (amount * 25 + 9_999) // 10_000
    net = amount - fee
    expected_out = PC * net // (COIN + net)

    other, threshold = swap_with_slippage(PC, COIN, 25, 10_000, SwapDirection.COIN_TO_PC, amount, True, 1000)

    assert fee == 2_500_000
    assert other == expected_out
    assert threshold == expected_out * 9000 // 10_000
    assert threshold <= other * 0.9


def test_exact_out_grosses_up_fee():
    amount_out = 49_000_000
    pre = -(-COIN * amount_out // (PC - amount_out))
    expected_in = -(-pre * 10_000 // (10_000 - 25))

    other = swap_exact_amount(PC, COIN, 25, 10_000, SwapDirection.COIN_TO_PC, amount_out, False)

    assert other == expected_in


def test_exact_out_threshold_rounds_up():
    other, threshold = swap_with_slippage(PC, COIN, 25, 10_000, SwapDirection.PC_TO_COIN, 10_000_000, False, 33)
    assert threshold == -(-other * 10_033 // 10_000)
    assert threshold >= other


def test_zero_slippage_threshold_equals_amount():
    for base_in in (True, False):
        other, threshold = swap_with_slippage(PC, COIN, 25, 10_000, SwapDirection.PC_TO_COIN, 1_000_000, base_in, 0)
        assert other == threshold


@pytest.mark.parametrize("slippage", [0, 1, 50, 500, 10_000])
def test_exact_in_threshold_never_exceeds_output(slippage):
    other, threshold = swap_with_slippage(PC, COIN, 25, 10_000, SwapDirection.COIN_TO_PC, 7_777_777, True, slippage)
    assert threshold <= other


def test_full_slippage_exact_in_allows_zero_out():
    assert amount_with_slippage(1_000, 10_000, round_up=False) == 0


def test_output_equal_to_reserve_is_divide_by_zero():
    with pytest.raises(DivideByZeroError):
        swap_exact_amount(PC, COIN, 25, 10_000, SwapDirection.COIN_TO_PC, PC, False)


def test_output_above_reserve_overflows():
    with pytest.raises(ArithmeticOverflowError):
        swap_exact_amount(PC, COIN, 25, 10_000, SwapDirection.COIN_TO_PC, PC + 1, False)


@pytest.mark.parametrize("swap_base_in", [True, False])
def test_zero_fee_denominator(swap_base_in):
    with pytest.raises(DivideByZeroError):
        swap_exact_amount(PC, COIN, 25, 0, SwapDirection.COIN_TO_PC, 1_000, swap_base_in)


def test_zero_fee_denominator_never_quotes_free_exact_out():
    with pytest.raises(DivideByZeroError):
        swap_with_slippage(PC, COIN, 25, 0, SwapDirection.PC_TO_COIN, 1_000_000, False, 100)


@pytest.mark.parametrize("numerator", [10_000, 10_001])
def test_exact_out_fee_at_or_above_denominator(numerator):
    with pytest.raises(DivideByZeroError):
        swap_exact_amount(PC, COIN, numerator, 10_000, SwapDirection.COIN_TO_PC, 1_000, False)


def test_empty_pool_exact_in_is_divide_by_zero():
    with pytest.raises(DivideByZeroError):
        swap_exact_amount(0, 0, 0, 10_000, SwapDirection.COIN_TO_PC, 0, True)


def test_threshold_overflow_past_u64():
    with pytest.raises(ArithmeticOverflowError):
        amount_with_slippage(2**64 - 1, 10_000, round_up=True)


def test_total_without_take_pnl_plain_pool():
    pool = make_resolved_pool()
    snapshot = make_snapshot(pool, coin=1_000, pc=500, need_take_pnl_coin=10, need_take_pnl_pc=5)
    assert total_without_take_pnl(snapshot) == (495, 990)


def test_total_without_take_pnl_adds_open_orders():
    pool = make_resolved_pool()
    snapshot = make_snapshot(
        pool,
        coin=1_000,
        pc=500,
        need_take_pnl_coin=10,
        need_take_pnl_pc=5,
        orderbook_adjustment=OrderbookAdjustment(open_orders_coin_total=100, open_orders_pc_total=50),
    )
    assert snapshot.effective_reserves() == (545, 1_090)


def test_pending_pnl_above_reserves_underflows():
    snapshot = PoolStateSnapshot(
        pool_id=make_resolved_pool().pool_id,
        coin_vault_amount=10,
        pc_vault_amount=10,
        swap_fee_numerator=25,
        swap_fee_denominator=10_000,
        coin_decimals=9,
        pc_decimals=6,
        need_take_pnl_coin=11,
    )
    with pytest.raises(ArithmeticOverflowError):
        total_without_take_pnl(snapshot)


def test_maker_fills_move_open_orders_totals():
    own = Pubkey.new_unique()
    bid_fill = QueueEvent(int(EventFlag.FILL | EventFlag.MAKER | EventFlag.BID), own, native_qty_released=5, native_qty_paid=20)
    ask_fill = QueueEvent(int(EventFlag.FILL | EventFlag.MAKER), own, native_qty_released=30, native_qty_paid=7)

    assert open_orders_totals_with_fills(100, 200, [bid_fill, ask_fill], own) == (100 + 5 - 7, 200 - 20 + 30)
    assert open_orders_totals_with_fills(100, 200, [bid_fill], Pubkey.new_unique()) == (100, 200)


def test_fill_paying_more_than_open_orders_underflows():
    own = Pubkey.new_unique()
    bid_fill = QueueEvent(int(EventFlag.FILL | EventFlag.MAKER | EventFlag.BID), own, native_qty_released=1, native_qty_paid=201)
    with pytest.raises(ArithmeticOverflowError):
        open_orders_totals_with_fills(100, 200, [bid_fill], own)
