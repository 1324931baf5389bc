from dataclasses import replace

import pytest
from solders.pubkey import Pubkey

from raydium_swap.codec import EventFlag, EventQueue, QueueEvent, RaydiumAccountCodec
from raydium_swap.exceptions import MalformedAccountDataError, RPCError
from raydium_swap.snapshot import SnapshotLoader

from conftest import FakeDiscovery, FakeRpcClient, make_chain_pool, make_resolved_pool


async def test_load_swap_only_pool(chain_pool, rpc):
    pool, snapshot = await SnapshotLoader(rpc).load(chain_pool.pool_id)

    assert pool.pool_id == chain_pool.pool_id
    assert pool.amm_keys.amm_pc_mint == chain_pool.pc_mint
    assert pool.market_keys.asks == chain_pool.market.asks
    assert snapshot.coin_vault_amount == chain_pool.coin_vault_amount
    assert snapshot.pc_vault_amount == chain_pool.pc_vault_amount
    assert snapshot.swap_fee_numerator == 25
    assert snapshot.swap_fee_denominator == 10_000
    assert snapshot.orderbook_adjustment is None


async def test_reserves_come_from_one_batch(chain_pool, rpc):
    await SnapshotLoader(rpc).load(chain_pool.pool_id)
    info = chain_pool.info
    assert rpc.calls[-1] == [
        chain_pool.pool_id,
        info.target_orders,
        info.pc_vault,
        info.coin_vault,
        info.open_orders,
        info.market,
        chain_pool.market.event_queue,
    ]
    assert len(rpc.calls) == 3


async def test_orderbook_pool_includes_open_orders():
    chain = make_chain_pool(status=1, open_orders_coin_total=1_000, open_orders_pc_total=2_000, need_take_pnl_pc=500)
    _, snapshot = await SnapshotLoader(FakeRpcClient(chain.accounts)).load(chain.pool_id)

    assert snapshot.orderbook_adjustment.open_orders_coin_total == 1_000
    assert snapshot.orderbook_adjustment.open_orders_pc_total == 2_000
    total_pc, total_coin = snapshot.effective_reserves()
    assert total_pc == chain.pc_vault_amount + 2_000 - 500
    assert total_coin == chain.coin_vault_amount + 1_000


async def test_orderbook_pool_missing_open_orders():
    chain = make_chain_pool(status=1)
    del chain.accounts[chain.info.open_orders]
    with pytest.raises(MalformedAccountDataError):
        await SnapshotLoader(FakeRpcClient(chain.accounts)).load(chain.pool_id)


async def test_swap_only_pool_tolerates_missing_open_orders(chain_pool):
    del chain_pool.accounts[chain_pool.info.open_orders]
    _, snapshot = await SnapshotLoader(FakeRpcClient(chain_pool.accounts)).load(chain_pool.pool_id)
    assert snapshot.orderbook_adjustment is None


async def test_missing_vault(chain_pool):
    del chain_pool.accounts[chain_pool.info.pc_vault]
    with pytest.raises(MalformedAccountDataError):
        await SnapshotLoader(FakeRpcClient(chain_pool.accounts)).load(chain_pool.pool_id)


async def test_unknown_pool():
    with pytest.raises(MalformedAccountDataError):
        await SnapshotLoader(FakeRpcClient()).load(Pubkey.new_unique())


async def test_market_keys_from_api_source(chain_pool):
    del chain_pool.accounts[chain_pool.info.market]
    api_keys = replace(make_resolved_pool().market_keys, event_queue=chain_pool.market.event_queue)
    rpc = FakeRpcClient(chain_pool.accounts)
    loader = SnapshotLoader(rpc, market_keys_source=FakeDiscovery(market_keys=api_keys))

    pool, _ = await loader.load(chain_pool.pool_id)

    assert pool.market_keys == api_keys
    assert len(rpc.calls) == 2


async def test_batch_limit(rpc):
    with pytest.raises(RPCError):
        await SnapshotLoader(rpc).get_multiple_accounts([Pubkey.new_unique() for _ in range(101)])


async def test_rpc_failure_is_wrapped(chain_pool):
    class BrokenRpc:
        async def get_multiple_accounts(self, *args, **kwargs):
            raise ConnectionError("connection reset")

    with pytest.raises(RPCError) as exc_info:
        await SnapshotLoader(BrokenRpc()).load(chain_pool.pool_id)
    assert exc_info.value.context["original_error"] == "ConnectionError"
    assert exc_info.value.is_recoverable


def queue_event(owner, flags, paid, released):
    return QueueEvent(event_flags=int(flags), owner=owner, native_qty_released=released, native_qty_paid=paid)


async def test_pending_fills_adjust_open_orders_totals():
    chain = make_chain_pool(status=1, open_orders_coin_total=1_000, open_orders_pc_total=2_000)
    own = chain.info.open_orders
    maker_fill = EventFlag.FILL | EventFlag.MAKER
    events = (
        queue_event(own, maker_fill | EventFlag.BID, paid=300, released=40),
        queue_event(own, maker_fill, paid=100, released=500),
        queue_event(own, EventFlag.FILL | EventFlag.BID, paid=999, released=999),
        queue_event(Pubkey.new_unique(), maker_fill, paid=999, released=999),
        queue_event(own, EventFlag.OUT | EventFlag.MAKER, paid=999, released=999),
    )
    chain.accounts[chain.market.event_queue] = RaydiumAccountCodec().encode_event_queue(
        EventQueue(queue_head=6, seq_num=20, events=events), capacity=8
    )

    _, snapshot = await SnapshotLoader(FakeRpcClient(chain.accounts)).load(chain.pool_id)

    assert snapshot.orderbook_adjustment.open_orders_coin_total == 1_000 + 40 - 100
    assert snapshot.orderbook_adjustment.open_orders_pc_total == 2_000 - 300 + 500


async def test_orderbook_pool_missing_event_queue():
    chain = make_chain_pool(status=1)
    del chain.accounts[chain.market.event_queue]
    with pytest.raises(MalformedAccountDataError):
        await SnapshotLoader(FakeRpcClient(chain.accounts)).load(chain.pool_id)


async def test_swap_only_pool_ignores_event_queue(chain_pool):
    chain_pool.accounts[chain_pool.market.event_queue] = bytes(16)
    _, snapshot = await SnapshotLoader(FakeRpcClient(chain_pool.accounts)).load(chain_pool.pool_id)
    assert snapshot.orderbook_adjustment is None


async def test_load_lookup_tables(rpc):
    codec = RaydiumAccountCodec()
    key = Pubkey.new_unique()
    addresses = [Pubkey.new_unique(), Pubkey.new_unique()]
    rpc.accounts[key] = codec.encode_lookup_table(addresses)

    (table,) = await SnapshotLoader(rpc).load_lookup_tables([key])

    assert table.key == key
    assert list(table.addresses) == addresses
    assert await SnapshotLoader(rpc).load_lookup_tables([]) == []


async def test_missing_lookup_table(rpc):
    with pytest.raises(MalformedAccountDataError):
        await SnapshotLoader(rpc).load_lookup_tables([Pubkey.new_unique()])
