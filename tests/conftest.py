"""Shared fixtures: in-memory chain state and fake collaborators."""

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from solders.pubkey import Pubkey
from spl.token.constants import WRAPPED_SOL_MINT

from raydium_swap.codec import AmmInfo, EventQueue, MarketState, OpenOrders, RaydiumAccountCodec, TokenAccount
from raydium_swap.compute import SimulationResult, TransactionSimulator
from raydium_swap.discovery import PoolDiscovery
from raydium_swap.models import AmmKeys, MarketKeys, PoolStateSnapshot, ResolvedPool


def find_vault_signer_nonce(market: Pubkey, market_program: Pubkey) -> int:
    for nonce in range(256):
        try:
            Pubkey.create_program_address([bytes(market), nonce.to_bytes(8, "little")], market_program)
        except Exception:
            continue
        return nonce
    raise RuntimeError("no valid vault signer nonce")


class FakeRpcClient:
    """Stands in for AsyncClient.get_multiple_accounts."""

    def __init__(self, accounts: Optional[Dict[Pubkey, bytes]] = None):
        self.accounts: Dict[Pubkey, bytes] = dict(accounts or {})
        self.calls: List[List[Pubkey]] = []

    async def get_multiple_accounts(self, pubkeys, commitment=None, encoding="base64"):
        self.calls.append(list(pubkeys))
        value = [
            SimpleNamespace(data=self.accounts[p]) if p in self.accounts else None
            for p in pubkeys
        ]
        return SimpleNamespace(value=value)


class FakeSimulator(TransactionSimulator):

    def __init__(self, units_consumed: Optional[int] = 120_000, error: Optional[Exception] = None):
        self.units_consumed = units_consumed
        self.error = error
        self.transactions = []

    async def simulate(self, tx):
        self.transactions.append(tx)
        if self.error is not None:
            raise self.error
        return SimulationResult(success=True, units_consumed=self.units_consumed)


class FakeDiscovery(PoolDiscovery):

    def __init__(self, pool_id: Optional[Pubkey] = None, market_keys: Optional[MarketKeys] = None):
        self.pool_id = pool_id
        self.market_keys = market_keys
        self.calls = 0

    async def find_pool(self, mint_x, mint_y):
        self.calls += 1
        return self.pool_id

    async def fetch_market_keys(self, pool_id):
        return self.market_keys


@dataclass
class ChainPool:
    """One AMM v4 pool laid out as raw accounts."""
    pool_id: Pubkey
    coin_mint: Pubkey
    pc_mint: Pubkey
    info: AmmInfo
    market: MarketState
    open_orders: OpenOrders
    coin_vault_amount: int
    pc_vault_amount: int
    accounts: Dict[Pubkey, bytes] = field(default_factory=dict)


def make_chain_pool(
    coin_mint: Optional[Pubkey] = None,
    pc_mint: Optional[Pubkey] = None,
    coin_vault_amount: int = 1_000_000_000_000,
    pc_vault_amount: int = 50_000_000_000,
    status: int = 6,
    open_orders_coin_total: int = 0,
    open_orders_pc_total: int = 0,
    need_take_pnl_coin: int = 0,
    need_take_pnl_pc: int = 0,
) -> ChainPool:
    codec = RaydiumAccountCodec()
    coin_mint = coin_mint or Pubkey.new_unique()
    pc_mint = pc_mint or Pubkey.new_unique()
    pool_id = Pubkey.new_unique()
    market_program = Pubkey.new_unique()
    market_address = Pubkey.new_unique()

    info = AmmInfo(
        status=status,
        nonce=254,
        coin_decimals=9,
        pc_decimals=6,
        trade_fee_numerator=25,
        trade_fee_denominator=10_000,
        swap_fee_numerator=25,
        swap_fee_denominator=10_000,
        need_take_pnl_coin=need_take_pnl_coin,
        need_take_pnl_pc=need_take_pnl_pc,
        coin_vault=Pubkey.new_unique(),
        pc_vault=Pubkey.new_unique(),
        coin_vault_mint=coin_mint,
        pc_vault_mint=pc_mint,
        lp_mint=Pubkey.new_unique(),
        open_orders=Pubkey.new_unique(),
        market=market_address,
        market_program=market_program,
        target_orders=Pubkey.new_unique(),
        amm_owner=Pubkey.new_unique(),
    )
    market = MarketState(
        own_address=market_address,
        vault_signer_nonce=find_vault_signer_nonce(market_address, market_program),
        coin_mint=coin_mint,
        pc_mint=pc_mint,
        coin_vault=Pubkey.new_unique(),
        pc_vault=Pubkey.new_unique(),
        event_queue=Pubkey.new_unique(),
        bids=Pubkey.new_unique(),
        asks=Pubkey.new_unique(),
    )
    open_orders = OpenOrders(
        market=market_address,
        owner=pool_id,
        native_coin_free=0,
        native_coin_total=open_orders_coin_total,
        native_pc_free=0,
        native_pc_total=open_orders_pc_total,
    )

    chain = ChainPool(
        pool_id=pool_id,
        coin_mint=coin_mint,
        pc_mint=pc_mint,
        info=info,
        market=market,
        open_orders=open_orders,
        coin_vault_amount=coin_vault_amount,
        pc_vault_amount=pc_vault_amount,
    )
    chain.accounts = {
        pool_id: codec.encode_amm_info(info),
        info.coin_vault: codec.encode_token_account(TokenAccount(coin_mint, pool_id, coin_vault_amount)),
        info.pc_vault: codec.encode_token_account(TokenAccount(pc_mint, pool_id, pc_vault_amount)),
        info.open_orders: codec.encode_open_orders(open_orders),
        info.target_orders: bytes(64),
        market_address: codec.encode_market_state(market),
        market.event_queue: codec.encode_event_queue(EventQueue(queue_head=0, seq_num=0), capacity=4),
    }
    return chain


@pytest.fixture
def chain_pool() -> ChainPool:
    return make_chain_pool()


@pytest.fixture
def sol_usdc_pool() -> ChainPool:
    return make_chain_pool(coin_mint=WRAPPED_SOL_MINT, coin_vault_amount=1_000_000_000_000)


@pytest.fixture
def rpc(chain_pool) -> FakeRpcClient:
    return FakeRpcClient(chain_pool.accounts)


def make_resolved_pool(
    coin_mint: Optional[Pubkey] = None,
    pc_mint: Optional[Pubkey] = None,
    with_market: bool = True,
) -> ResolvedPool:
    pool_id = Pubkey.new_unique()
    amm_keys = AmmKeys(
        amm_pool=pool_id,
        amm_coin_mint=coin_mint or Pubkey.new_unique(),
        amm_pc_mint=pc_mint or Pubkey.new_unique(),
        amm_authority=Pubkey.new_unique(),
        amm_target=Pubkey.new_unique(),
        amm_coin_vault=Pubkey.new_unique(),
        amm_pc_vault=Pubkey.new_unique(),
        amm_lp_mint=Pubkey.new_unique(),
        amm_open_order=Pubkey.new_unique(),
        market_program=Pubkey.new_unique(),
        market=Pubkey.new_unique(),
    )
    market_keys = MarketKeys(
        event_queue=Pubkey.new_unique(),
        bids=Pubkey.new_unique(),
        asks=Pubkey.new_unique(),
        coin_vault=Pubkey.new_unique(),
        pc_vault=Pubkey.new_unique(),
        vault_signer_key=Pubkey.new_unique(),
    )
    return ResolvedPool(pool_id=pool_id, amm_keys=amm_keys, market_keys=market_keys if with_market else None)


def make_snapshot(
    pool: ResolvedPool,
    coin: int = 1_000_000_000_000,
    pc: int = 50_000_000_000,
    fee_numerator: int = 25,
    fee_denominator: int = 10_000,
    **kwargs,
) -> PoolStateSnapshot:
    return PoolStateSnapshot(
        pool_id=pool.pool_id,
        coin_vault_amount=coin,
        pc_vault_amount=pc,
        swap_fee_numerator=fee_numerator,
        swap_fee_denominator=fee_denominator,
        coin_decimals=9,
        pc_decimals=6,
        **kwargs,
    )


@pytest.fixture
def resolved_pool() -> ResolvedPool:
    return make_resolved_pool()


@pytest.fixture
def payer() -> Pubkey:
    return Pubkey.new_unique()
