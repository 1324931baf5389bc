"""
Pool state snapshot loader.

Reads everything a quote needs for one pool. The figures that feed the curve
math (vault balances, open-orders totals, pending pnl) come from a single
``getMultipleAccounts`` call so they all reflect the same slot.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.pubkey import Pubkey

from .amm_math import open_orders_totals_with_fills
from .codec import (
    AccountCodec,
    AmmInfo,
    RaydiumAccountCodec,
    amm_keys_from_info,
    market_keys_from_state,
)
from .exceptions import MalformedAccountDataError, RPCError, wrap_exception
from .models import (
    AmmKeys,
    MarketKeys,
    OrderbookAdjustment,
    PoolStateSnapshot,
    ResolvedPool,
)

logger = logging.getLogger(__name__)

# getMultipleAccounts hard limit
MAX_ACCOUNTS_PER_BATCH = 100


class SnapshotLoader:
    """
    Loads ``(ResolvedPool, PoolStateSnapshot)`` for a pool id.

    Args:
        client: solana-py async RPC client
        codec: account decoder, defaults to the Raydium layouts
        market_keys_source: optional object with an async
            ``fetch_market_keys(pool_id)``; when set, market keys come from it
            instead of decoding the market account on-chain
    """

    def __init__(
        self,
        client: AsyncClient,
        codec: Optional[AccountCodec] = None,
        market_keys_source=None,
    ):
        self.client = client
        self.codec = codec or RaydiumAccountCodec()
        self.market_keys_source = market_keys_source

    async def get_multiple_accounts(self, addresses: Sequence[Pubkey]) -> List[Optional[bytes]]:
        """Raw data for each address, ``None`` where the account does not exist."""
        if len(addresses) > MAX_ACCOUNTS_PER_BATCH:
            raise RPCError(
                f"Batch of {len(addresses)} accounts exceeds the limit of {MAX_ACCOUNTS_PER_BATCH}",
                is_recoverable=False,
            )
        try:
            resp = await self.client.get_multiple_accounts(
                list(addresses), commitment=Confirmed, encoding="base64"
            )
        except Exception as e:
            raise wrap_exception(e, RPCError, f"getMultipleAccounts failed: {e}")

        values = resp.value
        if values is None or len(values) != len(addresses):
            raise RPCError(
                "getMultipleAccounts returned an unexpected number of accounts",
                context={"requested": len(addresses), "returned": len(values or [])},
            )
        return [None if account is None else bytes(account.data) for account in values]

    async def load_amm(self, pool_id: Pubkey) -> Tuple[AmmInfo, AmmKeys]:
        (data,) = await self.get_multiple_accounts([pool_id])
        if data is None:
            raise MalformedAccountDataError(f"Pool account {pool_id} not found", account=str(pool_id))
        info = self.codec.decode_amm_info(data)
        return info, amm_keys_from_info(pool_id, info)

    async def load_market_keys(self, pool_id: Pubkey, amm_keys: AmmKeys) -> MarketKeys:
        if self.market_keys_source is not None:
            return await self.market_keys_source.fetch_market_keys(pool_id)

        (data,) = await self.get_multiple_accounts([amm_keys.market])
        if data is None:
            raise MalformedAccountDataError(
                f"Market account {amm_keys.market} not found", account=str(amm_keys.market)
            )
        market = self.codec.decode_market_state(data)
        return market_keys_from_state(market, amm_keys.market_program)

    async def load_lookup_tables(self, addresses: Sequence[Pubkey]) -> List[AddressLookupTableAccount]:
        if not addresses:
            return []
        tables = []
        for address, data in zip(addresses, await self.get_multiple_accounts(addresses)):
            if data is None:
                raise MalformedAccountDataError(f"Lookup table {address} not found", account=str(address))
            tables.append(self.codec.decode_lookup_table(address, data))
        return tables

    async def load(self, pool_id: Pubkey) -> Tuple[ResolvedPool, PoolStateSnapshot]:
        _, amm_keys = await self.load_amm(pool_id)
        market_keys = await self.load_market_keys(pool_id, amm_keys)

        addresses = [
            pool_id,
            amm_keys.amm_target,
            amm_keys.amm_pc_vault,
            amm_keys.amm_coin_vault,
            amm_keys.amm_open_order,
            amm_keys.market,
            market_keys.event_queue,
        ]
        pool_data, _, pc_vault_data, coin_vault_data, open_orders_data, market_data, event_queue_data = (
            await self.get_multiple_accounts(addresses)
        )

        def require(data: Optional[bytes], address: Pubkey, what: str) -> bytes:
            if data is None:
                raise MalformedAccountDataError(f"{what} account {address} not found", account=str(address))
            return data

        info = self.codec.decode_amm_info(require(pool_data, pool_id, "Pool"))
        pc_vault = self.codec.decode_token_account(require(pc_vault_data, amm_keys.amm_pc_vault, "Pc vault"))
        coin_vault = self.codec.decode_token_account(
            require(coin_vault_data, amm_keys.amm_coin_vault, "Coin vault")
        )

        adjustment = None
        if info.orderbook_enabled:
            require(market_data, amm_keys.market, "Market")
            open_orders = self.codec.decode_open_orders(
                require(open_orders_data, amm_keys.amm_open_order, "Open orders")
            )
            event_queue = self.codec.decode_event_queue(
                require(event_queue_data, market_keys.event_queue, "Event queue")
            )
            coin_total, pc_total = open_orders_totals_with_fills(
                open_orders.native_coin_total,
                open_orders.native_pc_total,
                event_queue.events,
                amm_keys.amm_open_order,
            )
            adjustment = OrderbookAdjustment(open_orders_coin_total=coin_total, open_orders_pc_total=pc_total)

        snapshot = PoolStateSnapshot(
            pool_id=pool_id,
            coin_vault_amount=coin_vault.amount,
            pc_vault_amount=pc_vault.amount,
            swap_fee_numerator=info.swap_fee_numerator,
            swap_fee_denominator=info.swap_fee_denominator,
            coin_decimals=info.coin_decimals,
            pc_decimals=info.pc_decimals,
            need_take_pnl_coin=info.need_take_pnl_coin,
            need_take_pnl_pc=info.need_take_pnl_pc,
            orderbook_adjustment=adjustment,
        )
        logger.debug(
            f"Snapshot {pool_id}: coin_vault={snapshot.coin_vault_amount} pc_vault={snapshot.pc_vault_amount} "
            f"orderbook={'on' if adjustment else 'off'}"
        )
        return ResolvedPool(pool_id=pool_id, amm_keys=amm_keys, market_keys=market_keys), snapshot
