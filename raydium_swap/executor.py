"""
RaydiumAmm: quote a swap and turn the quote into instructions or an unsigned
transaction.

Example:
    amm = RaydiumAmm(AsyncClient(rpc_url), SwapConfig(), discovery=RaydiumApiClient())
    quote = await amm.quote(SwapRequest(WSOL, USDC, 1_000_000_000, slippage_bps=50))
    tx = await amm.swap_transaction(quote, wallet.pubkey())
"""

import logging
import random
from typing import List, Optional

from solana.rpc.async_api import AsyncClient
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .builder import InstructionPlan, SwapInstructionsBuilder
from .codec import AccountCodec
from .compute import ComputeEstimator, TransactionSimulator
from .discovery import PoolDiscovery
from .exceptions import PoolNotFoundError
from .models import Quote, SwapConfig, SwapConfigOverrides, SwapRequest
from .quote import compute_quote
from .snapshot import SnapshotLoader
from .validators import validate_swap_request

logger = logging.getLogger(__name__)


class RaydiumAmm:

    def __init__(
        self,
        client: AsyncClient,
        config: Optional[SwapConfig] = None,
        discovery: Optional[PoolDiscovery] = None,
        simulator: Optional[TransactionSimulator] = None,
        codec: Optional[AccountCodec] = None,
        market_keys_by_api: bool = False,
        compute_unit_margin: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.config = config or SwapConfig()
        self.discovery = discovery

        market_keys_source = None
        if market_keys_by_api:
            if discovery is None or not hasattr(discovery, "fetch_market_keys"):
                raise ValueError("market_keys_by_api requires a discovery client that serves market keys")
            market_keys_source = discovery
        self.loader = SnapshotLoader(client, codec=codec, market_keys_source=market_keys_source)

        if compute_unit_margin is None:
            estimator = ComputeEstimator(simulator)
        else:
            estimator = ComputeEstimator(simulator, margin=compute_unit_margin)
        self.builder = SwapInstructionsBuilder(estimator, rng=rng)

    def update_config(self, config: SwapConfig) -> None:
        self.config = config

    async def resolve_pool(self, request: SwapRequest) -> Pubkey:
        if request.pool_override is not None:
            return request.pool_override

        pool_id = None
        if self.discovery is not None:
            pool_id = await self.discovery.find_pool(request.input_mint, request.output_mint)
        if pool_id is None:
            raise PoolNotFoundError(
                f"No AMM v4 pool found for {request.input_mint} -> {request.output_mint}",
                input_mint=str(request.input_mint),
                output_mint=str(request.output_mint),
            )
        return pool_id

    async def quote(self, request: SwapRequest) -> Quote:
        validate_swap_request(request)
        pool_id = await self.resolve_pool(request)
        pool, snapshot = await self.loader.load(pool_id)
        quote = compute_quote(request, pool, snapshot)
        logger.info(
            f"Quoted {quote.amount} {quote.input_mint} -> {quote.output_mint} on {quote.pool_id}: "
            f"other_amount={quote.other_amount} threshold={quote.other_amount_threshold}"
        )
        return quote

    async def plan(
        self,
        quote: Quote,
        payer: Pubkey,
        overrides: Optional[SwapConfigOverrides] = None,
    ) -> InstructionPlan:
        return await self.builder.plan(quote, payer, self.config.merge(overrides))

    async def swap_instructions(
        self,
        quote: Quote,
        payer: Pubkey,
        overrides: Optional[SwapConfigOverrides] = None,
    ) -> List[Instruction]:
        plan = await self.plan(quote, payer, overrides)
        return plan.build_instructions()

    async def swap_transaction(
        self,
        quote: Quote,
        payer: Pubkey,
        overrides: Optional[SwapConfigOverrides] = None,
        blockhash: Optional[Hash] = None,
    ) -> VersionedTransaction:
        resolved = self.config.merge(overrides)
        plan = await self.builder.plan(quote, payer, resolved)
        lookup_tables = []
        if not resolved.as_legacy_transaction:
            lookup_tables = await self.loader.load_lookup_tables(plan.address_lookup_table_addresses)
        return plan.build_transaction(
            payer,
            blockhash=blockhash,
            as_legacy=resolved.as_legacy_transaction,
            lookup_tables=lookup_tables,
        )
