import logging

from .amm_math import swap_with_slippage
from .exceptions import InvalidRequestError
from .models import (
    PoolStateSnapshot,
    Quote,
    ResolvedPool,
    SwapDirection,
    SwapRequest,
)
from .validators import validate_swap_request

logger = logging.getLogger(__name__)


def swap_direction(request: SwapRequest, pool: ResolvedPool) -> SwapDirection:
    coin = pool.amm_keys.amm_coin_mint
    pc = pool.amm_keys.amm_pc_mint
    if request.input_mint == coin and request.output_mint == pc:
        return SwapDirection.COIN_TO_PC
    if request.input_mint == pc and request.output_mint == coin:
        return SwapDirection.PC_TO_COIN
    raise InvalidRequestError(
        f"Pool {pool.pool_id} does not trade {request.input_mint} -> {request.output_mint}",
        field_name="pool_override",
        context={"coin_mint": str(coin), "pc_mint": str(pc)},
    )


def compute_quote(request: SwapRequest, pool: ResolvedPool, snapshot: PoolStateSnapshot) -> Quote:
    """
    Quote a swap against a freshly loaded pool snapshot.

    Pure: no I/O, the result depends only on the arguments.

    Raises:
        InvalidRequestError: request invariants, or the pool does not trade the pair
        ArithmeticOverflowError: reserves underflow or a result leaves u64
        DivideByZeroError: zero fee denominator or output equal to the reserve
    """
    validate_swap_request(request)
    direction = swap_direction(request, pool)
    total_pc, total_coin = snapshot.effective_reserves()
    swap_base_in = request.mode.amount_specified_is_input()

    other_amount, threshold = swap_with_slippage(
        total_pc,
        total_coin,
        snapshot.swap_fee_numerator,
        snapshot.swap_fee_denominator,
        direction,
        request.amount,
        swap_base_in,
        request.slippage_bps,
    )

    if direction is SwapDirection.COIN_TO_PC:
        input_decimals, output_decimals = snapshot.coin_decimals, snapshot.pc_decimals
    else:
        input_decimals, output_decimals = snapshot.pc_decimals, snapshot.coin_decimals

    logger.debug(
        f"Quote {pool.pool_id} {direction.value}: total_pc={total_pc} total_coin={total_coin} "
        f"amount={request.amount} other_amount={other_amount} threshold={threshold} "
        f"base_in={swap_base_in}"
    )

    return Quote(
        pool_id=pool.pool_id,
        input_mint=request.input_mint,
        output_mint=request.output_mint,
        amount=request.amount,
        other_amount=other_amount,
        other_amount_threshold=threshold,
        amount_specified_is_input=swap_base_in,
        input_decimals=input_decimals,
        output_decimals=output_decimals,
        amm_keys=pool.amm_keys,
        market_keys=pool.market_keys,
    )
