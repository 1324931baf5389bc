"""
Priority fee calculator: turns a fee intent into compute-budget or tip instructions.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .amm_math import MAX_U64
from .exceptions import ArithmeticOverflowError, DivideByZeroError
from .instructions import transfer_lamports_instruction
from .models import DynamicMultiplier, FixedCuPrice, JitoTip, PriorityFeeIntent
from .transaction import DEFAULT_COMPUTE_UNITS, create_set_compute_unit_price_instruction

logger = logging.getLogger(__name__)

MICRO_LAMPORTS_PER_LAMPORT = 1_000_000
PRIORITY_FEE_BASE_LAMPORTS = 100_000

JITO_TIP_ACCOUNTS = tuple(
    Pubkey.from_string(address)
    for address in (
        "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
        "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
        "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
        "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
        "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
        "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
        "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
        "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
    )
)


@dataclass
class FeeInstructions:
    """Where each fee instruction belongs in the plan."""
    compute_budget: List[Instruction] = field(default_factory=list)
    setup: List[Instruction] = field(default_factory=list)


def calculate_cu_price(priority_fee_lamports: int, compute_units: int) -> int:
    """
    Micro-lamport price per compute unit that pays at least ``priority_fee_lamports``.

    The network charges ``price * limit / 1_000_000`` rounded down, so the
    price is rounded up. Clamped to u64.
    """
    if compute_units == 0:
        raise DivideByZeroError("Compute unit limit of zero while pricing priority fee")
    micro_lamports = priority_fee_lamports * MICRO_LAMPORTS_PER_LAMPORT
    cu_price = -(-micro_lamports // compute_units)
    return min(cu_price, MAX_U64)


def pick_tip_account(rng: Optional[random.Random] = None) -> Pubkey:
    return (rng or random).choice(JITO_TIP_ACCOUNTS)


def price_for(
    intent: Optional[PriorityFeeIntent],
    compute_unit_limit: Optional[int],
    payer: Pubkey,
    rng: Optional[random.Random] = None,
) -> FeeInstructions:
    fees = FeeInstructions()
    if intent is None:
        return fees

    if isinstance(intent, FixedCuPrice):
        logger.debug(f"Using fixed cu-price {intent.micro_lamports}")
        fees.compute_budget.append(create_set_compute_unit_price_instruction(intent.micro_lamports))

    elif isinstance(intent, DynamicMultiplier):
        target = intent.multiplier * PRIORITY_FEE_BASE_LAMPORTS
        if target > MAX_U64:
            raise ArithmeticOverflowError(
                "Overflow while calculating priority fee from multiplier",
                context={"multiplier": intent.multiplier},
            )
        limit = DEFAULT_COMPUTE_UNITS if compute_unit_limit is None else compute_unit_limit
        cu_price = calculate_cu_price(target, limit)
        logger.debug(
            f"Priority fee: multiplier={intent.multiplier} target={target} lamports "
            f"cu-limit={limit} cu-price={cu_price}"
        )
        fees.compute_budget.append(create_set_compute_unit_price_instruction(cu_price))

    elif isinstance(intent, JitoTip):
        tip_account = pick_tip_account(rng)
        logger.debug(f"Jito tip {intent.lamports} lamports to {tip_account}")
        fees.setup.append(transfer_lamports_instruction(payer, tip_account, intent.lamports))

    else:
        raise TypeError(f"Unknown priority fee intent {intent!r}")

    return fees
