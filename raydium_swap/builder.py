"""
Instruction plan builder.

A plan accumulates instructions in four slots and flattens them in a fixed
order: compute budget, setup, swap, cleanup. Every build owns its plan; drafts
for simulation work on a clone.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .compute import ComputeEstimator
from .exceptions import IncompletePlanError
from .instructions import (
    associated_token_address,
    close_account_instruction,
    create_ata_idempotent_instruction,
    is_native_mint,
    swap_instruction,
    sync_native_instruction,
    transfer_lamports_instruction,
)
from .models import Quote, ResolvedSwapConfig
from .priority_fee import price_for
from .transaction import assemble_transaction, create_set_compute_unit_limit_instruction

logger = logging.getLogger(__name__)


@dataclass
class InstructionPlan:
    compute_budget_instructions: List[Instruction] = field(default_factory=list)
    setup_instructions: List[Instruction] = field(default_factory=list)
    swap_instruction: Optional[Instruction] = None
    cleanup_instruction: Optional[Instruction] = None
    address_lookup_table_addresses: List[Pubkey] = field(default_factory=list)

    def clone(self) -> "InstructionPlan":
        return InstructionPlan(
            compute_budget_instructions=list(self.compute_budget_instructions),
            setup_instructions=list(self.setup_instructions),
            swap_instruction=self.swap_instruction,
            cleanup_instruction=self.cleanup_instruction,
            address_lookup_table_addresses=list(self.address_lookup_table_addresses),
        )

    def build_instructions(self) -> List[Instruction]:
        if self.swap_instruction is None:
            raise IncompletePlanError("Swap instruction not set")
        instructions = [*self.compute_budget_instructions, *self.setup_instructions, self.swap_instruction]
        if self.cleanup_instruction is not None:
            instructions.append(self.cleanup_instruction)
        return instructions

    def build_transaction(
        self,
        payer: Pubkey,
        blockhash: Optional[Hash] = None,
        as_legacy: bool = True,
        lookup_tables: Sequence[AddressLookupTableAccount] = (),
    ) -> VersionedTransaction:
        if not as_legacy:
            loaded = {table.key for table in lookup_tables}
            missing = [str(a) for a in self.address_lookup_table_addresses if a not in loaded]
            if missing:
                raise IncompletePlanError(
                    "Lookup tables listed in the plan were not supplied",
                    context={"missing": ", ".join(missing)},
                )
        return assemble_transaction(
            self.build_instructions(),
            payer,
            blockhash=blockhash,
            as_legacy=as_legacy,
            lookup_tables=() if as_legacy else lookup_tables,
        )


class SwapInstructionsBuilder:

    def __init__(self, estimator: Optional[ComputeEstimator] = None, rng: Optional[random.Random] = None):
        self.estimator = estimator or ComputeEstimator()
        self.rng = rng

    def add_token_accounts(self, plan: InstructionPlan, quote: Quote, payer: Pubkey, config: ResolvedSwapConfig) -> None:
        """Associated account creation, native wrapping and the matching cleanup."""
        if is_native_mint(quote.input_mint):
            source = associated_token_address(payer, quote.input_mint)
            plan.setup_instructions.append(create_ata_idempotent_instruction(payer, payer, quote.input_mint))
            if config.wrap_and_unwrap_sol:
                plan.setup_instructions.append(
                    transfer_lamports_instruction(payer, source, quote.max_input_amount)
                )
                plan.setup_instructions.append(sync_native_instruction(source))
                plan.cleanup_instruction = close_account_instruction(source, payer)

        if config.destination_token_account is None:
            plan.setup_instructions.append(create_ata_idempotent_instruction(payer, payer, quote.output_mint))
            if config.wrap_and_unwrap_sol and is_native_mint(quote.output_mint):
                destination = associated_token_address(payer, quote.output_mint)
                plan.cleanup_instruction = close_account_instruction(destination, payer)

    async def plan(self, quote: Quote, payer: Pubkey, config: ResolvedSwapConfig) -> InstructionPlan:
        plan = InstructionPlan()
        plan.address_lookup_table_addresses.extend(config.address_lookup_table_addresses)
        self.add_token_accounts(plan, quote, payer, config)

        destination = config.destination_token_account or associated_token_address(payer, quote.output_mint)
        plan.swap_instruction = swap_instruction(
            quote.amm_keys,
            quote.market_keys,
            user_source=associated_token_address(payer, quote.input_mint),
            user_destination=destination,
            user_owner=payer,
            amount=quote.amount,
            other_amount_threshold=quote.other_amount_threshold,
            swap_base_in=quote.amount_specified_is_input,
        )

        compute_unit_limit = await self.estimator.estimate(config.compute_limit, plan, payer)
        if compute_unit_limit is not None:
            plan.compute_budget_instructions.append(create_set_compute_unit_limit_instruction(compute_unit_limit))

        fees = price_for(config.priority_fee, compute_unit_limit, payer, self.rng)
        plan.compute_budget_instructions.extend(fees.compute_budget)
        plan.setup_instructions.extend(fees.setup)

        logger.debug(
            f"Planned swap on {quote.pool_id}: {len(plan.compute_budget_instructions)} budget, "
            f"{len(plan.setup_instructions)} setup, cleanup={'yes' if plan.cleanup_instruction else 'no'}"
        )
        return plan
