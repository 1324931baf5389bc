"""
Instruction encoders: token account setup and the AMM v4 swap.
"""

import struct
from typing import Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID, WRAPPED_SOL_MINT
from spl.token.instructions import (
    close_account,
    get_associated_token_address,
    sync_native,
)
from spl.token.models import CloseAccountParams, SyncNativeParams

from .codec import AMM_V4_PROGRAM_ID
from .exceptions import InstructionEncodingError
from .models import AmmKeys, MarketKeys
from .validators import MAX_U64

# AMM v4 instruction tags
SWAP_BASE_IN_TAG = 9
SWAP_BASE_OUT_TAG = 11

# associated token program: 0 = Create, 1 = CreateIdempotent
ATA_CREATE_IDEMPOTENT = 1


def is_native_mint(mint: Pubkey) -> bool:
    return mint == WRAPPED_SOL_MINT


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return get_associated_token_address(owner, mint)


def create_ata_idempotent_instruction(payer: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    """Create the owner's associated token account, succeeding if it already exists."""
    ata = associated_token_address(owner, mint)
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(ata, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, bytes([ATA_CREATE_IDEMPOTENT]), accounts)


def transfer_lamports_instruction(source: Pubkey, destination: Pubkey, lamports: int) -> Instruction:
    return transfer(TransferParams(from_pubkey=source, to_pubkey=destination, lamports=lamports))


def sync_native_instruction(account: Pubkey) -> Instruction:
    return sync_native(SyncNativeParams(program_id=TOKEN_PROGRAM_ID, account=account))


def close_account_instruction(account: Pubkey, owner: Pubkey) -> Instruction:
    """Close a token account, returning its lamports to the owner."""
    return close_account(
        CloseAccountParams(program_id=TOKEN_PROGRAM_ID, account=account, dest=owner, owner=owner)
    )


def swap_instruction(
    amm_keys: AmmKeys,
    market_keys: Optional[MarketKeys],
    user_source: Pubkey,
    user_destination: Pubkey,
    user_owner: Pubkey,
    amount: int,
    other_amount_threshold: int,
    swap_base_in: bool,
    program_id: Pubkey = AMM_V4_PROGRAM_ID,
) -> Instruction:
    """
    Encode ``swap_base_in`` or ``swap_base_out``.

    swap_base_in:  tag 9,  amount_in,  minimum_amount_out
    swap_base_out: tag 11, max_amount_in, amount_out

    ``amount`` is always the caller-specified side and ``other_amount_threshold``
    the slippage bound, so for base-out the two are written in threshold-first
    order.
    """
    if market_keys is None:
        raise InstructionEncodingError(
            f"Market keys are required to swap through pool {amm_keys.amm_pool}",
            context={"pool": str(amm_keys.amm_pool)},
        )
    for name, value in (("amount", amount), ("other_amount_threshold", other_amount_threshold)):
        if value < 0 or value > MAX_U64:
            raise InstructionEncodingError(f"{name} {value} does not fit in u64")

    if swap_base_in:
        data = struct.pack("<BQQ", SWAP_BASE_IN_TAG, amount, other_amount_threshold)
    else:
        data = struct.pack("<BQQ", SWAP_BASE_OUT_TAG, other_amount_threshold, amount)

    accounts = [
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(amm_keys.amm_pool, is_signer=False, is_writable=True),
        AccountMeta(amm_keys.amm_authority, is_signer=False, is_writable=False),
        AccountMeta(amm_keys.amm_open_order, is_signer=False, is_writable=True),
        AccountMeta(amm_keys.amm_coin_vault, is_signer=False, is_writable=True),
        AccountMeta(amm_keys.amm_pc_vault, is_signer=False, is_writable=True),
        AccountMeta(amm_keys.market_program, is_signer=False, is_writable=False),
        AccountMeta(amm_keys.market, is_signer=False, is_writable=True),
        AccountMeta(market_keys.bids, is_signer=False, is_writable=True),
        AccountMeta(market_keys.asks, is_signer=False, is_writable=True),
        AccountMeta(market_keys.event_queue, is_signer=False, is_writable=True),
        AccountMeta(market_keys.coin_vault, is_signer=False, is_writable=True),
        AccountMeta(market_keys.pc_vault, is_signer=False, is_writable=True),
        AccountMeta(market_keys.vault_signer_key, is_signer=False, is_writable=False),
        AccountMeta(user_source, is_signer=False, is_writable=True),
        AccountMeta(user_destination, is_signer=False, is_writable=True),
        AccountMeta(user_owner, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)
