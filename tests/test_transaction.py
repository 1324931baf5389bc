import pytest
from solders.hash import Hash
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature

from raydium_swap.exceptions import InstructionEncodingError
from raydium_swap.instructions import close_account_instruction, transfer_lamports_instruction
from raydium_swap.transaction import (
    assemble_transaction,
    create_set_compute_unit_limit_instruction,
    create_set_compute_unit_price_instruction,
)


def test_compute_budget_encoding():
    assert bytes(create_set_compute_unit_limit_instruction(200_000).data) == b"\x02" + (200_000).to_bytes(4, "little")
    assert bytes(create_set_compute_unit_price_instruction(7).data) == b"\x03" + (7).to_bytes(8, "little")


def test_compute_budget_bounds():
    with pytest.raises(InstructionEncodingError):
        create_set_compute_unit_limit_instruction(2**32)
    with pytest.raises(InstructionEncodingError):
        create_set_compute_unit_price_instruction(-1)


def test_legacy_defaults(payer):
    ixs = [transfer_lamports_instruction(payer, Pubkey.new_unique(), 5)]
    tx = assemble_transaction(ixs, payer)
    assert isinstance(tx.message, Message)
    assert tx.message.recent_blockhash == Hash.default()
    assert tx.signatures == [Signature.default()]


def test_v0_with_blockhash(payer):
    blockhash = Hash.new_unique()
    ixs = [close_account_instruction(Pubkey.new_unique(), payer)]
    tx = assemble_transaction(ixs, payer, blockhash=blockhash, as_legacy=False)
    assert isinstance(tx.message, MessageV0)
    assert tx.message.recent_blockhash == blockhash
    assert tx.message.account_keys[0] == payer
