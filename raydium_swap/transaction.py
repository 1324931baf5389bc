import logging
import struct
from typing import List, Optional, Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .exceptions import InstructionEncodingError
from .validators import MAX_U32, MAX_U64

logger = logging.getLogger(__name__)

COMPUTE_BUDGET_PROGRAM_ID = Pubkey.from_string("ComputeBudget111111111111111111111111111111")

DEFAULT_COMPUTE_UNITS = 200_000
MAX_COMPUTE_UNITS = 1_400_000


def create_set_compute_unit_limit_instruction(units: int) -> Instruction:
    if units < 0 or units > MAX_U32:
        raise InstructionEncodingError(f"Compute unit limit {units} does not fit in u32")
    data = bytes([0x02]) + struct.pack("<I", units)
    return Instruction(
        program_id=COMPUTE_BUDGET_PROGRAM_ID,
        accounts=[],
        data=data
    )


def create_set_compute_unit_price_instruction(micro_lamports: int) -> Instruction:
    if micro_lamports < 0 or micro_lamports > MAX_U64:
        raise InstructionEncodingError(f"Compute unit price {micro_lamports} does not fit in u64")
    data = bytes([0x03]) + struct.pack("<Q", micro_lamports)
    return Instruction(
        program_id=COMPUTE_BUDGET_PROGRAM_ID,
        accounts=[],
        data=data
    )


def assemble_transaction(
    instructions: List[Instruction],
    payer: Pubkey,
    blockhash: Optional[Hash] = None,
    as_legacy: bool = True,
    lookup_tables: Sequence[AddressLookupTableAccount] = (),
) -> VersionedTransaction:
    """
    Unsigned transaction with one placeholder signature per required signer.

    The default blockhash is only good for simulation with blockhash
    replacement; callers set a real one before signing.
    """
    recent_blockhash = blockhash or Hash.default()

    if as_legacy:
        message = Message.new_with_blockhash(instructions, payer, recent_blockhash)
    else:
        message = MessageV0.try_compile(
            payer=payer,
            instructions=instructions,
            address_lookup_table_accounts=list(lookup_tables),
            recent_blockhash=recent_blockhash
        )

    signatures = [Signature.default()] * message.header.num_required_signatures
    logger.debug(
        f"Assembled {'legacy' if as_legacy else 'v0'} transaction: "
        f"{len(instructions)} instructions, {len(signatures)} signers"
    )
    return VersionedTransaction.populate(message, signatures)
