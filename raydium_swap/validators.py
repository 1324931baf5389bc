import base58
from typing import Any, Union

from solders.pubkey import Pubkey

from .exceptions import InvalidRequestError
from .models import SwapMode, SwapRequest

SOLANA_ADDRESS_LENGTH = 32

MAX_U64 = 2**64 - 1
MAX_U32 = 2**32 - 1

MIN_SLIPPAGE_BPS = 0
MAX_SLIPPAGE_BPS = 10000


def validate_pubkey(address: Union[str, Pubkey, Any], field_name: str = "address") -> Pubkey:
    if isinstance(address, Pubkey):
        return address

    if not isinstance(address, str):
        raise InvalidRequestError(
            f"Address must be a string, got {type(address).__name__}",
            field_name=field_name,
        )

    address = address.strip()

    if not address:
        raise InvalidRequestError("Address cannot be empty", field_name=field_name)

    if len(address) < 32 or len(address) > 44:
        raise InvalidRequestError(
            f"Invalid address length: {len(address)} characters",
            field_name=field_name,
            context={"address": address},
        )

    try:
        decoded = base58.b58decode(address)
    except ValueError as e:
        raise InvalidRequestError(
            f"Invalid base58 encoding: {str(e)}",
            field_name=field_name,
            context={"address": address},
        )

    if len(decoded) != SOLANA_ADDRESS_LENGTH:
        raise InvalidRequestError(
            f"Decoded address has wrong length: {len(decoded)} bytes (expected {SOLANA_ADDRESS_LENGTH})",
            field_name=field_name,
            context={"address": address},
        )

    return Pubkey.from_bytes(decoded)


def validate_u64(value: Any, field_name: str = "amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(
            f"{field_name} must be an integer, got {type(value).__name__}",
            field_name=field_name,
        )
    if value < 0 or value > MAX_U64:
        raise InvalidRequestError(
            f"{field_name} {value} is outside the u64 range",
            field_name=field_name,
        )
    return value


def validate_slippage_bps(slippage_bps: Any, field_name: str = "slippage_bps") -> int:
    if isinstance(slippage_bps, bool) or not isinstance(slippage_bps, int):
        raise InvalidRequestError(
            f"Slippage must be an integer number of basis points, got {type(slippage_bps).__name__}",
            field_name=field_name,
        )
    if slippage_bps < MIN_SLIPPAGE_BPS or slippage_bps > MAX_SLIPPAGE_BPS:
        raise InvalidRequestError(
            f"Slippage {slippage_bps} bps must be between {MIN_SLIPPAGE_BPS} and {MAX_SLIPPAGE_BPS}",
            field_name=field_name,
        )
    return slippage_bps


def validate_swap_request(request: SwapRequest) -> SwapRequest:
    """
    Check every request invariant. Runs before any network call.

    Raises:
        InvalidRequestError: equal mints, amount outside u64, slippage out of range
    """
    if request.input_mint == request.output_mint:
        raise InvalidRequestError(
            f"Input token cannot equal output token {request.input_mint}",
            field_name="output_mint",
        )
    if not isinstance(request.mode, SwapMode):
        raise InvalidRequestError(f"Unknown swap mode {request.mode!r}", field_name="mode")
    validate_u64(request.amount, "amount")
    validate_slippage_bps(request.slippage_bps)
    return request
