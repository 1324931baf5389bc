"""
Account codec for the on-chain accounts a Raydium AMM v4 quote depends on.

Byte layouts are declared with ``construct`` and mapped onto small typed
records. Only the fields the quoting and planning logic needs are typed; the
rest is kept as zero-filled padding so the encoders produce correctly sized
accounts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from enum import IntEnum, IntFlag
from typing import Any, Dict, List, Sequence, Tuple

from construct import Bytes, ConstructError, Default, Int8ul, Int32ul, Int64ul, Padding, Struct
from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.pubkey import Pubkey

from .exceptions import MalformedAccountDataError
from .models import AmmKeys, MarketKeys

AMM_V4_PROGRAM_ID = Pubkey.from_string("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")
AMM_AUTHORITY_SEED = b"amm authority"

PUBKEY_LENGTH = 32
ZERO_PUBKEY_BYTES = bytes(PUBKEY_LENGTH)
SERUM_HEAD = b"serum"
SERUM_TAIL = b"padding"


def _u64(name: str):
    return name / Default(Int64ul, 0)


def _pubkey(name: str):
    return name / Default(Bytes(PUBKEY_LENGTH), ZERO_PUBKEY_BYTES)


# ============================================================================
# LAYOUTS
# ============================================================================

# Raydium Liquidity Pool V4 AmmInfo, 752 bytes
AMM_INFO_LAYOUT = Struct(
    _u64("status"),
    _u64("nonce"),
    _u64("order_num"),
    _u64("depth"),
    _u64("coin_decimals"),
    _u64("pc_decimals"),
    _u64("state"),
    _u64("reset_flag"),
    _u64("min_size"),
    _u64("vol_max_cut_ratio"),
    _u64("amount_wave"),
    _u64("coin_lot_size"),
    _u64("pc_lot_size"),
    _u64("min_price_multiplier"),
    _u64("max_price_multiplier"),
    _u64("sys_decimal_value"),
    # fees
    _u64("min_separate_numerator"),
    _u64("min_separate_denominator"),
    _u64("trade_fee_numerator"),
    _u64("trade_fee_denominator"),
    _u64("pnl_numerator"),
    _u64("pnl_denominator"),
    _u64("swap_fee_numerator"),
    _u64("swap_fee_denominator"),
    # state data
    _u64("need_take_pnl_coin"),
    _u64("need_take_pnl_pc"),
    _u64("total_pnl_pc"),
    _u64("total_pnl_coin"),
    _u64("pool_open_time"),
    Padding(16),
    _u64("orderbook_to_init_time"),
    Padding(16 + 16 + 8 + 16 + 16 + 8),  # swap volume counters
    _pubkey("coin_vault"),
    _pubkey("pc_vault"),
    _pubkey("coin_vault_mint"),
    _pubkey("pc_vault_mint"),
    _pubkey("lp_mint"),
    _pubkey("open_orders"),
    _pubkey("market"),
    _pubkey("market_program"),
    _pubkey("target_orders"),
    Padding(64),
    _pubkey("amm_owner"),
    _u64("lp_amount"),
    _u64("client_order_id"),
    Padding(16),
)

# SPL token account, 165 bytes
TOKEN_ACCOUNT_LAYOUT = Struct(
    _pubkey("mint"),
    _pubkey("owner"),
    _u64("amount"),
    Padding(165 - 72),
)

# Serum / OpenBook v1 OpenOrders, 3228 bytes
OPEN_ORDERS_LAYOUT = Struct(
    "head" / Default(Bytes(5), SERUM_HEAD),
    _u64("account_flags"),
    _pubkey("market"),
    _pubkey("owner"),
    _u64("native_coin_free"),
    _u64("native_coin_total"),
    _u64("native_pc_free"),
    _u64("native_pc_total"),
    Padding(16 + 16),  # free_slot_bits, is_bid_bits
    Padding(16 * 128),  # orders
    Padding(8 * 128),  # client order ids
    _u64("referrer_rebates_accrued"),
    Padding(7),
)

# Serum / OpenBook v1 MarketState, 388 bytes
MARKET_STATE_LAYOUT = Struct(
    "head" / Default(Bytes(5), SERUM_HEAD),
    _u64("account_flags"),
    _pubkey("own_address"),
    _u64("vault_signer_nonce"),
    _pubkey("coin_mint"),
    _pubkey("pc_mint"),
    _pubkey("coin_vault"),
    _u64("coin_deposits_total"),
    _u64("coin_fees_accrued"),
    _pubkey("pc_vault"),
    _u64("pc_deposits_total"),
    _u64("pc_fees_accrued"),
    _u64("pc_dust_threshold"),
    _pubkey("request_queue"),
    _pubkey("event_queue"),
    _pubkey("bids"),
    _pubkey("asks"),
    _u64("coin_lot_size"),
    _u64("pc_lot_size"),
    _u64("fee_rate_bps"),
    _u64("referrer_rebates_accrued"),
    Padding(7),
)

# Serum / OpenBook v1 event queue: header, ring buffer of 88-byte events, tail
EVENT_QUEUE_HEADER_LAYOUT = Struct(
    "head" / Default(Bytes(5), SERUM_HEAD),
    _u64("account_flags"),
    _u64("queue_head"),
    _u64("count"),
    _u64("seq_num"),
)

EVENT_LAYOUT = Struct(
    "event_flags" / Default(Int8ul, 0),
    "owner_slot" / Default(Int8ul, 0),
    "fee_tier" / Default(Int8ul, 0),
    Padding(5),
    _u64("native_qty_released"),
    _u64("native_qty_paid"),
    _u64("native_fee_or_rebate"),
    "order_id" / Default(Bytes(16), bytes(16)),
    _pubkey("owner"),
    _u64("client_order_id"),
)

EVENT_SIZE = EVENT_LAYOUT.sizeof()

# Address lookup table program state; addresses follow the 56-byte meta block
LOOKUP_TABLE_META_LAYOUT = Struct(
    "discriminator" / Default(Int32ul, 1),
    _u64("deactivation_slot"),
    _u64("last_extended_slot"),
    "last_extended_slot_start_index" / Default(Int8ul, 0),
    "has_authority" / Default(Int8ul, 0),
    _pubkey("authority"),
    Padding(2),
)
LOOKUP_TABLE_DISCRIMINATOR = 1


# ============================================================================
# TYPED RECORDS
# ============================================================================

class AmmStatus(IntEnum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    DISABLED = 2
    WITHDRAW_ONLY = 3
    LIQUIDITY_ONLY = 4
    ORDER_BOOK_ONLY = 5
    SWAP_ONLY = 6
    WAITING_TRADE = 7

    def orderbook_permission(self) -> bool:
        return self in (AmmStatus.INITIALIZED, AmmStatus.ORDER_BOOK_ONLY, AmmStatus.WAITING_TRADE)


@dataclass(frozen=True)
class AmmInfo:
    status: int
    nonce: int
    coin_decimals: int
    pc_decimals: int
    trade_fee_numerator: int
    trade_fee_denominator: int
    swap_fee_numerator: int
    swap_fee_denominator: int
    need_take_pnl_coin: int
    need_take_pnl_pc: int
    coin_vault: Pubkey
    pc_vault: Pubkey
    coin_vault_mint: Pubkey
    pc_vault_mint: Pubkey
    lp_mint: Pubkey
    open_orders: Pubkey
    market: Pubkey
    market_program: Pubkey
    target_orders: Pubkey
    amm_owner: Pubkey
    lp_amount: int = 0

    @property
    def orderbook_enabled(self) -> bool:
        try:
            return AmmStatus(self.status).orderbook_permission()
        except ValueError:
            return False


@dataclass(frozen=True)
class TokenAccount:
    mint: Pubkey
    owner: Pubkey
    amount: int


@dataclass(frozen=True)
class OpenOrders:
    market: Pubkey
    owner: Pubkey
    native_coin_free: int
    native_coin_total: int
    native_pc_free: int
    native_pc_total: int


@dataclass(frozen=True)
class MarketState:
    own_address: Pubkey
    vault_signer_nonce: int
    coin_mint: Pubkey
    pc_mint: Pubkey
    coin_vault: Pubkey
    pc_vault: Pubkey
    event_queue: Pubkey
    bids: Pubkey
    asks: Pubkey
    coin_lot_size: int = 0
    pc_lot_size: int = 0


class EventFlag(IntFlag):
    FILL = 0x1
    OUT = 0x2
    BID = 0x4
    MAKER = 0x8
    RELEASE_FUNDS = 0x10


@dataclass(frozen=True)
class QueueEvent:
    event_flags: int
    owner: Pubkey
    native_qty_released: int
    native_qty_paid: int

    @property
    def is_fill(self) -> bool:
        return bool(self.event_flags & EventFlag.FILL)

    @property
    def is_bid(self) -> bool:
        return bool(self.event_flags & EventFlag.BID)

    @property
    def is_maker(self) -> bool:
        return bool(self.event_flags & EventFlag.MAKER)


@dataclass(frozen=True)
class EventQueue:
    """Unconsumed events, oldest first."""
    queue_head: int
    seq_num: int
    events: Tuple[QueueEvent, ...] = ()


def derive_vault_signer(market: Pubkey, nonce: int, market_program: Pubkey) -> Pubkey:
    """OpenBook vault signer: seeds = market address + nonce (u64 LE)."""
    seeds = [bytes(market), nonce.to_bytes(8, "little")]
    try:
        return Pubkey.create_program_address(seeds, market_program)
    except Exception as e:
        raise MalformedAccountDataError(
            f"Vault signer nonce {nonce} is invalid for market {market}: {e}",
            account=str(market),
        )


def derive_amm_authority(program_id: Pubkey = AMM_V4_PROGRAM_ID) -> Pubkey:
    authority, _ = Pubkey.find_program_address([AMM_AUTHORITY_SEED], program_id)
    return authority


def market_keys_from_state(market: MarketState, market_program: Pubkey) -> MarketKeys:
    return MarketKeys(
        event_queue=market.event_queue,
        bids=market.bids,
        asks=market.asks,
        coin_vault=market.coin_vault,
        pc_vault=market.pc_vault,
        vault_signer_key=derive_vault_signer(market.own_address, market.vault_signer_nonce, market_program),
    )


# ============================================================================
# CODEC
# ============================================================================

class AccountCodec(ABC):
    """Bytes to typed record, and back, for every account the pipeline reads."""

    @abstractmethod
    def decode_amm_info(self, data: bytes) -> AmmInfo:
        ...

    @abstractmethod
    def decode_token_account(self, data: bytes) -> TokenAccount:
        ...

    @abstractmethod
    def decode_open_orders(self, data: bytes) -> OpenOrders:
        ...

    @abstractmethod
    def decode_market_state(self, data: bytes) -> MarketState:
        ...

    @abstractmethod
    def decode_event_queue(self, data: bytes) -> EventQueue:
        ...

    @abstractmethod
    def decode_lookup_table(self, key: Pubkey, data: bytes) -> AddressLookupTableAccount:
        ...


def _parse(layout: Struct, data: bytes, what: str):
    size = layout.sizeof()
    if data is None or len(data) < size:
        raise MalformedAccountDataError(
            f"{what} account data too short ({len(data) if data else 0} bytes, expected {size})"
        )
    try:
        return layout.parse(bytes(data))
    except ConstructError as e:
        raise MalformedAccountDataError(f"Failed to decode {what} account: {e}")


def _to_record(record_type: type, parsed: Any) -> Any:
    values: Dict[str, Any] = {}
    for f in fields(record_type):
        raw = parsed[f.name]
        values[f.name] = Pubkey.from_bytes(raw) if isinstance(raw, bytes) else int(raw)
    return record_type(**values)


def _to_build_dict(record: Any) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        values[f.name] = bytes(value) if isinstance(value, Pubkey) else value
    return values


class RaydiumAccountCodec(AccountCodec):
    """Raydium AMM v4 + OpenBook v1 + SPL token layouts."""

    def decode_amm_info(self, data: bytes) -> AmmInfo:
        return _to_record(AmmInfo, _parse(AMM_INFO_LAYOUT, data, "amm"))

    def decode_token_account(self, data: bytes) -> TokenAccount:
        return _to_record(TokenAccount, _parse(TOKEN_ACCOUNT_LAYOUT, data, "token"))

    def decode_open_orders(self, data: bytes) -> OpenOrders:
        parsed = _parse(OPEN_ORDERS_LAYOUT, data, "open orders")
        if parsed.head != SERUM_HEAD:
            raise MalformedAccountDataError("Open orders account is missing the serum header")
        return _to_record(OpenOrders, parsed)

    def decode_market_state(self, data: bytes) -> MarketState:
        parsed = _parse(MARKET_STATE_LAYOUT, data, "market")
        if parsed.head != SERUM_HEAD:
            raise MalformedAccountDataError("Market account is missing the serum header")
        return _to_record(MarketState, parsed)

    def decode_event_queue(self, data: bytes) -> EventQueue:
        header = _parse(EVENT_QUEUE_HEADER_LAYOUT, data, "event queue")
        if header.head != SERUM_HEAD:
            raise MalformedAccountDataError("Event queue account is missing the serum header")

        raw = bytes(data)
        header_size = EVENT_QUEUE_HEADER_LAYOUT.sizeof()
        capacity = (len(raw) - header_size - len(SERUM_TAIL)) // EVENT_SIZE
        if header.count > max(capacity, 0):
            raise MalformedAccountDataError(
                f"Event queue holds {header.count} events but has room for {max(capacity, 0)}"
            )

        events: List[QueueEvent] = []
        for i in range(header.count):
            offset = header_size + ((header.queue_head + i) % capacity) * EVENT_SIZE
            events.append(_to_record(QueueEvent, EVENT_LAYOUT.parse(raw[offset:offset + EVENT_SIZE])))
        return EventQueue(queue_head=header.queue_head, seq_num=header.seq_num, events=tuple(events))

    def decode_lookup_table(self, key: Pubkey, data: bytes) -> AddressLookupTableAccount:
        meta = _parse(LOOKUP_TABLE_META_LAYOUT, data, "lookup table")
        if meta.discriminator != LOOKUP_TABLE_DISCRIMINATOR:
            raise MalformedAccountDataError(f"Account {key} is not an address lookup table", account=str(key))
        raw = bytes(data)[LOOKUP_TABLE_META_LAYOUT.sizeof():]
        if len(raw) % PUBKEY_LENGTH:
            raise MalformedAccountDataError(
                f"Lookup table {key} address list is not a whole number of keys", account=str(key)
            )
        addresses = [Pubkey.from_bytes(raw[i:i + PUBKEY_LENGTH]) for i in range(0, len(raw), PUBKEY_LENGTH)]
        return AddressLookupTableAccount(key=key, addresses=addresses)

    def encode_amm_info(self, info: AmmInfo) -> bytes:
        return AMM_INFO_LAYOUT.build(_to_build_dict(info))

    def encode_token_account(self, account: TokenAccount) -> bytes:
        return TOKEN_ACCOUNT_LAYOUT.build(_to_build_dict(account))

    def encode_open_orders(self, open_orders: OpenOrders) -> bytes:
        return OPEN_ORDERS_LAYOUT.build(_to_build_dict(open_orders))

    def encode_market_state(self, market: MarketState) -> bytes:
        return MARKET_STATE_LAYOUT.build(_to_build_dict(market))

    def encode_event_queue(self, queue: EventQueue, capacity: int = 0) -> bytes:
        capacity = max(capacity, len(queue.events), 1)
        slots = [bytes(EVENT_SIZE)] * capacity
        for i, event in enumerate(queue.events):
            slots[(queue.queue_head + i) % capacity] = EVENT_LAYOUT.build(_to_build_dict(event))
        header = EVENT_QUEUE_HEADER_LAYOUT.build(
            {"queue_head": queue.queue_head, "count": len(queue.events), "seq_num": queue.seq_num}
        )
        return header + b"".join(slots) + SERUM_TAIL

    def encode_lookup_table(self, addresses: Sequence[Pubkey]) -> bytes:
        meta = LOOKUP_TABLE_META_LAYOUT.build({"deactivation_slot": 2**64 - 1})
        return meta + b"".join(bytes(address) for address in addresses)


def amm_keys_from_info(pool_id: Pubkey, info: AmmInfo, program_id: Pubkey = AMM_V4_PROGRAM_ID) -> AmmKeys:
    return AmmKeys(
        amm_pool=pool_id,
        amm_coin_mint=info.coin_vault_mint,
        amm_pc_mint=info.pc_vault_mint,
        amm_authority=derive_amm_authority(program_id),
        amm_target=info.target_orders,
        amm_coin_vault=info.coin_vault,
        amm_pc_vault=info.pc_vault,
        amm_lp_mint=info.lp_mint,
        amm_open_order=info.open_orders,
        market_program=info.market_program,
        market=info.market,
    )
