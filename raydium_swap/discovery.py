"""
Pool discovery through the Raydium API v3.

The quoting pipeline only needs the narrow ``PoolDiscovery.find_pool``
interface; ``RaydiumApiClient`` is the HTTP implementation and also serves
market keys for pools whose market account should not be decoded on-chain.

Example:
    async with RaydiumApiClient() as api:
        pool_id = await api.find_pool(WSOL_MINT, USDC_MINT)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp
from solders.pubkey import Pubkey

from .codec import AMM_V4_PROGRAM_ID
from .exceptions import PoolDiscoveryError
from .models import MarketKeys

logger = logging.getLogger(__name__)

RAYDIUM_API_BASE = "https://api-v3.raydium.io"
DEFAULT_TIMEOUT = 10.0
DEFAULT_PAGE_SIZE = 100


class PoolType(str, Enum):
    ALL = "all"
    STANDARD = "standard"
    CONCENTRATED = "concentrated"


class PoolSort(str, Enum):
    DEFAULT = "default"
    LIQUIDITY = "liquidity"
    VOLUME_24H = "volume24h"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ============================================================================
# RESPONSE TYPES
# ============================================================================

@dataclass(frozen=True)
class ApiPoolInfo:
    program_id: Pubkey
    pool_id: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiPoolInfo":
        return cls(
            program_id=Pubkey.from_string(data["programId"]),
            pool_id=Pubkey.from_string(data["id"]),
            mint_a=Pubkey.from_string(data["mintA"]["address"]),
            mint_b=Pubkey.from_string(data["mintB"]["address"]),
        )

    def trades(self, mint_x: Pubkey, mint_y: Pubkey) -> bool:
        return {self.mint_a, self.mint_b} == {mint_x, mint_y}


@dataclass(frozen=True)
class ApiPoolsPage:
    count: int
    has_next_page: bool
    pools: List[ApiPoolInfo]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiPoolsPage":
        return cls(
            count=int(data.get("count", 0)),
            has_next_page=bool(data.get("hasNextPage", False)),
            pools=[ApiPoolInfo.from_dict(p) for p in data.get("data", [])],
        )


def market_keys_from_api(data: Dict[str, Any]) -> MarketKeys:
    """Market keys from a ``/pools/key/ids`` entry. ``marketAuthority`` is the vault signer."""
    return MarketKeys(
        event_queue=Pubkey.from_string(data["marketEventQueue"]),
        bids=Pubkey.from_string(data["marketBids"]),
        asks=Pubkey.from_string(data["marketAsks"]),
        coin_vault=Pubkey.from_string(data["marketBaseVault"]),
        pc_vault=Pubkey.from_string(data["marketQuoteVault"]),
        vault_signer_key=Pubkey.from_string(data["marketAuthority"]),
    )


# ============================================================================
# DISCOVERY INTERFACE
# ============================================================================

class PoolDiscovery(ABC):

    @abstractmethod
    async def find_pool(self, mint_x: Pubkey, mint_y: Pubkey) -> Optional[Pubkey]:
        """Id of a standard AMM v4 pool trading the pair in either order, or None."""


class RaydiumApiClient(PoolDiscovery):

    def __init__(
        self,
        base_url: str = RAYDIUM_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        program_id: Pubkey = AMM_V4_PROGRAM_ID,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.program_id = program_id
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def __aenter__(self) -> "RaydiumApiClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers={"Accept": "application/json"},
                )
            return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        """GET an API v3 endpoint and unwrap the ``{id, success, data}`` envelope."""
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        logger.debug(f"Request GET {url} params={params}")

        try:
            async with session.get(url, params=params) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise PoolDiscoveryError(
                        f"Raydium API returned HTTP {response.status}",
                        status_code=response.status,
                        context={"url": url, "body": body[:200]},
                    )
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise PoolDiscoveryError(f"Raydium API request failed: {e}", context={"url": url})
        except asyncio.TimeoutError:
            raise PoolDiscoveryError(f"Raydium API request timed out after {self.timeout}s", context={"url": url})

        if not isinstance(payload, dict) or not payload.get("success", False):
            raise PoolDiscoveryError(
                "Raydium API reported failure",
                context={"url": url, "id": payload.get("id") if isinstance(payload, dict) else None},
                is_recoverable=False,
            )
        return payload.get("data")

    async def fetch_pool_by_mints(
        self,
        mint1: Pubkey,
        mint2: Optional[Pubkey] = None,
        pool_type: PoolType = PoolType.STANDARD,
        pool_sort: PoolSort = PoolSort.LIQUIDITY,
        sort_type: SortOrder = SortOrder.DESC,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ApiPoolsPage:
        params = {
            "mint1": str(mint1),
            "mint2": str(mint2) if mint2 else "",
            "poolType": pool_type.value,
            "poolSortField": pool_sort.value,
            "sortType": sort_type.value,
            "pageSize": page_size,
            "page": page,
        }
        data = await self._get("/pools/info/mint", params)
        try:
            return ApiPoolsPage.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PoolDiscoveryError(f"Unexpected pools page payload: {e}", is_recoverable=False)

    async def fetch_pool_keys_by_ids(self, ids: List[Pubkey]) -> List[Dict[str, Any]]:
        data = await self._get("/pools/key/ids", {"ids": ",".join(str(i) for i in ids)})
        if not isinstance(data, list):
            raise PoolDiscoveryError("Unexpected pool keys payload", is_recoverable=False)
        return data

    async def find_pool(self, mint_x: Pubkey, mint_y: Pubkey) -> Optional[Pubkey]:
        page = await self.fetch_pool_by_mints(mint_x, mint_y)
        for pool in page.pools:
            if pool.program_id == self.program_id and pool.trades(mint_x, mint_y):
                logger.debug(f"Discovered pool {pool.pool_id} for {mint_x}/{mint_y}")
                return pool.pool_id
        logger.debug(f"No AMM v4 pool among {len(page.pools)} results for {mint_x}/{mint_y}")
        return None

    async def fetch_market_keys(self, pool_id: Pubkey) -> MarketKeys:
        entries = await self.fetch_pool_keys_by_ids([pool_id])
        entry = next((e for e in entries if e and e.get("id") == str(pool_id)), None)
        if entry is None:
            raise PoolDiscoveryError(f"No pool keys returned for {pool_id}", is_recoverable=False)
        try:
            return market_keys_from_api(entry)
        except (KeyError, TypeError, ValueError) as e:
            raise PoolDiscoveryError(
                f"Pool {pool_id} keys lack market fields: {e}", is_recoverable=False
            )
