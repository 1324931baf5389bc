"""
Compute-unit estimation.

A dynamic limit is found by simulating a draft of the plan; a fixed one is
passed through. Simulation problems degrade to "no limit" rather than failing
the build.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .exceptions import InstructionEncodingError, SimulationUnavailableError, wrap_exception
from .models import ComputeLimitIntent, DynamicComputeLimit, FixedComputeLimit
from .transaction import MAX_COMPUTE_UNITS
from .validators import MAX_U32

if TYPE_CHECKING:
    from .builder import InstructionPlan

logger = logging.getLogger(__name__)

DEFAULT_COMPUTE_UNIT_MARGIN = 50_000


@dataclass
class SimulationResult:
    success: bool
    units_consumed: Optional[int]
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None


class TransactionSimulator(ABC):

    @abstractmethod
    async def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        """Simulate without signature verification, replacing the blockhash."""


class RpcTransactionSimulator(TransactionSimulator):
    """``simulateTransaction`` through the solana-py client."""

    def __init__(self, client: AsyncClient, commitment: str = "confirmed"):
        self.client = client
        self.commitment = commitment

    async def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        try:
            response = await self.client.simulate_transaction(
                tx,
                sig_verify=False,
                replace_recent_blockhash=True,
                commitment=Commitment(self.commitment),
            )
        except Exception as e:
            raise wrap_exception(e, SimulationUnavailableError, f"simulateTransaction failed: {e}")

        result = response.value
        if result is None:
            raise SimulationUnavailableError("Empty simulation response")

        logs = list(result.logs or [])
        if result.err is not None and result.units_consumed is None:
            raise SimulationUnavailableError(
                f"Simulation failed without reporting units: {result.err}",
                simulation_logs=logs,
            )

        return SimulationResult(
            success=result.err is None,
            units_consumed=result.units_consumed,
            logs=logs,
            error=str(result.err) if result.err is not None else None,
        )


class ComputeEstimator:

    def __init__(
        self,
        simulator: Optional[TransactionSimulator] = None,
        margin: int = DEFAULT_COMPUTE_UNIT_MARGIN,
        max_units: int = MAX_COMPUTE_UNITS,
    ):
        self.simulator = simulator
        self.margin = margin
        self.max_units = max_units

    async def estimate(
        self,
        intent: Optional[ComputeLimitIntent],
        plan: "InstructionPlan",
        payer: Pubkey,
    ) -> Optional[int]:
        """
        Compute-unit limit for ``plan``, or None when no limit should be set.

        ``plan`` is only read: a clone is drafted for simulation.
        """
        if intent is None:
            return None

        if isinstance(intent, FixedComputeLimit):
            if intent.units < 0 or intent.units > MAX_U32:
                raise InstructionEncodingError(f"Fixed compute limit {intent.units} does not fit in u32")
            return intent.units

        if not isinstance(intent, DynamicComputeLimit):
            raise TypeError(f"Unknown compute limit intent {intent!r}")

        if self.simulator is None:
            logger.warning("Dynamic compute limit requested without a simulator; leaving limit unset")
            return None

        draft = plan.clone().build_transaction(payer)
        try:
            result = await self.simulator.simulate(draft)
        except SimulationUnavailableError as e:
            logger.warning(f"Compute unit simulation unavailable: {e}")
            for line in e.simulation_logs:
                logger.debug(f"  {line}")
            return None

        if not result.success:
            logger.warning(f"Draft simulation failed: {result.error}")
        if result.units_consumed is None:
            logger.debug("Simulation reported no consumed units; leaving limit unset")
            return None

        units = min(result.units_consumed + self.margin, self.max_units)
        logger.debug(f"Simulated {result.units_consumed} units, limit set to {units}")
        return units
