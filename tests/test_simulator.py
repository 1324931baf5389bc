from types import SimpleNamespace

import pytest

from raydium_swap.builder import InstructionPlan
from raydium_swap.compute import ComputeEstimator, RpcTransactionSimulator
from raydium_swap.exceptions import SimulationUnavailableError
from raydium_swap.instructions import sync_native_instruction
from raydium_swap.models import DynamicComputeLimit


class FakeSimulateClient:
    """Stands in for AsyncClient.simulate_transaction."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error
        self.calls = []

    async def simulate_transaction(self, tx, **kwargs):
        self.calls.append((tx, kwargs))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(value=self.value)


def simulation_value(units_consumed=90_000, err=None, logs=None):
    return SimpleNamespace(err=err, logs=logs, units_consumed=units_consumed, accounts=None)


@pytest.fixture
def tx(payer):
    return InstructionPlan(swap_instruction=sync_native_instruction(payer)).build_transaction(payer)


async def test_simulate_request_options(tx):
    client = FakeSimulateClient(simulation_value(logs=["Program log: ok"]))

    result = await RpcTransactionSimulator(client).simulate(tx)

    assert result.success
    assert result.units_consumed == 90_000
    assert result.logs == ["Program log: ok"]
    ((sent, options),) = client.calls
    assert sent is tx
    assert options["sig_verify"] is False
    assert options["replace_recent_blockhash"] is True
    assert options["commitment"] == "confirmed"


async def test_failed_simulation_with_units_is_reported(tx):
    client = FakeSimulateClient(simulation_value(units_consumed=40_000, err="InstructionError"))

    result = await RpcTransactionSimulator(client).simulate(tx)

    assert not result.success
    assert result.units_consumed == 40_000
    assert result.error == "InstructionError"


async def test_failed_simulation_without_units_carries_logs(tx):
    logs = ["Program log: Error: insufficient funds"]
    client = FakeSimulateClient(simulation_value(units_consumed=None, err="InstructionError", logs=logs))

    with pytest.raises(SimulationUnavailableError) as exc_info:
        await RpcTransactionSimulator(client).simulate(tx)

    assert exc_info.value.simulation_logs == logs


async def test_client_error_is_unavailable(tx):
    client = FakeSimulateClient(error=ConnectionError("node down"))

    with pytest.raises(SimulationUnavailableError) as exc_info:
        await RpcTransactionSimulator(client).simulate(tx)

    assert exc_info.value.context["original_error"] == "ConnectionError"


async def test_empty_response_is_unavailable(tx):
    with pytest.raises(SimulationUnavailableError):
        await RpcTransactionSimulator(FakeSimulateClient(value=None)).simulate(tx)


async def test_client_failure_degrades_estimate(payer):
    plan = InstructionPlan(swap_instruction=sync_native_instruction(payer))
    simulator = RpcTransactionSimulator(FakeSimulateClient(error=ConnectionError("node down")))

    assert await ComputeEstimator(simulator).estimate(DynamicComputeLimit(), plan, payer) is None
