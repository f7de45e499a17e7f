"""
Unit tests for executor/engine.py -- simulated and live execution.
"""

import dataclasses
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import Config, ConfigurationError
from executor.engine import (
    SLIPPAGE_ERROR,
    LiveExecutor,
    SimulatedExecutor,
    build_executor,
    is_well_formed_reference,
)
from scanner.models import ExecutionMode, Opportunity, VenueSnapshot

SOURCE_ADDR = "0x" + "11" * 20
TARGET_ADDR = "0x" + "22" * 20
CONTRACT_ADDR = "0x" + "44" * 20
TEST_KEY = "0x" + "4c" * 32


def _make_opp(net: float = 55.0, fee: float = 5.0, opp_id: str = "opp_1_0_1") -> Opportunity:
    return Opportunity(
        opportunity_id=opp_id,
        source=VenueSnapshot(address=SOURCE_ADDR, name="Pool A", price=1.0, liquidity=2_000_000.0),
        target=VenueSnapshot(address=TARGET_ADDR, name="Pool B", price=1.006, liquidity=1_000_000.0),
        divergence_pct=0.6,
        gross_profit=net + fee,
        fee_cost=fee,
        trade_size=1000.0,
    )


class _Awaitable:
    """Reusable awaitable standing in for AsyncWeb3's awaitable properties."""

    def __init__(self, value):
        self._value = value

    def __await__(self):
        if False:
            yield
        return self._value


def _make_w3(status: int = 1, gas_used: int = 143_210, gas_price_wei: int = 2 * 10**9):
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda a: a
    w3.to_hex.side_effect = lambda b: "0x" + bytes(b).hex()
    w3.eth.gas_price = _Awaitable(gas_price_wei)
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=b"\xab" * 32)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": status, "gasUsed": gas_used})
    w3.eth.get_transaction_receipt = AsyncMock(return_value={"status": 1})

    contract = w3.eth.contract.return_value
    contract.functions.executeArbitrage.return_value.build_transaction = AsyncMock(
        return_value={"to": CONTRACT_ADDR, "data": "0x"},
    )
    contract.events.ArbitrageExecuted.return_value.process_receipt.return_value = [
        {"args": {"profit": 52_500_000}},
    ]
    return w3


def _make_signer():
    signer = MagicMock()
    signer.address = "0x" + "99" * 20
    signer.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
    return signer


class TestReferenceFormat:
    def test_well_formed(self):
        assert is_well_formed_reference("0x" + "a" * 64)
        assert is_well_formed_reference("0x" + "0123456789ABCDEF" * 4)

    @pytest.mark.parametrize("ref", ["", "0x", "0x" + "a" * 63, "0x" + "a" * 65, "a" * 66, "0x" + "g" * 64])
    def test_malformed(self, ref):
        assert not is_well_formed_reference(ref)


class TestSimulatedExecutor:
    @pytest.mark.asyncio
    async def test_success_shape(self):
        rng = random.Random(1)
        executor = SimulatedExecutor(rng=rng, delay_sec=0, gas_used=150_000)
        for _ in range(50):
            record = await executor.execute(_make_opp())
            if record.success:
                break
        assert record.success
        assert record.mode == "simulation"
        assert record.resource_cost == 150_000
        assert record.error is None
        assert record.opportunity_id == "opp_1_0_1"
        assert await executor.verify(record.reference)
        assert 55.0 * 0.95 <= record.realized_profit <= 55.0 * 1.05

    @pytest.mark.asyncio
    async def test_success_rate_converges(self):
        executor = SimulatedExecutor(rng=random.Random(42), delay_sec=0)
        records = [await executor.execute(_make_opp()) for _ in range(2000)]

        successes = [r for r in records if r.success]
        rate = len(successes) / len(records)
        assert 0.87 <= rate <= 0.93
        for r in successes:
            assert 55.0 * 0.95 <= r.realized_profit <= 55.0 * 1.05
            assert is_well_formed_reference(r.reference)
        for r in records:
            if not r.success:
                assert r.error == SLIPPAGE_ERROR
                assert r.reference is None
                assert r.realized_profit == 0.0

    @pytest.mark.asyncio
    async def test_deterministic_with_seed(self):
        a = SimulatedExecutor(rng=random.Random(7), delay_sec=0)
        b = SimulatedExecutor(rng=random.Random(7), delay_sec=0)
        ra = [await a.execute(_make_opp()) for _ in range(20)]
        rb = [await b.execute(_make_opp()) for _ in range(20)]
        assert [(r.success, r.reference, r.realized_profit) for r in ra] == [
            (r.success, r.reference, r.realized_profit) for r in rb
        ]

    @pytest.mark.asyncio
    async def test_verify_rejects_garbage(self):
        executor = SimulatedExecutor(delay_sec=0)
        assert not await executor.verify("not-a-hash")

    def test_mode(self):
        assert SimulatedExecutor().mode is ExecutionMode.SIMULATION


class TestLiveExecutor:
    def _make_executor(self, w3=None, **kwargs) -> LiveExecutor:
        return LiveExecutor(
            w3 or _make_w3(),
            _make_signer(),
            contract_address=CONTRACT_ADDR,
            chain_id=84532,
            **kwargs,
        )

    def test_requires_signer(self):
        with pytest.raises(ConfigurationError):
            LiveExecutor(_make_w3(), None, contract_address=CONTRACT_ADDR, chain_id=84532)

    def test_requires_contract_address(self):
        with pytest.raises(ConfigurationError):
            LiveExecutor(_make_w3(), _make_signer(), contract_address="", chain_id=84532)

    @pytest.mark.asyncio
    async def test_successful_send(self):
        w3 = _make_w3()
        executor = self._make_executor(w3)
        record = await executor.execute(_make_opp())

        assert record.success
        assert record.mode == "live"
        assert record.reference == "0x" + "ab" * 32
        assert record.resource_cost == 143_210
        assert record.realized_profit == pytest.approx(52.5)

        contract = w3.eth.contract.return_value
        args = contract.functions.executeArbitrage.call_args.args
        assert args[0] == SOURCE_ADDR
        assert args[1] == TARGET_ADDR
        assert args[2] == 1000 * 10**18
        # 55 USD less 50 bps tolerance, in 6-decimal units
        assert args[3] == int(55.0 * 0.995 * 10**6)
        tx_params = contract.functions.executeArbitrage.return_value.build_transaction.call_args.args[0]
        assert tx_params["nonce"] == 7
        assert tx_params["chainId"] == 84532
        w3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")

    @pytest.mark.asyncio
    async def test_buys_on_cheaper_venue_when_source_is_expensive(self):
        w3 = _make_w3()
        executor = self._make_executor(w3)
        opp = dataclasses.replace(
            _make_opp(),
            source=VenueSnapshot(address=SOURCE_ADDR, name="Pool A", price=1.004, liquidity=2_000_000.0),
            target=VenueSnapshot(address=TARGET_ADDR, name="Pool B", price=0.998, liquidity=1_000_000.0),
        )
        await executor.execute(opp)

        args = w3.eth.contract.return_value.functions.executeArbitrage.call_args.args
        assert args[0] == TARGET_ADDR
        assert args[1] == SOURCE_ADDR

    @pytest.mark.asyncio
    async def test_profit_falls_back_to_estimate_without_event(self):
        w3 = _make_w3()
        w3.eth.contract.return_value.events.ArbitrageExecuted.return_value.process_receipt.return_value = []
        record = await self._make_executor(w3).execute(_make_opp(net=40.0))
        assert record.realized_profit == pytest.approx(40.0)

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_failure(self):
        record = await self._make_executor(_make_w3(status=0)).execute(_make_opp())
        assert not record.success
        assert "transaction reverted" in record.error
        assert record.mode == "live"

    @pytest.mark.asyncio
    async def test_send_error_is_recorded_not_raised(self):
        w3 = _make_w3()
        w3.eth.send_raw_transaction.side_effect = ConnectionError("rpc down")
        record = await self._make_executor(w3).execute(_make_opp())
        assert not record.success
        assert record.error == "rpc down"

    @pytest.mark.asyncio
    async def test_gas_price_cap_blocks_send(self):
        w3 = _make_w3(gas_price_wei=80 * 10**9)
        record = await self._make_executor(w3, max_gas_price_gwei=50.0).execute(_make_opp())
        assert not record.success
        assert "exceeds cap" in record.error
        w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verify_checks_receipt_status(self):
        w3 = _make_w3()
        executor = self._make_executor(w3)
        ref = "0x" + "ab" * 32
        assert await executor.verify(ref)

        w3.eth.get_transaction_receipt.return_value = {"status": 0}
        assert not await executor.verify(ref)

    @pytest.mark.asyncio
    async def test_verify_lookup_error_is_false(self):
        w3 = _make_w3()
        w3.eth.get_transaction_receipt.side_effect = ValueError("not found")
        assert not await self._make_executor(w3).verify("0x" + "ab" * 32)

    @pytest.mark.asyncio
    async def test_verify_malformed_reference_skips_lookup(self):
        w3 = _make_w3()
        assert not await self._make_executor(w3).verify("0x1234")
        w3.eth.get_transaction_receipt.assert_not_awaited()


class TestBuildExecutor:
    def test_simulation_by_default(self):
        executor = build_executor(Config(execution_mode="simulation"))
        assert isinstance(executor, SimulatedExecutor)

    def test_live_without_key_is_configuration_error(self):
        cfg = Config(execution_mode="live", private_key="", arb_contract_address=CONTRACT_ADDR)
        with pytest.raises(ConfigurationError):
            build_executor(cfg)

    def test_live_with_key(self):
        cfg = Config(
            execution_mode="live",
            private_key=TEST_KEY,
            arb_contract_address=CONTRACT_ADDR,
            venue_pairs=f"{SOURCE_ADDR},{TARGET_ADDR}",
        )
        executor = build_executor(cfg)
        assert isinstance(executor, LiveExecutor)
        assert executor.mode is ExecutionMode.LIVE
