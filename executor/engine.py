"""
Trade execution engine. Carries out a decided opportunity (simulated or live)
and returns an ExecutionRecord. Failures are recorded, never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Protocol, runtime_checkable

from config import Config, ConfigurationError
from client.contracts import ARB_EXECUTOR_ABI, explorer_tx_url
from scanner.models import ExecutionMode, ExecutionRecord, Opportunity

logger = logging.getLogger(__name__)

SIMULATED_FAILURE_RATE = 0.10   # success iff rng.random() > 0.10
SIMULATED_PROFIT_LOW = 0.95
SIMULATED_PROFIT_SPREAD = 0.10   # realized multiplier in [0.95, 1.05]
SLIPPAGE_ERROR = "execution slippage exceeded tolerance"

_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class ExecutionFailure(Exception):
    """Domain-level execution failure. Recorded in history; the loop continues."""
    pass


def is_well_formed_reference(reference: str) -> bool:
    """True for a 0x-prefixed 32-byte hex transaction hash."""
    return bool(reference) and bool(_TX_HASH_RE.match(reference))


@runtime_checkable
class Executor(Protocol):
    @property
    def mode(self) -> ExecutionMode:
        ...

    async def execute(self, opportunity: Opportunity) -> ExecutionRecord:
        """Carry out the action. Never raises for domain failures."""
        ...

    async def verify(self, reference: str) -> bool:
        """True when the action reference has terminal success status."""
        ...


class SimulatedExecutor:
    """
    Paper execution: artificial delay, then 90% success with realized profit
    within +/-5% of the estimate. Randomness comes from an injectable rng.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        delay_sec: float = 1.5,
        gas_used: int = 150_000,
    ):
        self._rng = rng or random.Random()
        self._delay_sec = delay_sec
        self._gas_used = gas_used

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.SIMULATION

    def _mock_tx_hash(self) -> str:
        return "0x" + format(self._rng.getrandbits(256), "064x")

    async def _simulate(self, opportunity: Opportunity) -> ExecutionRecord:
        await asyncio.sleep(self._delay_sec)

        if self._rng.random() <= SIMULATED_FAILURE_RATE:
            raise ExecutionFailure(SLIPPAGE_ERROR)

        multiplier = SIMULATED_PROFIT_LOW + self._rng.random() * SIMULATED_PROFIT_SPREAD
        return ExecutionRecord(
            success=True,
            reference=self._mock_tx_hash(),
            realized_profit=opportunity.net_profit * multiplier,
            resource_cost=self._gas_used,
            opportunity_id=opportunity.opportunity_id,
            mode=self.mode.value,
        )

    async def execute(self, opportunity: Opportunity) -> ExecutionRecord:
        try:
            record = await self._simulate(opportunity)
        except ExecutionFailure as e:
            logger.info("[SIM] Execution failed for %s: %s", opportunity.opportunity_id, e)
            return ExecutionRecord(
                success=False,
                error=str(e),
                opportunity_id=opportunity.opportunity_id,
                mode=self.mode.value,
            )

        logger.info(
            "[SIM] Executed %s: profit=$%.2f tx=%s",
            opportunity.opportunity_id, record.realized_profit, record.reference,
        )
        return record

    async def verify(self, reference: str) -> bool:
        return is_well_formed_reference(reference)


class LiveExecutor:
    """
    Sends one executeArbitrage transaction to the configured executor
    contract and waits for its receipt.
    """

    def __init__(
        self,
        w3,
        signer,
        contract_address: str,
        chain_id: int,
        decimals0: int = 18,
        decimals1: int = 6,
        slippage_bps: int = 50,
        receipt_timeout_sec: float = 120.0,
        max_gas_price_gwei: float = 50.0,
    ):
        if signer is None:
            raise ConfigurationError("live execution requires a signing capability")
        if not contract_address:
            raise ConfigurationError("live execution requires an executor contract address")
        self._w3 = w3
        self._signer = signer
        self._contract = w3.eth.contract(
            address=w3.to_checksum_address(contract_address), abi=ARB_EXECUTOR_ABI,
        )
        self._chain_id = chain_id
        self._scale0 = 10 ** decimals0
        self._scale1 = 10 ** decimals1
        self._slippage_bps = slippage_bps
        self._receipt_timeout_sec = receipt_timeout_sec
        self._max_gas_price_gwei = max_gas_price_gwei

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.LIVE

    def _call_args(self, opportunity: Opportunity) -> tuple[str, str, int, int]:
        amount_in = int(opportunity.trade_size * self._scale0)
        keep = 1.0 - self._slippage_bps / 10_000
        min_profit = int(max(0.0, opportunity.net_profit) * keep * self._scale1)
        # The contract buys on sourcePair, so the cheaper venue goes first.
        buy, sell = opportunity.source, opportunity.target
        if buy.price > sell.price:
            buy, sell = sell, buy
        return (
            self._w3.to_checksum_address(buy.address),
            self._w3.to_checksum_address(sell.address),
            amount_in,
            min_profit,
        )

    def _realized_profit(self, receipt, fallback: float) -> float:
        from web3.logs import DISCARD

        events = self._contract.events.ArbitrageExecuted().process_receipt(receipt, errors=DISCARD)
        if not events:
            return fallback
        return events[0]["args"]["profit"] / self._scale1

    async def _check_gas_price(self) -> None:
        gas_price_gwei = (await self._w3.eth.gas_price) / 1e9
        if gas_price_gwei > self._max_gas_price_gwei:
            raise ExecutionFailure(
                f"gas price {gas_price_gwei:.1f} gwei exceeds cap {self._max_gas_price_gwei:.1f} gwei"
            )

    async def _send(self, opportunity: Opportunity) -> ExecutionRecord:
        await self._check_gas_price()
        sender = self._signer.address
        nonce = await self._w3.eth.get_transaction_count(sender)
        tx = await self._contract.functions.executeArbitrage(
            *self._call_args(opportunity)
        ).build_transaction({"from": sender, "nonce": nonce, "chainId": self._chain_id})

        signed = self._signer.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        reference = self._w3.to_hex(tx_hash)
        logger.info(
            "[LIVE] Sent %s tx=%s %s",
            opportunity.opportunity_id, reference, explorer_tx_url(self._chain_id, reference),
        )

        receipt = await self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout_sec,
        )
        if receipt["status"] != 1:
            raise ExecutionFailure(f"transaction reverted: {reference}")

        return ExecutionRecord(
            success=True,
            reference=reference,
            realized_profit=self._realized_profit(receipt, opportunity.net_profit),
            resource_cost=int(receipt["gasUsed"]),
            opportunity_id=opportunity.opportunity_id,
            mode=self.mode.value,
        )

    async def execute(self, opportunity: Opportunity) -> ExecutionRecord:
        try:
            record = await self._send(opportunity)
        except Exception as e:
            logger.error("[LIVE] Execution failed for %s: %s", opportunity.opportunity_id, e)
            return ExecutionRecord(
                success=False,
                error=str(e) or type(e).__name__,
                opportunity_id=opportunity.opportunity_id,
                mode=self.mode.value,
            )

        logger.info(
            "[LIVE] Confirmed %s: profit=$%.2f gas=%d tx=%s",
            opportunity.opportunity_id, record.realized_profit, record.resource_cost, record.reference,
        )
        return record

    async def verify(self, reference: str) -> bool:
        if not is_well_formed_reference(reference):
            return False
        try:
            receipt = await self._w3.eth.get_transaction_receipt(reference)
        except Exception as e:
            logger.warning("Receipt lookup failed for %s: %s", reference, e)
            return False
        return receipt is not None and receipt["status"] == 1


def build_executor(cfg: Config, rng: random.Random | None = None) -> Executor:
    """
    Factory selecting the executor by execution mode.
    Live mode without a signing key raises ConfigurationError.
    """
    if not cfg.is_live:
        return SimulatedExecutor(
            rng=rng,
            delay_sec=cfg.simulated_execution_delay_sec,
            gas_used=cfg.gas_per_swap,
        )

    from web3 import AsyncWeb3

    from executor.signing import build_signer

    signer = build_signer(cfg)
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(cfg.rpc_url))
    return LiveExecutor(
        w3,
        signer,
        contract_address=cfg.arb_contract_address,
        chain_id=cfg.chain_id,
        decimals0=cfg.token_decimals0,
        decimals1=cfg.token_decimals1,
        slippage_bps=cfg.slippage_bps,
        receipt_timeout_sec=cfg.receipt_timeout_sec,
        max_gas_price_gwei=cfg.max_gas_price_gwei,
    )
