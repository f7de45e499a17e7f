"""
Guardian loop: fetch -> detect -> score -> decide -> (execute) -> record.

One loop instance runs cycles strictly one after another. Stop requests are
observed only between cycles, so an in-flight execution always finishes and
is recorded before the loop stops.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable

from client.advisory import AdvisoryService, build_market_context
from client.feed import FeedUnavailable, VenueFeed
from config import Config, ConfigurationError
from executor.engine import Executor
from monitor.display import (
    print_cycle_header,
    print_decision,
    print_execution,
    print_scan_result,
    print_summary,
)
from monitor.history import RunHistory
from scanner.decision import decide, select_best
from scanner.detector import detect_opportunities
from scanner.models import Decision, ExecutionRecord, Recommendation, ScoredOpportunity
from scanner.risk import score_opportunities

logger = logging.getLogger(__name__)

RECENT_OPPORTUNITY_LIMIT = 20


class LoopState(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class LoopSettings:
    min_divergence: float = 0.003
    trade_size_usd: float = 1000.0
    gas_usd_per_gwei: float = 0.001
    min_profit_usd: float = 5.0
    no_opportunity_backoff_sec: float = 5.0
    cycle_interval_sec: float = 10.0
    advisory_timeout_sec: float = 8.0

    @classmethod
    def from_config(cls, cfg: Config) -> LoopSettings:
        return cls(
            min_divergence=cfg.min_divergence,
            trade_size_usd=cfg.trade_size_usd,
            gas_usd_per_gwei=cfg.gas_usd_per_gwei,
            min_profit_usd=cfg.min_profit_usd,
            no_opportunity_backoff_sec=cfg.no_opportunity_backoff_sec,
            cycle_interval_sec=cfg.cycle_interval_sec,
            advisory_timeout_sec=cfg.advisory_timeout_sec,
        )

    def validate(self) -> None:
        """Raise ConfigurationError on values the pipeline cannot run with."""
        if not 0 < self.min_divergence < 1:
            raise ConfigurationError(f"min_divergence must be in (0, 1), got {self.min_divergence}")
        if self.trade_size_usd <= 0:
            raise ConfigurationError(f"trade_size_usd must be positive, got {self.trade_size_usd}")
        if self.min_profit_usd < 0:
            raise ConfigurationError(f"min_profit_usd must be >= 0, got {self.min_profit_usd}")
        if self.gas_usd_per_gwei < 0:
            raise ConfigurationError(f"gas_usd_per_gwei must be >= 0, got {self.gas_usd_per_gwei}")
        for name in ("no_opportunity_backoff_sec", "cycle_interval_sec"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if self.advisory_timeout_sec <= 0:
            raise ConfigurationError("advisory_timeout_sec must be positive")


@dataclass(frozen=True)
class CycleResult:
    """Everything one cycle observed and did."""
    cycle: int
    fee_level_gwei: float = 0.0
    scored: tuple[ScoredOpportunity, ...] = ()
    decision: Decision | None = None
    record: ExecutionRecord | None = None
    feed_error: str = ""
    timestamp: float = field(default_factory=time.time)

    @property
    def found(self) -> bool:
        return len(self.scored) > 0


class ArbitrageLoop:
    """
    IDLE -> RUNNING -> STOPPED state machine around one feed and one executor.
    Owns its history exclusively; readers get immutable views.
    """

    def __init__(
        self,
        feed: VenueFeed,
        executor: Executor,
        settings: LoopSettings | None = None,
        advisor: AdvisoryService | None = None,
        history: RunHistory | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self._settings = settings or LoopSettings()
        self._settings.validate()
        self._feed = feed
        self._executor = executor
        self._advisor = advisor
        self._history = history if history is not None else RunHistory()
        self._sleep = sleep

        self._state = LoopState.IDLE
        self._stop_requested = False
        self._stop_event: asyncio.Event | None = None
        self._cycle = 0
        self._recent: deque[dict[str, Any]] = deque(maxlen=RECENT_OPPORTUNITY_LIMIT)
        self._latest_breakdown: dict[str, Any] | None = None
        self._snapshot: dict[str, Any] = self._build_snapshot(None)

    # ── Read-only views ──

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def history(self) -> tuple[ExecutionRecord, ...]:
        return self._history.records

    def snapshot(self) -> dict[str, Any]:
        """Latest dashboard read model, replaced wholesale once per cycle."""
        return self._snapshot

    # ── Control ──

    def stop(self) -> None:
        """Request a graceful stop. Takes effect at the next cycle boundary."""
        if self._state is LoopState.STOPPED:
            return
        logger.info("Stop requested; finishing current cycle")
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, iterations: int | None = None) -> dict[str, Any]:
        """
        Run cycles until *iterations* complete (None = until stopped).
        Returns the aggregate summary emitted on stop.
        """
        if self._state is not LoopState.IDLE:
            raise RuntimeError(f"loop cannot start from state {self._state.value}")
        if iterations is not None and iterations < 0:
            raise ConfigurationError(f"iterations must be >= 0, got {iterations}")

        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()
        self._state = LoopState.RUNNING
        logger.info("Loop RUNNING (%s)", "until stopped" if iterations is None else f"{iterations} iterations")

        try:
            while not self._stop_requested:
                if iterations is not None and self._cycle >= iterations:
                    break
                self._cycle += 1
                is_final = iterations is not None and self._cycle >= iterations

                print_cycle_header(self._cycle, iterations)
                result = await self.run_cycle(self._cycle)

                if self._stop_requested:
                    continue
                if not result.found:
                    logger.info("No opportunities; backing off %.1fs", self._settings.no_opportunity_backoff_sec)
                    await self._wait(self._settings.no_opportunity_backoff_sec)
                elif not is_final:
                    await self._wait(self._settings.cycle_interval_sec)
        finally:
            self._state = LoopState.STOPPED
            self._snapshot = {**self._snapshot, "state": self._state.value}

        summary = self.summary()
        print_summary(summary)
        return summary

    def summary(self) -> dict[str, Any]:
        return {"cycles": self._cycle, **self._history.summary()}

    async def _wait(self, delay: float) -> None:
        if delay <= 0:
            return
        if self._sleep is not None:
            await self._sleep(delay)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    # ── One cycle ──

    async def run_cycle(self, cycle: int) -> CycleResult:
        """Execute one full evaluation cycle. Never raises for feed or advisory failures."""
        s = self._settings
        try:
            snapshots = await self._feed.fetch_snapshots()
            fee_level = await self._feed.current_fee_level()
        except FeedUnavailable as e:
            logger.warning("Feed unavailable, skipping cycle %d: %s", cycle, e)
            return self._finish(CycleResult(cycle=cycle, feed_error=str(e)))
        except Exception as e:
            logger.warning("Feed error, skipping cycle %d: %s", cycle, e, exc_info=True)
            return self._finish(CycleResult(cycle=cycle, feed_error=str(e) or type(e).__name__))

        opps = detect_opportunities(
            snapshots,
            s.min_divergence,
            s.trade_size_usd,
            fee_level,
            gas_usd_per_gwei=s.gas_usd_per_gwei,
        )
        scored = score_opportunities(opps, fee_level, s.min_profit_usd)
        print_scan_result(scored, fee_level, len(snapshots))
        if not scored:
            return self._finish(CycleResult(cycle=cycle, fee_level_gwei=fee_level))

        decision = decide(scored, s.min_profit_usd)
        best = select_best(scored)
        advisory = await self._advise(best, scored, fee_level)
        decision = replace(decision, advisory_text=advisory or decision.rationale)
        print_decision(decision)

        record = None
        if decision.recommendation is Recommendation.EXECUTE and decision.selected is not None:
            record = await self._execute(decision.selected)
            self._history.append(record)
            print_execution(record)

        return self._finish(CycleResult(
            cycle=cycle,
            fee_level_gwei=fee_level,
            scored=tuple(scored),
            decision=decision,
            record=record,
        ))

    async def _advise(
        self,
        best: ScoredOpportunity,
        scored: list[ScoredOpportunity],
        fee_level: float,
    ) -> str | None:
        if self._advisor is None:
            return None
        context = build_market_context(scored, fee_level)
        try:
            return await asyncio.wait_for(
                self._advisor.explain(best.opportunity, best.assessment, context),
                timeout=self._settings.advisory_timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("Advisory timed out after %.1fs", self._settings.advisory_timeout_sec)
        except Exception as e:
            logger.warning("Advisory failed: %s", e)
        return None

    async def _execute(self, selected: ScoredOpportunity) -> ExecutionRecord:
        opp = selected.opportunity
        try:
            return await self._executor.execute(opp)
        except Exception as e:
            logger.error("Executor raised for %s: %s", opp.opportunity_id, e, exc_info=True)
            return ExecutionRecord(
                success=False,
                error=str(e) or type(e).__name__,
                opportunity_id=opp.opportunity_id,
                mode=self._executor.mode.value,
            )

    def _finish(self, result: CycleResult) -> CycleResult:
        for s in result.scored:
            self._recent.append(s.to_dict())
        self._snapshot = self._build_snapshot(result)
        return result

    def _build_snapshot(self, result: CycleResult | None) -> dict[str, Any]:
        latest_breakdown: dict[str, Any] | None = None
        last_decision: dict[str, Any] | None = None
        if result is not None and result.scored:
            best = select_best(list(result.scored))
            latest_breakdown = {
                "opportunity_id": best.opportunity.opportunity_id,
                "overall": best.assessment.overall,
                "category": best.assessment.category.value,
                "factors": best.assessment.factors.to_dict(),
            }
        else:
            latest_breakdown = self._latest_breakdown
        self._latest_breakdown = latest_breakdown
        if result is not None and result.decision is not None:
            last_decision = {
                "recommendation": result.decision.recommendation.value,
                "confidence": round(result.decision.confidence, 4),
                "rationale": result.decision.rationale,
                "advisory": result.decision.advisory_text,
            }

        return {
            "state": self._state.value,
            "cycle": self._cycle,
            "updated_at": time.time(),
            "recent_opportunities": list(self._recent),
            "execution_history": [r.to_dict() for r in self._history.records],
            "latest_risk_breakdown": latest_breakdown,
            "last_decision": last_decision,
            "summary": self._history.summary(),
        }
