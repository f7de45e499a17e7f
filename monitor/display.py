"""
Console output for the guardian loop.

Pure formatting functions that emit structured log lines using box-drawing
characters. No side effects beyond logging. All data arrives via arguments.
"""

from __future__ import annotations

import logging
import time

from client.contracts import NETWORKS
from config import Config
from scanner.models import Decision, ExecutionRecord, ScoredOpportunity

logger = logging.getLogger(__name__)

_TOP = "\u250c"  # ┌
_MID = "\u2502"  # │
_BOT = "\u2514"  # └
_DASH = "\u2500"  # ─

_MAX_NAME_LEN = 28


def _truncate(text: str, length: int = _MAX_NAME_LEN) -> str:
    """Truncate text to *length* chars, appending ellipsis if trimmed."""
    if len(text) <= length:
        return text
    return text[: length - 1] + "\u2026"


def _format_duration(seconds: float) -> str:
    """Format seconds into a human-readable duration string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    if minutes < 60:
        return f"{minutes}m {secs:.0f}s"
    hours = minutes // 60
    mins = minutes % 60
    return f"{hours}h {mins}m"


def print_startup(cfg: Config, iterations: int | None) -> None:
    """Compact config block emitted once after the banner."""
    venues = "on-chain (%d pairs)" % len(cfg.pair_addresses) if cfg.pair_addresses else "simulated pools"
    logger.info(
        "  Mode: %-11s Divergence >= %.2f%%  Profit >= $%.2f  Size $%.0f",
        cfg.execution_mode.upper(), cfg.min_divergence * 100, cfg.min_profit_usd, cfg.trade_size_usd,
    )
    network = NETWORKS.get(cfg.chain_id, {}).get("name", f"chain {cfg.chain_id}")
    logger.info("  Venues: %s  Network: %s", venues, network)
    logger.info(
        "  Iterations: %s  Interval: %.1fs  Backoff: %.1fs  Advisory: %s",
        "until stopped" if iterations is None else iterations,
        cfg.cycle_interval_sec,
        cfg.no_opportunity_backoff_sec,
        cfg.advisory_model if cfg.openai_api_key else "rule-based",
    )


def print_cycle_header(cycle: int, iterations: int | None) -> None:
    """Horizontal divider with cycle number and wall-clock time."""
    ts = time.strftime("%H:%M:%S")
    label = f" Cycle {cycle}/{iterations} " if iterations else f" Cycle {cycle} "
    left = _DASH * 2
    right_pad = max(2, 60 - len(left) - len(label) - len(ts) - 3)
    logger.info(f"{left}{label}{_DASH * right_pad} {ts} {_DASH * 2}")


def print_scan_result(scored: list[ScoredOpportunity], fee_level_gwei: float, venues: int) -> None:
    """Boxed table of scored candidates for this cycle."""
    logger.info("  Compared %d venues at %.2f gwei", venues, fee_level_gwei)
    if not scored:
        logger.info("  %s No opportunities found", _TOP)
        return

    n = len(scored)
    logger.info("  %s %d opportunit%s found", _TOP, n, "y" if n == 1 else "ies")
    logger.info(
        "  %s  %-3s %-28s %-28s %7s %8s %5s %-6s",
        _MID, "#", "Source", "Target", "Diff", "Net", "Risk", "Cat",
    )
    for idx, s in enumerate(scored, 1):
        opp = s.opportunity
        logger.info(
            "  %s  %-3d %-28s %-28s %6.3f%% %8s %5d %-6s",
            _MID,
            idx,
            _truncate(opp.source.name),
            _truncate(opp.target.name),
            opp.divergence_pct,
            f"${opp.net_profit:.2f}",
            s.assessment.overall,
            s.assessment.category.value,
        )


def print_decision(decision: Decision) -> None:
    logger.info(
        "  %s Decision: %s  confidence %.1f%%",
        _MID, decision.recommendation.value, decision.confidence * 100,
    )
    logger.info("  %s Reasoning: %s", _MID, decision.rationale)
    if decision.advisory_text and decision.advisory_text != decision.rationale:
        logger.info("  %s Advisory: %s", _MID, decision.advisory_text)


def print_execution(record: ExecutionRecord) -> None:
    if record.success:
        logger.info(
            "  %s Executed: profit $%.2f  gas %d  tx %s",
            _BOT, record.realized_profit, record.resource_cost, record.reference,
        )
    else:
        logger.info("  %s Execution failed: %s", _BOT, record.error)


def print_summary(summary: dict) -> None:
    """Final execution summary emitted when the loop stops."""
    logger.info("")
    logger.info("=" * 60)
    logger.info("  EXECUTION SUMMARY")
    logger.info("=" * 60)
    logger.info("  %-24s %d", "Cycles:", summary.get("cycles", 0))
    logger.info("  %-24s %d", "Total executions:", summary["total_executions"])
    logger.info("  %-24s %d", "Successful:", summary["successful"])
    logger.info("  %-24s %d", "Failed:", summary["failed"])
    logger.info("  %-24s %.1f%%", "Success rate:", summary.get("success_rate_pct", 0.0))
    logger.info("  %-24s $%.2f", "Total profit:", summary["total_profit"])
    logger.info("  %-24s %s", "Session duration:", _format_duration(summary.get("session_duration_sec", 0.0)))
    logger.info("=" * 60)
