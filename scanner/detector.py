"""
Pairwise venue divergence scanner.
Compares every unordered pair of venue snapshots once and flags pairs whose
price divergence meets the configured threshold.
"""

from __future__ import annotations

import logging
import time

from scanner.models import Opportunity, VenueSnapshot

logger = logging.getLogger(__name__)

# Default USD cost per gwei of gas price (simple linear fee model)
DEFAULT_GAS_USD_PER_GWEI = 0.001


def price_divergence_pct(source_price: float, target_price: float) -> float:
    """
    Percentage divergence |target - source| / source * 100.
    Returns 0.0 when either price is zero (no meaningful comparison).
    """
    if source_price == 0 or target_price == 0:
        return 0.0
    return abs((target_price - source_price) / source_price * 100.0)


def estimate_fee_cost(fee_level_gwei: float, gas_usd_per_gwei: float = DEFAULT_GAS_USD_PER_GWEI) -> float:
    """Estimated USD execution cost for the current gas price."""
    return max(0.0, fee_level_gwei) * gas_usd_per_gwei


def detect_opportunities(
    snapshots: list[VenueSnapshot],
    threshold: float,
    trade_size: float,
    fee_level_gwei: float,
    gas_usd_per_gwei: float = DEFAULT_GAS_USD_PER_GWEI,
    now: float | None = None,
) -> list[Opportunity]:
    """
    Scan all venue pairs (i < j) for price divergence >= threshold * 100.

    threshold is a fraction (0.003 = 0.3%). Output preserves pair index order.
    """
    if not 0 < threshold < 1:
        raise ValueError(f"threshold must be a fraction in (0, 1), got {threshold}")
    if trade_size <= 0:
        raise ValueError(f"trade_size must be positive, got {trade_size}")

    ts = time.time() if now is None else now
    min_pct = threshold * 100.0
    fee_cost = estimate_fee_cost(fee_level_gwei, gas_usd_per_gwei)

    opportunities: list[Opportunity] = []
    for i in range(len(snapshots)):
        for j in range(i + 1, len(snapshots)):
            source = snapshots[i]
            target = snapshots[j]
            divergence = price_divergence_pct(source.price, target.price)
            if divergence < min_pct:
                continue

            gross = trade_size * (divergence / 100.0)
            opp = Opportunity(
                opportunity_id=f"opp_{int(ts * 1000)}_{i}_{j}",
                source=source,
                target=target,
                divergence_pct=divergence,
                gross_profit=gross,
                fee_cost=fee_cost,
                trade_size=trade_size,
                pair_index=(i, j),
                timestamp=ts,
            )
            opportunities.append(opp)
            logger.debug(
                "Divergence %s -> %s: %.3f%% gross=$%.2f net=$%.2f",
                source.name, target.name, divergence, gross, opp.net_profit,
            )

    return opportunities
