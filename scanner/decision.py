"""
Decision rules: map (risk, net profit, minimum profit) to EXECUTE / WAIT / SKIP,
pick the single best candidate per cycle, and compute decision confidence.
"""

from __future__ import annotations

import logging

from scanner.models import Decision, Recommendation, ScoredOpportunity

logger = logging.getLogger(__name__)

NO_OPPORTUNITY_RATIONALE = "No opportunities detected"


def recommend(risk_score: int, net_profit: float, min_profit_usd: float) -> Recommendation:
    """
    Ordered rule, first match wins. The minimum-profit check dominates
    every risk level.
    """
    if net_profit < min_profit_usd:
        return Recommendation.SKIP
    if risk_score < 35 and net_profit > 10:
        return Recommendation.EXECUTE
    if risk_score < 50 and net_profit > 25:
        return Recommendation.EXECUTE
    if risk_score < 65:
        return Recommendation.WAIT
    return Recommendation.SKIP


def compute_confidence(risk_score: int, net_profit: float, fee_cost: float) -> float:
    """
    0.5 * (1 - risk/100) + 0.3 * min(net/50, 1) + 0.2 * net/(net + fee),
    clamped to [0, 1]. The ratio term is 0 when net + fee is 0.
    """
    risk_factor = 1.0 - risk_score / 100.0
    profit_factor = min(net_profit / 50.0, 1.0)
    denom = net_profit + fee_cost
    fee_ratio = net_profit / denom if denom != 0 else 0.0

    raw = 0.5 * risk_factor + 0.3 * profit_factor + 0.2 * fee_ratio
    return max(0.0, min(1.0, raw))


def select_best(scored: list[ScoredOpportunity]) -> ScoredOpportunity | None:
    """Highest net profit wins; ties go to the earliest detected candidate."""
    best: ScoredOpportunity | None = None
    for candidate in scored:
        if best is None or candidate.opportunity.net_profit > best.opportunity.net_profit:
            best = candidate
    return best


def decide(scored: list[ScoredOpportunity], min_profit_usd: float) -> Decision:
    """
    Produce the cycle's single Decision. A selection is attached only for
    EXECUTE and WAIT.
    """
    best = select_best(scored)
    if best is None:
        return Decision(
            recommendation=Recommendation.SKIP,
            selected=None,
            confidence=1.0,
            rationale=NO_OPPORTUNITY_RATIONALE,
        )

    opp = best.opportunity
    risk = best.assessment.overall
    recommendation = recommend(risk, opp.net_profit, min_profit_usd)
    confidence = compute_confidence(risk, opp.net_profit, opp.fee_cost)

    logger.debug(
        "Decision %s for %s: risk=%d net=$%.2f confidence=%.3f",
        recommendation.value, opp.opportunity_id, risk, opp.net_profit, confidence,
    )
    return Decision(
        recommendation=recommendation,
        selected=best if recommendation != Recommendation.SKIP else None,
        confidence=confidence,
        rationale=best.assessment.rationale,
    )
