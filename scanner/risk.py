"""
Six-factor risk model for a detected opportunity. Each factor is a step
function over domain breakpoints; the overall score is a weighted average.

Breakpoints and weights are fixed values, not tunable defaults:
- liquidity: source venue depth
- price impact: size of the divergence itself (huge spreads are suspicious)
- gas cost: gas price level, then profit margin after fees
- volatility: average venue price distance from the 1.0 peg
- slippage: assumed trade size relative to liquidity
- competition: larger profits attract more automated competitors

Score 0 = lowest risk, 100 = highest.
"""

from __future__ import annotations

import math

from scanner.decision import recommend
from scanner.models import (
    Opportunity,
    RiskAssessment,
    RiskCategory,
    RiskFactors,
    ScoredOpportunity,
)

# Weights (sum to 1.0), in factor order
W_LIQUIDITY = 0.25
W_PRICE_IMPACT = 0.20
W_GAS_COST = 0.20
W_VOLATILITY = 0.15
W_SLIPPAGE = 0.10
W_COMPETITION = 0.10

PEG_REFERENCE = 1.0
SLIPPAGE_TRADE_SIZE = 10_000.0

LOW_RISK_MAX = 35      # overall < 35 -> LOW
MEDIUM_RISK_MAX = 65   # overall < 65 -> MEDIUM, else HIGH


def liquidity_risk(liquidity: float) -> int:
    if liquidity > 5_000_000:
        return 10
    if liquidity > 1_000_000:
        return 25
    if liquidity > 500_000:
        return 40
    if liquidity > 100_000:
        return 65
    return 90


def price_impact_risk(divergence_pct: float) -> int:
    if divergence_pct < 0.5:
        return 20
    if divergence_pct < 1.0:
        return 35
    if divergence_pct < 2.0:
        return 50
    if divergence_pct < 5.0:
        return 70
    return 95


def profit_margin(net_profit: float, fee_cost: float) -> float:
    """Share of gross kept after fees: net / (net + fee). 0.0 when undefined."""
    denom = net_profit + fee_cost
    if denom == 0:
        return 0.0
    return net_profit / denom


def gas_cost_risk(fee_level_gwei: float, net_profit: float, fee_cost: float) -> int:
    if fee_level_gwei > 100:
        return 80
    if fee_level_gwei > 50:
        return 60

    margin = profit_margin(net_profit, fee_cost)
    if margin < 0.3:
        return 70
    if margin < 0.5:
        return 50
    if margin < 0.7:
        return 30
    return 15


def volatility_risk(source_price: float, target_price: float) -> int:
    avg_price = (source_price + target_price) / 2.0
    deviation = abs(avg_price - PEG_REFERENCE)

    if deviation < 0.005:
        return 10
    if deviation < 0.01:
        return 25
    if deviation < 0.02:
        return 45
    if deviation < 0.05:
        return 70
    return 95


def slippage_risk(liquidity: float) -> int:
    if liquidity <= 0:
        return 85
    ratio = SLIPPAGE_TRADE_SIZE / liquidity

    if ratio < 0.001:
        return 10
    if ratio < 0.005:
        return 25
    if ratio < 0.01:
        return 40
    if ratio < 0.02:
        return 60
    return 85


def competition_risk(net_profit: float) -> int:
    if net_profit > 1000:
        return 75
    if net_profit > 500:
        return 60
    if net_profit > 100:
        return 45
    if net_profit > 50:
        return 30
    return 20


def compute_factors(opp: Opportunity, fee_level_gwei: float) -> RiskFactors:
    return RiskFactors(
        liquidity=liquidity_risk(opp.liquidity),
        price_impact=price_impact_risk(opp.divergence_pct),
        gas_cost=gas_cost_risk(fee_level_gwei, opp.net_profit, opp.fee_cost),
        volatility=volatility_risk(opp.source.price, opp.target.price),
        slippage=slippage_risk(opp.liquidity),
        competition=competition_risk(opp.net_profit),
    )


def overall_score(factors: RiskFactors) -> int:
    weighted = (
        W_LIQUIDITY * factors.liquidity
        + W_PRICE_IMPACT * factors.price_impact
        + W_GAS_COST * factors.gas_cost
        + W_VOLATILITY * factors.volatility
        + W_SLIPPAGE * factors.slippage
        + W_COMPETITION * factors.competition
    )
    # Half-up rounding (24.5 -> 25)
    return max(0, min(100, int(math.floor(weighted + 0.5))))


def categorize(overall: int) -> RiskCategory:
    if overall < LOW_RISK_MAX:
        return RiskCategory.LOW
    if overall < MEDIUM_RISK_MAX:
        return RiskCategory.MEDIUM
    return RiskCategory.HIGH


def explain_risk(overall: int, factors: RiskFactors, net_profit: float) -> str:
    """One-line rationale naming the highest factor (earliest wins ties)."""
    name, value = factors.items()[0]
    for candidate, score in factors.items()[1:]:
        if score > value:
            name, value = candidate, score

    return (
        f"{categorize(overall).value} risk ({overall}/100). "
        f"Main concern: {name} ({value}/100). "
        f"Estimated profit: ${net_profit:.2f}."
    )


def assess_risk(
    opp: Opportunity,
    fee_level_gwei: float,
    min_profit_usd: float,
) -> RiskAssessment:
    """
    Build a fresh RiskAssessment. Same inputs always give an equal result.
    """
    factors = compute_factors(opp, fee_level_gwei)
    overall = overall_score(factors)
    return RiskAssessment(
        factors=factors,
        overall=overall,
        category=categorize(overall),
        recommendation=recommend(overall, opp.net_profit, min_profit_usd),
        rationale=explain_risk(overall, factors, opp.net_profit),
    )


def score_opportunities(
    opps: list[Opportunity],
    fee_level_gwei: float,
    min_profit_usd: float,
) -> list[ScoredOpportunity]:
    """Attach an assessment to every opportunity, preserving detection order."""
    return [
        ScoredOpportunity(opportunity=opp, assessment=assess_risk(opp, fee_level_gwei, min_profit_usd))
        for opp in opps
    ]
