"""
Data models for the venue scanner. Pure data, no behavior.
"""

from __future__ import annotations

import time
from enum import Enum
from dataclasses import dataclass, field


class Recommendation(Enum):
    EXECUTE = "EXECUTE"
    WAIT = "WAIT"
    SKIP = "SKIP"


class RiskCategory(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ExecutionMode(Enum):
    SIMULATION = "simulation"
    LIVE = "live"


@dataclass(frozen=True)
class VenueSnapshot:
    address: str
    name: str
    price: float        # quote per base (e.g. USDC per FRAX)
    liquidity: float    # tradable depth proxy
    timestamp: float = field(default_factory=time.time)
    token0: str = ""
    token1: str = ""
    reserve0: float = 0.0
    reserve1: float = 0.0


@dataclass(frozen=True)
class Opportunity:
    opportunity_id: str
    source: VenueSnapshot
    target: VenueSnapshot
    divergence_pct: float   # |target - source| / source * 100, never negative
    gross_profit: float
    fee_cost: float
    trade_size: float
    pair_index: tuple[int, int] = (0, 0)
    timestamp: float = field(default_factory=time.time)

    @property
    def net_profit(self) -> float:
        return self.gross_profit - self.fee_cost

    @property
    def liquidity(self) -> float:
        return self.source.liquidity


@dataclass(frozen=True)
class RiskFactors:
    """Six sub-scores, each an int in [0, 100]. Field order is the tie-break order."""
    liquidity: int
    price_impact: int
    gas_cost: int
    volatility: int
    slippage: int
    competition: int

    def items(self) -> list[tuple[str, int]]:
        return [
            ("liquidity", self.liquidity),
            ("priceImpact", self.price_impact),
            ("gasCost", self.gas_cost),
            ("volatility", self.volatility),
            ("slippage", self.slippage),
            ("competition", self.competition),
        ]

    def to_dict(self) -> dict[str, int]:
        return {f"{name}Risk": value for name, value in self.items()}


@dataclass(frozen=True)
class RiskAssessment:
    factors: RiskFactors
    overall: int
    category: RiskCategory
    recommendation: Recommendation
    rationale: str


@dataclass(frozen=True)
class ScoredOpportunity:
    """An opportunity with its attached risk assessment."""
    opportunity: Opportunity
    assessment: RiskAssessment

    def to_dict(self) -> dict:
        opp = self.opportunity
        return {
            "id": opp.opportunity_id,
            "source": opp.source.name,
            "target": opp.target.name,
            "source_price": opp.source.price,
            "target_price": opp.target.price,
            "divergence_pct": round(opp.divergence_pct, 4),
            "gross_profit": round(opp.gross_profit, 2),
            "fee_cost": round(opp.fee_cost, 4),
            "net_profit": round(opp.net_profit, 2),
            "liquidity": opp.liquidity,
            "risk": self.assessment.overall,
            "category": self.assessment.category.value,
            "recommendation": self.assessment.recommendation.value,
            "factors": self.assessment.factors.to_dict(),
            "timestamp": opp.timestamp,
        }


@dataclass(frozen=True)
class Decision:
    recommendation: Recommendation
    selected: ScoredOpportunity | None
    confidence: float
    rationale: str
    advisory_text: str = ""


@dataclass(frozen=True)
class ExecutionRecord:
    success: bool
    reference: str | None = None    # transaction hash on success
    realized_profit: float = 0.0
    resource_cost: int = 0          # gas units consumed
    error: str | None = None
    opportunity_id: str = ""
    mode: str = ExecutionMode.SIMULATION.value
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "reference": self.reference,
            "realized_profit": round(self.realized_profit, 2),
            "resource_cost": self.resource_cost,
            "error": self.error,
            "opportunity_id": self.opportunity_id,
            "mode": self.mode,
            "timestamp": self.timestamp,
        }
