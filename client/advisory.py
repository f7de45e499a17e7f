"""
Advisory text for a scored opportunity.

Two implementations behind one protocol:
  - RuleBasedAdvisor: returns the risk rationale, never fails
  - LLMAdvisor: asks an OpenAI-compatible chat model, bounded by a timeout

Advisory output only decorates a decision. It never changes one, and any
failure returns None so the caller falls back to the rule-based rationale.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

from scanner.models import Opportunity, RiskAssessment, ScoredOpportunity

logger = logging.getLogger(__name__)


class AdvisoryUnavailable(Exception):
    """Advisory backend failed or timed out. Never surfaces to a Decision."""
    pass


SYSTEM_PROMPT = """You are an elite DeFi arbitrage analyst with deep expertise in:
- Stablecoin pool mechanics and peg dynamics
- MEV (Maximal Extractable Value) strategies
- Risk assessment for automated trading
- On-chain liquidity analysis

Your role is to analyze arbitrage opportunities and provide clear, actionable recommendations.
Focus on protecting capital while maximizing returns. Be conservative but not overly cautious."""

_RULE = "━" * 50


def opportunity_prompt(opp: Opportunity, assessment: RiskAssessment, fee_level_gwei: float) -> str:
    """User prompt describing a single opportunity and its risk profile."""
    return f"""Analyze this stablecoin arbitrage opportunity:

OPPORTUNITY DETAILS:
{_RULE}
Source Pool:      {opp.source.name}
  └─ Price:      ${opp.source.price}

Target Pool:      {opp.target.name}
  └─ Price:      ${opp.target.price}

Price Difference: {opp.divergence_pct:.3f}%
Net Profit:       ${opp.net_profit:.2f}
Gas Cost:         ${opp.fee_cost:.3f}
{_RULE}

RISK ASSESSMENT:
Overall Risk Score: {assessment.overall}/100 ({assessment.category.value})
Liquidity Available: ${opp.liquidity:.0f}
Current Gas Price: {fee_level_gwei} Gwei

ANALYSIS REQUIRED:
1. **Profit Margin Assessment**: Is {opp.divergence_pct:.3f}% spread sufficient?
2. **Execution Risk**: What could go wrong during execution?
3. **Market Conditions**: Are current gas prices ({fee_level_gwei} Gwei) acceptable?
4. **Recommendation**: EXECUTE, WAIT, or SKIP?

Provide a concise 3-sentence analysis focusing on actionable insights."""


def market_context_prompt(context: dict[str, Any]) -> str:
    return f"""Current market context for stablecoin arbitrage:

MARKET SNAPSHOT:
{_RULE}
Opportunities Detected: {context.get("opportunity_count", 0)}
Average Risk Score:     {context.get("avg_risk", 0.0):.1f}/100
Average Profit:         ${context.get("avg_profit", 0.0):.2f}
{_RULE}

Should we be aggressive or conservative in current market conditions?
Provide 2-sentence market assessment."""


def build_market_context(scored: list[ScoredOpportunity], fee_level_gwei: float) -> dict[str, Any]:
    """Aggregate view of all candidates in a cycle, passed alongside the best one."""
    n = len(scored)
    if n == 0:
        return {"opportunity_count": 0, "avg_risk": 0.0, "avg_profit": 0.0, "fee_level_gwei": fee_level_gwei}
    return {
        "opportunity_count": n,
        "avg_risk": sum(s.assessment.overall for s in scored) / n,
        "avg_profit": sum(s.opportunity.net_profit for s in scored) / n,
        "fee_level_gwei": fee_level_gwei,
    }


@runtime_checkable
class AdvisoryService(Protocol):
    async def explain(
        self,
        opportunity: Opportunity,
        assessment: RiskAssessment,
        market_context: dict[str, Any],
    ) -> str | None:
        """Free-text rationale, or None when unavailable."""
        ...


class RuleBasedAdvisor:
    """No remote calls: echoes the assessment rationale."""

    async def explain(
        self,
        opportunity: Opportunity,
        assessment: RiskAssessment,
        market_context: dict[str, Any],
    ) -> str | None:
        return assessment.rationale


class LLMAdvisor:
    """
    Chat-completion advisor. Every call is bounded by timeout_sec; errors and
    timeouts are logged and returned as None.
    """

    def __init__(
        self,
        client,
        model: str = "gpt-3.5-turbo",
        timeout_sec: float = 8.0,
        temperature: float = 0.3,
    ):
        self._client = client
        self._model = model
        self._timeout_sec = timeout_sec
        self._temperature = temperature

    async def _request(self, messages: list[dict[str, str]]) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=self._temperature,
                ),
                timeout=self._timeout_sec,
            )
        except asyncio.TimeoutError as e:
            raise AdvisoryUnavailable(f"advisory timed out after {self._timeout_sec:.1f}s") from e
        except Exception as e:
            raise AdvisoryUnavailable(str(e)) from e

        if not response.choices:
            raise AdvisoryUnavailable("advisory returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise AdvisoryUnavailable("advisory returned empty content")
        return content.strip()

    async def explain(
        self,
        opportunity: Opportunity,
        assessment: RiskAssessment,
        market_context: dict[str, Any],
    ) -> str | None:
        fee_level = market_context.get("fee_level_gwei", 0.0)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": market_context_prompt(market_context)},
            {"role": "user", "content": opportunity_prompt(opportunity, assessment, fee_level)},
        ]
        try:
            return await self._request(messages)
        except AdvisoryUnavailable as e:
            logger.warning("Advisory unavailable, using rule-based rationale: %s", e)
            return None


def build_advisor(cfg) -> AdvisoryService:
    """Factory: LLM advisor when an API key is configured, rule-based otherwise."""
    if not cfg.openai_api_key:
        return RuleBasedAdvisor()

    from openai import AsyncOpenAI

    kwargs: dict[str, Any] = {"api_key": cfg.openai_api_key, "timeout": cfg.advisory_timeout_sec, "max_retries": 0}
    if cfg.advisory_base_url:
        kwargs["base_url"] = cfg.advisory_base_url
    client = AsyncOpenAI(**kwargs)
    return LLMAdvisor(
        client,
        model=cfg.advisory_model,
        timeout_sec=cfg.advisory_timeout_sec,
        temperature=cfg.advisory_temperature,
    )
