"""
Decision oracles: given an agent, a scored market and its news, recommend a side or pass.

ClaudeOracle asks Claude for a YES/NO call with a confidence.
RuleBasedOracle is deterministic math on the market itself, used in
SIMULATION/DEBUG mode and whenever no API key is configured.

Both return None for "no trade". Errors propagate; the generator decides what
a failed call means.
"""

import json
from typing import Optional, Protocol

import anthropic
import structlog

from models import AgentProfile, Config, Decision, EngineMode, NewsArticle, RiskTier, ScoredMarket, TradeSide

log = structlog.get_logger()

# Cost tracking (Sonnet pricing)
COST_PER_INPUT_TOKEN = 3.0 / 1_000_000   # $3 per 1M input tokens
COST_PER_OUTPUT_TOKEN = 15.0 / 1_000_000  # $15 per 1M output tokens


class DecisionOracle(Protocol):
    async def decide(
        self,
        profile: AgentProfile,
        scored: ScoredMarket,
        news: list[NewsArticle],
    ) -> Optional[Decision]:
        ...


DECISION_PROMPT = """You are {agent_name}, an AI trader on a prediction market simulator.

Risk profile: {risk}. Focus categories: {focus}.
Only recommend a trade if you are at least {min_conf:.0%} confident in the side you pick.

MARKET:
  Question: {question}
  Category: {category}
  Current YES probability: {probability:.3f}
  24h probability change: {price_change:+.3f}
  24h volume: ${volume:,.0f}
  Liquidity: ${liquidity:,.0f}
  Ends: {end_date}
  Engine score: {score:.1f}

RECENT RELEVANT NEWS (newest context first):
{news_lines}

Decide whether to buy YES, buy NO, or pass.

Respond with ONLY valid JSON (no markdown):
{{
  "action": "YES" | "NO" | "PASS",
  "confidence": 0.XX,
  "reasoning": "1-2 sentences"
}}"""


class ClaudeOracle:
    """Uses Claude to make the per-market call."""

    def __init__(self, config: Config, client: Optional[anthropic.AsyncAnthropic] = None):
        self.config = config
        self.client = client or anthropic.AsyncAnthropic(api_key=config.anthropic_api_key)
        self.total_cost = 0.0
        self.total_calls = 0

    async def decide(
        self,
        profile: AgentProfile,
        scored: ScoredMarket,
        news: list[NewsArticle],
    ) -> Optional[Decision]:
        prompt = self._build_prompt(profile, scored, news)

        response = await self.client.messages.create(
            model=self.config.oracle_model,
            max_tokens=400,
            temperature=0.3,
            messages=[{"role": "user", "content": prompt}],
        )

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        call_cost = (input_tokens * COST_PER_INPUT_TOKEN) + (output_tokens * COST_PER_OUTPUT_TOKEN)
        self.total_cost += call_cost
        self.total_calls += 1

        log.debug(
            "api_call",
            agent=profile.id,
            market_id=scored.market.id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=f"${call_cost:.4f}",
        )

        return parse_decision(response.content[0].text, profile)

    def _build_prompt(self, profile: AgentProfile, scored: ScoredMarket, news: list[NewsArticle]) -> str:
        m = scored.market
        if news:
            news_lines = "\n".join(
                f"- [{a.published_at.strftime('%Y-%m-%d %H:%M')}] {a.title}: {a.description[:200]}"
                for a in news
            )
        else:
            news_lines = "None found."

        return DECISION_PROMPT.format(
            agent_name=profile.display_name,
            risk=profile.risk.value,
            focus=", ".join(sorted(profile.focus_categories)) or "any",
            min_conf=profile.min_confidence,
            question=m.question,
            category=m.category or "unknown",
            probability=m.probability,
            price_change=m.price_change_24h,
            volume=m.volume_24h,
            liquidity=m.liquidity,
            end_date=m.end_date or "unknown",
            score=scored.score,
            news_lines=news_lines,
        )

    def get_session_cost(self) -> float:
        return self.total_cost


def parse_decision(text: str, profile: AgentProfile) -> Optional[Decision]:
    """Parse the oracle's JSON answer. PASS or a sub-floor confidence means no trade."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1]
        text = text.rsplit("```", 1)[0]

    data = json.loads(text)
    action = str(data.get("action", "PASS")).upper()
    if action not in (TradeSide.YES.value, TradeSide.NO.value):
        return None

    confidence = min(max(float(data.get("confidence", 0.0)), 0.0), 1.0)
    if confidence < profile.min_confidence:
        return None

    return Decision(
        side=TradeSide(action),
        confidence=confidence,
        reasoning=str(data.get("reasoning", ""))[:500],
    )


# How much conviction each risk tier needs from the market before acting
RISK_EDGE_REQUIRED = {
    RiskTier.LOW: 0.20,
    RiskTier.MEDIUM: 0.12,
    RiskTier.HIGH: 0.05,
}


class RuleBasedOracle:
    """
    Deterministic stand-in for the AI call.

    Follows the crowd: buys the side the market already favours, more
    confidently the further the probability is from 0.5 and when the last
    day's move and the news agree. Markets too close to a coin flip for the
    agent's risk tier are passed.
    """

    async def decide(
        self,
        profile: AgentProfile,
        scored: ScoredMarket,
        news: list[NewsArticle],
    ) -> Optional[Decision]:
        m = scored.market
        lean = m.probability - 0.5
        if abs(lean) * 2 < RISK_EDGE_REQUIRED[profile.risk]:
            return None

        side = TradeSide.YES if lean > 0 else TradeSide.NO
        confidence = 0.5 + abs(lean) * 0.6

        # Momentum in the direction of the pick adds conviction, against it removes some
        momentum = m.price_change_24h if side is TradeSide.YES else -m.price_change_24h
        confidence += max(min(momentum, 0.10), -0.10)
        confidence += min(len(news), 3) * 0.02
        confidence = round(min(max(confidence, 0.0), 0.95), 4)

        if confidence < profile.min_confidence:
            return None

        return Decision(
            side=side,
            confidence=confidence,
            reasoning=(
                f"Market leans {side.value} at {m.probability:.0%}"
                f" with {m.price_change_24h:+.1%} 24h move and {len(news)} related headline(s)."
            ),
        )


def build_oracle(config: Config) -> DecisionOracle:
    if config.mode is EngineMode.LIVE and config.anthropic_api_key:
        log.info("oracle_selected", oracle="claude", model=config.oracle_model)
        return ClaudeOracle(config)
    if config.mode is EngineMode.LIVE:
        log.warning("no_api_key_using_rule_oracle")
    log.info("oracle_selected", oracle="rule_based", mode=config.mode.value)
    return RuleBasedOracle()
