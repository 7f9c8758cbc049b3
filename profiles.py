"""Agent profile registry: the fixed set of trading agents and their risk settings."""

from models import AgentProfile, RiskTier, ScoringWeights, UnknownAgentError

AGENT_PROFILES: dict[str, AgentProfile] = {
    "GROK_4": AgentProfile(
        id="GROK_4",
        display_name="GROK 4",
        avatar="🔥",
        risk=RiskTier.HIGH,
        min_volume=30_000,
        min_liquidity=5_000,
        max_trades=5,
        focus_categories=frozenset({"Crypto", "Tech", "Politics"}),
        weights=ScoringWeights(
            volume_weight=1.3,
            liquidity_weight=1.0,
            price_movement_weight=1.4,
            news_weight=0.9,
            prob_weight=1.0,
        ),
    ),
    "GPT_5": AgentProfile(
        id="GPT_5",
        display_name="GPT-5",
        avatar="✨",
        risk=RiskTier.MEDIUM,
        min_volume=100_000,
        min_liquidity=20_000,
        max_trades=4,
        focus_categories=frozenset({"Tech", "Finance", "Crypto"}),
        weights=ScoringWeights(
            volume_weight=1.1,
            liquidity_weight=1.2,
            price_movement_weight=1.0,
            news_weight=1.1,
            prob_weight=1.1,
        ),
    ),
    "DEEPSEEK_V3": AgentProfile(
        id="DEEPSEEK_V3",
        display_name="DEEPSEEK V3",
        avatar="🔮",
        risk=RiskTier.MEDIUM,
        min_volume=75_000,
        min_liquidity=15_000,
        max_trades=6,
        focus_categories=frozenset({"Crypto", "Finance", "Elections"}),
        weights=ScoringWeights(
            volume_weight=1.0,
            liquidity_weight=1.0,
            price_movement_weight=1.1,
            news_weight=1.3,
            prob_weight=1.0,
        ),
    ),
    "GEMINI_2_5": AgentProfile(
        id="GEMINI_2_5",
        display_name="GEMINI 2.5",
        avatar="♊",
        risk=RiskTier.HIGH,
        min_volume=20_000,
        min_liquidity=3_000,
        max_trades=7,
        focus_categories=frozenset({"Sports", "Entertainment", "World"}),
        weights=ScoringWeights(
            volume_weight=0.9,
            liquidity_weight=0.9,
            price_movement_weight=1.3,
            news_weight=1.4,
            prob_weight=1.0,
        ),
    ),
    "CLAUDE_4_5": AgentProfile(
        id="CLAUDE_4_5",
        display_name="CLAUDE 4.5",
        avatar="🧠",
        risk=RiskTier.LOW,
        min_volume=80_000,
        min_liquidity=18_000,
        max_trades=5,
        focus_categories=frozenset({"Finance", "Politics", "Elections"}),
        weights=ScoringWeights(
            volume_weight=1.0,
            liquidity_weight=1.3,
            price_movement_weight=0.9,
            news_weight=1.4,
            prob_weight=1.2,
        ),
        min_confidence=0.65,
    ),
    "QWEN_2_5": AgentProfile(
        id="QWEN_2_5",
        display_name="QWEN 2.5",
        avatar="🤖",
        risk=RiskTier.MEDIUM,
        min_volume=60_000,
        min_liquidity=12_000,
        max_trades=6,
        focus_categories=frozenset({"Finance", "Geopolitics", "World"}),
        weights=ScoringWeights(
            volume_weight=1.1,
            liquidity_weight=1.0,
            price_movement_weight=1.0,
            news_weight=1.2,
            prob_weight=1.1,
        ),
    ),
}

ALL_AGENT_IDS: tuple[str, ...] = tuple(AGENT_PROFILES)


def get_agent_profile(agent_id: str) -> AgentProfile:
    """Look up a profile. Never falls back to another agent."""
    profile = AGENT_PROFILES.get(agent_id)
    if profile is None:
        raise UnknownAgentError(agent_id)
    return profile


def is_valid_agent_id(agent_id: str) -> bool:
    return agent_id in AGENT_PROFILES
