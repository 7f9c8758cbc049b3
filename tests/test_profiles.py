"""Tests for the agent profile registry."""

import pytest

from models import RiskTier, UnknownAgentError
from profiles import AGENT_PROFILES, ALL_AGENT_IDS, get_agent_profile, is_valid_agent_id


class TestRegistry:

    def test_six_agents(self):
        assert len(ALL_AGENT_IDS) == 6
        assert set(ALL_AGENT_IDS) == set(AGENT_PROFILES)

    def test_lookup_returns_matching_profile(self):
        profile = get_agent_profile("CLAUDE_4_5")
        assert profile.id == "CLAUDE_4_5"
        assert profile.risk is RiskTier.LOW
        assert profile.min_confidence == 0.65

    def test_unknown_agent_raises(self):
        with pytest.raises(UnknownAgentError) as exc:
            get_agent_profile("HAL_9000")
        assert "HAL_9000" in str(exc.value)

    def test_unknown_agent_is_a_key_error(self):
        with pytest.raises(KeyError):
            get_agent_profile("")

    def test_is_valid_agent_id(self):
        assert is_valid_agent_id("GROK_4")
        assert not is_valid_agent_id("grok_4")

    @pytest.mark.parametrize("agent_id", ALL_AGENT_IDS)
    def test_profiles_are_sane(self, agent_id):
        p = get_agent_profile(agent_id)
        assert p.min_volume > 0 and p.min_liquidity > 0
        assert p.max_trades >= 1
        assert 0 < p.min_confidence < 1
        for w in (p.weights.volume_weight, p.weights.liquidity_weight, p.weights.price_movement_weight,
                  p.weights.news_weight, p.weights.prob_weight):
            assert w > 0
