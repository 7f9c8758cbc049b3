"""Tests for the candidate filter and the market scorer."""

import pytest

from conftest import NOW, make_article, make_market
from profiles import AGENT_PROFILES
from scorer import (
    FOCUS_CATEGORY_BONUS,
    SUBSCORE_MAX,
    compute_news_relevance,
    extract_keywords,
    filter_candidates,
    news_subscore,
    rank_markets,
    recency_decay,
    score_market,
)


def _grid_markets():
    markets = []
    for i, volume in enumerate([0, 10_000, 20_000, 50_000, 75_000, 100_000, 1_000_000]):
        for j, liquidity in enumerate([0, 3_000, 12_000, 18_000, 20_000, 500_000]):
            markets.append(make_market(f"m{i}-{j}", volume_24h=volume, liquidity=liquidity))
    return markets


class TestFilterCandidates:

    @pytest.mark.parametrize("profile", list(AGENT_PROFILES.values()), ids=list(AGENT_PROFILES))
    def test_never_returns_below_floors(self, profile):
        for m in filter_candidates(profile, _grid_markets()):
            assert m.volume_24h >= profile.min_volume
            assert m.liquidity >= profile.min_liquidity

    def test_floors_are_inclusive(self, small_profile):
        at_floor = make_market("edge", volume_24h=50_000, liquidity=10_000)
        assert filter_candidates(small_profile, [at_floor]) == [at_floor]

    def test_empty_is_valid(self, small_profile):
        assert filter_candidates(small_profile, []) == []
        assert filter_candidates(small_profile, [make_market(volume_24h=1)]) == []

    def test_focus_category_does_not_filter(self, small_profile):
        off_focus = make_market("sports", category="Sports")
        assert filter_candidates(small_profile, [off_focus]) == [off_focus]


class TestScoreMarket:

    def test_deterministic(self, small_profile):
        market = make_market()
        news = [make_article("a1"), make_article("a2", age_hours=8)]
        scores = {score_market(market, news, small_profile, NOW).score for _ in range(5)}
        assert len(scores) == 1

    def test_subscores_bounded(self, small_profile):
        market = make_market(volume_24h=10**12, liquidity=10**12, price_change_24h=0.9, probability=1.0)
        b = score_market(market, [make_article(f"a{i}") for i in range(20)], small_profile, NOW).breakdown
        for value in (b.volume, b.liquidity, b.price_movement, b.news, b.probability):
            assert 0 <= value <= SUBSCORE_MAX

    def test_focus_bonus(self, small_profile):
        in_focus = score_market(make_market(category="Finance"), [], small_profile, NOW)
        off_focus = score_market(make_market(category="Sports"), [], small_profile, NOW)
        assert in_focus.score == pytest.approx(off_focus.score * FOCUS_CATEGORY_BONUS)

    def test_adaptive_off_uses_uniform_weights(self):
        profile = AGENT_PROFILES["GROK_4"]
        market = make_market(category="Sports", price_change_24h=0.05)
        adaptive = score_market(market, [], profile, NOW, adaptive=True)
        uniform = score_market(market, [], profile, NOW, adaptive=False)
        assert adaptive.breakdown.price_movement == pytest.approx(uniform.breakdown.price_movement * 1.4)

    def test_extreme_probability_scores_higher(self, small_profile):
        coin_flip = score_market(make_market(probability=0.5), [], small_profile, NOW)
        lopsided = score_market(make_market(probability=0.9), [], small_profile, NOW)
        assert lopsided.score > coin_flip.score


class TestNewsRelevance:

    def test_decay_halves_every_six_hours(self):
        assert recency_decay(0) == 1.0
        assert recency_decay(6) == pytest.approx(0.5)
        assert recency_decay(12) == pytest.approx(0.25)

    def test_contribution_strictly_decreases_with_age(self, small_profile):
        market = make_market()
        previous = None
        for age in [0, 1, 3, 6, 12, 24, 48]:
            news_part = score_market(market, [make_article(age_hours=age)], small_profile, NOW).breakdown.news
            if previous is not None:
                assert news_part < previous
            previous = news_part

    def test_unrelated_article_ignored(self):
        market = make_market()
        unrelated = make_article(title="Local bakery wins award", description="", category="Finance")
        assert compute_news_relevance(market, [unrelated], NOW) == []

    def test_sorted_strongest_first(self):
        market = make_market()
        old = make_article("old", age_hours=30)
        fresh = make_article("fresh", age_hours=1)
        assert [a.id for a, _ in compute_news_relevance(market, [old, fresh], NOW)] == ["fresh", "old"]

    def test_news_subscore_monotone(self):
        assert news_subscore(0) == 0
        assert news_subscore(0.5) < news_subscore(1.0) < news_subscore(5.0) < SUBSCORE_MAX

    def test_keywords_skip_stopwords(self):
        assert extract_keywords("Will the Fed cut rates?") == {"fed", "cut", "rates"}


class TestRankMarkets:

    def test_sorted_by_score_then_id(self, small_profile):
        markets = [make_market("b"), make_market("a"), make_market("c", probability=0.95)]
        ranked = rank_markets(small_profile, markets, [], NOW)
        assert [s.market.id for s in ranked] == ["c", "a", "b"]

    def test_excludes_non_candidates(self, small_profile):
        ranked = rank_markets(small_profile, [make_market("ok"), make_market("thin", liquidity=5_000)], [], NOW)
        assert [s.market.id for s in ranked] == ["ok"]
        assert all(s.agent_id == small_profile.id for s in ranked)
