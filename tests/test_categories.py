"""Tests for category heuristics."""

from categories import DEFAULT_CATEGORY, classify_article, classify_market, detect_category
from conftest import make_article, make_market


class TestDetectCategory:

    def test_elections_before_politics(self):
        assert detect_category("Will Trump win the 2028 presidential election?") == "Elections"

    def test_politics(self):
        assert detect_category("Will the Senate confirm the nominee?") == "Politics"

    def test_sports(self):
        assert detect_category("Will the Chiefs win the Super Bowl?") == "Sports"

    def test_crypto(self):
        assert detect_category("Will Bitcoin close above $100k?") == "Crypto"

    def test_box_office_is_not_earnings(self):
        assert detect_category("Top grossing movie revenue this weekend?") == "Entertainment"

    def test_earnings(self):
        assert detect_category("Will Nvidia beat quarterly earnings estimates?") == "Earnings"

    def test_word_boundaries(self):
        # "ai" must not match inside "said" or "rain"
        assert detect_category("Will it rain in Paris, the mayor said") == DEFAULT_CATEGORY

    def test_provider_category_alias(self):
        assert detect_category("Who will host next year?", category="Pop-Culture") == "Entertainment"

    def test_tags_are_used(self):
        assert detect_category("Will it happen by June?", tags=["NBA"]) == "Sports"

    def test_default(self):
        assert detect_category("Will the volcano erupt?") == DEFAULT_CATEGORY

    def test_pure(self):
        q = "Will Russia and Ukraine sign a ceasefire?"
        assert detect_category(q) == detect_category(q) == "Geopolitics"


def test_classify_market_uses_question_and_category():
    market = make_market(question="Will ETH flip BTC?", category=None)
    assert classify_market(market) == "Crypto"


def test_classify_article_uses_title_and_description():
    article = make_article(title="Senators trade barbs", description="A vote on the ballot measure", category=None)
    assert classify_article(article) == "Elections"
