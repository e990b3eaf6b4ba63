"""Tests for the lexicon scorer."""

import pytest

from Sapicache.core.scoring import LexiconScorer, ScoreResult, ScoringWeights


class TestQuality:
    """Lexicon density with saturation."""

    def setup_method(self):
        self.scorer = LexiconScorer()

    def test_no_lexicon_words(self):
        assert self.scorer.quality("the quick brown fox jumps over") == 0.0

    def test_lexicon_words_raise_quality(self):
        plain = self.scorer.quality("una casa con una puerta y una ventana")
        rich = self.scorer.quality("la conciencia colectiva contempla el alma del poema")
        assert plain < rich
        assert 0.0 <= rich <= 1.0

    def test_empty(self):
        assert self.scorer.quality("") == 0.0


class TestUniqueness:
    """Distance to nearest entry plus rare-pattern bonus."""

    def test_without_bonus(self):
        scorer = LexiconScorer(rare_pattern_bonus=0.0)
        assert scorer.uniqueness("luz y sombra en el río", 0.25) == pytest.approx(0.75)

    def test_bonus_for_unseen_bigrams(self):
        scorer = LexiconScorer(rare_pattern_bonus=0.1)
        text = "luz y sombra en el río"
        fresh = scorer.uniqueness(text, 0.5)
        assert fresh == pytest.approx(0.6)
        scorer.observe(text)
        assert scorer.uniqueness(text, 0.5) == pytest.approx(0.5)

    def test_pattern_window_forgets(self):
        scorer = LexiconScorer(pattern_window=1)
        scorer.observe("luz y sombra")
        scorer.observe("río del tiempo")
        assert scorer.rare_pattern_fraction("luz y sombra") == 1.0

    def test_bonus_bounds(self):
        with pytest.raises(ValueError):
            LexiconScorer(rare_pattern_bonus=0.5)

    def test_clamped(self):
        scorer = LexiconScorer()
        assert scorer.uniqueness("algo nuevo aquí", -0.5) == 1.0


class TestCognitiveWeight:
    """Weighted blend of quality, uniqueness and length."""

    def test_bounded(self):
        scorer = LexiconScorer()
        weight = scorer.cognitive_weight("alma " * 12, ScoreResult(1.0, 1.0))
        assert 0.0 <= weight <= 1.0

    def test_ideal_length_gets_full_length_credit(self):
        scorer = LexiconScorer(weights=ScoringWeights(0.0, 0.0, 1.0), ideal_tokens=4)
        assert scorer.cognitive_weight("uno dos tres cuatro", ScoreResult(0.0, 0.0)) == pytest.approx(1.0)

    def test_score_result(self):
        scorer = LexiconScorer()
        result = scorer.score("la conciencia del poema", 0.0)
        assert result.uniqueness_score == pytest.approx(1.0)
        assert result.quality_score > 0.0
