"""
Tests for candidate scoring: sub-scores, weights and overlap filter.
"""

from decimal import Decimal

import pytest

from matching.resolution import (
    CatalogEntry,
    ConfigurationInvalid,
    ScoringTarget,
    ScoringWeights,
    SimilarityScorer,
    has_salient_overlap,
    trigram,
)
from matching.resolution.scorer import (
    category_similarity,
    name_similarity,
    size_similarity,
    token_similarity,
)


def entry(name, category=None, size=None, normalizer=None):
    return CatalogEntry.from_name(
        id=name, display_name=name, owner_scope="acme",
        category=category, size_quantity=size, normalizer=normalizer,
    )


class TestNameSimilarity:

    def test_word_order_ignored(self):
        assert name_similarity(
            "boneless chicken breast 10 pound",
            "chicken breast boneless 10 pound",
        ) == 1.0

    def test_different_items(self):
        # "ketchup" vs "mustard": 7 edits over 16 characters
        assert name_similarity("ketchup 1 gallon", "mustard 1 gallon") == pytest.approx(0.5625)

    def test_empty_side_is_zero(self):
        assert name_similarity("", "ketchup") == 0.0
        assert name_similarity("ketchup", "") == 0.0

    def test_monotonic_in_shared_characters(self):
        original = "mozzarella"
        scores = []
        for i in range(len(original) + 1):
            degraded = "#" * i + original[i:]
            scores.append(name_similarity(original, degraded))

        assert all(a >= b for a, b in zip(scores, scores[1:]))
        assert scores[-1] < scores[0]

    def test_trigram_method(self):
        # 9 shared trigrams, 17 on each side
        assert SimilarityScorer(name_method="trigram").score(
            ScoringTarget("ketchup 1 gallon", ("ketchup", "gallon")),
            entry("Mustard 1 Gallon"),
        ).name_similarity == pytest.approx(9 / 17)


class TestTokenSimilarity:

    def test_identical_sets(self):
        assert token_similarity(("chicken", "breast"), ("breast", "chicken")) == 1.0

    def test_weighted_by_length(self):
        # chicken, pound (2.0) and 10 (1.0) shared; breast, thigh (2.0) not
        score = token_similarity(
            ("chicken", "breast", "pound", "10"),
            ("chicken", "thigh", "pound", "10"),
        )
        assert score == pytest.approx(5 / 9)

    def test_short_tokens_weigh_less(self):
        # beef 1.5 shared; 10 (1.0) and ham (1.5) not
        assert token_similarity(("beef", "10"), ("beef", "ham")) == pytest.approx(0.375)

    def test_duplicates_count_once(self):
        assert token_similarity(("half", "half", "quart"), ("half", "quart")) == 1.0

    def test_empty_is_zero(self):
        assert token_similarity((), ("beef",)) == 0.0


class TestSizeSimilarity:

    @pytest.mark.parametrize("a, b, expected", [
        (Decimal("10"), Decimal("10"), 1.0),
        (Decimal("10"), Decimal("9.6"), 1.0),
        (Decimal("10"), Decimal("9"), 0.8),
        (Decimal("10"), Decimal("7.5"), 0.5),
        (Decimal("10"), Decimal("6"), 0.3),
        (Decimal("10"), Decimal("4"), 0.0),
        (Decimal("0"), Decimal("0"), 1.0),
        (Decimal("0"), Decimal("5"), 0.0),
        (None, Decimal("5"), 0.5),
        (Decimal("5"), None, 0.5),
        (None, None, 0.5),
    ])
    def test_bands(self, a, b, expected):
        assert size_similarity(a, b) == expected

    def test_symmetric(self):
        assert size_similarity(Decimal("40"), Decimal("10")) == size_similarity(Decimal("10"), Decimal("40"))


class TestCategorySimilarity:

    def test_case_insensitive(self):
        assert category_similarity("Poultry", " poultry ") == 1.0

    def test_mismatch_or_missing(self):
        assert category_similarity("poultry", "beef") == 0.0
        assert category_similarity(None, "beef") == 0.0
        assert category_similarity("beef", "") == 0.0


class TestSalientOverlap:

    def test_shared_long_token(self):
        assert has_salient_overlap(("ketchup", "gallon"), ("mustard", "gallon"))

    def test_only_short_tokens_shared(self):
        assert not has_salient_overlap(("10", "oz"), ("10", "oz"))

    def test_nothing_shared(self):
        assert not has_salient_overlap(("ketchup",), ("mustard",))

    def test_empty(self):
        assert not has_salient_overlap((), ("ketchup",))


class TestScoringWeights:

    def test_defaults(self):
        weights = ScoringWeights()
        assert weights.as_dict() == {"name": 0.55, "token": 0.25, "size": 0.15, "category": 0.05}

    def test_custom_weights_summing_to_one(self):
        ScoringWeights(name=0.5, token=0.3, size=0.15, category=0.05)

    def test_sum_must_be_one(self):
        with pytest.raises(ConfigurationInvalid):
            ScoringWeights(name=0.6)

    def test_negative_weight(self):
        with pytest.raises(ConfigurationInvalid):
            ScoringWeights(name=1.2, token=-0.2, size=0.0, category=0.0)

    def test_unknown_name_method(self):
        with pytest.raises(ConfigurationInvalid):
            SimilarityScorer(name_method="soundex")


class TestSimilarityScorer:

    @pytest.fixture
    def scorer(self):
        return SimilarityScorer()

    def test_identity_scores_one(self, scorer, normalizer):
        item = entry("Chicken Breast Boneless 10 lb", category="poultry", normalizer=normalizer)

        breakdown = scorer.score(ScoringTarget.from_entry(item), item)

        assert breakdown.as_dict() == {
            "name_similarity": 1.0,
            "token_similarity": 1.0,
            "size_similarity": 1.0,
            "category_similarity": 1.0,
            "total_score": 1.0,
        }

    def test_symmetric(self, scorer, normalizer):
        a = entry("Chicken Breast Boneless 10 lb", category="poultry", normalizer=normalizer)
        b = entry("Chicken Thigh Boneless 8 lb", category="poultry", normalizer=normalizer)

        ab = scorer.score(ScoringTarget.from_entry(a), b)
        ba = scorer.score(ScoringTarget.from_entry(b), a)

        assert ab.as_dict() == ba.as_dict()

    def test_scores_bounded(self, scorer, catalog_entries):
        for a in catalog_entries:
            for b in catalog_entries:
                breakdown = scorer.score(ScoringTarget.from_entry(a), b)
                for value in breakdown.as_dict().values():
                    assert 0.0 <= value <= 1.0

    def test_different_products_stay_below_floor(self, scorer, normalizer):
        ketchup = entry("Ketchup 1 Gallon", category="condiments", normalizer=normalizer)
        mustard = entry("Mustard 1 Gallon", category="condiments", normalizer=normalizer)

        breakdown = scorer.score(ScoringTarget.from_entry(ketchup), mustard)

        assert breakdown.name_similarity == pytest.approx(0.5625)
        assert breakdown.token_similarity == pytest.approx(1 / 3)
        assert breakdown.size_similarity == 1.0
        assert breakdown.category_similarity == 1.0
        assert breakdown.total_score == pytest.approx(0.5927)
        assert breakdown.total_score < 0.70

    def test_size_mismatch_drags_total_below_name(self, scorer, normalizer):
        item = entry("Chicken Breast Boneless 10 lb", normalizer=normalizer)
        target = ScoringTarget(item.normalized_name, item.tokens, Decimal("50"))

        breakdown = scorer.score(target, item)

        assert breakdown.name_similarity == 1.0
        assert breakdown.size_similarity == 0.0
        assert breakdown.total_score == pytest.approx(0.80)
        assert breakdown.total_score < breakdown.name_similarity

    def test_total_rounded(self, scorer, normalizer):
        ketchup = entry("Ketchup 1 Gallon", normalizer=normalizer)
        mustard = entry("Mustard 1 Gallon", normalizer=normalizer)

        total = scorer.score(ScoringTarget.from_entry(ketchup), mustard).total_score

        assert total == round(total, 4)

    def test_custom_weights_applied(self, normalizer):
        scorer = SimilarityScorer(ScoringWeights(name=1.0, token=0.0, size=0.0, category=0.0))
        ketchup = entry("Ketchup 1 Gallon", normalizer=normalizer)
        mustard = entry("Mustard 1 Gallon", normalizer=normalizer)

        assert scorer.score(ScoringTarget.from_entry(ketchup), mustard).total_score == 0.5625


class TestTrigram:

    def test_padded_trigrams(self):
        assert trigram.trigrams("cat") == {"  c", " ca", "cat", "at "}

    def test_punctuation_splits_words(self):
        assert trigram.trigrams("low-fat") == trigram.trigrams("low fat")

    def test_similarity(self):
        # 9 shared out of 25 distinct
        assert trigram.similarity("ketchup 1 gallon", "mustard 1 gallon") == pytest.approx(0.36)

    def test_similarity_identical_and_empty(self):
        assert trigram.similarity("ketchup", "KETCHUP") == 1.0
        assert trigram.similarity("", "ketchup") == 0.0
        assert trigram.similarity("!!!", "ketchup") == 0.0
