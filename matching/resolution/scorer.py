"""
Similarity scoring for catalog candidates.

A candidate that survives retrieval and the overlap filter gets four
independent sub-scores in [0, 1], combined with fixed weights:

    name      0.55  edit-distance ratio of token-sorted names
    token     0.25  length-weighted Jaccard of token sets
    size      0.15  banded ratio of extracted magnitudes
    category  0.05  exact category agreement

Everything here is pure; scorers may run concurrently.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from matching.resolution import trigram
from matching.resolution.catalog import CatalogEntry
from matching.resolution.errors import ConfigurationInvalid

SALIENT_TOKEN_LENGTH = 3

# (minimum min/max ratio, score), checked top down
SIZE_BANDS = (
    (0.95, 1.0),
    (0.85, 0.8),
    (0.70, 0.5),
    (0.50, 0.3),
)
NEUTRAL_SIZE_SCORE = 0.5

NAME_SIMILARITY_METHODS = ("levenshtein", "trigram")

SCORE_PRECISION = 4


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the four sub-scores. Must sum to exactly 1.0."""
    name: float = 0.55
    token: float = 0.25
    size: float = 0.15
    category: float = 0.05

    def __post_init__(self):
        for label, weight in self.as_dict().items():
            if not 0.0 <= weight <= 1.0:
                raise ConfigurationInvalid(f"Weight '{label}' must be in [0, 1], got {weight}")
        total = sum(Decimal(str(w)) for w in self.as_dict().values())
        if total != Decimal("1"):
            raise ConfigurationInvalid(f"Scoring weights must sum to 1.0, got {total}")

    def as_dict(self) -> dict[str, float]:
        return {
            "name": self.name,
            "token": self.token,
            "size": self.size,
            "category": self.category,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    """Sub-scores of one candidate and their weighted total."""
    name_similarity: float
    token_similarity: float
    size_similarity: float
    category_similarity: float
    total_score: float = field(init=False)
    weights: ScoringWeights = field(default_factory=ScoringWeights, repr=False)

    def __post_init__(self):
        total = (
            self.weights.name * self.name_similarity
            + self.weights.token * self.token_similarity
            + self.weights.size * self.size_similarity
            + self.weights.category * self.category_similarity
        )
        object.__setattr__(self, "total_score", round(total, SCORE_PRECISION))

    def as_dict(self) -> dict[str, float]:
        return {
            "name_similarity": self.name_similarity,
            "token_similarity": self.token_similarity,
            "size_similarity": self.size_similarity,
            "category_similarity": self.category_similarity,
            "total_score": self.total_score,
        }


@dataclass(frozen=True)
class ScoringTarget:
    """The query side of a comparison, already normalized."""
    normalized_name: str
    tokens: tuple[str, ...]
    size_quantity: Optional[Decimal] = None
    category: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "ScoringTarget":
        return cls(entry.normalized_name, entry.tokens, entry.size_quantity, entry.category)


def salient_tokens(tokens: Iterable[str]) -> set[str]:
    return {t for t in tokens if len(t) >= SALIENT_TOKEN_LENGTH}


def has_salient_overlap(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> bool:
    """
    True if the two token lists share at least one salient (3+ char) token.

    Used only to prune before scoring, never to accept a match.
    """
    salient_a = salient_tokens(tokens_a)
    salient_b = salient_tokens(tokens_b)
    if not salient_a or not salient_b:
        return False
    if len(salient_a) > len(salient_b):
        salient_a, salient_b = salient_b, salient_a
    return any(token in salient_b for token in salient_a)


def name_similarity(a: str, b: str) -> float:
    """
    Normalized Levenshtein similarity of the names with their words sorted.

    Sorting words makes "chicken breast boneless" and "boneless chicken
    breast" identical while keeping a character-level comparison.
    """
    if not a or not b:
        return 0.0
    sorted_a = " ".join(sorted(a.split()))
    sorted_b = " ".join(sorted(b.split()))
    return Levenshtein.normalized_similarity(sorted_a, sorted_b)


def trigram_name_similarity(a: str, b: str) -> float:
    """Alternative name similarity: cosine of padded trigram sets."""
    return trigram.cosine_similarity(a, b)


def token_weight(token: str) -> float:
    if len(token) >= 5:
        return 2.0
    if len(token) >= 3:
        return 1.5
    return 1.0


def token_similarity(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> float:
    """Weighted Jaccard over token sets; longer tokens count more."""
    set_a, set_b = set(tokens_a), set(tokens_b)
    if not set_a or not set_b:
        return 0.0
    union = sum(token_weight(t) for t in set_a | set_b)
    intersection = sum(token_weight(t) for t in set_a & set_b)
    return intersection / union


def size_similarity(size_a: Optional[Decimal], size_b: Optional[Decimal]) -> float:
    """
    Compare two magnitudes through tolerance bands.

    Missing on either side is neutral (0.5).
    """
    if size_a is None or size_b is None:
        return NEUTRAL_SIZE_SCORE
    if size_a == size_b:
        return 1.0
    low, high = sorted((Decimal(size_a), Decimal(size_b)))
    if high <= 0 or low < 0:
        return 0.0
    ratio = float(low / high)
    for floor, score in SIZE_BANDS:
        if ratio >= floor:
            return score
    return 0.0


def category_similarity(category_a: Optional[str], category_b: Optional[str]) -> float:
    """1.0 only when both categories are present and agree (case-insensitive)."""
    if not category_a or not category_b:
        return 0.0
    return 1.0 if category_a.strip().lower() == category_b.strip().lower() else 0.0


class SimilarityScorer:
    """
    Computes the weighted score breakdown for target/candidate pairs.

    Usage:
        scorer = SimilarityScorer(ScoringWeights())
        breakdown = scorer.score(target, entry)
        breakdown.total_score  # 0.0 - 1.0, 4 decimals
    """

    def __init__(self, weights: Optional[ScoringWeights] = None, name_method: str = "levenshtein"):
        if name_method not in NAME_SIMILARITY_METHODS:
            raise ConfigurationInvalid(
                f"Unknown name similarity method '{name_method}', "
                f"expected one of {NAME_SIMILARITY_METHODS}"
            )
        self.weights = weights or ScoringWeights()
        self.name_method = name_method
        self._name_fn = name_similarity if name_method == "levenshtein" else trigram_name_similarity

    def score(self, target: ScoringTarget, candidate: CatalogEntry) -> ScoreBreakdown:
        return ScoreBreakdown(
            name_similarity=self._name_fn(target.normalized_name, candidate.normalized_name),
            token_similarity=token_similarity(target.tokens, candidate.tokens),
            size_similarity=size_similarity(target.size_quantity, candidate.size_quantity),
            category_similarity=category_similarity(target.category, candidate.category),
            weights=self.weights,
        )
