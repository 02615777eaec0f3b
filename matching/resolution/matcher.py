"""
Catalog Matcher

Resolves a free-text item name against a scope's catalog:

    normalize -> retrieve -> overlap filter -> score -> classify -> rank

Confidence tiers (defaults):
    total >= 0.95         AUTO_MATCH
    0.85 <= total < 0.95  REVIEW_MATCH
    0.70 <= total < 0.85  CREATE_NEW (weak candidate, kept for reviewers)
    total < 0.70          dropped
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from config.logging import get_logger
from matching.resolution.catalog import CatalogEntry
from matching.resolution.errors import ConfigurationInvalid, RetrievalUnavailable
from matching.resolution.normalizer import TextNormalizer
from matching.resolution.retrieval import (
    CandidateRetriever,
    FallbackRetriever,
    IndexedRetriever,
    LinearScanRetriever,
)
from matching.resolution.scorer import (
    NAME_SIMILARITY_METHODS,
    ScoreBreakdown,
    ScoringTarget,
    ScoringWeights,
    SimilarityScorer,
    has_salient_overlap,
)

logger = get_logger("matcher")


class Recommendation(Enum):
    """What the caller should do with a match."""
    AUTO_MATCH = "auto_match"      # Link without review
    REVIEW_MATCH = "review_match"  # Link after a human confirms
    CREATE_NEW = "create_new"      # Too weak to link; likely a new catalog entry


def _check_unit_interval(label: str, value: float):
    if not 0.0 <= value <= 1.0:
        raise ConfigurationInvalid(f"{label} must be in [0, 1], got {value}")


@dataclass(frozen=True)
class MatcherConfig:
    """Configuration for catalog matching. Validated once, immutable afterwards."""
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    # Cheap retrieval prefilter, intentionally loose
    trigram_threshold: float = 0.30

    # Final acceptance floor (below this = not returned)
    min_similarity: float = 0.70

    # Threshold for flagging as "needs review"
    review_threshold: float = 0.85

    # Minimum score to link automatically
    auto_match_threshold: float = 0.95

    candidate_limit: int = 30

    # Seconds to wait on the index; None waits forever
    index_timeout: Optional[float] = 2.0

    # Push the query category down to retrieval instead of only scoring it
    category_hard_filter: bool = False

    # >1 scores candidates on a thread pool
    scoring_workers: int = 1

    name_similarity_method: str = "levenshtein"

    def __post_init__(self):
        for label in ("trigram_threshold", "min_similarity", "review_threshold", "auto_match_threshold"):
            _check_unit_interval(label, getattr(self, label))

        if not (
            self.trigram_threshold
            < self.min_similarity
            < self.review_threshold
            < self.auto_match_threshold
        ):
            raise ConfigurationInvalid(
                "Thresholds must satisfy trigram_threshold < min_similarity < "
                f"review_threshold < auto_match_threshold, got {self.trigram_threshold}, "
                f"{self.min_similarity}, {self.review_threshold}, {self.auto_match_threshold}"
            )
        if self.candidate_limit < 1:
            raise ConfigurationInvalid(f"candidate_limit must be >= 1, got {self.candidate_limit}")
        if self.scoring_workers < 1:
            raise ConfigurationInvalid(f"scoring_workers must be >= 1, got {self.scoring_workers}")
        if self.index_timeout is not None and self.index_timeout <= 0:
            raise ConfigurationInvalid(f"index_timeout must be positive, got {self.index_timeout}")
        if self.name_similarity_method not in NAME_SIMILARITY_METHODS:
            raise ConfigurationInvalid(
                f"name_similarity_method must be one of {NAME_SIMILARITY_METHODS}, "
                f"got {self.name_similarity_method!r}"
            )

    @classmethod
    def from_settings(cls, settings) -> "MatcherConfig":
        return cls(
            weights=ScoringWeights(
                name=settings.WEIGHT_NAME,
                token=settings.WEIGHT_TOKEN,
                size=settings.WEIGHT_SIZE,
                category=settings.WEIGHT_CATEGORY,
            ),
            trigram_threshold=settings.TRIGRAM_THRESHOLD,
            min_similarity=settings.MIN_SIMILARITY,
            review_threshold=settings.REVIEW_THRESHOLD,
            auto_match_threshold=settings.AUTO_MATCH_THRESHOLD,
            candidate_limit=settings.CANDIDATE_LIMIT,
            index_timeout=settings.INDEX_TIMEOUT_SECONDS,
            category_hard_filter=settings.CATEGORY_HARD_FILTER,
            scoring_workers=settings.SCORING_WORKERS,
            name_similarity_method=settings.NAME_SIMILARITY_METHOD,
        )

    def classify(self, total_score: float) -> Recommendation:
        if total_score >= self.auto_match_threshold:
            return Recommendation.AUTO_MATCH
        if total_score >= self.review_threshold:
            return Recommendation.REVIEW_MATCH
        return Recommendation.CREATE_NEW


@dataclass(frozen=True)
class MatchOptions:
    """Per-call overrides; None means use the matcher's configuration."""
    trigram_threshold: Optional[float] = None
    min_similarity: Optional[float] = None
    candidate_limit: Optional[int] = None

    def __post_init__(self):
        if self.trigram_threshold is not None:
            _check_unit_interval("trigram_threshold", self.trigram_threshold)
        if self.min_similarity is not None:
            _check_unit_interval("min_similarity", self.min_similarity)
        if self.candidate_limit is not None and self.candidate_limit < 1:
            raise ConfigurationInvalid(f"candidate_limit must be >= 1, got {self.candidate_limit}")


@dataclass(frozen=True)
class MatchQuery:
    """One matching request. Built per call, never persisted."""
    target_name: str
    owner_scope: str
    category: Optional[str] = None
    size_hint: Optional[Decimal] = None
    candidate_limit: int = 30
    trigram_threshold: float = 0.30
    min_similarity: float = 0.70


@dataclass(frozen=True)
class MatchResult:
    """A catalog entry that cleared the acceptance floor, with its evidence."""
    entry: CatalogEntry
    breakdown: ScoreBreakdown
    recommendation: Recommendation

    @property
    def total_score(self) -> float:
        return self.breakdown.total_score

    def __repr__(self) -> str:
        return (
            f"<MatchResult({self.entry.display_name}, {self.recommendation.value}, "
            f"score={self.total_score:.4f})>"
        )


class Matcher:
    """
    Entity matcher for free-text item names against a catalog.

    Stateless per call: the configuration, vocabulary and retriever are fixed
    at construction, so one instance can serve many threads.

    Usage:
        with Matcher.from_store(SqlCatalogStore(SessionLocal)) as matcher:
            results = matcher.find_matches("BNLS CHKN BRST 10LB", owner_scope="acme")
            if results and results[0].recommendation is Recommendation.AUTO_MATCH:
                entry = results[0].entry
    """

    def __init__(
        self,
        retriever: CandidateRetriever,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.retriever = retriever
        self.config = config or MatcherConfig()
        self.normalizer = normalizer or TextNormalizer()
        self.scorer = SimilarityScorer(self.config.weights, self.config.name_similarity_method)

    @classmethod
    def from_store(
        cls,
        store,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[TextNormalizer] = None,
    ) -> "Matcher":
        """
        Build a matcher over a store that is both a CatalogIndex and a
        CatalogSource: index search first, linear scan when it fails.
        """
        config = config or MatcherConfig()
        retriever = FallbackRetriever(
            primary=IndexedRetriever(store, timeout=config.index_timeout),
            fallback=LinearScanRetriever(store),
        )
        return cls(retriever, config=config, normalizer=normalizer)

    def close(self):
        """Release the retriever's worker threads."""
        self.retriever.close()

    def __enter__(self) -> "Matcher":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def find_matches(
        self,
        target_name: str,
        owner_scope: str,
        category: Optional[str] = None,
        size_hint: Optional[Union[Decimal, float, int, str]] = None,
        options: Optional[MatchOptions] = None,
    ) -> list[MatchResult]:
        """
        Find catalog entries matching a free-text name.

        Args:
            target_name: Raw item name (e.g. a vendor line item)
            owner_scope: Tenant/partition whose catalog is searched
            category: Optional category of the item
            size_hint: Known size magnitude; extracted from the name if omitted
            options: Per-call threshold/limit overrides

        Returns:
            MatchResults ranked by total score, best first (possibly empty)
        """
        return self.match_query(self.build_query(target_name, owner_scope, category, size_hint, options))

    def build_query(
        self,
        target_name: str,
        owner_scope: str,
        category: Optional[str] = None,
        size_hint: Optional[Union[Decimal, float, int, str]] = None,
        options: Optional[MatchOptions] = None,
    ) -> MatchQuery:
        options = options or MatchOptions()
        return MatchQuery(
            target_name=target_name or "",
            owner_scope=owner_scope,
            category=category,
            size_hint=self._to_decimal(size_hint),
            candidate_limit=self._pick(options.candidate_limit, self.config.candidate_limit),
            trigram_threshold=self._pick(options.trigram_threshold, self.config.trigram_threshold),
            min_similarity=self._pick(options.min_similarity, self.config.min_similarity),
        )

    def match_query(self, query: MatchQuery) -> list[MatchResult]:
        """Run the full pipeline for one query. Never raises for missing or unreachable data."""
        # Normalize
        normalized_name, tokens = self.normalizer.normalize(query.target_name)
        if not tokens:
            logger.debug(f"Nothing to match in {query.target_name!r}")
            return []

        size = query.size_hint
        if size is None:
            size = self.normalizer.extract_size(normalized_name)
        target = ScoringTarget(normalized_name, tokens, size, query.category)

        # Retrieve
        retrieval_category = query.category if self.config.category_hard_filter else None
        try:
            candidates = self.retriever.retrieve(
                normalized_name,
                query.owner_scope,
                retrieval_category,
                query.trigram_threshold,
                query.candidate_limit,
            )
        except RetrievalUnavailable as e:
            logger.error(f"Retrieval failed for {query.target_name!r} in scope {query.owner_scope}: {e}")
            return []

        # Filter
        survivors = [c for c in candidates if has_salient_overlap(tokens, c.tokens)]

        # Score
        breakdowns = self._score_all(target, survivors)

        # Classify
        results = [
            MatchResult(entry, breakdown, self.config.classify(breakdown.total_score))
            for entry, breakdown in zip(survivors, breakdowns)
            if breakdown.total_score >= query.min_similarity
        ]

        # Rank (stable, so ties keep retrieval order)
        results.sort(key=lambda r: r.total_score, reverse=True)

        logger.debug(
            f"Matched {query.target_name!r} -> {normalized_name!r}: "
            f"{len(candidates)} retrieved, {len(survivors)} overlapping, {len(results)} accepted"
        )
        return results

    def match_batch(self, queries: list[MatchQuery]) -> list[list[MatchResult]]:
        """Match several queries; results are in input order."""
        return [self.match_query(query) for query in queries]

    def _score_all(self, target: ScoringTarget, candidates: list[CatalogEntry]) -> list[ScoreBreakdown]:
        if self.config.scoring_workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=self.config.scoring_workers) as pool:
                return list(pool.map(lambda entry: self.scorer.score(target, entry), candidates))
        return [self.scorer.score(target, entry) for entry in candidates]

    @staticmethod
    def _pick(override, default):
        return default if override is None else override

    @staticmethod
    def _to_decimal(value) -> Optional[Decimal]:
        if value is None:
            return None
        try:
            size = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except InvalidOperation:
            size = None
        if size is None or not size.is_finite():
            logger.warning(f"Ignoring unusable size hint {value!r}")
            return None
        return size
