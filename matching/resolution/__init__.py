"""
Catalog Matching Engine

Multi-stage candidate funnel for reconciling free-text item names:
- Text normalization with domain vocabulary (units, abbreviations, brands)
- Trigram candidate retrieval with an in-process fallback scan
- Salient-token overlap filter
- Weighted multi-factor similarity scoring (rapidfuzz)
- Confidence classification and ranking
"""

from matching.resolution.catalog import (
    CatalogEntry,
    CatalogIndex,
    CatalogSource,
    InMemoryCatalog,
    SqlCatalogStore,
)
from matching.resolution.errors import ConfigurationInvalid, RetrievalUnavailable
from matching.resolution.matcher import (
    Matcher,
    MatcherConfig,
    MatchOptions,
    MatchQuery,
    MatchResult,
    Recommendation,
)
from matching.resolution.normalizer import NormalizedText, TextNormalizer
from matching.resolution.retrieval import (
    CandidateRetriever,
    FallbackRetriever,
    IndexedRetriever,
    LinearScanRetriever,
)
from matching.resolution.scorer import (
    ScoreBreakdown,
    ScoringTarget,
    ScoringWeights,
    SimilarityScorer,
    has_salient_overlap,
)

__all__ = [
    "CandidateRetriever",
    "CatalogEntry",
    "CatalogIndex",
    "CatalogSource",
    "ConfigurationInvalid",
    "FallbackRetriever",
    "InMemoryCatalog",
    "IndexedRetriever",
    "LinearScanRetriever",
    "Matcher",
    "MatcherConfig",
    "MatchOptions",
    "MatchQuery",
    "MatchResult",
    "NormalizedText",
    "Recommendation",
    "RetrievalUnavailable",
    "ScoreBreakdown",
    "ScoringTarget",
    "ScoringWeights",
    "SimilarityScorer",
    "SqlCatalogStore",
    "TextNormalizer",
    "has_salient_overlap",
]
