"""
Candidate retrieval: the cheap first stage of the candidate funnel.

Retrievers return a bounded list of catalog entries whose normalized names
are trigram-similar to the target, best first. Two implementations:

- IndexedRetriever: delegates to an external CatalogIndex (pg_trgm, search
  service, ...) under a timeout
- LinearScanRetriever: scans the whole scope in-process with the same
  similarity, for when the index is down

FallbackRetriever composes them. Any retriever signals failure with
RetrievalUnavailable.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

from config.logging import get_logger
from matching.resolution import trigram
from matching.resolution.catalog import CatalogEntry, CatalogIndex, CatalogSource
from matching.resolution.errors import RetrievalUnavailable

logger = get_logger("retrieval")


class CandidateRetriever(ABC):
    """Fetches plausible candidates for a normalized name."""

    @abstractmethod
    def retrieve(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        threshold: float,
        limit: int,
    ) -> list[CatalogEntry]:
        """
        Return up to `limit` entries of `owner_scope` (and `category`, if
        given) with trigram similarity >= `threshold`, best first.

        Raises:
            RetrievalUnavailable: if candidates cannot be fetched
        """
        pass

    def close(self):
        """Release resources held by the retriever. Safe to call more than once."""
        pass


class IndexedRetriever(CandidateRetriever):
    """
    Retrieval through an external approximate-string index.

    With a timeout, the index call runs on a worker thread and is abandoned
    when the deadline passes; the late result is discarded.
    """

    def __init__(self, index: CatalogIndex, timeout: Optional[float] = None, max_workers: int = 4):
        self.index = index
        self.timeout = timeout
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="catalog-index")
            if timeout is not None else None
        )

    def retrieve(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        threshold: float,
        limit: int,
    ) -> list[CatalogEntry]:
        try:
            if self._executor is None:
                hits = self.index.search(normalized_name, owner_scope, category, threshold, limit)
            else:
                future = self._executor.submit(
                    self.index.search, normalized_name, owner_scope, category, threshold, limit
                )
                hits = future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            # Drops the call if it is still queued behind hung workers
            future.cancel()
            raise RetrievalUnavailable(
                f"Catalog index timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise RetrievalUnavailable(f"Catalog index failed: {e}") from e

        return [entry for entry, _ in hits[:limit]]

    def close(self, wait: bool = False):
        """Release the index worker threads, dropping queued calls."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)


class LinearScanRetriever(CandidateRetriever):
    """
    Full scan of the scope computing pg_trgm-style similarity in-process.

    Same threshold, ordering (ties in listing order) and limit as the index,
    only slower.
    """

    def __init__(self, source: CatalogSource):
        self.source = source

    def retrieve(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        threshold: float,
        limit: int,
    ) -> list[CatalogEntry]:
        try:
            universe = self.source.list_all(owner_scope, category)
        except Exception as e:
            raise RetrievalUnavailable(f"Catalog listing failed: {e}") from e

        scored = []
        for entry in universe:
            score = trigram.similarity(normalized_name, entry.normalized_name)
            if score >= threshold:
                scored.append((entry, score))

        # list.sort is stable, so equal scores keep listing order
        scored.sort(key=lambda pair: pair[1], reverse=True)
        logger.debug(
            f"Linear scan of {len(universe)} entries in scope {owner_scope}: "
            f"{len(scored)} above {threshold}"
        )
        return [entry for entry, _ in scored[:limit]]


class FallbackRetriever(CandidateRetriever):
    """
    Primary retriever with a correctness fallback.

    Every fallback is logged as a warning; repeated warnings mean the index
    is degraded and should be looked at.
    """

    def __init__(self, primary: CandidateRetriever, fallback: CandidateRetriever):
        self.primary = primary
        self.fallback = fallback

    def retrieve(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        threshold: float,
        limit: int,
    ) -> list[CatalogEntry]:
        try:
            return self.primary.retrieve(normalized_name, owner_scope, category, threshold, limit)
        except RetrievalUnavailable as e:
            logger.warning(
                f"Primary retrieval unavailable for scope {owner_scope}, "
                f"falling back to {type(self.fallback).__name__}: {e}"
            )
        return self.fallback.retrieve(normalized_name, owner_scope, category, threshold, limit)

    def close(self):
        self.primary.close()
        self.fallback.close()
