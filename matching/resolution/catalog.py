"""
Catalog access for the matcher.

The catalog itself is owned elsewhere; the engine only needs two read
operations from it:

- CatalogIndex.search: approximate-string lookup ordered by similarity
- CatalogSource.list_all: the full scope, used when the index is unavailable

SqlCatalogStore provides both on top of the catalog_items table
(PostgreSQL pg_trgm for search). InMemoryCatalog provides both in-process.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Optional

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from matching.models import CatalogItem
from matching.resolution import trigram
from matching.resolution.normalizer import TextNormalizer


@dataclass(frozen=True)
class CatalogEntry:
    """Read-only view of one catalog entity."""
    id: str
    display_name: str
    normalized_name: str
    tokens: tuple[str, ...] = ()
    category: Optional[str] = None
    size_quantity: Optional[Decimal] = None
    owner_scope: str = ""

    @classmethod
    def from_name(
        cls,
        id: str,
        display_name: str,
        owner_scope: str,
        category: Optional[str] = None,
        size_quantity: Optional[Decimal] = None,
        normalizer: Optional[TextNormalizer] = None,
    ) -> "CatalogEntry":
        """Build an entry, deriving normalized fields (and size if not given) from display_name."""
        normalizer = normalizer or TextNormalizer()
        normalized_name, tokens = normalizer.normalize(display_name)
        if size_quantity is None:
            size_quantity = normalizer.extract_size(normalized_name)
        return cls(
            id=id,
            display_name=display_name,
            normalized_name=normalized_name,
            tokens=tokens,
            category=category,
            size_quantity=size_quantity,
            owner_scope=owner_scope,
        )

    @classmethod
    def from_row(cls, item: CatalogItem) -> "CatalogEntry":
        return cls(
            id=item.id,
            display_name=item.display_name,
            normalized_name=item.normalized_name,
            tokens=tuple(item.tokens or ()),
            category=item.category,
            size_quantity=Decimal(item.size_quantity) if item.size_quantity is not None else None,
            owner_scope=item.owner_scope,
        )

    def __repr__(self) -> str:
        return f"<CatalogEntry({self.display_name!r}, id={self.id})>"


class CatalogIndex(ABC):
    """Approximate-string index over normalized names."""

    @abstractmethod
    def search(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        min_similarity: float,
        limit: int,
    ) -> list[tuple[CatalogEntry, float]]:
        """
        Return up to `limit` (entry, index_similarity) pairs in `owner_scope`
        with similarity >= `min_similarity`, best first.

        May raise any exception when the index is unreachable.
        """
        pass


class CatalogSource(ABC):
    """Full listing of a scope, the universe the index searches."""

    @abstractmethod
    def list_all(self, owner_scope: str, category: Optional[str] = None) -> list[CatalogEntry]:
        pass


class InMemoryCatalog(CatalogIndex, CatalogSource):
    """
    Catalog held in memory, searchable with the same trigram similarity as pg_trgm.

    Entries keep their insertion order, which is also the tie order for search.
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries = tuple(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def list_all(self, owner_scope: str, category: Optional[str] = None) -> list[CatalogEntry]:
        return [
            e for e in self._entries
            if e.owner_scope == owner_scope and (category is None or e.category == category)
        ]

    def search(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        min_similarity: float,
        limit: int,
    ) -> list[tuple[CatalogEntry, float]]:
        scored = [
            (entry, trigram.similarity(normalized_name, entry.normalized_name))
            for entry in self.list_all(owner_scope, category)
        ]
        hits = [(e, s) for e, s in scored if s >= min_similarity]
        hits.sort(key=lambda pair: pair[1], reverse=True)
        return hits[:limit]


class SqlCatalogStore(CatalogIndex, CatalogSource):
    """
    Catalog backed by the catalog_items table.

    Each call opens its own short-lived session, so an index query abandoned
    after a timeout never shares a connection with the fallback scan.

    search() needs PostgreSQL with pg_trgm; on any other backend the
    similarity() call fails and the caller falls back to list_all().
    With statement_timeout (seconds) PostgreSQL also cancels a search that
    outlives it, so a query the retriever already gave up on does not keep
    its worker thread busy.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        statement_timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.statement_timeout = statement_timeout

    def search(
        self,
        normalized_name: str,
        owner_scope: str,
        category: Optional[str],
        min_similarity: float,
        limit: int,
    ) -> list[tuple[CatalogEntry, float]]:
        sim = func.similarity(CatalogItem.normalized_name, normalized_name).label("sim")
        query = (
            select(CatalogItem, sim)
            .where(CatalogItem.owner_scope == owner_scope)
            .where(sim >= min_similarity)
        )
        if category is not None:
            query = query.where(CatalogItem.category == category)
        query = query.order_by(
            sim.desc(), CatalogItem.created_at, CatalogItem.id
        ).limit(limit)

        with self.session_factory() as db:
            if self.statement_timeout is not None and db.get_bind().dialect.name == "postgresql":
                # SET does not take bind parameters
                db.execute(text(f"SET LOCAL statement_timeout = {max(1, int(self.statement_timeout * 1000))}"))
            return [
                (CatalogEntry.from_row(item), float(score))
                for item, score in db.execute(query).all()
            ]

    def list_all(self, owner_scope: str, category: Optional[str] = None) -> list[CatalogEntry]:
        query = select(CatalogItem).where(CatalogItem.owner_scope == owner_scope)
        if category is not None:
            query = query.where(CatalogItem.category == category)
        query = query.order_by(CatalogItem.created_at, CatalogItem.id)

        with self.session_factory() as db:
            return [CatalogEntry.from_row(item) for item in db.scalars(query).all()]

    def add(
        self,
        display_name: str,
        owner_scope: str,
        category: Optional[str] = None,
        size_quantity: Optional[Decimal] = None,
        normalizer: Optional[TextNormalizer] = None,
    ) -> CatalogEntry:
        """Insert a catalog row with derived fields. Used by fixtures and loaders."""
        entry = CatalogEntry.from_name(
            id="",
            display_name=display_name,
            owner_scope=owner_scope,
            category=category,
            size_quantity=size_quantity,
            normalizer=normalizer,
        )
        with self.session_factory() as db:
            item = CatalogItem(
                owner_scope=owner_scope,
                display_name=display_name,
                normalized_name=entry.normalized_name,
                tokens=list(entry.tokens),
                category=category,
                size_quantity=entry.size_quantity,
            )
            db.add(item)
            db.commit()
            db.refresh(item)
            return CatalogEntry.from_row(item)
