"""
Pytest configuration and shared fixtures.
"""

import os
import sys
from pathlib import Path

# Keep test runs out of the log directory
os.environ.setdefault("LOG_TO_FILE", "false")

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from sqlalchemy.orm import sessionmaker

from matching.database import init_db, make_engine
from matching.resolution import (
    CatalogEntry,
    CatalogIndex,
    CatalogSource,
    InMemoryCatalog,
    SqlCatalogStore,
    TextNormalizer,
)


class FailingIndex(CatalogIndex):
    """Index whose backend is down."""

    def __init__(self):
        self.calls = 0

    def search(self, normalized_name, owner_scope, category, min_similarity, limit):
        self.calls += 1
        raise ConnectionError("trigram index unreachable")


class FailingSource(CatalogSource):
    """Catalog listing that cannot be read either."""

    def list_all(self, owner_scope, category=None):
        raise ConnectionError("catalog store unreachable")


@pytest.fixture
def normalizer() -> TextNormalizer:
    return TextNormalizer()


@pytest.fixture
def catalog_entries(normalizer) -> list[CatalogEntry]:
    """Small food-service catalog across two scopes."""
    rows = [
        ("acme-1", "Chicken Breast Boneless 10 lb", "acme", "poultry"),
        ("acme-2", "Chicken Thigh Boneless 10 lb", "acme", "poultry"),
        ("acme-3", "Chicken Breast 40 lb Case", "acme", "poultry"),
        ("acme-4", "Mustard 1 Gallon", "acme", "condiments"),
        ("acme-5", "Ground Beef 80/20 10 lb", "acme", "beef"),
        ("acme-6", "Mozzarella Cheese Shredded 5 lb", "acme", "dairy"),
        ("acme-7", "Half and Half 1 qt", "acme", "dairy"),
        ("globex-1", "Chicken Breast Boneless 10 lb", "globex", "poultry"),
    ]
    return [
        CatalogEntry.from_name(
            id=id, display_name=name, owner_scope=scope, category=category, normalizer=normalizer
        )
        for id, name, scope, category in rows
    ]


@pytest.fixture
def memory_catalog(catalog_entries) -> InMemoryCatalog:
    return InMemoryCatalog(catalog_entries)


@pytest.fixture
def failing_index() -> FailingIndex:
    return FailingIndex()


@pytest.fixture
def failing_source() -> FailingSource:
    return FailingSource()


@pytest.fixture
def sql_store():
    """SqlCatalogStore over in-memory SQLite (no pg_trgm, so search() always fails)."""
    engine = make_engine("sqlite://", echo=False)
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield SqlCatalogStore(factory)
    engine.dispose()
