"""
Catalog Matcher - Database Models

SQLAlchemy ORM model for the catalog the matcher reads from. Rows are written
by the catalog owner; the matcher only queries them.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def generate_uuid() -> str:
    return str(uuid.uuid4())


class CatalogItem(Base):
    """
    Canonical catalog entity a free-text line item can resolve to.

    normalized_name/tokens/size_quantity are derived from display_name with
    TextNormalizer when the row is written.
    """

    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_scope: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_name: Mapped[str] = mapped_column(Text, nullable=False)
    tokens: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    category: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    size_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_catalog_items_scope_category", "owner_scope", "category"),
        # pg_trgm GIN index; other dialects get a plain index
        Index(
            "ix_catalog_items_normalized_trgm",
            "normalized_name",
            postgresql_using="gin",
            postgresql_ops={"normalized_name": "gin_trgm_ops"},
        ),
    )

    def __repr__(self) -> str:
        return f"<CatalogItem({self.display_name!r}, scope={self.owner_scope})>"
