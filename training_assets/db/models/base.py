"""
Declarative base and shared column types.
"""

from __future__ import annotations

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


def material_fk(**kwargs) -> ForeignKey:
    """
    Foreign key to materials.id, checked at commit time.

    Replace-update deletes and re-inserts the material row with the same id
    inside one transaction, so referencing rows must not be validated until
    the transaction ends.
    """
    return ForeignKey("materials.id", deferrable=True, initially="DEFERRED", **kwargs)
