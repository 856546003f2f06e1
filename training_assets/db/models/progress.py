"""
Per-user submission and score records.

Both tables are keyed by (user_id, material_id). They are created on the
first submission or completion mark and updated afterwards; they are only
deleted together with their material.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, material_fk


class UserMaterialData(Base):
    """Processed answer payload of the user's latest submission."""

    __tablename__ = "user_material_data"
    __table_args__ = (UniqueConstraint("user_id", "material_id", name="uq_user_material_data"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    program_id: Mapped[int | None] = mapped_column(Integer)
    learning_path_id: Mapped[int | None] = mapped_column(Integer)
    data: Mapped[Any | None] = mapped_column(JSONType)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class UserMaterialScore(Base):
    """Score and 0-100 progress value; its presence marks the material completed."""

    __tablename__ = "user_material_scores"
    __table_args__ = (UniqueConstraint("user_id", "material_id", name="uq_user_material_score"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    program_id: Mapped[int | None] = mapped_column(Integer)
    learning_path_id: Mapped[int | None] = mapped_column(Integer)
    score: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    progress: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<UserMaterialScore(user='{self.user_id}', material={self.material_id}, score={self.score})>"
