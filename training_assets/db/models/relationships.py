"""
Relationship edge models.

Material relationships are directed edges from a material to a related
entity, tagged with a relationship type:
- related_entity_type "Material": material-to-material ("contains", "prerequisite")
- related_entity_type "LearningPath": material belongs to a learning path
- related_entity_type "TrainingProgram": material assigned to a program

`related_entity_id` is stored as text so one column can reference any
entity kind.

Subcomponent relationships link a subcomponent (entry, step, question,
answer, annotation, timestamp) to a material.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, material_fk


class MaterialRelationship(Base):
    __tablename__ = "material_relationships"
    __table_args__ = (
        Index("ix_material_relationships_related", "related_entity_type", "related_entity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    related_entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    related_entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    relationship_type: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=func.now())

    def __repr__(self) -> str:
        return (
            f"<MaterialRelationship(material={self.material_id}, "
            f"{self.related_entity_type}={self.related_entity_id}, type='{self.relationship_type}')>"
        )


class SubcomponentMaterialRelationship(Base):
    __tablename__ = "subcomponent_material_relationships"
    __table_args__ = (
        UniqueConstraint(
            "subcomponent_id",
            "subcomponent_type",
            "related_material_id",
            name="uq_subcomponent_material",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subcomponent_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subcomponent_type: Mapped[str] = mapped_column(Text, nullable=False)
    related_material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    relationship_type: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=func.now())

    def __repr__(self) -> str:
        return (
            f"<SubcomponentMaterialRelationship({self.subcomponent_type}={self.subcomponent_id}"
            f" -> material={self.related_material_id})>"
        )
