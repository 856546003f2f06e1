"""
Mapping between material payloads and material rows.

Variant attributes are the payload fields that are neither shared base
fields nor child collections; they map one-to-one onto the sparse
columns of the materials table.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.models import Material
from training_assets.graph.edges import children_of, contains_type
from training_assets.materials.children import get_handler, load_children
from training_assets.materials.schemas import MATERIAL_CLASSES, MaterialBase, RelatedRef
from training_assets.materials.variants import MaterialType

BASE_FIELDS = frozenset({"id", "type", "name", "description", "unique_id", "created_at", "updated_at", "related"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def variant_columns(material_type: MaterialType) -> list[str]:
    """Column names holding the variant-specific attributes of a type."""
    model_class = MATERIAL_CLASSES[material_type]
    excluded = BASE_FIELDS | collection_names_for(material_type)
    return [name for name in model_class.model_fields if name not in excluded]


def collection_names_for(material_type: MaterialType) -> set[str]:
    handler = get_handler(material_type)
    return {handler.collection} if handler else set()


def to_row(
    material: MaterialBase,
    *,
    material_id: int | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    unique_id: int | None = None,
) -> Material:
    """Build a material row from a payload; keyword overrides win over the payload."""
    material_type = material.material_type
    values: dict[str, Any] = {
        column: getattr(material, column) for column in variant_columns(material_type)
    }
    return Material(
        id=material_id if material_id is not None else material.id,
        type=material_type.value,
        name=material.name,
        description=material.description,
        unique_id=unique_id if unique_id is not None else material.unique_id,
        created_at=created_at or material.created_at,
        updated_at=updated_at or material.updated_at,
        **values,
    )


def from_row(
    row: Material,
    children: dict[str, list] | None = None,
    related: list[RelatedRef] | None = None,
) -> MaterialBase:
    """Build the variant payload for a stored row."""
    material_type = MaterialType(row.type)
    data: dict[str, Any] = {
        "id": row.id,
        "type": material_type.value,
        "name": row.name,
        "description": row.description,
        "unique_id": row.unique_id,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "related": related,
    }
    for column in variant_columns(material_type):
        value = getattr(row, column)
        if value is not None:
            data[column] = value
    data.update(children or {})
    return MATERIAL_CLASSES[material_type].model_validate(data)


async def load_material(session: AsyncSession, material_id: int) -> MaterialBase | None:
    """Load a material with its children and its "contains" children as `related`."""
    row = await session.get(Material, material_id)
    if row is None:
        return None
    children = await load_children(session, row.type, material_id)
    related = [
        RelatedRef(id=child.material.id, name=child.material.name, description=child.material.description)
        for child in await children_of(session, material_id, contains_type())
    ]
    return from_row(row, children, related)
