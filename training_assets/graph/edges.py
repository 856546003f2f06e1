"""
Session-level edge queries and mutations.

These functions run inside a caller-owned transaction so that graph
changes can be composed with material writes (create, replace-update,
delete) and commit or roll back together. Edges live in the store as
rows; traversal looks up adjacency per node id instead of building an
in-memory pointer graph.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from loguru import logger
from sqlalchemy import Text, and_, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from training_assets.db.models import Material, MaterialRelationship, SubcomponentMaterialRelationship
from training_assets.errors import CircularReferenceError, NotFoundError
from training_assets.materials.variants import RelatedEntityType

MATERIAL = RelatedEntityType.MATERIAL.value


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class MaterialSummary:
    """Identity fields of a material, used in graph results."""
    id: int
    name: str | None
    description: str | None
    type: str

    @classmethod
    def from_row(cls, row: Material) -> "MaterialSummary":
        return cls(id=row.id, name=row.name, description=row.description, type=row.type)


@dataclass
class RelatedMaterial:
    """A material reached through an edge, with the edge's type and order."""
    material: MaterialSummary
    relationship_type: str | None
    display_order: int | None
    relationship_id: int


def contains_type() -> str:
    return get_settings().default_child_relationship_type


def nulls_last(column):
    # nulls last, portable across PostgreSQL and SQLite
    return (column.is_(None), column)


# =============================================================================
# MATERIAL-TO-MATERIAL EDGES
# =============================================================================


async def material_exists(session: AsyncSession, material_id: int) -> bool:
    found = await session.scalar(select(Material.id).where(Material.id == material_id))
    return found is not None


async def require_material(session: AsyncSession, material_id: int, label: str = "Material") -> None:
    if not await material_exists(session, material_id):
        raise NotFoundError(label, material_id)


async def child_ids(session: AsyncSession, parent_id: int, relationship_type: str | None = None) -> list[int]:
    """Ids of materials the parent points at through edges of the given type."""
    relationship_type = relationship_type or contains_type()
    rows = await session.scalars(
        select(MaterialRelationship.related_entity_id).where(
            MaterialRelationship.material_id == parent_id,
            MaterialRelationship.related_entity_type == MATERIAL,
            MaterialRelationship.relationship_type == relationship_type,
        )
    )
    return [int(value) for value in rows if value.isdigit()]


async def would_create_cycle(
    session: AsyncSession,
    parent_id: int,
    child_id: int,
    max_depth: int | None = None,
) -> bool:
    """
    True if a containment edge parent -> child would close a cycle.

    Depth-first search from the child along "contains" edges looking for
    the parent. The visited set keeps the search finite on graphs with
    redundant paths. Branches deeper than the depth ceiling are not
    expanded further.
    """
    if parent_id == child_id:
        return True

    max_depth = max_depth or get_settings().cycle_check_max_depth
    visited = {child_id}
    stack = [(child_id, 0)]

    while stack:
        node, depth = stack.pop()
        if depth >= max_depth:
            logger.warning(
                f"Cycle check {parent_id} -> {child_id} reached depth {max_depth} at material {node}"
            )
            continue
        for next_id in await child_ids(session, node):
            if next_id == parent_id:
                return True
            if next_id not in visited:
                visited.add(next_id)
                stack.append((next_id, depth + 1))

    return False


async def ensure_no_cycle(session: AsyncSession, parent_id: int, child_id: int) -> None:
    if await would_create_cycle(session, parent_id, child_id):
        raise CircularReferenceError(parent_id, child_id)


async def find_edge(
    session: AsyncSession,
    material_id: int,
    entity_type: str,
    entity_id: int | str,
    relationship_type: str | None = None,
) -> MaterialRelationship | None:
    query = select(MaterialRelationship).where(
        MaterialRelationship.material_id == material_id,
        MaterialRelationship.related_entity_type == entity_type,
        MaterialRelationship.related_entity_id == str(entity_id),
    )
    if relationship_type is not None:
        query = query.where(MaterialRelationship.relationship_type == relationship_type)
    return (await session.scalars(query.limit(1))).first()


async def next_display_order(session: AsyncSession, *criteria) -> int:
    """max(display_order) + 1 over the matching edges, starting at 1."""
    current = await session.scalar(select(func.max(MaterialRelationship.display_order)).where(*criteria))
    return (current or 0) + 1


async def add_edge(
    session: AsyncSession,
    material_id: int,
    entity_type: str,
    entity_id: int | str,
    relationship_type: str,
    display_order: int | None,
) -> MaterialRelationship:
    edge = MaterialRelationship(
        material_id=material_id,
        related_entity_id=str(entity_id),
        related_entity_type=entity_type,
        relationship_type=relationship_type,
        display_order=display_order,
    )
    session.add(edge)
    await session.flush()
    return edge


async def children_of(
    session: AsyncSession,
    parent_id: int,
    relationship_type: str | None = None,
) -> list[RelatedMaterial]:
    """Child materials of a parent, ordered by display order (nulls last) then edge id."""
    query = (
        select(MaterialRelationship, Material)
        .join(Material, cast(Material.id, Text) == MaterialRelationship.related_entity_id)
        .where(
            MaterialRelationship.material_id == parent_id,
            MaterialRelationship.related_entity_type == MATERIAL,
        )
        .order_by(*nulls_last(MaterialRelationship.display_order), MaterialRelationship.id)
    )
    if relationship_type is not None:
        query = query.where(MaterialRelationship.relationship_type == relationship_type)

    result = await session.execute(query)
    return [
        RelatedMaterial(
            material=MaterialSummary.from_row(material),
            relationship_type=edge.relationship_type,
            display_order=edge.display_order,
            relationship_id=edge.id,
        )
        for edge, material in result.all()
    ]


async def parents_of(
    session: AsyncSession,
    child_id: int,
    relationship_type: str | None = None,
) -> list[RelatedMaterial]:
    query = (
        select(MaterialRelationship, Material)
        .join(Material, Material.id == MaterialRelationship.material_id)
        .where(
            MaterialRelationship.related_entity_type == MATERIAL,
            MaterialRelationship.related_entity_id == str(child_id),
        )
        .order_by(*nulls_last(MaterialRelationship.display_order), MaterialRelationship.id)
    )
    if relationship_type is not None:
        query = query.where(MaterialRelationship.relationship_type == relationship_type)

    result = await session.execute(query)
    return [
        RelatedMaterial(
            material=MaterialSummary.from_row(material),
            relationship_type=edge.relationship_type,
            display_order=edge.display_order,
            relationship_id=edge.id,
        )
        for edge, material in result.all()
    ]


async def _contains_edges(session: AsyncSession, parent_id: int) -> dict[str, MaterialRelationship]:
    edges = await session.scalars(
        select(MaterialRelationship).where(
            MaterialRelationship.material_id == parent_id,
            MaterialRelationship.related_entity_type == MATERIAL,
            MaterialRelationship.relationship_type == contains_type(),
        )
    )
    return {edge.related_entity_id: edge for edge in edges}


async def check_contained_materials(session: AsyncSession, parent_id: int, wanted: Iterable[int]) -> None:
    """Existence and cycle checks for children not yet linked to the parent."""
    existing = await _contains_edges(session, parent_id)
    for child_id in wanted:
        if str(child_id) in existing:
            continue
        await require_material(session, child_id)
        await ensure_no_cycle(session, parent_id, child_id)


async def sync_contained_materials(session: AsyncSession, parent_id: int, wanted: list[int]) -> None:
    """
    Make the parent's "contains" children exactly `wanted`, in that order.

    Children not listed are unlinked; every listed child gets display order
    equal to its 1-based position. Existence and cycle checks for new
    children run before any edge is written.
    """
    rel_type = contains_type()
    ordered = list(dict.fromkeys(wanted))
    await check_contained_materials(session, parent_id, ordered)
    existing = await _contains_edges(session, parent_id)

    keep = {str(child_id) for child_id in ordered}
    stale = [edge.id for key, edge in existing.items() if key not in keep]
    if stale:
        await session.execute(delete(MaterialRelationship).where(MaterialRelationship.id.in_(stale)))

    for position, child_id in enumerate(ordered, start=1):
        edge = existing.get(str(child_id))
        if edge is None:
            await add_edge(session, parent_id, MATERIAL, child_id, rel_type, position)
        else:
            edge.display_order = position
    await session.flush()


async def purge_material_edges(session: AsyncSession, material_id: int) -> int:
    """Remove every edge owned by or pointing at the material."""
    result = await session.execute(
        delete(MaterialRelationship).where(
            or_(
                MaterialRelationship.material_id == material_id,
                and_(
                    MaterialRelationship.related_entity_type == MATERIAL,
                    MaterialRelationship.related_entity_id == str(material_id),
                ),
            )
        )
    )
    sub = await session.execute(
        delete(SubcomponentMaterialRelationship).where(
            SubcomponentMaterialRelationship.related_material_id == material_id
        )
    )
    return (result.rowcount or 0) + (sub.rowcount or 0)


# =============================================================================
# SUBCOMPONENT EDGES
# =============================================================================


async def replace_subcomponent_edges(
    session: AsyncSession,
    subcomponent_type: str,
    subcomponent_id: int,
    material_ids: Iterable[int],
) -> None:
    """Make a subcomponent's related materials exactly `material_ids`, ordered by position."""
    await purge_subcomponent_edges(session, subcomponent_type, [subcomponent_id])
    for position, material_id in enumerate(dict.fromkeys(material_ids), start=1):
        await require_material(session, material_id)
        session.add(
            SubcomponentMaterialRelationship(
                subcomponent_id=subcomponent_id,
                subcomponent_type=subcomponent_type,
                related_material_id=material_id,
                relationship_type=contains_type(),
                display_order=position,
            )
        )
    await session.flush()


async def purge_subcomponent_edges(
    session: AsyncSession,
    subcomponent_type: str,
    subcomponent_ids: Iterable[int],
) -> None:
    ids = list(subcomponent_ids)
    if not ids:
        return
    await session.execute(
        delete(SubcomponentMaterialRelationship).where(
            SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
            SubcomponentMaterialRelationship.subcomponent_id.in_(ids),
        )
    )


async def subcomponent_related(
    session: AsyncSession,
    subcomponent_type: str,
    subcomponent_ids: Iterable[int],
) -> dict[int, list[MaterialSummary]]:
    """Related materials per subcomponent id, in display order."""
    ids = list(subcomponent_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(SubcomponentMaterialRelationship.subcomponent_id, Material)
        .join(Material, Material.id == SubcomponentMaterialRelationship.related_material_id)
        .where(
            SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
            SubcomponentMaterialRelationship.subcomponent_id.in_(ids),
        )
        .order_by(
            *nulls_last(SubcomponentMaterialRelationship.display_order),
            SubcomponentMaterialRelationship.id,
        )
    )
    related: dict[int, list[MaterialSummary]] = {}
    for subcomponent_id, material in result.all():
        related.setdefault(subcomponent_id, []).append(MaterialSummary.from_row(material))
    return related
