"""
Containment hierarchy retrieval.

Builds a tree from a root material by following "contains" edges, capped
at a maximum depth. Each branch carries the set of its ancestors, so an
edge that slipped past cycle prevention is skipped instead of looping.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.models import Material
from training_assets.errors import NotFoundError
from training_assets.graph.edges import MaterialSummary, children_of, contains_type


@dataclass
class HierarchyNode:
    material: MaterialSummary
    relationship_type: str | None
    display_order: int | None
    depth: int
    children: list[HierarchyNode] = field(default_factory=list)


@dataclass
class MaterialHierarchy:
    root: MaterialSummary
    children: list[HierarchyNode] = field(default_factory=list)
    total_depth: int = 0
    total_materials: int = 1


def _max_depth(nodes: list[HierarchyNode]) -> int:
    if not nodes:
        return 0
    return 1 + max(_max_depth(node.children) for node in nodes)


def _count(nodes: list[HierarchyNode]) -> int:
    return len(nodes) + sum(_count(node.children) for node in nodes)


async def _expand(
    session: AsyncSession,
    parent_id: int,
    depth: int,
    max_depth: int,
    ancestors: frozenset[int],
) -> list[HierarchyNode]:
    if depth >= max_depth:
        return []

    nodes = []
    for child in await children_of(session, parent_id, contains_type()):
        child_id = child.material.id
        if child_id in ancestors:
            logger.warning(f"Material {child_id} already contains {parent_id}; skipping cyclic edge")
            continue
        node = HierarchyNode(
            material=child.material,
            relationship_type=child.relationship_type,
            display_order=child.display_order,
            depth=depth + 1,
        )
        node.children = await _expand(session, child_id, depth + 1, max_depth, ancestors | {child_id})
        nodes.append(node)
    return nodes


async def build_hierarchy(session: AsyncSession, root_id: int, max_depth: int) -> MaterialHierarchy:
    root = await session.get(Material, root_id)
    if root is None:
        raise NotFoundError("Material", root_id)

    children = await _expand(session, root_id, 0, max_depth, frozenset({root_id}))
    return MaterialHierarchy(
        root=MaterialSummary.from_row(root),
        children=children,
        total_depth=_max_depth(children),
        total_materials=_count(children) + 1,
    )
