"""
Relationship graph over materials, learning paths, training programs
and subcomponents.
"""

from training_assets.graph.containers import ContainerInfo, ContainerRegistry
from training_assets.graph.edges import MaterialSummary, RelatedMaterial
from training_assets.graph.hierarchy import HierarchyNode, MaterialHierarchy
from training_assets.graph.relationships import LinkedMaterial, Relationship, RelationshipGraph

__all__ = [
    "ContainerInfo",
    "ContainerRegistry",
    "HierarchyNode",
    "LinkedMaterial",
    "MaterialHierarchy",
    "MaterialSummary",
    "RelatedMaterial",
    "Relationship",
    "RelationshipGraph",
]
