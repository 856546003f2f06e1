"""
Relationship Graph.

Typed, ordered edges from materials to materials, learning paths and
training programs, plus edges from subcomponents (checklist entries,
quiz questions, ...) to materials.

Containment ("contains" between materials) is kept acyclic: before an
edge is written the graph searches from the child for a path back to the
parent. Dependencies and other edge types only reject self-edges.

Usage:
    graph = RelationshipGraph()
    await graph.assign(parent_id, child_id)
    tree = await graph.get_hierarchy(parent_id, max_depth=3)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import delete, func, select, update

from config import get_settings
from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import (
    ChecklistEntry,
    ImageAnnotation,
    Material,
    MaterialRelationship,
    QuestionnaireEntry,
    QuizAnswer,
    QuizQuestion,
    SubcomponentMaterialRelationship,
    VideoTimestamp,
    WorkflowStep,
)
from training_assets.errors import ConflictError, NotFoundError, TypeMismatchError, ValidationFailure
from training_assets.graph import edges
from training_assets.graph.containers import require_learning_path, require_program
from training_assets.graph.edges import MATERIAL, MaterialSummary, RelatedMaterial, contains_type, nulls_last
from training_assets.graph.hierarchy import MaterialHierarchy, build_hierarchy
from training_assets.materials.variants import RelatedEntityType, SubcomponentType, accepted_subcomponent_types

LEARNING_PATH = RelatedEntityType.LEARNING_PATH.value
TRAINING_PROGRAM = RelatedEntityType.TRAINING_PROGRAM.value

# Built-in subcomponent kind -> row model, for existence checks
SUBCOMPONENT_MODELS = {
    SubcomponentType.CHECKLIST_ENTRY.value: ChecklistEntry,
    SubcomponentType.WORKFLOW_STEP.value: WorkflowStep,
    SubcomponentType.QUESTIONNAIRE_ENTRY.value: QuestionnaireEntry,
    SubcomponentType.VIDEO_TIMESTAMP.value: VideoTimestamp,
    SubcomponentType.QUIZ_QUESTION.value: QuizQuestion,
    SubcomponentType.QUIZ_ANSWER.value: QuizAnswer,
    SubcomponentType.IMAGE_ANNOTATION.value: ImageAnnotation,
}


@dataclass
class Relationship:
    """A stored material edge."""
    id: int
    material_id: int
    related_entity_id: str
    related_entity_type: str
    relationship_type: str | None
    display_order: int | None

    @classmethod
    def from_row(cls, row: MaterialRelationship) -> "Relationship":
        return cls(
            id=row.id,
            material_id=row.material_id,
            related_entity_id=row.related_entity_id,
            related_entity_type=row.related_entity_type,
            relationship_type=row.relationship_type,
            display_order=row.display_order,
        )


@dataclass
class LinkedMaterial:
    """A material linked to a learning path, program or subcomponent."""
    material: MaterialSummary
    relationship_type: str | None
    display_order: int | None
    relationship_id: int


class RelationshipGraph:
    """Create, query, reorder and remove relationship edges."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    def _scope(self, operation: str):
        return async_session_scope(self._session_factory, operation)

    # ========================================
    # Material containment
    # ========================================

    async def assign(
        self,
        parent_id: int,
        child_id: int,
        relationship_type: str | None = None,
        display_order: int | None = None,
    ) -> int:
        """
        Link child under parent and return the edge id.

        Raises:
            NotFoundError: either material is missing
            CircularReferenceError: a "contains" edge would close a cycle
            TypeMismatchError: a non-containment edge from a material to itself
            ConflictError: the same edge already exists
        """
        relationship_type = relationship_type or contains_type()
        async with self._scope("assign material") as session:
            await edges.require_material(session, parent_id, "Parent material")
            await edges.require_material(session, child_id, "Child material")

            if relationship_type == contains_type():
                await edges.ensure_no_cycle(session, parent_id, child_id)
            elif parent_id == child_id:
                raise TypeMismatchError(f"Material {parent_id} cannot be related to itself")

            if await edges.find_edge(session, parent_id, MATERIAL, child_id, relationship_type):
                raise ConflictError(f"Material {child_id} is already related to {parent_id} as {relationship_type}")

            if display_order is None:
                display_order = await edges.next_display_order(
                    session,
                    MaterialRelationship.material_id == parent_id,
                    MaterialRelationship.related_entity_type == MATERIAL,
                )
            edge = await edges.add_edge(session, parent_id, MATERIAL, child_id, relationship_type, display_order)
            edge_id = edge.id

        logger.info(f"Assigned material {child_id} to {parent_id} ({relationship_type}, order {display_order})")
        return edge_id

    async def remove(self, parent_id: int, child_id: int, relationship_type: str | None = None) -> bool:
        """Delete the parent -> child edge(s); False if none existed."""
        async with self._scope("remove material") as session:
            query = delete(MaterialRelationship).where(
                MaterialRelationship.material_id == parent_id,
                MaterialRelationship.related_entity_type == MATERIAL,
                MaterialRelationship.related_entity_id == str(child_id),
            )
            if relationship_type is not None:
                query = query.where(MaterialRelationship.relationship_type == relationship_type)
            result = await session.execute(query)

        if not result.rowcount:
            return False
        logger.info(f"Removed material {child_id} from {parent_id}")
        return True

    async def get_children(self, parent_id: int, relationship_type: str | None = None) -> list[RelatedMaterial]:
        async with self._scope("get child materials") as session:
            return await edges.children_of(session, parent_id, relationship_type)

    async def get_parents(self, child_id: int, relationship_type: str | None = None) -> list[RelatedMaterial]:
        async with self._scope("get parent materials") as session:
            return await edges.parents_of(session, child_id, relationship_type)

    async def reorder(self, parent_id: int, order: Mapping[int, int]) -> int:
        """
        Set display orders of the parent's child edges.

        `order` maps child material id -> display order. Ids that are not
        children of the parent are ignored. Returns the number of edges updated.
        """
        async with self._scope("reorder materials") as session:
            count = 0
            for child_id, display_order in order.items():
                result = await session.execute(
                    update(MaterialRelationship)
                    .where(
                        MaterialRelationship.material_id == parent_id,
                        MaterialRelationship.related_entity_type == MATERIAL,
                        MaterialRelationship.related_entity_id == str(child_id),
                    )
                    .values(display_order=display_order)
                )
                count += result.rowcount or 0
        logger.info(f"Reordered {count} children of material {parent_id}")
        return count

    async def would_create_cycle(self, parent_id: int, child_id: int) -> bool:
        async with self._scope("check circular reference") as session:
            return await edges.would_create_cycle(session, parent_id, child_id)

    async def get_hierarchy(self, root_id: int, max_depth: int | None = None) -> MaterialHierarchy:
        """Containment tree under a root, at most `max_depth` levels deep."""
        max_depth = max_depth if max_depth is not None else get_settings().hierarchy_max_depth
        async with self._scope("get material hierarchy") as session:
            return await build_hierarchy(session, root_id, max_depth)

    # ========================================
    # Learning paths
    # ========================================

    async def _assign_to_container(
        self,
        material_id: int,
        entity_type: str,
        entity_id: int,
        relationship_type: str,
        display_order: int | None,
    ) -> int:
        async with self._scope(f"assign material to {entity_type}") as session:
            if entity_type == LEARNING_PATH:
                await require_learning_path(session, entity_id)
            else:
                await require_program(session, entity_id)
            await edges.require_material(session, material_id)

            if await edges.find_edge(session, material_id, entity_type, entity_id):
                raise ConflictError(f"Material {material_id} is already assigned to {entity_type} {entity_id}")

            if display_order is None:
                display_order = await edges.next_display_order(
                    session,
                    MaterialRelationship.related_entity_type == entity_type,
                    MaterialRelationship.related_entity_id == str(entity_id),
                )
            edge = await edges.add_edge(session, material_id, entity_type, entity_id, relationship_type, display_order)
            edge_id = edge.id

        logger.info(f"Assigned material {material_id} to {entity_type} {entity_id} (order {display_order})")
        return edge_id

    async def _remove_from_container(self, material_id: int, entity_type: str, entity_id: int) -> bool:
        async with self._scope(f"remove material from {entity_type}") as session:
            result = await session.execute(
                delete(MaterialRelationship).where(
                    MaterialRelationship.material_id == material_id,
                    MaterialRelationship.related_entity_type == entity_type,
                    MaterialRelationship.related_entity_id == str(entity_id),
                )
            )
        if not result.rowcount:
            return False
        logger.info(f"Removed material {material_id} from {entity_type} {entity_id}")
        return True

    async def _container_materials(self, entity_type: str, entity_id: int) -> list[LinkedMaterial]:
        async with self._scope(f"list {entity_type} materials") as session:
            result = await session.execute(
                select(MaterialRelationship, Material)
                .join(Material, Material.id == MaterialRelationship.material_id)
                .where(
                    MaterialRelationship.related_entity_type == entity_type,
                    MaterialRelationship.related_entity_id == str(entity_id),
                )
                .order_by(*nulls_last(MaterialRelationship.display_order), MaterialRelationship.id)
            )
            return [
                LinkedMaterial(
                    material=MaterialSummary.from_row(material),
                    relationship_type=edge.relationship_type,
                    display_order=edge.display_order,
                    relationship_id=edge.id,
                )
                for edge, material in result.all()
            ]

    async def assign_to_learning_path(
        self, material_id: int, learning_path_id: int, display_order: int | None = None
    ) -> int:
        return await self._assign_to_container(
            material_id, LEARNING_PATH, learning_path_id, contains_type(), display_order
        )

    async def remove_from_learning_path(self, material_id: int, learning_path_id: int) -> bool:
        return await self._remove_from_container(material_id, LEARNING_PATH, learning_path_id)

    async def list_learning_path_materials(self, learning_path_id: int) -> list[LinkedMaterial]:
        return await self._container_materials(LEARNING_PATH, learning_path_id)

    async def reorder_learning_path(self, learning_path_id: int, order: Mapping[int, int]) -> int:
        """Set display orders within a learning path; `order` maps material id -> order."""
        async with self._scope("reorder learning path") as session:
            count = 0
            for material_id, display_order in order.items():
                result = await session.execute(
                    update(MaterialRelationship)
                    .where(
                        MaterialRelationship.material_id == material_id,
                        MaterialRelationship.related_entity_type == LEARNING_PATH,
                        MaterialRelationship.related_entity_id == str(learning_path_id),
                    )
                    .values(display_order=display_order)
                )
                count += result.rowcount or 0
        logger.info(f"Reordered {count} materials in learning path {learning_path_id}")
        return count

    # ========================================
    # Training programs
    # ========================================

    async def assign_to_training_program(
        self, material_id: int, program_id: int, display_order: int | None = None
    ) -> int:
        return await self._assign_to_container(
            material_id,
            TRAINING_PROGRAM,
            program_id,
            get_settings().default_program_relationship_type,
            display_order,
        )

    async def remove_from_training_program(self, material_id: int, program_id: int) -> bool:
        return await self._remove_from_container(material_id, TRAINING_PROGRAM, program_id)

    async def list_training_program_materials(self, program_id: int) -> list[LinkedMaterial]:
        """Materials assigned directly to a program (not through its learning paths)."""
        return await self._container_materials(TRAINING_PROGRAM, program_id)

    # ========================================
    # Dependencies
    # ========================================

    async def create_dependency(self, material_id: int, prerequisite_id: int) -> int:
        """Record that `material_id` requires `prerequisite_id` first."""
        return await self.assign(
            material_id, prerequisite_id, get_settings().default_dependency_relationship_type
        )

    async def remove_dependency(self, material_id: int, prerequisite_id: int) -> bool:
        return await self.remove(
            material_id, prerequisite_id, get_settings().default_dependency_relationship_type
        )

    async def get_prerequisites(self, material_id: int) -> list[RelatedMaterial]:
        return await self.get_children(material_id, get_settings().default_dependency_relationship_type)

    async def get_dependents(self, material_id: int) -> list[RelatedMaterial]:
        return await self.get_parents(material_id, get_settings().default_dependency_relationship_type)

    # ========================================
    # Generic edges
    # ========================================

    async def create_relationship(
        self,
        material_id: int,
        related_entity_id: int,
        related_entity_type: str | RelatedEntityType,
        relationship_type: str | None = None,
        display_order: int | None = None,
    ) -> int:
        """Create an edge to any related entity type, dispatching on the target."""
        try:
            entity_type = RelatedEntityType(related_entity_type).value
        except ValueError:
            raise ValidationFailure(f"Unknown related entity type: {related_entity_type}") from None

        if entity_type == MATERIAL:
            return await self.assign(material_id, related_entity_id, relationship_type, display_order)
        if entity_type == LEARNING_PATH:
            return await self._assign_to_container(
                material_id, LEARNING_PATH, related_entity_id, relationship_type or contains_type(), display_order
            )
        return await self._assign_to_container(
            material_id,
            TRAINING_PROGRAM,
            related_entity_id,
            relationship_type or get_settings().default_program_relationship_type,
            display_order,
        )

    async def delete_relationship(self, relationship_id: int) -> bool:
        async with self._scope("delete relationship") as session:
            result = await session.execute(
                delete(MaterialRelationship).where(MaterialRelationship.id == relationship_id)
            )
        if not result.rowcount:
            return False
        logger.info(f"Deleted relationship {relationship_id}")
        return True

    async def get_material_relationships(self, material_id: int) -> list[Relationship]:
        """All edges owned by a material, in display order."""
        async with self._scope("get material relationships") as session:
            rows = await session.scalars(
                select(MaterialRelationship)
                .where(MaterialRelationship.material_id == material_id)
                .order_by(*nulls_last(MaterialRelationship.display_order), MaterialRelationship.id)
            )
            return [Relationship.from_row(row) for row in rows]

    # ========================================
    # Subcomponent edges
    # ========================================

    async def assign_to_subcomponent(
        self,
        subcomponent_id: int,
        subcomponent_type: str,
        material_id: int,
        relationship_type: str | None = None,
        display_order: int | None = None,
    ) -> int:
        """
        Link a material to a subcomponent and return the edge id.

        Raises:
            ValidationFailure: the subcomponent kind is not accepted
            NotFoundError: the subcomponent (built-in kinds) or material is missing
            ConflictError: the material is already linked to the subcomponent
        """
        if subcomponent_type not in accepted_subcomponent_types():
            raise ValidationFailure(f"Unsupported subcomponent type: {subcomponent_type}")

        async with self._scope("assign material to subcomponent") as session:
            model = SUBCOMPONENT_MODELS.get(subcomponent_type)
            if model is not None and await session.get(model, subcomponent_id) is None:
                raise NotFoundError(subcomponent_type, subcomponent_id)
            await edges.require_material(session, material_id)

            existing = await session.scalar(
                select(SubcomponentMaterialRelationship.id).where(
                    SubcomponentMaterialRelationship.subcomponent_id == subcomponent_id,
                    SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
                    SubcomponentMaterialRelationship.related_material_id == material_id,
                )
            )
            if existing is not None:
                raise ConflictError(
                    f"Material {material_id} is already linked to {subcomponent_type} {subcomponent_id}"
                )

            if display_order is None:
                current = await session.scalar(
                    select(func.max(SubcomponentMaterialRelationship.display_order)).where(
                        SubcomponentMaterialRelationship.subcomponent_id == subcomponent_id,
                        SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
                    )
                )
                display_order = (current or 0) + 1

            edge = SubcomponentMaterialRelationship(
                subcomponent_id=subcomponent_id,
                subcomponent_type=subcomponent_type,
                related_material_id=material_id,
                relationship_type=relationship_type or contains_type(),
                display_order=display_order,
            )
            session.add(edge)
            await session.flush()
            edge_id = edge.id

        logger.info(f"Linked material {material_id} to {subcomponent_type} {subcomponent_id}")
        return edge_id

    async def remove_from_subcomponent(self, subcomponent_id: int, subcomponent_type: str, material_id: int) -> bool:
        async with self._scope("remove material from subcomponent") as session:
            result = await session.execute(
                delete(SubcomponentMaterialRelationship).where(
                    SubcomponentMaterialRelationship.subcomponent_id == subcomponent_id,
                    SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
                    SubcomponentMaterialRelationship.related_material_id == material_id,
                )
            )
        if not result.rowcount:
            return False
        logger.info(f"Unlinked material {material_id} from {subcomponent_type} {subcomponent_id}")
        return True

    async def list_subcomponent_materials(self, subcomponent_id: int, subcomponent_type: str) -> list[LinkedMaterial]:
        async with self._scope("list subcomponent materials") as session:
            result = await session.execute(
                select(SubcomponentMaterialRelationship, Material)
                .join(Material, Material.id == SubcomponentMaterialRelationship.related_material_id)
                .where(
                    SubcomponentMaterialRelationship.subcomponent_id == subcomponent_id,
                    SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
                )
                .order_by(
                    *nulls_last(SubcomponentMaterialRelationship.display_order),
                    SubcomponentMaterialRelationship.id,
                )
            )
            return [
                LinkedMaterial(
                    material=MaterialSummary.from_row(material),
                    relationship_type=edge.relationship_type,
                    display_order=edge.display_order,
                    relationship_id=edge.id,
                )
                for edge, material in result.all()
            ]

    async def reorder_subcomponent_materials(
        self, subcomponent_id: int, subcomponent_type: str, order: Mapping[int, int]
    ) -> int:
        """Set display orders of a subcomponent's materials; `order` maps material id -> order."""
        async with self._scope("reorder subcomponent materials") as session:
            count = 0
            for material_id, display_order in order.items():
                result = await session.execute(
                    update(SubcomponentMaterialRelationship)
                    .where(
                        SubcomponentMaterialRelationship.subcomponent_id == subcomponent_id,
                        SubcomponentMaterialRelationship.subcomponent_type == subcomponent_type,
                        SubcomponentMaterialRelationship.related_material_id == material_id,
                    )
                    .values(display_order=display_order)
                )
                count += result.rowcount or 0
        return count

    async def get_subcomponent_relationships(self, material_id: int) -> list[tuple[str, int]]:
        """(subcomponent kind, subcomponent id) pairs linked to a material."""
        async with self._scope("get subcomponent relationships") as session:
            result = await session.execute(
                select(SubcomponentMaterialRelationship.subcomponent_type, SubcomponentMaterialRelationship.subcomponent_id)
                .where(SubcomponentMaterialRelationship.related_material_id == material_id)
                .order_by(SubcomponentMaterialRelationship.id)
            )
            return [(kind, sub_id) for kind, sub_id in result.all()]

    # Per-kind shortcuts

    async def assign_to_checklist_entry(self, material_id: int, entry_id: int) -> int:
        return await self.assign_to_subcomponent(entry_id, SubcomponentType.CHECKLIST_ENTRY.value, material_id)

    async def remove_from_checklist_entry(self, material_id: int, entry_id: int) -> bool:
        return await self.remove_from_subcomponent(entry_id, SubcomponentType.CHECKLIST_ENTRY.value, material_id)

    async def list_checklist_entry_materials(self, entry_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(entry_id, SubcomponentType.CHECKLIST_ENTRY.value)

    async def assign_to_workflow_step(self, material_id: int, step_id: int) -> int:
        return await self.assign_to_subcomponent(step_id, SubcomponentType.WORKFLOW_STEP.value, material_id)

    async def remove_from_workflow_step(self, material_id: int, step_id: int) -> bool:
        return await self.remove_from_subcomponent(step_id, SubcomponentType.WORKFLOW_STEP.value, material_id)

    async def list_workflow_step_materials(self, step_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(step_id, SubcomponentType.WORKFLOW_STEP.value)

    async def assign_to_questionnaire_entry(self, material_id: int, entry_id: int) -> int:
        return await self.assign_to_subcomponent(entry_id, SubcomponentType.QUESTIONNAIRE_ENTRY.value, material_id)

    async def remove_from_questionnaire_entry(self, material_id: int, entry_id: int) -> bool:
        return await self.remove_from_subcomponent(entry_id, SubcomponentType.QUESTIONNAIRE_ENTRY.value, material_id)

    async def list_questionnaire_entry_materials(self, entry_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(entry_id, SubcomponentType.QUESTIONNAIRE_ENTRY.value)

    async def assign_to_video_timestamp(self, material_id: int, timestamp_id: int) -> int:
        return await self.assign_to_subcomponent(timestamp_id, SubcomponentType.VIDEO_TIMESTAMP.value, material_id)

    async def remove_from_video_timestamp(self, material_id: int, timestamp_id: int) -> bool:
        return await self.remove_from_subcomponent(timestamp_id, SubcomponentType.VIDEO_TIMESTAMP.value, material_id)

    async def list_video_timestamp_materials(self, timestamp_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(timestamp_id, SubcomponentType.VIDEO_TIMESTAMP.value)

    async def assign_to_quiz_question(self, material_id: int, question_id: int) -> int:
        return await self.assign_to_subcomponent(question_id, SubcomponentType.QUIZ_QUESTION.value, material_id)

    async def remove_from_quiz_question(self, material_id: int, question_id: int) -> bool:
        return await self.remove_from_subcomponent(question_id, SubcomponentType.QUIZ_QUESTION.value, material_id)

    async def list_quiz_question_materials(self, question_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(question_id, SubcomponentType.QUIZ_QUESTION.value)

    async def assign_to_quiz_answer(self, material_id: int, answer_id: int) -> int:
        return await self.assign_to_subcomponent(answer_id, SubcomponentType.QUIZ_ANSWER.value, material_id)

    async def remove_from_quiz_answer(self, material_id: int, answer_id: int) -> bool:
        return await self.remove_from_subcomponent(answer_id, SubcomponentType.QUIZ_ANSWER.value, material_id)

    async def list_quiz_answer_materials(self, answer_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(answer_id, SubcomponentType.QUIZ_ANSWER.value)

    async def assign_to_image_annotation(self, material_id: int, annotation_id: int) -> int:
        return await self.assign_to_subcomponent(annotation_id, SubcomponentType.IMAGE_ANNOTATION.value, material_id)

    async def remove_from_image_annotation(self, material_id: int, annotation_id: int) -> bool:
        return await self.remove_from_subcomponent(annotation_id, SubcomponentType.IMAGE_ANNOTATION.value, material_id)

    async def list_image_annotation_materials(self, annotation_id: int) -> list[LinkedMaterial]:
        return await self.list_subcomponent_materials(annotation_id, SubcomponentType.IMAGE_ANNOTATION.value)
