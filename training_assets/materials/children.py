"""
Subcomponent persistence per material variant.

Each variant with children registers a handler describing:
- collection: payload attribute holding the children (entries, steps, ...)
- model / payload_class: ORM row and pydantic payload types
- fields: payload field -> ORM attribute

Handlers insert, delete and load children inside the caller's session.
Subcomponent ids that belonged to the material before a replace-update are
reused when the payload carries them, so subcomponent relationship edges
survive the swap; children whose ids are not reused lose their edges.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.models import (
    ChecklistEntry,
    ImageAnnotation,
    QuestionnaireEntry,
    QuizAnswer,
    QuizQuestion,
    VideoTimestamp,
    WorkflowStep,
)
from training_assets.db.models.base import Base
from training_assets.graph.edges import (
    purge_subcomponent_edges,
    replace_subcomponent_edges,
    subcomponent_related,
)
from training_assets.materials.schemas import (
    ChecklistEntryPayload,
    ImageAnnotationPayload,
    MaterialBase,
    QuestionnaireEntryPayload,
    QuizAnswerPayload,
    QuizQuestionPayload,
    RelatedRef,
    SubcomponentPayload,
    VideoTimestampPayload,
    WorkflowStepPayload,
)
from training_assets.materials.variants import MaterialType, SubcomponentType

# Subcomponent kind -> set of ids
IdsByKind = dict[str, set[int]]

# Handler registry - populated by @register decorator
HANDLERS: dict[MaterialType, "ChildHandler"] = {}


def register(material_type: MaterialType):
    """Decorator to register a child handler for a variant."""
    def decorator(cls):
        HANDLERS[material_type] = cls()
        return cls
    return decorator


def get_handler(material_type: str | MaterialType) -> "ChildHandler | None":
    """Get the child handler for a variant, or None for childless variants."""
    if isinstance(material_type, str):
        try:
            material_type = MaterialType(material_type.lower())
        except ValueError:
            return None
    return HANDLERS.get(material_type)


def _reused_first(items: list[Any], reusable: set[int]) -> list[tuple[int, Any]]:
    # rows keeping their old id go in first so fresh ids never collide with them
    indexed = list(enumerate(items))
    return sorted(indexed, key=lambda pair: pair[1].id not in reusable)


def _refs(summaries) -> list[RelatedRef]:
    return [RelatedRef(id=s.id, name=s.name, description=s.description) for s in summaries]


class ChildHandler:
    """Generic handler for a flat child collection owned through material_id."""

    collection: str
    subcomponent_type: SubcomponentType
    model: type[Base]
    payload_class: type[SubcomponentPayload]
    fields: dict[str, str] = {}

    @property
    def kind(self) -> str:
        return self.subcomponent_type.value

    async def owned_ids(self, session: AsyncSession, material_id: int) -> IdsByKind:
        rows = await session.scalars(select(self.model.id).where(self.model.material_id == material_id))
        return {self.kind: set(rows)}

    def claimed_ids(self, material: MaterialBase, owned: IdsByKind) -> IdsByKind:
        """Ids in the payload that belonged to the material before the replace."""
        items = getattr(material, self.collection)
        return {self.kind: {item.id for item in items if item.id is not None} & owned.get(self.kind, set())}

    async def delete(self, session: AsyncSession, material_id: int) -> IdsByKind:
        """Delete all children of the material and return their ids."""
        owned = await self.owned_ids(session, material_id)
        await session.execute(delete(self.model).where(self.model.material_id == material_id))
        return owned

    async def insert(
        self,
        session: AsyncSession,
        material_id: int,
        material: MaterialBase,
        reusable: IdsByKind,
    ) -> IdsByKind:
        """Insert the payload's children; returns the ids that were written."""
        items = getattr(material, self.collection)
        written = await self._insert_rows(session, items, reusable.get(self.kind, set()), material_id=material_id)
        return {self.kind: written}

    async def _insert_rows(
        self,
        session: AsyncSession,
        items: list[SubcomponentPayload],
        reusable: set[int],
        model: type[Base] | None = None,
        fields: dict[str, str] | None = None,
        kind: str | None = None,
        **owner: Any,
    ) -> set[int]:
        model = model or self.model
        fields = fields if fields is not None else self.fields
        kind = kind or self.kind
        written: set[int] = set()

        for position, item in _reused_first(items, reusable):
            values = {attr: getattr(item, name) for name, attr in fields.items()}
            if item.id in reusable and item.id not in written:
                values["id"] = item.id
            row = model(position=position, **owner, **values)
            session.add(row)
            await session.flush()
            written.add(row.id)
            if item.related is not None:
                await replace_subcomponent_edges(session, kind, row.id, [ref.id for ref in item.related])
        return written

    async def load(self, session: AsyncSession, material_id: int) -> list[SubcomponentPayload]:
        rows = list(
            await session.scalars(
                select(self.model)
                .where(self.model.material_id == material_id)
                .order_by(self.model.position, self.model.id)
            )
        )
        related = await subcomponent_related(session, self.kind, [row.id for row in rows])
        return [self._to_payload(row, related.get(row.id, [])) for row in rows]

    def _to_payload(self, row: Base, related, payload_class=None, fields=None, **extra) -> SubcomponentPayload:
        payload_class = payload_class or self.payload_class
        fields = fields if fields is not None else self.fields
        values = {name: getattr(row, attr) for name, attr in fields.items()}
        return payload_class(id=row.id, related=_refs(related), **values, **extra)


@register(MaterialType.CHECKLIST)
class ChecklistChildren(ChildHandler):
    collection = "entries"
    subcomponent_type = SubcomponentType.CHECKLIST_ENTRY
    model = ChecklistEntry
    payload_class = ChecklistEntryPayload
    fields = {"text": "text", "description": "description"}


@register(MaterialType.WORKFLOW)
class WorkflowChildren(ChildHandler):
    collection = "steps"
    subcomponent_type = SubcomponentType.WORKFLOW_STEP
    model = WorkflowStep
    payload_class = WorkflowStepPayload
    fields = {"title": "title", "content": "content"}


@register(MaterialType.QUESTIONNAIRE)
class QuestionnaireChildren(ChildHandler):
    collection = "entries"
    subcomponent_type = SubcomponentType.QUESTIONNAIRE_ENTRY
    model = QuestionnaireEntry
    payload_class = QuestionnaireEntryPayload
    fields = {"text": "text", "description": "description"}


@register(MaterialType.VIDEO)
class VideoChildren(ChildHandler):
    collection = "timestamps"
    subcomponent_type = SubcomponentType.VIDEO_TIMESTAMP
    model = VideoTimestamp
    payload_class = VideoTimestampPayload
    fields = {
        "title": "title",
        "start_time": "start_time",
        "end_time": "end_time",
        "description": "description",
        "type": "timestamp_type",
    }


@register(MaterialType.IMAGE)
class ImageChildren(ChildHandler):
    collection = "annotations"
    subcomponent_type = SubcomponentType.IMAGE_ANNOTATION
    model = ImageAnnotation
    payload_class = ImageAnnotationPayload
    fields = {"client_id": "client_id", "text": "text", "font_size": "font_size", "x": "x", "y": "y"}


@register(MaterialType.QUIZ)
class QuizChildren(ChildHandler):
    """Questions owned by the quiz, answers owned by each question."""

    collection = "questions"
    subcomponent_type = SubcomponentType.QUIZ_QUESTION
    model = QuizQuestion
    payload_class = QuizQuestionPayload
    fields = {
        "question_number": "question_number",
        "question_type": "question_type",
        "text": "text",
        "description": "description",
        "score": "score",
        "help_text": "help_text",
        "allow_multiple": "allow_multiple",
        "scale_config": "scale_config",
    }
    answer_fields = {
        "text": "text",
        "correct_answer": "correct_answer",
        "display_order": "display_order",
        "extra": "extra",
    }
    answer_kind = SubcomponentType.QUIZ_ANSWER.value

    def _answers_of(self, material_id: int):
        return select(QuizQuestion.id).where(QuizQuestion.material_id == material_id)

    async def owned_ids(self, session: AsyncSession, material_id: int) -> IdsByKind:
        owned = await super().owned_ids(session, material_id)
        answers = await session.scalars(
            select(QuizAnswer.id).where(QuizAnswer.question_id.in_(self._answers_of(material_id)))
        )
        owned[self.answer_kind] = set(answers)
        return owned

    def claimed_ids(self, material: MaterialBase, owned: IdsByKind) -> IdsByKind:
        claimed = super().claimed_ids(material, owned)
        answer_ids = {
            answer.id
            for question in material.questions  # type: ignore[attr-defined]
            for answer in question.answers
            if answer.id is not None
        }
        claimed[self.answer_kind] = answer_ids & owned.get(self.answer_kind, set())
        return claimed

    async def delete(self, session: AsyncSession, material_id: int) -> IdsByKind:
        owned = await self.owned_ids(session, material_id)
        await session.execute(
            delete(QuizAnswer)
            .where(QuizAnswer.question_id.in_(self._answers_of(material_id)))
            .execution_options(synchronize_session=False)
        )
        await session.execute(delete(QuizQuestion).where(QuizQuestion.material_id == material_id))
        return owned

    async def insert(
        self,
        session: AsyncSession,
        material_id: int,
        material: MaterialBase,
        reusable: IdsByKind,
    ) -> IdsByKind:
        questions: list[QuizQuestionPayload] = material.questions  # type: ignore[attr-defined]
        reusable_questions = reusable.get(self.kind, set())
        reusable_answers = reusable.get(self.answer_kind, set())
        written_questions: set[int] = set()
        written_answers: set[int] = set()

        for position, question in _reused_first(questions, reusable_questions):
            values = {attr: getattr(question, name) for name, attr in self.fields.items()}
            if question.id in reusable_questions and question.id not in written_questions:
                values["id"] = question.id
            row = QuizQuestion(material_id=material_id, position=position, **values)
            session.add(row)
            await session.flush()
            written_questions.add(row.id)
            if question.related is not None:
                await replace_subcomponent_edges(session, self.kind, row.id, [ref.id for ref in question.related])

            written_answers |= await self._insert_rows(
                session,
                question.answers,
                reusable_answers - written_answers,
                model=QuizAnswer,
                fields=self.answer_fields,
                kind=self.answer_kind,
                question_id=row.id,
            )

        return {self.kind: written_questions, self.answer_kind: written_answers}

    async def load(self, session: AsyncSession, material_id: int) -> list[SubcomponentPayload]:
        questions = list(
            await session.scalars(
                select(QuizQuestion)
                .where(QuizQuestion.material_id == material_id)
                .order_by(QuizQuestion.position, QuizQuestion.id)
            )
        )
        question_ids = [q.id for q in questions]
        answers = list(
            await session.scalars(
                select(QuizAnswer)
                .where(QuizAnswer.question_id.in_(question_ids))
                .order_by(QuizAnswer.position, QuizAnswer.id)
            )
        ) if question_ids else []

        question_related = await subcomponent_related(session, self.kind, question_ids)
        answer_related = await subcomponent_related(session, self.answer_kind, [a.id for a in answers])

        by_question: dict[int, list[QuizAnswerPayload]] = {}
        for answer in answers:
            by_question.setdefault(answer.question_id, []).append(
                self._to_payload(
                    answer,
                    answer_related.get(answer.id, []),
                    payload_class=QuizAnswerPayload,
                    fields=self.answer_fields,
                )
            )

        return [
            self._to_payload(q, question_related.get(q.id, []), answers=by_question.get(q.id, []))
            for q in questions
        ]


# =============================================================================
# Variant-agnostic entry points
# =============================================================================


async def delete_children(session: AsyncSession, material_type: str, material_id: int) -> IdsByKind:
    handler = get_handler(material_type)
    return await handler.delete(session, material_id) if handler else {}


async def insert_children(
    session: AsyncSession,
    material: MaterialBase,
    material_id: int,
    reusable: IdsByKind | None = None,
) -> IdsByKind:
    handler = get_handler(material.material_type)
    if handler is None:
        return {}
    return await handler.insert(session, material_id, material, reusable or {})


async def load_children(session: AsyncSession, material_type: str, material_id: int) -> dict[str, list]:
    handler = get_handler(material_type)
    if handler is None:
        return {}
    return {handler.collection: await handler.load(session, material_id)}


def claimed_subcomponents(material: MaterialBase, owned: IdsByKind) -> IdsByKind:
    handler = get_handler(material.material_type)
    return handler.claimed_ids(material, owned) if handler else {}


async def drop_orphaned_edges(session: AsyncSession, owned: IdsByKind, kept: IdsByKind | None = None) -> None:
    """Remove subcomponent edges of deleted children whose ids are not kept."""
    kept = kept or {}
    for kind, ids in owned.items():
        await purge_subcomponent_edges(session, kind, ids - kept.get(kind, set()))
