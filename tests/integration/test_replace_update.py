"""
Integration tests for full-state replace-update.
"""

import pytest

from training_assets.errors import CircularReferenceError, NotFoundError, TypeMismatchError, ValidationFailure
from training_assets.materials import replace as replace_module
from training_assets.materials.schemas import (
    ChecklistEntryPayload,
    ChecklistMaterial,
    DefaultMaterial,
    PdfMaterial,
    QuizAnswerPayload,
    QuizMaterial,
    QuizQuestionPayload,
    RelatedRef,
    VideoMaterial,
)


def without_update_time(material):
    return material.model_dump(exclude={"updated_at"})


class TestReplace:
    @pytest.mark.asyncio
    async def test_replaces_children_entirely(self, store):
        checklist = await store.create(
            ChecklistMaterial(
                name="Before",
                unique_id=501,
                entries=[ChecklistEntryPayload(text="a"), ChecklistEntryPayload(text="b")],
            )
        )
        before = await store.get(checklist.id)

        payload = ChecklistMaterial(id=checklist.id, name="After", entries=[ChecklistEntryPayload(text="c")])
        updated = await store.update(payload)

        assert updated.id == checklist.id
        assert updated.name == "After"
        assert [e.text for e in updated.entries] == ["c"]
        assert updated.unique_id == 501
        assert updated.created_at == before.created_at

    @pytest.mark.asyncio
    async def test_idempotent(self, store, sample_quiz):
        quiz = await store.create(sample_quiz)
        payload = await store.get(quiz.id)

        first = await store.update(payload)
        second = await store.update(payload)

        assert without_update_time(first) == without_update_time(second)
        assert second.created_at == payload.created_at
        assert second.unique_id == payload.unique_id

    @pytest.mark.asyncio
    async def test_omitted_asset_carried_forward(self, store):
        video = await store.create(VideoMaterial(name="Clip", asset_id=9))

        updated = await store.update(VideoMaterial(id=video.id, name="Clip v2"))
        assert updated.asset_id == 9

        replaced = await store.update(VideoMaterial(id=video.id, name="Clip v3", asset_id=10))
        assert replaced.asset_id == 10

    @pytest.mark.asyncio
    async def test_variant_change_rejected(self, store):
        pdf = await store.create(PdfMaterial(name="Manual"))
        with pytest.raises(TypeMismatchError):
            await store.update(VideoMaterial(id=pdf.id, name="Now a video"))
        assert (await store.get(pdf.id)).name == "Manual"

    @pytest.mark.asyncio
    async def test_route_id_mismatch(self, store):
        pdf = await store.create(PdfMaterial(name="Manual"))
        with pytest.raises(TypeMismatchError):
            await store.update(PdfMaterial(id=pdf.id, name="Manual"), route_id=pdf.id + 1)

    @pytest.mark.asyncio
    async def test_missing_id(self, store):
        with pytest.raises(ValidationFailure):
            await store.update(PdfMaterial(name="No id"))

    @pytest.mark.asyncio
    async def test_missing_material(self, store):
        with pytest.raises(NotFoundError):
            await store.update(PdfMaterial(id=404, name="Ghost"))

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, store, monkeypatch):
        checklist = await store.create(
            ChecklistMaterial(name="Original", entries=[ChecklistEntryPayload(text="keep me")])
        )

        async def broken_insert(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(replace_module, "insert_children", broken_insert)

        with pytest.raises(RuntimeError):
            await store.update(ChecklistMaterial(id=checklist.id, name="Changed"))

        loaded = await store.get(checklist.id)
        assert loaded.name == "Original"
        assert [e.text for e in loaded.entries] == ["keep me"]


class TestRelatedSync:
    @pytest.mark.asyncio
    async def test_related_none_keeps_edges(self, store, graph):
        pdf = await store.create(PdfMaterial(name="Manual"))
        bundle = await store.create(DefaultMaterial(name="Bundle", related=[RelatedRef(id=pdf.id)]))

        updated = await store.update(DefaultMaterial(id=bundle.id, name="Bundle v2"))

        assert [ref.id for ref in updated.related] == [pdf.id]

    @pytest.mark.asyncio
    async def test_related_list_replaces_edges(self, store, graph):
        a = await store.create(PdfMaterial(name="A"))
        b = await store.create(PdfMaterial(name="B"))
        c = await store.create(PdfMaterial(name="C"))
        bundle = await store.create(DefaultMaterial(name="Bundle", related=[RelatedRef(id=a.id), RelatedRef(id=b.id)]))

        updated = await store.update(
            DefaultMaterial(id=bundle.id, name="Bundle", related=[RelatedRef(id=c.id), RelatedRef(id=a.id)])
        )

        assert [ref.id for ref in updated.related] == [c.id, a.id]
        children = await graph.get_children(bundle.id)
        assert [(r.material.id, r.display_order) for r in children] == [(c.id, 1), (a.id, 2)]

    @pytest.mark.asyncio
    async def test_related_cycle_rejected_before_write(self, store, graph):
        parent = await store.create(DefaultMaterial(name="Parent"))
        child = await store.create(DefaultMaterial(name="Child"))
        await graph.assign(parent.id, child.id)

        with pytest.raises(CircularReferenceError):
            await store.update(DefaultMaterial(id=child.id, name="Renamed", related=[RelatedRef(id=parent.id)]))
        assert (await store.get(child.id)).name == "Child"

    @pytest.mark.asyncio
    async def test_parent_edges_survive_replace(self, store, graph):
        parent = await store.create(DefaultMaterial(name="Parent"))
        child = await store.create(PdfMaterial(name="Child"))
        await graph.assign(parent.id, child.id)

        await store.update(PdfMaterial(id=child.id, name="Child v2"))

        assert [r.material.name for r in await graph.get_children(parent.id)] == ["Child v2"]


class TestSubcomponentEdgesOnReplace:
    @pytest.mark.asyncio
    async def test_kept_question_keeps_edges(self, store, graph):
        pdf = await store.create(PdfMaterial(name="Reference"))
        quiz = await store.create(
            QuizMaterial(
                name="Quiz",
                questions=[QuizQuestionPayload(question_type="text", text="Q1")],
            )
        )
        question_id = quiz.questions[0].id
        await graph.assign_to_quiz_question(pdf.id, question_id)

        loaded = await store.get(quiz.id)
        await store.update(loaded)

        linked = await graph.list_quiz_question_materials(question_id)
        assert [m.material.id for m in linked] == [pdf.id]

    @pytest.mark.asyncio
    async def test_dropped_entry_loses_edges(self, store, graph):
        pdf = await store.create(PdfMaterial(name="Reference"))
        checklist = await store.create(ChecklistMaterial(name="Checks", entries=[ChecklistEntryPayload(text="a")]))
        entry_id = checklist.entries[0].id
        await graph.assign_to_checklist_entry(pdf.id, entry_id)

        await store.update(ChecklistMaterial(id=checklist.id, name="Checks", entries=[ChecklistEntryPayload(text="b")]))

        assert await graph.list_checklist_entry_materials(entry_id) == []
        assert await graph.get_subcomponent_relationships(pdf.id) == []

    @pytest.mark.asyncio
    async def test_answers_replaced(self, store, sample_quiz):
        quiz = await store.create(sample_quiz)
        payload = await store.get(quiz.id)
        payload.questions[0].answers = [
            QuizAnswerPayload(text="True", correct_answer=True),
            QuizAnswerPayload(text="False"),
        ]

        updated = await store.update(payload)

        assert [a.text for a in updated.questions[0].answers] == ["True", "False"]
        assert [a.text for a in updated.questions[1].answers] == ["Padlock", "Hasp", "Sticky note"]
