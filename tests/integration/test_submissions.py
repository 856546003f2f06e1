"""
Integration tests for quiz submissions and progress tracking.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from training_assets.errors import NotFoundError, ValidationFailure
from training_assets.materials.schemas import (
    PdfMaterial,
    QuestionSubmission,
    QuizSubmission,
    SubmittedAnswer,
)
from training_assets.scoring import ProgressTracker


def answers_for(quiz, correct=True):
    """Submission answering the boolean question right (or wrong) and the text question."""
    boolean, checkboxes, text = quiz.questions
    choice = boolean.answers[0] if correct else boolean.answers[1]
    return [
        QuestionSubmission(question_id=boolean.id, answer=SubmittedAnswer(answer_ids=[choice.id])),
        QuestionSubmission(
            question_id=checkboxes.id,
            answer=SubmittedAnswer(answer_ids=[a.id for a in checkboxes.answers if a.correct_answer]),
        ),
        QuestionSubmission(question_id=text.id, answer=SubmittedAnswer(text="Try to start it")),
    ]


@pytest_asyncio.fixture
async def program_setup(store, graph, registry, sample_quiz):
    """Program with a learning path holding the quiz and one more material, plus two direct materials."""
    program = await registry.create_program("Onboarding")
    path = await registry.create_learning_path("Safety")
    await registry.link_learning_path(program.id, path.id)

    quiz = await store.create(sample_quiz)
    path_pdf = await store.create(PdfMaterial(name="Path reading"))
    direct_a = await store.create(PdfMaterial(name="Handbook"))
    direct_b = await store.create(PdfMaterial(name="Policies"))

    await graph.assign_to_learning_path(quiz.id, path.id)
    await graph.assign_to_learning_path(path_pdf.id, path.id)
    await graph.assign_to_training_program(direct_a.id, program.id)
    await graph.assign_to_training_program(direct_b.id, program.id)

    return {
        "program": program,
        "path": path,
        "quiz": quiz,
        "path_pdf": path_pdf,
        "direct": [direct_a, direct_b],
    }


class TestSubmitAnswers:
    @pytest.mark.asyncio
    async def test_standalone_submission(self, store, submissions, sample_quiz):
        quiz = await store.create(sample_quiz)

        response = await submissions.submit_answers("alice", quiz.id, QuizSubmission(questions=answers_for(quiz)))

        assert response.success
        assert response.score == Decimal("8")
        assert response.progress == 100
        assert response.program_id is None
        assert response.learning_path_progress is None

    @pytest.mark.asyncio
    async def test_detail_persisted(self, store, submissions, sample_quiz):
        quiz = await store.create(sample_quiz)
        await submissions.submit_answers("alice", quiz.id, QuizSubmission(questions=answers_for(quiz, correct=False)))

        detail = await submissions.get_user_material_detail("alice", quiz.id)

        assert detail.score == Decimal("3")
        assert detail.data.total_score == Decimal("3")
        assert [r.is_correct for r in detail.data.answers] == [False, True, True]
        assert detail.data.answers[2].answer.text == "Try to start it"
        assert await submissions.get_user_material_detail("bob", quiz.id) is None

    @pytest.mark.asyncio
    async def test_resubmission_overwrites(self, store, submissions, sample_quiz):
        quiz = await store.create(sample_quiz)
        await submissions.submit_answers("alice", quiz.id, QuizSubmission(questions=answers_for(quiz, correct=False)))
        await submissions.submit_answers("alice", quiz.id, QuizSubmission(questions=answers_for(quiz)))

        detail = await submissions.get_user_material_detail("alice", quiz.id)
        assert detail.score == Decimal("8")

    @pytest.mark.asyncio
    async def test_program_and_learning_path_progress(self, submissions, program_setup):
        quiz = program_setup["quiz"]
        program = program_setup["program"]

        response = await submissions.submit_answers(
            "alice", quiz.id, QuizSubmission(program_id=program.id, questions=answers_for(quiz))
        )

        assert response.learning_path_id == program_setup["path"].id
        assert response.progress == 25  # 1 of 4 program materials
        assert response.learning_path_progress == 50  # 1 of 2 path materials

    @pytest.mark.asyncio
    async def test_material_outside_program(self, store, submissions, registry, sample_quiz):
        program = await registry.create_program("Empty")
        quiz = await store.create(sample_quiz)

        with pytest.raises(ValidationFailure):
            await submissions.submit_answers("alice", quiz.id, QuizSubmission(program_id=program.id))
        assert await submissions.get_user_material_detail("alice", quiz.id) is None

    @pytest.mark.asyncio
    async def test_not_a_quiz(self, store, submissions):
        pdf = await store.create(PdfMaterial(name="Manual"))
        with pytest.raises(NotFoundError):
            await submissions.submit_answers("alice", pdf.id, QuizSubmission())
        with pytest.raises(NotFoundError):
            await submissions.submit_answers("alice", 404, QuizSubmission())

    @pytest.mark.asyncio
    async def test_foreign_question_ignored(self, store, submissions, sample_quiz):
        quiz = await store.create(sample_quiz)
        submission = QuizSubmission(
            questions=[QuestionSubmission(question_id=9999, answer=SubmittedAnswer(answer_ids=[1]))]
        )

        response = await submissions.submit_answers("alice", quiz.id, submission)

        assert response.score == Decimal("0")
        detail = await submissions.get_user_material_detail("alice", quiz.id)
        assert detail.data.answers == []


class TestCompletion:
    @pytest.mark.asyncio
    async def test_mark_complete_keeps_score(self, store, submissions, sample_quiz):
        quiz = await store.create(sample_quiz)
        await submissions.submit_answers("alice", quiz.id, QuizSubmission(questions=answers_for(quiz)))

        response = await submissions.mark_material_complete("alice", quiz.id)

        assert response.score == Decimal("8")
        assert response.progress == 100

    @pytest.mark.asyncio
    async def test_mark_complete_new_record(self, submissions, program_setup):
        direct_a, _ = program_setup["direct"]
        response = await submissions.mark_material_complete("bob", direct_a.id, program_setup["program"].id)

        assert response.score == Decimal("0")
        assert response.progress == 25
        assert response.learning_path_id is None

    @pytest.mark.asyncio
    async def test_bulk_mark_complete(self, submissions, program_setup):
        program = program_setup["program"]
        ids = [m.id for m in program_setup["direct"]] + [404]

        results = await submissions.bulk_mark_complete("carol", ids, program.id)

        assert [r.material_id for r in results] == ids[:2]
        assert results[-1].progress == 50


class TestProgress:
    @pytest.mark.asyncio
    async def test_two_of_four_is_half(self, store, submissions, program_setup):
        program = program_setup["program"]
        for material in program_setup["direct"]:
            await submissions.mark_material_complete("dave", material.id, program.id)

        [progress] = await submissions.get_program_progress(program.id, "dave")

        assert progress.progress == 50
        assert progress.completed == 2
        assert progress.total == 4
        completed = {m.material_id for m in progress.materials if m.completed}
        assert completed == {m.id for m in program_setup["direct"]}

    @pytest.mark.asyncio
    async def test_empty_program_is_complete(self, registry, session_factory):
        program = await registry.create_program("Nothing yet")
        tracker = ProgressTracker(session_factory)

        assert await tracker.get_program_progress("erin", program.id) == 100

    @pytest.mark.asyncio
    async def test_all_users_listed(self, submissions, program_setup):
        program = program_setup["program"]
        direct_a, direct_b = program_setup["direct"]
        await submissions.mark_material_complete("bob", direct_a.id, program.id)
        await submissions.mark_material_complete("alice", direct_b.id, program.id)

        results = await submissions.get_program_progress(program.id)

        assert [r.user_id for r in results] == ["alice", "bob"]
        assert all(r.progress == 25 for r in results)

    @pytest.mark.asyncio
    async def test_learning_path_progress(self, submissions, program_setup, session_factory):
        path = program_setup["path"]
        await submissions.mark_material_complete("frank", program_setup["path_pdf"].id, learning_path_id=path.id)

        tracker = ProgressTracker(session_factory)
        assert await tracker.get_learning_path_progress("frank", path.id) == 50

    @pytest.mark.asyncio
    async def test_unknown_program(self, submissions):
        with pytest.raises(NotFoundError):
            await submissions.get_program_progress(404)
