"""
Integration tests for quiz progress reports and per-user progress.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from training_assets.errors import NotFoundError
from training_assets.materials.schemas import (
    PdfMaterial,
    QuestionSubmission,
    QuizSubmission,
    SubmittedAnswer,
)


def graded_submission(quiz, correct=True, program_id=None):
    """Scores 8 when correct, 3 otherwise."""
    boolean, checkboxes, _ = quiz.questions
    choice = boolean.answers[0] if correct else boolean.answers[1]
    return QuizSubmission(
        program_id=program_id,
        questions=[
            QuestionSubmission(question_id=boolean.id, answer=SubmittedAnswer(answer_ids=[choice.id])),
            QuestionSubmission(
                question_id=checkboxes.id,
                answer=SubmittedAnswer(answer_ids=[a.id for a in checkboxes.answers if a.correct_answer]),
            ),
        ],
    )


@pytest_asyncio.fixture
async def catalog(store, graph, registry, sample_quiz):
    """Program whose learning path holds one quiz, a direct pdf, and a quiz outside any program."""
    program = await registry.create_program("Onboarding")
    path = await registry.create_learning_path("Safety")
    await registry.link_learning_path(program.id, path.id)

    path_quiz = await store.create(sample_quiz)
    handbook = await store.create(PdfMaterial(name="Handbook"))
    loose_quiz = await store.create(sample_quiz.model_copy(update={"name": "Refresher quiz"}))

    await graph.assign_to_learning_path(path_quiz.id, path.id)
    await graph.assign_to_training_program(handbook.id, program.id)

    return {
        "program": program,
        "path": path,
        "path_quiz": path_quiz,
        "handbook": handbook,
        "loose_quiz": loose_quiz,
    }


class TestMaterialQuizProgress:
    @pytest.mark.asyncio
    async def test_attempts_and_average(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        program = catalog["program"]
        await submissions.submit_answers("alice", quiz.id, graded_submission(quiz, program_id=program.id))
        await submissions.submit_answers("bob", quiz.id, graded_submission(quiz, correct=False))

        report = await submissions.get_material_quiz_progress(quiz.id)

        assert report.name == "Lockout/tagout quiz"
        assert report.total_attempts == 2
        assert report.total_users == 2
        assert report.average_score == Decimal("5.5")
        assert [(a.user_id, a.score) for a in report.attempts] == [("alice", Decimal("8")), ("bob", Decimal("3"))]
        assert report.attempts[0].program_name == "Onboarding"
        assert report.attempts[1].program_name is None

    @pytest.mark.asyncio
    async def test_restricted_to_user(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        await submissions.submit_answers("alice", quiz.id, graded_submission(quiz))
        await submissions.submit_answers("bob", quiz.id, graded_submission(quiz, correct=False))

        report = await submissions.get_material_quiz_progress(quiz.id, user_id="bob")

        assert [a.user_id for a in report.attempts] == ["bob"]
        assert report.average_score == Decimal("3")

    @pytest.mark.asyncio
    async def test_no_attempts(self, submissions, catalog):
        report = await submissions.get_material_quiz_progress(catalog["loose_quiz"].id)

        assert report.total_attempts == 0
        assert report.average_score == Decimal("0")

    @pytest.mark.asyncio
    async def test_not_a_quiz(self, submissions, catalog):
        with pytest.raises(NotFoundError):
            await submissions.get_material_quiz_progress(catalog["handbook"].id)
        with pytest.raises(NotFoundError):
            await submissions.get_material_quiz_progress(404)


class TestContainerQuizProgress:
    @pytest.mark.asyncio
    async def test_program_counts_learning_path_quizzes(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        loose = catalog["loose_quiz"]
        await submissions.submit_answers("alice", quiz.id, graded_submission(quiz))
        await submissions.submit_answers("alice", loose.id, graded_submission(loose, correct=False))

        report = await submissions.get_program_quiz_progress(catalog["program"].id)

        assert report.name == "Onboarding"
        assert report.total_quizzes == 1
        assert [a.material_id for a in report.attempts] == [quiz.id]
        assert report.average_score == Decimal("8")

    @pytest.mark.asyncio
    async def test_learning_path(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        await submissions.submit_answers("carol", quiz.id, graded_submission(quiz))

        report = await submissions.get_learning_path_quiz_progress(catalog["path"].id)

        assert report.name == "Safety"
        assert report.total_quizzes == 1
        assert report.total_users == 1

    @pytest.mark.asyncio
    async def test_unknown_containers(self, submissions):
        with pytest.raises(NotFoundError):
            await submissions.get_program_quiz_progress(404)
        with pytest.raises(NotFoundError):
            await submissions.get_learning_path_quiz_progress(404)

    @pytest.mark.asyncio
    async def test_all_quizzes(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        loose = catalog["loose_quiz"]
        await submissions.submit_answers("alice", quiz.id, graded_submission(quiz))
        await submissions.submit_answers("bob", loose.id, graded_submission(loose, correct=False))

        report = await submissions.get_quiz_progress()
        assert report.total_quizzes == 2
        assert report.total_attempts == 2

        mine = await submissions.get_quiz_progress(user_id="alice")
        assert [a.material_id for a in mine.attempts] == [quiz.id]


class TestUserProgress:
    @pytest.mark.asyncio
    async def test_programs_and_standalone(self, submissions, catalog):
        quiz = catalog["path_quiz"]
        loose = catalog["loose_quiz"]
        program = catalog["program"]
        await submissions.submit_answers("dave", quiz.id, graded_submission(quiz, program_id=program.id))
        await submissions.submit_answers("dave", loose.id, graded_submission(loose, correct=False))

        progress = await submissions.get_user_progress("dave")

        assert progress.progress == 100
        [summary] = progress.programs
        assert summary.name == "Onboarding"
        assert summary.progress == 50
        completion = {m.material_id: (m.completed, m.score) for m in summary.materials}
        assert completion == {
            quiz.id: (True, Decimal("8")),
            catalog["handbook"].id: (False, Decimal("0")),
        }
        assert [(m.material_id, m.score) for m in progress.standalone_materials] == [(loose.id, Decimal("3"))]

    @pytest.mark.asyncio
    async def test_user_without_records(self, submissions, catalog):
        progress = await submissions.get_user_progress("nobody")

        assert progress.progress == 0
        assert progress.programs == []
        assert progress.standalone_materials == []
