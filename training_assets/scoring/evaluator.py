"""
Quiz evaluation.

Pure functions: no store access, no side effects beyond logging.

- boolean / choice / checkboxes: all-or-nothing set equality on answer ids
- scale / text: recorded as submitted, zero points, always correct
- unknown question types: zero points, incorrect, logged
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger

from training_assets.materials.rows import utcnow
from training_assets.materials.schemas import (
    ProcessedAnswers,
    QuestionResult,
    QuizMaterial,
    QuizQuestionPayload,
    QuizSubmission,
    SubmittedAnswer,
)
from training_assets.materials.validation import (
    BOOLEAN,
    CHECKBOXES,
    CHOICE,
    SCALE,
    TEXT,
    normalize_question_type,
)

ZERO = Decimal("0")


@dataclass
class Evaluation:
    """Outcome of scoring one question."""
    score_awarded: Decimal
    is_correct: bool


Evaluator = Callable[[QuizQuestionPayload, SubmittedAnswer], Evaluation]

# Evaluator registry - populated by @evaluates decorator
EVALUATORS: dict[str, Evaluator] = {}


def evaluates(*question_types: str):
    """Decorator to register an evaluator for one or more question types."""
    def decorator(func: Evaluator) -> Evaluator:
        for question_type in question_types:
            EVALUATORS[question_type] = func
        return func
    return decorator


@evaluates(BOOLEAN, CHOICE, CHECKBOXES)
def _evaluate_choice(question: QuizQuestionPayload, answer: SubmittedAnswer) -> Evaluation:
    submitted = set(answer.answer_ids or [])
    if not submitted:
        return Evaluation(ZERO, False)

    correct = {a.id for a in question.answers if a.correct_answer and a.id is not None}
    if submitted == correct:
        return Evaluation(question.score, True)
    return Evaluation(ZERO, False)


@evaluates(SCALE, TEXT)
def _record_only(question: QuizQuestionPayload, answer: SubmittedAnswer) -> Evaluation:
    # Not auto-graded
    return Evaluation(ZERO, True)


def evaluate(question: QuizQuestionPayload, answer: SubmittedAnswer) -> Evaluation:
    """Score a single submitted answer against its question."""
    question_type = normalize_question_type(question.question_type)
    evaluator = EVALUATORS.get(question_type)
    if evaluator is None:
        logger.warning(f"Unknown question type '{question.question_type}' on question {question.id}")
        return Evaluation(ZERO, False)
    return evaluator(question, answer)


def evaluate_quiz(
    quiz: QuizMaterial,
    submission: QuizSubmission,
    submitted_at: datetime | None = None,
) -> ProcessedAnswers:
    """
    Score every submitted answer and build the record persisted for the user.

    Answers referencing a question outside the quiz are skipped with a warning.
    """
    questions = {q.id: q for q in quiz.questions if q.id is not None}
    results: list[QuestionResult] = []
    total = ZERO

    for item in submission.questions:
        question = questions.get(item.question_id)
        if question is None:
            logger.warning(f"Question {item.question_id} does not belong to quiz {quiz.id}; skipping")
            continue

        outcome = evaluate(question, item.answer)
        total += outcome.score_awarded
        results.append(
            QuestionResult(
                question_id=item.question_id,
                question_type=question.question_type,
                answer=item.answer,
                score_awarded=outcome.score_awarded,
                is_correct=outcome.is_correct,
            )
        )

    return ProcessedAnswers(submitted_at=submitted_at or utcnow(), answers=results, total_score=total)
