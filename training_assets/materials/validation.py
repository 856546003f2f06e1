"""
Structural validation for material payloads.

Quiz rules:
- boolean questions need exactly two answers
- choice / checkboxes questions need at least two answers
- scale questions need a scale configuration
"""

from __future__ import annotations

from training_assets.errors import ValidationFailure
from training_assets.materials.schemas import MaterialBase, QuizMaterial, QuizQuestionPayload

BOOLEAN = "boolean"
CHOICE = "choice"
CHECKBOXES = "checkboxes"
SCALE = "scale"
TEXT = "text"

QUESTION_TYPE_ALIASES = {
    "single-choice": CHOICE,
    "multiple-choice": CHECKBOXES,
}


def normalize_question_type(question_type: str | None) -> str:
    """Lower-case a question type and resolve aliases."""
    value = (question_type or "").strip().lower()
    return QUESTION_TYPE_ALIASES.get(value, value)


def question_errors(question: QuizQuestionPayload, index: int) -> list[str]:
    label = f"questions[{index}]"
    qtype = normalize_question_type(question.question_type)
    answers = len(question.answers)

    if qtype == BOOLEAN and answers != 2:
        return [f"{label}: boolean question requires exactly 2 answers, got {answers}"]
    if qtype in (CHOICE, CHECKBOXES) and answers < 2:
        return [f"{label}: {qtype} question requires at least 2 answers, got {answers}"]
    if qtype == SCALE and not question.scale_config:
        return [f"{label}: scale question requires a scale configuration"]
    return []


def validate_material(material: MaterialBase) -> None:
    """Raise ValidationFailure listing every structural problem in the payload."""
    if not isinstance(material, QuizMaterial):
        return

    errors: list[str] = []
    for index, question in enumerate(material.questions):
        errors.extend(question_errors(question, index))

    if errors:
        raise ValidationFailure(f"Quiz '{material.name}' failed validation", errors)
