"""
Material variant and subcomponent kinds.

The variant set is closed: every stored material carries one of the
MaterialType tags and the tag never changes after creation.
"""

from __future__ import annotations

from enum import Enum

from config import get_settings


class MaterialType(str, Enum):
    """Supported material variants."""
    CHECKLIST = "checklist"
    WORKFLOW = "workflow"
    QUIZ = "quiz"
    QUESTIONNAIRE = "questionnaire"
    VIDEO = "video"
    IMAGE = "image"
    PDF = "pdf"
    UNITY = "unity"
    CHATBOT = "chatbot"
    MQTT_TEMPLATE = "mqtt_template"
    VOICE = "voice"
    DEFAULT = "default"


# Variants that may reference one file asset
ASSET_CAPABLE_TYPES = frozenset({
    MaterialType.VIDEO,
    MaterialType.IMAGE,
    MaterialType.PDF,
    MaterialType.UNITY,
    MaterialType.DEFAULT,
})


class SubcomponentType(str, Enum):
    """Built-in subcomponent kinds that may be linked to materials."""
    CHECKLIST_ENTRY = "ChecklistEntry"
    WORKFLOW_STEP = "WorkflowStep"
    QUESTIONNAIRE_ENTRY = "QuestionnaireEntry"
    VIDEO_TIMESTAMP = "VideoTimestamp"
    QUIZ_QUESTION = "QuizQuestion"
    QUIZ_ANSWER = "QuizAnswer"
    IMAGE_ANNOTATION = "ImageAnnotation"


class RelatedEntityType(str, Enum):
    """Targets of a material relationship edge."""
    MATERIAL = "Material"
    LEARNING_PATH = "LearningPath"
    TRAINING_PROGRAM = "TrainingProgram"


def to_material_type(value: str | MaterialType) -> MaterialType | None:
    """Resolve a variant tag, returning None for unknown tags."""
    if isinstance(value, MaterialType):
        return value
    try:
        return MaterialType(value.lower())
    except ValueError:
        return None


def is_asset_capable(material_type: str | MaterialType) -> bool:
    return to_material_type(material_type) in ASSET_CAPABLE_TYPES


def accepted_subcomponent_types() -> set[str]:
    """Built-in subcomponent kinds plus any configured extras."""
    return {t.value for t in SubcomponentType} | set(get_settings().get_extra_subcomponent_types())
