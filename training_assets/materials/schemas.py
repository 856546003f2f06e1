"""
Pydantic payload models for materials, subcomponents and quiz submissions.

Materials form a discriminated union on `type`; each variant declares its
own attributes and child collections. Every subcomponent may carry a
`related` list of material references, and so may the material itself
(containment children).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from training_assets.errors import ValidationFailure
from training_assets.materials.variants import MaterialType

# ========================================
# References
# ========================================


class RelatedRef(BaseModel):
    """Reference to a related material; only `id` is read on input."""

    id: int
    name: str | None = None
    description: str | None = None


# ========================================
# Subcomponents
# ========================================


class SubcomponentPayload(BaseModel):
    id: int | None = None
    related: list[RelatedRef] | None = None


class ChecklistEntryPayload(SubcomponentPayload):
    text: str | None = None
    description: str | None = None


class WorkflowStepPayload(SubcomponentPayload):
    title: str | None = None
    content: str | None = None


class QuestionnaireEntryPayload(SubcomponentPayload):
    text: str | None = None
    description: str | None = None


class VideoTimestampPayload(SubcomponentPayload):
    title: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    description: str | None = None
    type: str | None = None


class ImageAnnotationPayload(SubcomponentPayload):
    client_id: str | None = None
    text: str | None = None
    font_size: int | None = None
    x: float = 0.0
    y: float = 0.0


class QuizAnswerPayload(SubcomponentPayload):
    text: str | None = None
    correct_answer: bool = False
    display_order: int | None = None
    extra: str | None = None


class QuizQuestionPayload(SubcomponentPayload):
    question_number: int | None = None
    question_type: str
    text: str | None = None
    description: str | None = None
    score: Decimal = Decimal("0")
    help_text: str | None = None
    allow_multiple: bool = False
    scale_config: str | None = None
    answers: list[QuizAnswerPayload] = Field(default_factory=list)


# ========================================
# Material variants
# ========================================


class MaterialBase(BaseModel):
    """Fields shared by every variant."""

    id: int | None = None
    name: str | None = None
    description: str | None = None
    unique_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    related: list[RelatedRef] | None = Field(
        default=None,
        description="Containment children; None leaves existing edges untouched on update",
    )

    @property
    def material_type(self) -> MaterialType:
        return MaterialType(self.type)  # type: ignore[attr-defined]


class AssetCapableMaterial(MaterialBase):
    asset_id: int | None = None


class ChecklistMaterial(MaterialBase):
    type: Literal["checklist"] = "checklist"
    entries: list[ChecklistEntryPayload] = Field(default_factory=list)


class WorkflowMaterial(MaterialBase):
    type: Literal["workflow"] = "workflow"
    steps: list[WorkflowStepPayload] = Field(default_factory=list)


class QuestionnaireMaterial(MaterialBase):
    type: Literal["questionnaire"] = "questionnaire"
    questionnaire_config: str | None = None
    questionnaire_type: str | None = None
    passing_score: Decimal | None = None
    entries: list[QuestionnaireEntryPayload] = Field(default_factory=list)


class QuizMaterial(MaterialBase):
    type: Literal["quiz"] = "quiz"
    evaluation_mode: bool = False
    min_score: Decimal | None = None
    questions: list[QuizQuestionPayload] = Field(default_factory=list)


class VideoMaterial(AssetCapableMaterial):
    type: Literal["video"] = "video"
    video_path: str | None = None
    video_duration: int | None = None
    video_resolution: str | None = None
    start_time: str | None = None
    annotations: Any = None
    timestamps: list[VideoTimestampPayload] = Field(default_factory=list)


class ImageMaterial(AssetCapableMaterial):
    type: Literal["image"] = "image"
    image_path: str | None = None
    image_width: int | None = None
    image_height: int | None = None
    image_format: str | None = None
    annotations: list[ImageAnnotationPayload] = Field(default_factory=list)


class PdfMaterial(AssetCapableMaterial):
    type: Literal["pdf"] = "pdf"
    pdf_path: str | None = None
    page_count: int | None = None
    file_size: int | None = None


class UnityMaterial(AssetCapableMaterial):
    type: Literal["unity"] = "unity"
    unity_version: str | None = None
    unity_build_target: str | None = None
    unity_scene_name: str | None = None
    unity_json: str | None = None


class ChatbotMaterial(MaterialBase):
    type: Literal["chatbot"] = "chatbot"
    chatbot_config: str | None = None
    chatbot_model: str | None = None
    chatbot_prompt: str | None = None


class MqttTemplateMaterial(MaterialBase):
    type: Literal["mqtt_template"] = "mqtt_template"
    message_type: str | None = None
    message_text: str | None = None


class VoiceMaterial(MaterialBase):
    type: Literal["voice"] = "voice"
    voice_status: str = "notready"
    voice_asset_ids: list[int] = Field(default_factory=list)
    service_job_id: str | None = None


class DefaultMaterial(AssetCapableMaterial):
    type: Literal["default"] = "default"


AnyMaterial = Annotated[
    Union[
        ChecklistMaterial,
        WorkflowMaterial,
        QuestionnaireMaterial,
        QuizMaterial,
        VideoMaterial,
        ImageMaterial,
        PdfMaterial,
        UnityMaterial,
        ChatbotMaterial,
        MqttTemplateMaterial,
        VoiceMaterial,
        DefaultMaterial,
    ],
    Field(discriminator="type"),
]

MATERIAL_CLASSES: dict[MaterialType, type[MaterialBase]] = {
    MaterialType.CHECKLIST: ChecklistMaterial,
    MaterialType.WORKFLOW: WorkflowMaterial,
    MaterialType.QUESTIONNAIRE: QuestionnaireMaterial,
    MaterialType.QUIZ: QuizMaterial,
    MaterialType.VIDEO: VideoMaterial,
    MaterialType.IMAGE: ImageMaterial,
    MaterialType.PDF: PdfMaterial,
    MaterialType.UNITY: UnityMaterial,
    MaterialType.CHATBOT: ChatbotMaterial,
    MaterialType.MQTT_TEMPLATE: MqttTemplateMaterial,
    MaterialType.VOICE: VoiceMaterial,
    MaterialType.DEFAULT: DefaultMaterial,
}

_material_adapter: TypeAdapter[AnyMaterial] = TypeAdapter(AnyMaterial)


def parse_material(payload: dict[str, Any] | str | bytes) -> MaterialBase:
    """Parse a raw payload (dict or JSON) into its concrete variant."""
    try:
        if isinstance(payload, (str, bytes)):
            return _material_adapter.validate_json(payload)
        return _material_adapter.validate_python(payload)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        raise ValidationFailure("Invalid material payload", errors) from exc


# ========================================
# Quiz submissions
# ========================================


class SubmittedAnswer(BaseModel):
    answer_ids: list[int] | None = None
    value: Any = None
    text: str | None = None


class QuestionSubmission(BaseModel):
    question_id: int
    answer: SubmittedAnswer = Field(default_factory=SubmittedAnswer)


class QuizSubmission(BaseModel):
    program_id: int | None = None
    questions: list[QuestionSubmission] = Field(default_factory=list)


class QuestionResult(BaseModel):
    question_id: int
    question_type: str
    answer: SubmittedAnswer
    score_awarded: Decimal
    is_correct: bool


class ProcessedAnswers(BaseModel):
    """Serializable record of one evaluated submission, persisted per user."""

    version: int = 1
    submitted_at: datetime
    answers: list[QuestionResult] = Field(default_factory=list)
    total_score: Decimal = Decimal("0")


class SubmissionResponse(BaseModel):
    success: bool = True
    material_id: int
    program_id: int | None = None
    learning_path_id: int | None = None
    score: Decimal
    progress: int
    learning_path_progress: int | None = None
