"""
Material and subcomponent models.

All material variants share one table:
- `type` holds the variant tag (checklist, quiz, video, ...)
- variant-specific attributes are sparse nullable columns
- asset-capable variants (video, image, pdf, unity, default) use `asset_id`

Subcomponents live in per-kind tables, each owned by exactly one material
and ordered by `position`:
- checklist_entries, workflow_steps, questionnaire_entries
- video_timestamps, image_annotations
- quiz_questions -> quiz_answers
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, material_fk


class Material(Base):
    """
    A training material of any variant.

    The row is replaced wholesale on update: it is deleted and re-inserted
    with the same id, carrying `created_at`, `unique_id` and (when the new
    payload omits it) `asset_id` forward.
    """

    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    unique_id: Mapped[int | None] = mapped_column(Integer)
    asset_id: Mapped[int | None] = mapped_column(Integer, index=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # video
    video_path: Mapped[str | None] = mapped_column(Text)
    video_duration: Mapped[int | None] = mapped_column(Integer)
    video_resolution: Mapped[str | None] = mapped_column(Text)
    start_time: Mapped[str | None] = mapped_column(Text)
    annotations: Mapped[Any | None] = mapped_column(JSONType)

    # image
    image_path: Mapped[str | None] = mapped_column(Text)
    image_width: Mapped[int | None] = mapped_column(Integer)
    image_height: Mapped[int | None] = mapped_column(Integer)
    image_format: Mapped[str | None] = mapped_column(Text)

    # pdf
    pdf_path: Mapped[str | None] = mapped_column(Text)
    page_count: Mapped[int | None] = mapped_column(Integer)
    file_size: Mapped[int | None] = mapped_column(BigInteger)

    # unity
    unity_version: Mapped[str | None] = mapped_column(Text)
    unity_build_target: Mapped[str | None] = mapped_column(Text)
    unity_scene_name: Mapped[str | None] = mapped_column(Text)
    unity_json: Mapped[str | None] = mapped_column(Text)

    # chatbot
    chatbot_config: Mapped[str | None] = mapped_column(Text)
    chatbot_model: Mapped[str | None] = mapped_column(Text)
    chatbot_prompt: Mapped[str | None] = mapped_column(Text)

    # questionnaire
    questionnaire_config: Mapped[str | None] = mapped_column(Text)
    questionnaire_type: Mapped[str | None] = mapped_column(Text)
    passing_score: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    # mqtt_template
    message_type: Mapped[str | None] = mapped_column(Text)
    message_text: Mapped[str | None] = mapped_column(Text)

    # quiz
    evaluation_mode: Mapped[bool | None] = mapped_column(Boolean)
    min_score: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    # voice
    voice_status: Mapped[str | None] = mapped_column(Text)
    voice_asset_ids: Mapped[list[int] | None] = mapped_column(JSONType)
    service_job_id: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Material(id={self.id}, type='{self.type}', name='{self.name}')>"


class ChecklistEntry(Base):
    __tablename__ = "checklist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    title: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)


class QuestionnaireEntry(Base):
    __tablename__ = "questionnaire_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)


class VideoTimestamp(Base):
    __tablename__ = "video_timestamps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    title: Mapped[str | None] = mapped_column(Text)
    start_time: Mapped[str | None] = mapped_column(Text)
    end_time: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    timestamp_type: Mapped[str | None] = mapped_column("type", Text)


class ImageAnnotation(Base):
    __tablename__ = "image_annotations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    client_id: Mapped[str | None] = mapped_column(Text)  # client-generated id like "of1pw6n"
    text: Mapped[str | None] = mapped_column(Text)
    font_size: Mapped[int | None] = mapped_column(Integer)
    x: Mapped[float] = mapped_column(Float, default=0.0)
    y: Mapped[float] = mapped_column(Float, default=0.0)


class QuizQuestion(Base):
    """
    A quiz question.

    question_type: boolean, choice, checkboxes, scale or text
    (single-choice / multiple-choice are accepted aliases)
    """

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(material_fk(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    question_number: Mapped[int | None] = mapped_column(Integer)
    question_type: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    score: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    help_text: Mapped[str | None] = mapped_column(Text)
    allow_multiple: Mapped[bool] = mapped_column(Boolean, default=False)
    scale_config: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<QuizQuestion(id={self.id}, type='{self.question_type}')>"


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_questions.id", deferrable=True, initially="DEFERRED"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str | None] = mapped_column(Text)
    correct_answer: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int | None] = mapped_column(Integer)
    extra: Mapped[str | None] = mapped_column(Text)
