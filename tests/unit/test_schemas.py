"""
Unit tests for material payload parsing and structural validation.
"""

import json
from decimal import Decimal

import pytest

from training_assets.errors import ValidationFailure
from training_assets.materials.schemas import (
    ChecklistMaterial,
    ImageMaterial,
    QuizMaterial,
    VideoMaterial,
    VoiceMaterial,
    parse_material,
)
from training_assets.materials.validation import normalize_question_type, validate_material
from training_assets.materials.variants import MaterialType


class TestParseMaterial:
    def test_discriminator_selects_variant(self):
        material = parse_material({"type": "checklist", "name": "Pre-flight", "entries": [{"text": "Fuel"}]})

        assert isinstance(material, ChecklistMaterial)
        assert material.material_type is MaterialType.CHECKLIST
        assert material.entries[0].text == "Fuel"

    def test_json_payload(self):
        payload = json.dumps({"type": "video", "name": "Intro", "asset_id": 4, "timestamps": [{"title": "Start"}]})
        material = parse_material(payload)

        assert isinstance(material, VideoMaterial)
        assert material.asset_id == 4
        assert material.timestamps[0].title == "Start"

    def test_image_annotations_are_children(self):
        material = parse_material(
            {"type": "image", "name": "Panel", "annotations": [{"client_id": "a1", "text": "Valve", "x": 0.5}]}
        )
        assert isinstance(material, ImageMaterial)
        assert material.annotations[0].x == 0.5

    def test_related_refs_read_ids(self):
        material = parse_material({"type": "default", "name": "Bundle", "related": [{"id": 3}, {"id": 4}]})
        assert [ref.id for ref in material.related] == [3, 4]

    def test_related_absent_is_none(self):
        material = parse_material({"type": "pdf", "name": "Manual"})
        assert material.related is None

    def test_voice_defaults(self):
        material = parse_material({"type": "voice", "name": "Narration"})
        assert isinstance(material, VoiceMaterial)
        assert material.voice_status == "notready"
        assert material.voice_asset_ids == []

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationFailure) as exc_info:
            parse_material({"type": "hologram", "name": "X"})
        assert exc_info.value.errors

    def test_missing_type_rejected(self):
        with pytest.raises(ValidationFailure):
            parse_material({"name": "No type"})

    def test_question_type_required(self):
        with pytest.raises(ValidationFailure) as exc_info:
            parse_material({"type": "quiz", "questions": [{"text": "Q?"}]})
        assert any("question_type" in e for e in exc_info.value.errors)


class TestQuizValidation:
    def quiz(self, *questions):
        return QuizMaterial.model_validate({"name": "Quiz", "questions": list(questions)})

    def test_valid_quiz_passes(self):
        validate_material(
            self.quiz(
                {"question_type": "boolean", "answers": [{"text": "T"}, {"text": "F"}]},
                {"question_type": "checkboxes", "answers": [{"text": "A"}, {"text": "B"}, {"text": "C"}]},
                {"question_type": "scale", "scale_config": "1-5"},
                {"question_type": "text"},
            )
        )

    def test_boolean_needs_two_answers(self):
        with pytest.raises(ValidationFailure) as exc_info:
            validate_material(self.quiz({"question_type": "boolean", "answers": [{"text": "T"}]}))
        assert "exactly 2" in exc_info.value.errors[0]

    def test_choice_needs_two_answers(self):
        with pytest.raises(ValidationFailure):
            validate_material(self.quiz({"question_type": "single-choice", "answers": [{"text": "A"}]}))

    def test_scale_needs_config(self):
        with pytest.raises(ValidationFailure):
            validate_material(self.quiz({"question_type": "scale"}))

    def test_all_errors_reported(self):
        with pytest.raises(ValidationFailure) as exc_info:
            validate_material(
                self.quiz(
                    {"question_type": "boolean"},
                    {"question_type": "text"},
                    {"question_type": "scale"},
                )
            )
        errors = exc_info.value.errors
        assert len(errors) == 2
        assert errors[0].startswith("questions[0]")
        assert errors[1].startswith("questions[2]")

    def test_non_quiz_skipped(self):
        validate_material(ChecklistMaterial(name="Anything"))

    def test_score_is_decimal(self):
        quiz = self.quiz({"question_type": "text", "score": "2.5"})
        assert quiz.questions[0].score == Decimal("2.5")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Boolean", "boolean"),
        (" single-choice ", "choice"),
        ("multiple-choice", "checkboxes"),
        ("SCALE", "scale"),
        (None, ""),
    ],
)
def test_normalize_question_type(raw, expected):
    assert normalize_question_type(raw) == expected
