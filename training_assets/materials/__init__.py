"""
Material variants, payloads and persistence.

This module provides:
- MaterialType / SubcomponentType: the closed variant and subcomponent kinds
- Payload models: one pydantic model per variant, discriminated on `type`
- MaterialStore (materials.store): create, read, delete, asset linkage
- ReplaceUpdateCoordinator (materials.replace): full-state replacement on update
"""

from .schemas import (
    AnyMaterial,
    ChatbotMaterial,
    ChecklistMaterial,
    DefaultMaterial,
    ImageMaterial,
    MaterialBase,
    MqttTemplateMaterial,
    PdfMaterial,
    QuestionnaireMaterial,
    QuizMaterial,
    RelatedRef,
    UnityMaterial,
    VideoMaterial,
    VoiceMaterial,
    WorkflowMaterial,
    parse_material,
)
from .variants import ASSET_CAPABLE_TYPES, MaterialType, RelatedEntityType, SubcomponentType

__all__ = [
    "ASSET_CAPABLE_TYPES",
    "AnyMaterial",
    "ChatbotMaterial",
    "ChecklistMaterial",
    "DefaultMaterial",
    "ImageMaterial",
    "MaterialBase",
    "MaterialType",
    "MqttTemplateMaterial",
    "PdfMaterial",
    "QuestionnaireMaterial",
    "QuizMaterial",
    "RelatedEntityType",
    "RelatedRef",
    "SubcomponentType",
    "UnityMaterial",
    "VideoMaterial",
    "VoiceMaterial",
    "WorkflowMaterial",
    "parse_material",
]
