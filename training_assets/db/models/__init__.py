# SQLAlchemy models
from .base import Base
from .containers import LearningPath, ProgramLearningPath, TrainingProgram
from .materials import (
    ChecklistEntry,
    ImageAnnotation,
    Material,
    QuestionnaireEntry,
    QuizAnswer,
    QuizQuestion,
    VideoTimestamp,
    WorkflowStep,
)
from .progress import UserMaterialData, UserMaterialScore
from .relationships import MaterialRelationship, SubcomponentMaterialRelationship

__all__ = [
    "Base",
    # Materials
    "Material",
    "ChecklistEntry",
    "WorkflowStep",
    "QuestionnaireEntry",
    "VideoTimestamp",
    "ImageAnnotation",
    "QuizQuestion",
    "QuizAnswer",
    # Relationships
    "MaterialRelationship",
    "SubcomponentMaterialRelationship",
    # Containers
    "TrainingProgram",
    "LearningPath",
    "ProgramLearningPath",
    # Progress
    "UserMaterialData",
    "UserMaterialScore",
]
