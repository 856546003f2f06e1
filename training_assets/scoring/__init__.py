"""Quiz evaluation, submissions and progress tracking."""

from training_assets.scoring.evaluator import Evaluation, evaluate, evaluate_quiz
from training_assets.scoring.progress import ProgressTracker, calculate_progress
from training_assets.scoring.reports import (
    MaterialScore,
    QuizAttempt,
    QuizProgressReport,
    UserProgramSummary,
    UserProgress,
)
from training_assets.scoring.submissions import (
    MaterialCompletion,
    ProgramProgress,
    SubmissionService,
    UserMaterialDetail,
)

__all__ = [
    "Evaluation",
    "MaterialCompletion",
    "MaterialScore",
    "ProgramProgress",
    "ProgressTracker",
    "QuizAttempt",
    "QuizProgressReport",
    "SubmissionService",
    "UserMaterialDetail",
    "UserProgramSummary",
    "UserProgress",
    "calculate_progress",
    "evaluate",
    "evaluate_quiz",
]
