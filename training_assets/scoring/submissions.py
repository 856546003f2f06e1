"""
Quiz submissions and completion records.

A submission is evaluated, stored as the user's latest processed answers
and scored; program and learning-path progress are recalculated in the
same transaction.

Usage:
    service = SubmissionService()
    response = await service.submit_answers("alice", quiz_id, QuizSubmission(...))
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import Material, UserMaterialData, UserMaterialScore
from training_assets.errors import NotFoundError, ValidationFailure
from training_assets.graph.containers import program_material_ids, require_learning_path, require_program
from training_assets.materials.rows import load_material, utcnow
from training_assets.materials.schemas import ProcessedAnswers, QuizSubmission, SubmissionResponse
from training_assets.materials.variants import MaterialType
from training_assets.scoring.evaluator import evaluate_quiz
from training_assets.scoring.progress import (
    calculate_progress,
    learning_path_progress,
    program_membership,
    program_progress,
    scored_material_ids,
)
from training_assets.scoring.reports import (
    QuizProgressReport,
    UserProgress,
    learning_path_quiz_report,
    material_quiz_report,
    overall_quiz_report,
    program_quiz_report,
    user_progress,
)


@dataclass
class UserMaterialDetail:
    """A user's stored submission and score for one material."""
    user_id: str
    material_id: int
    data: ProcessedAnswers | None
    score: Decimal | None = None
    progress: int | None = None
    program_id: int | None = None
    learning_path_id: int | None = None
    updated_at: datetime | None = None


@dataclass
class MaterialCompletion:
    material_id: int
    completed: bool
    score: Decimal | None = None


@dataclass
class ProgramProgress:
    """Progress of one user through a training program."""
    user_id: str
    program_id: int
    progress: int
    completed: int
    total: int
    materials: list[MaterialCompletion] = field(default_factory=list)


class SubmissionService:
    """Evaluate quiz submissions and record material completion."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    def _scope(self, operation: str):
        return async_session_scope(self._session_factory, operation)

    # ========================================
    # Record upserts
    # ========================================

    async def _upsert_data(
        self,
        session: AsyncSession,
        user_id: str,
        material_id: int,
        program_id: int | None,
        learning_path_id: int | None,
        processed: ProcessedAnswers,
    ) -> None:
        now = utcnow()
        record = await session.scalar(
            select(UserMaterialData).where(
                UserMaterialData.user_id == user_id,
                UserMaterialData.material_id == material_id,
            )
        )
        if record is None:
            record = UserMaterialData(user_id=user_id, material_id=material_id, created_at=now)
            session.add(record)
        record.data = processed.model_dump(mode="json")
        record.program_id = program_id
        record.learning_path_id = learning_path_id
        record.updated_at = now

    async def _upsert_score(
        self,
        session: AsyncSession,
        user_id: str,
        material_id: int,
        program_id: int | None,
        learning_path_id: int | None,
        score: Decimal | None,
    ) -> UserMaterialScore:
        """Create or update the score record; `score=None` keeps an existing score."""
        record = await session.scalar(
            select(UserMaterialScore).where(
                UserMaterialScore.user_id == user_id,
                UserMaterialScore.material_id == material_id,
            )
        )
        if record is None:
            record = UserMaterialScore(user_id=user_id, material_id=material_id, score=Decimal("0"), progress=0)
            session.add(record)
        if score is not None:
            record.score = score
        record.program_id = program_id
        record.learning_path_id = learning_path_id
        record.updated_at = utcnow()
        await session.flush()
        return record

    async def _attribute(
        self,
        session: AsyncSession,
        material_id: int,
        program_id: int | None,
        learning_path_id: int | None = None,
    ) -> int | None:
        """Check program membership and return the learning path to attribute."""
        if program_id is None:
            return learning_path_id
        await require_program(session, program_id)
        is_member, found_path = await program_membership(session, program_id, material_id)
        if not is_member:
            raise ValidationFailure(f"Material {material_id} is not part of program {program_id}")
        return learning_path_id if learning_path_id is not None else found_path

    async def _progress(
        self,
        session: AsyncSession,
        user_id: str,
        material_id: int,
        program_id: int | None,
        learning_path_id: int | None,
    ) -> tuple[int, int | None]:
        progress = 100
        if program_id is not None:
            progress = await program_progress(session, user_id, program_id, material_id)
        path_progress = None
        if learning_path_id is not None:
            path_progress = await learning_path_progress(session, user_id, learning_path_id, material_id)
        return progress, path_progress

    # ========================================
    # Submissions
    # ========================================

    async def submit_answers(self, user_id: str, material_id: int, submission: QuizSubmission) -> SubmissionResponse:
        """
        Evaluate a quiz submission, store it and return score and progress.

        Raises:
            NotFoundError: the quiz or program does not exist
            ValidationFailure: the quiz is not part of the given program
        """
        program_id = submission.program_id
        async with self._scope(f"submit answers for material {material_id}") as session:
            row = await session.get(Material, material_id)
            if row is None or row.type != MaterialType.QUIZ.value:
                raise NotFoundError("Quiz material", material_id)
            quiz = await load_material(session, material_id)

            learning_path_id = await self._attribute(session, material_id, program_id)
            if learning_path_id is not None:
                logger.info(
                    f"Material {material_id} belongs to learning path {learning_path_id} within program {program_id}"
                )

            processed = evaluate_quiz(quiz, submission)
            await self._upsert_data(session, user_id, material_id, program_id, learning_path_id, processed)
            score_record = await self._upsert_score(
                session, user_id, material_id, program_id, learning_path_id, processed.total_score
            )

            progress, path_progress = await self._progress(
                session, user_id, material_id, program_id, learning_path_id
            )
            score_record.progress = progress

        logger.info(
            f"User {user_id} submitted answers for material {material_id}: "
            f"score {processed.total_score}, progress {progress}, learning path progress {path_progress}"
        )
        return SubmissionResponse(
            success=True,
            material_id=material_id,
            program_id=program_id,
            learning_path_id=learning_path_id,
            score=processed.total_score,
            progress=progress,
            learning_path_progress=path_progress,
        )

    async def mark_material_complete(
        self,
        user_id: str,
        material_id: int,
        program_id: int | None = None,
        learning_path_id: int | None = None,
    ) -> SubmissionResponse:
        """Record a material as completed without evaluation; an existing score is kept."""
        async with self._scope(f"mark material {material_id} complete") as session:
            return await self._mark_complete(session, user_id, material_id, program_id, learning_path_id)

    async def _mark_complete(
        self,
        session: AsyncSession,
        user_id: str,
        material_id: int,
        program_id: int | None,
        learning_path_id: int | None,
    ) -> SubmissionResponse:
        if await session.get(Material, material_id) is None:
            raise NotFoundError("Material", material_id)
        if learning_path_id is not None:
            await require_learning_path(session, learning_path_id)
        learning_path_id = await self._attribute(session, material_id, program_id, learning_path_id)

        record = await self._upsert_score(session, user_id, material_id, program_id, learning_path_id, None)
        progress, path_progress = await self._progress(session, user_id, material_id, program_id, learning_path_id)
        record.progress = progress

        logger.info(f"User {user_id} completed material {material_id} (progress {progress})")
        return SubmissionResponse(
            success=True,
            material_id=material_id,
            program_id=program_id,
            learning_path_id=learning_path_id,
            score=record.score,
            progress=progress,
            learning_path_progress=path_progress,
        )

    async def bulk_mark_complete(
        self,
        user_id: str,
        material_ids: Iterable[int],
        program_id: int | None = None,
    ) -> list[SubmissionResponse]:
        """Mark several materials complete in one transaction; missing materials are skipped."""
        results = []
        async with self._scope("bulk mark complete") as session:
            for material_id in material_ids:
                if await session.get(Material, material_id) is None:
                    logger.warning(f"Material {material_id} not found; skipping completion for {user_id}")
                    continue
                results.append(await self._mark_complete(session, user_id, material_id, program_id, None))
        return results

    # ========================================
    # Queries
    # ========================================

    async def get_user_material_detail(self, user_id: str, material_id: int) -> UserMaterialDetail | None:
        """The stored processed answers and score of a user for a material, or None."""
        async with self._scope("get user material detail") as session:
            record = await session.scalar(
                select(UserMaterialData).where(
                    UserMaterialData.user_id == user_id,
                    UserMaterialData.material_id == material_id,
                )
            )
            if record is None:
                return None
            score = await session.scalar(
                select(UserMaterialScore).where(
                    UserMaterialScore.user_id == user_id,
                    UserMaterialScore.material_id == material_id,
                )
            )

            data = None
            if record.data is not None:
                try:
                    data = ProcessedAnswers.model_validate(record.data)
                except ValidationError:
                    logger.warning(f"Stored answers of {user_id} for material {material_id} are unreadable")

            return UserMaterialDetail(
                user_id=user_id,
                material_id=material_id,
                data=data,
                score=score.score if score else None,
                progress=score.progress if score else None,
                program_id=record.program_id,
                learning_path_id=record.learning_path_id,
                updated_at=record.updated_at,
            )

    async def get_program_progress(self, program_id: int, user_id: str | None = None) -> list[ProgramProgress]:
        """
        Per-user progress through a program.

        With `user_id` the result holds exactly that user; otherwise every
        user with a score record for a program material is listed.
        """
        async with self._scope("get program progress") as session:
            await require_program(session, program_id)
            members = await program_material_ids(session, program_id)

            if user_id is not None:
                users = [user_id]
            elif members:
                users = sorted(
                    set(
                        await session.scalars(
                            select(UserMaterialScore.user_id).where(UserMaterialScore.material_id.in_(members))
                        )
                    )
                )
            else:
                users = []

            results = []
            for user in users:
                completed = await scored_material_ids(session, user, members)
                scores = {}
                if completed:
                    rows = await session.execute(
                        select(UserMaterialScore.material_id, UserMaterialScore.score).where(
                            UserMaterialScore.user_id == user,
                            UserMaterialScore.material_id.in_(completed),
                        )
                    )
                    scores = dict(rows.all())
                results.append(
                    ProgramProgress(
                        user_id=user,
                        program_id=program_id,
                        progress=calculate_progress(completed, members),
                        completed=len(completed),
                        total=len(members),
                        materials=[
                            MaterialCompletion(mid, mid in completed, scores.get(mid)) for mid in members
                        ],
                    )
                )
            return results

    # ========================================
    # Quiz reports
    # ========================================

    async def get_quiz_progress(self, user_id: str | None = None) -> QuizProgressReport:
        """Results on every quiz in the store."""
        async with self._scope("get quiz progress") as session:
            return await overall_quiz_report(session, user_id)

    async def get_material_quiz_progress(self, material_id: int, user_id: str | None = None) -> QuizProgressReport:
        """Attempts and average score for one quiz; raises NotFoundError for a non-quiz."""
        async with self._scope("get material quiz progress") as session:
            return await material_quiz_report(session, material_id, user_id)

    async def get_program_quiz_progress(self, program_id: int, user_id: str | None = None) -> QuizProgressReport:
        async with self._scope("get program quiz progress") as session:
            return await program_quiz_report(session, program_id, user_id)

    async def get_learning_path_quiz_progress(
        self, learning_path_id: int, user_id: str | None = None
    ) -> QuizProgressReport:
        async with self._scope("get learning path quiz progress") as session:
            return await learning_path_quiz_report(session, learning_path_id, user_id)

    async def get_user_progress(self, user_id: str) -> UserProgress:
        """A user's progress across all programs they have records in, plus standalone materials."""
        async with self._scope("get user progress") as session:
            return await user_progress(session, user_id)
