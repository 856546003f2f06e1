"""
Quiz progress reports.

Read-only summaries built on the score records: attempts and average score
per quiz, per program and per learning path, and a single user's progress
across every program they have records in.

Passing `user_id` to a quiz report restricts it to that user's records.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.models import Material, TrainingProgram, UserMaterialScore
from training_assets.errors import NotFoundError
from training_assets.graph.containers import (
    learning_path_material_ids,
    program_material_ids,
    require_learning_path,
    require_program,
)
from training_assets.materials.variants import MaterialType
from training_assets.scoring.progress import calculate_progress, scored_material_ids

QUIZ = MaterialType.QUIZ.value


@dataclass
class QuizAttempt:
    """One user's latest result on one quiz."""
    user_id: str
    material_id: int
    material_name: str
    score: Decimal
    progress: int
    program_id: int | None = None
    program_name: str | None = None
    updated_at: datetime | None = None


@dataclass
class QuizProgressReport:
    """Aggregated quiz results for a quiz, program, learning path or the whole store."""
    scope: str
    scope_id: int | None
    name: str
    total_quizzes: int
    total_users: int
    total_attempts: int
    average_score: Decimal
    attempts: list[QuizAttempt] = field(default_factory=list)


@dataclass
class MaterialScore:
    material_id: int
    name: str
    type: str
    score: Decimal
    completed: bool


@dataclass
class UserProgramSummary:
    program_id: int
    name: str
    progress: int
    materials: list[MaterialScore] = field(default_factory=list)


@dataclass
class UserProgress:
    """Everything a user has completed, grouped by program."""
    user_id: str
    progress: int
    programs: list[UserProgramSummary] = field(default_factory=list)
    standalone_materials: list[MaterialScore] = field(default_factory=list)


def average_score(attempts: list[QuizAttempt]) -> Decimal:
    if not attempts:
        return Decimal("0")
    return sum((a.score for a in attempts), Decimal("0")) / len(attempts)


async def quiz_ids_among(session: AsyncSession, material_ids: Iterable[int]) -> list[int]:
    """The quiz materials among `material_ids`, order preserved."""
    ids = list(material_ids)
    if not ids:
        return []
    quizzes = set(
        await session.scalars(select(Material.id).where(Material.id.in_(ids), Material.type == QUIZ))
    )
    return [mid for mid in ids if mid in quizzes]


async def quiz_attempts(
    session: AsyncSession,
    quiz_ids: list[int],
    user_id: str | None = None,
) -> list[QuizAttempt]:
    """Score records on the given quizzes, ordered by user then material."""
    if not quiz_ids:
        return []
    query = (
        select(UserMaterialScore, Material.name, TrainingProgram.name)
        .join(Material, Material.id == UserMaterialScore.material_id)
        .outerjoin(TrainingProgram, TrainingProgram.id == UserMaterialScore.program_id)
        .where(UserMaterialScore.material_id.in_(quiz_ids))
        .order_by(UserMaterialScore.user_id, UserMaterialScore.material_id)
    )
    if user_id is not None:
        query = query.where(UserMaterialScore.user_id == user_id)

    result = await session.execute(query)
    return [
        QuizAttempt(
            user_id=record.user_id,
            material_id=record.material_id,
            material_name=material_name,
            score=record.score,
            progress=record.progress,
            program_id=record.program_id,
            program_name=program_name,
            updated_at=record.updated_at,
        )
        for record, material_name, program_name in result.all()
    ]


def _report(
    scope: str, scope_id: int | None, name: str, quiz_ids: list[int], attempts: list[QuizAttempt]
) -> QuizProgressReport:
    return QuizProgressReport(
        scope=scope,
        scope_id=scope_id,
        name=name,
        total_quizzes=len(quiz_ids),
        total_users=len({a.user_id for a in attempts}),
        total_attempts=len(attempts),
        average_score=average_score(attempts),
        attempts=attempts,
    )


async def overall_quiz_report(session: AsyncSession, user_id: str | None = None) -> QuizProgressReport:
    quiz_ids = list(await session.scalars(select(Material.id).where(Material.type == QUIZ).order_by(Material.id)))
    attempts = await quiz_attempts(session, quiz_ids, user_id)
    return _report("all", None, "", quiz_ids, attempts)


async def program_quiz_report(
    session: AsyncSession, program_id: int, user_id: str | None = None
) -> QuizProgressReport:
    program = await require_program(session, program_id)
    quiz_ids = await quiz_ids_among(session, await program_material_ids(session, program_id))
    attempts = await quiz_attempts(session, quiz_ids, user_id)
    return _report("program", program_id, program.name, quiz_ids, attempts)


async def learning_path_quiz_report(
    session: AsyncSession, learning_path_id: int, user_id: str | None = None
) -> QuizProgressReport:
    path = await require_learning_path(session, learning_path_id)
    quiz_ids = await quiz_ids_among(session, await learning_path_material_ids(session, learning_path_id))
    attempts = await quiz_attempts(session, quiz_ids, user_id)
    return _report("learning_path", learning_path_id, path.name, quiz_ids, attempts)


async def material_quiz_report(
    session: AsyncSession, material_id: int, user_id: str | None = None
) -> QuizProgressReport:
    material = await session.get(Material, material_id)
    if material is None or material.type != QUIZ:
        raise NotFoundError("Quiz material", material_id)
    attempts = await quiz_attempts(session, [material_id], user_id)
    return _report("material", material_id, material.name, [material_id], attempts)


async def user_progress(session: AsyncSession, user_id: str) -> UserProgress:
    """
    A user's progress in every program they have score records for.

    Records without a program are listed as standalone materials. The
    overall progress is 100 once the user has any record and 0 otherwise.
    """
    records = list(
        await session.scalars(
            select(UserMaterialScore)
            .where(UserMaterialScore.user_id == user_id)
            .order_by(UserMaterialScore.material_id)
        )
    )
    scores = {r.material_id: r.score for r in records}

    program_ids = sorted({r.program_id for r in records if r.program_id is not None})
    programs = []
    for program_id in program_ids:
        program = await session.get(TrainingProgram, program_id)
        if program is None:
            continue
        members = await program_material_ids(session, program_id)
        completed = await scored_material_ids(session, user_id, members)
        materials = await _materials(session, members)
        programs.append(
            UserProgramSummary(
                program_id=program_id,
                name=program.name,
                progress=calculate_progress(completed, members),
                materials=[
                    MaterialScore(m.id, m.name, m.type, scores.get(m.id, Decimal("0")), m.id in completed)
                    for m in materials
                ],
            )
        )

    standalone_ids = [r.material_id for r in records if r.program_id is None]
    standalone = [
        MaterialScore(m.id, m.name, m.type, scores[m.id], True) for m in await _materials(session, standalone_ids)
    ]

    return UserProgress(
        user_id=user_id,
        progress=100 if records else 0,
        programs=programs,
        standalone_materials=standalone,
    )


async def _materials(session: AsyncSession, material_ids: list[int]) -> list[Material]:
    if not material_ids:
        return []
    rows = {m.id: m for m in await session.scalars(select(Material).where(Material.id.in_(material_ids)))}
    return [rows[mid] for mid in material_ids if mid in rows]
