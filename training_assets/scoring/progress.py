"""
Progress Tracker.

Progress is the share of a container's materials the user has a score
record for, as a rounded percentage. Training programs and learning paths
are tracked independently; program membership includes the materials of
the program's learning paths.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import MaterialRelationship, UserMaterialScore
from training_assets.graph.containers import (
    learning_path_material_ids,
    program_learning_path_ids,
    program_material_ids,
    require_learning_path,
    require_program,
)
from training_assets.materials.variants import RelatedEntityType


def calculate_progress(
    completed_ids: Iterable[int],
    container_ids: Iterable[int],
    newly_completed: int | None = None,
) -> int:
    """
    Percentage of `container_ids` found in `completed_ids`.

    An empty container counts as complete. `newly_completed` is treated as
    completed even if its score record is not yet visible.
    """
    container = set(container_ids)
    if not container:
        return 100

    completed = set(completed_ids) & container
    if newly_completed is not None and newly_completed in container:
        completed.add(newly_completed)
    # round() is half-to-even
    return round(len(completed) / len(container) * 100)


async def scored_material_ids(session: AsyncSession, user_id: str, material_ids: Iterable[int]) -> set[int]:
    """Materials among `material_ids` with a score record for the user."""
    ids = list(material_ids)
    if not ids:
        return set()
    rows = await session.scalars(
        select(UserMaterialScore.material_id).where(
            UserMaterialScore.user_id == user_id,
            UserMaterialScore.material_id.in_(ids),
        )
    )
    return set(rows)


async def container_progress(
    session: AsyncSession,
    user_id: str,
    material_ids: list[int],
    newly_completed: int | None = None,
) -> int:
    completed = await scored_material_ids(session, user_id, material_ids)
    return calculate_progress(completed, material_ids, newly_completed)


async def program_progress(
    session: AsyncSession, user_id: str, program_id: int, newly_completed: int | None = None
) -> int:
    members = await program_material_ids(session, program_id)
    return await container_progress(session, user_id, members, newly_completed)


async def learning_path_progress(
    session: AsyncSession, user_id: str, learning_path_id: int, newly_completed: int | None = None
) -> int:
    members = await learning_path_material_ids(session, learning_path_id)
    return await container_progress(session, user_id, members, newly_completed)


async def program_membership(session: AsyncSession, program_id: int, material_id: int) -> tuple[bool, int | None]:
    """
    Whether a material belongs to a program and through which learning path.

    Returns (is_member, learning_path_id). A learning path containing the
    material is attributed even when the material is also assigned directly.
    """
    path_ids = await program_learning_path_ids(session, program_id)
    if path_ids:
        path_ref = await session.scalar(
            select(MaterialRelationship.related_entity_id)
            .where(
                MaterialRelationship.material_id == material_id,
                MaterialRelationship.related_entity_type == RelatedEntityType.LEARNING_PATH.value,
                MaterialRelationship.related_entity_id.in_([str(p) for p in path_ids]),
            )
            .order_by(MaterialRelationship.id)
            .limit(1)
        )
        if path_ref is not None:
            return True, int(path_ref)

    direct = await session.scalar(
        select(MaterialRelationship.id)
        .where(
            MaterialRelationship.material_id == material_id,
            MaterialRelationship.related_entity_type == RelatedEntityType.TRAINING_PROGRAM.value,
            MaterialRelationship.related_entity_id == str(program_id),
        )
        .limit(1)
    )
    return direct is not None, None


class ProgressTracker:
    """Store-backed progress for a user within a program or learning path."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    async def calculate_progress(
        self,
        user_id: str,
        material_ids: list[int],
        newly_completed: int | None = None,
    ) -> int:
        async with async_session_scope(self._session_factory, "calculate progress") as session:
            return await container_progress(session, user_id, material_ids, newly_completed)

    async def get_program_progress(self, user_id: str, program_id: int) -> int:
        async with async_session_scope(self._session_factory, "calculate program progress") as session:
            await require_program(session, program_id)
            return await program_progress(session, user_id, program_id)

    async def get_learning_path_progress(self, user_id: str, learning_path_id: int) -> int:
        async with async_session_scope(self._session_factory, "calculate learning path progress") as session:
            await require_learning_path(session, learning_path_id)
            return await learning_path_progress(session, user_id, learning_path_id)
