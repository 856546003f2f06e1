"""
Training programs and learning paths.

Containers group materials; a learning path may be linked into several
programs. Material membership itself is stored as material relationship
edges (see RelationshipGraph).
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import LearningPath, MaterialRelationship, ProgramLearningPath, TrainingProgram
from training_assets.errors import NotFoundError
from training_assets.materials.variants import RelatedEntityType


@dataclass
class ContainerInfo:
    id: int
    name: str
    description: str | None = None


async def require_program(session: AsyncSession, program_id: int) -> TrainingProgram:
    program = await session.get(TrainingProgram, program_id)
    if program is None:
        raise NotFoundError("Training program", program_id)
    return program


async def require_learning_path(session: AsyncSession, learning_path_id: int) -> LearningPath:
    path = await session.get(LearningPath, learning_path_id)
    if path is None:
        raise NotFoundError("Learning path", learning_path_id)
    return path


async def program_learning_path_ids(session: AsyncSession, program_id: int) -> list[int]:
    rows = await session.scalars(
        select(ProgramLearningPath.learning_path_id)
        .where(ProgramLearningPath.training_program_id == program_id)
        .order_by(ProgramLearningPath.learning_path_id)
    )
    return list(rows)


class ContainerRegistry:
    """Create and link training programs and learning paths."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    def _scope(self, operation: str):
        return async_session_scope(self._session_factory, operation)

    async def create_program(self, name: str, description: str | None = None) -> ContainerInfo:
        async with self._scope("create training program") as session:
            program = TrainingProgram(name=name, description=description)
            session.add(program)
            await session.flush()
            info = ContainerInfo(program.id, program.name, program.description)
        logger.info(f"Created training program {info.id} ('{name}')")
        return info

    async def create_learning_path(self, name: str, description: str | None = None) -> ContainerInfo:
        async with self._scope("create learning path") as session:
            path = LearningPath(name=name, description=description)
            session.add(path)
            await session.flush()
            info = ContainerInfo(path.id, path.name, path.description)
        logger.info(f"Created learning path {info.id} ('{name}')")
        return info

    async def get_program(self, program_id: int) -> ContainerInfo | None:
        async with self._scope("get training program") as session:
            program = await session.get(TrainingProgram, program_id)
            return ContainerInfo(program.id, program.name, program.description) if program else None

    async def get_learning_path(self, learning_path_id: int) -> ContainerInfo | None:
        async with self._scope("get learning path") as session:
            path = await session.get(LearningPath, learning_path_id)
            return ContainerInfo(path.id, path.name, path.description) if path else None

    async def link_learning_path(self, program_id: int, learning_path_id: int) -> bool:
        """Add a learning path to a program; False if it was already linked."""
        async with self._scope("link learning path") as session:
            await require_program(session, program_id)
            await require_learning_path(session, learning_path_id)
            if await session.get(ProgramLearningPath, (program_id, learning_path_id)):
                return False
            session.add(ProgramLearningPath(training_program_id=program_id, learning_path_id=learning_path_id))
        logger.info(f"Linked learning path {learning_path_id} to program {program_id}")
        return True

    async def unlink_learning_path(self, program_id: int, learning_path_id: int) -> bool:
        async with self._scope("unlink learning path") as session:
            result = await session.execute(
                delete(ProgramLearningPath).where(
                    ProgramLearningPath.training_program_id == program_id,
                    ProgramLearningPath.learning_path_id == learning_path_id,
                )
            )
        if not result.rowcount:
            return False
        logger.info(f"Unlinked learning path {learning_path_id} from program {program_id}")
        return True

    async def list_program_learning_paths(self, program_id: int) -> list[int]:
        async with self._scope("list program learning paths") as session:
            await require_program(session, program_id)
            return await program_learning_path_ids(session, program_id)


async def container_material_ids(session: AsyncSession, entity_type: str, entity_id: int) -> list[int]:
    """Ids of materials linked to a container, in display order."""
    rows = await session.scalars(
        select(MaterialRelationship.material_id)
        .where(
            MaterialRelationship.related_entity_type == entity_type,
            MaterialRelationship.related_entity_id == str(entity_id),
        )
        .order_by(MaterialRelationship.display_order.is_(None), MaterialRelationship.display_order, MaterialRelationship.id)
    )
    return list(dict.fromkeys(rows))


async def learning_path_material_ids(session: AsyncSession, learning_path_id: int) -> list[int]:
    return await container_material_ids(session, RelatedEntityType.LEARNING_PATH.value, learning_path_id)


async def program_material_ids(session: AsyncSession, program_id: int) -> list[int]:
    """Materials of a program: direct assignments plus those of its learning paths."""
    members = await container_material_ids(session, RelatedEntityType.TRAINING_PROGRAM.value, program_id)
    for path_id in await program_learning_path_ids(session, program_id):
        members.extend(await learning_path_material_ids(session, path_id))
    return list(dict.fromkeys(members))
