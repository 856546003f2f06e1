"""
Material Store.

Persistence and polymorphic dispatch for material variants. Every public
operation runs in its own transaction; a failure while writing children
or edges rolls back the material row as well.

Usage:
    store = MaterialStore()
    quiz = await store.create(QuizMaterial(name="Safety quiz", questions=[...]))
    same = await store.get(quiz.id)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger
from sqlalchemy import delete, select

from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import Material, UserMaterialData, UserMaterialScore
from training_assets.errors import NotFoundError, TypeMismatchError
from training_assets.graph.edges import purge_material_edges, sync_contained_materials
from training_assets.materials.children import delete_children, drop_orphaned_edges, insert_children
from training_assets.materials.replace import ReplaceUpdateCoordinator
from training_assets.materials.rows import from_row, load_material, to_row, utcnow
from training_assets.materials.schemas import MaterialBase
from training_assets.materials.validation import validate_material
from training_assets.materials.variants import ASSET_CAPABLE_TYPES, MaterialType, to_material_type

VOICE_READY = "ready"
VOICE_PROCESSING = "process"
VOICE_NOT_READY = "notready"


def aggregate_voice_status(statuses: Iterable[str]) -> str:
    """
    Combine per-asset processing states into one material state.

    Any asset processing -> "process"; all ready -> "ready"; otherwise
    (including no assets) -> "notready".
    """
    statuses = list(statuses)
    if not statuses:
        return VOICE_NOT_READY
    if any(s == VOICE_PROCESSING for s in statuses):
        return VOICE_PROCESSING
    if all(s == VOICE_READY for s in statuses):
        return VOICE_READY
    return VOICE_NOT_READY


class MaterialStore:
    """CRUD, asset linkage and status accessors for materials of every variant."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    def _scope(self, operation: str):
        return async_session_scope(self._session_factory, operation)

    # ========================================
    # Create
    # ========================================

    async def create(self, material: MaterialBase) -> MaterialBase:
        """Persist a material with the children carried in its payload."""
        return await self.create_complete(material)

    async def create_complete(
        self,
        material: MaterialBase,
        children: Mapping[str, list[Any]] | None = None,
    ) -> MaterialBase:
        """
        Persist a material and its subcomponents in one transaction.

        `children` maps a collection name (entries, steps, questions, ...)
        to items that replace the payload's own collection.
        """
        if children:
            material = type(material).model_validate({**material.model_dump(), **children})
        validate_material(material)

        now = utcnow()
        async with self._scope("create material") as session:
            row = to_row(material, created_at=now, updated_at=now)
            row.id = None
            session.add(row)
            await session.flush()

            await insert_children(session, material, row.id)
            if material.related is not None:
                await sync_contained_materials(session, row.id, [ref.id for ref in material.related])

            created = await load_material(session, row.id)

        logger.info(f"Created {created.type} material {created.id} ('{created.name}')")
        return created

    # ========================================
    # Read
    # ========================================

    async def get(self, material_id: int) -> MaterialBase | None:
        """Get a material with children and containment references, or None."""
        async with self._scope("get material") as session:
            return await load_material(session, material_id)

    get_complete = get

    async def get_of_variant(self, material_id: int, variant: str | MaterialType) -> MaterialBase | None:
        """Get a material only if it has the given variant."""
        material = await self.get(material_id)
        if material is None or material.material_type != to_material_type(variant):
            return None
        return material

    async def list_all(self, include_children: bool = False) -> list[MaterialBase]:
        """
        List all materials ordered by id.

        Without `include_children` the payloads carry empty child collections
        and no `related` references.
        """
        async with self._scope("list materials") as session:
            if include_children:
                ids = list(await session.scalars(select(Material.id).order_by(Material.id)))
                return [await load_material(session, mid) for mid in ids]
            rows = await session.scalars(select(Material).order_by(Material.id))
            return [from_row(row) for row in rows]

    async def list_of_variant(self, variant: str | MaterialType, include_children: bool = False) -> list[MaterialBase]:
        material_type = to_material_type(variant)
        if material_type is None:
            return []
        async with self._scope("list materials") as session:
            rows = list(
                await session.scalars(
                    select(Material).where(Material.type == material_type.value).order_by(Material.id)
                )
            )
            if include_children:
                return [await load_material(session, row.id) for row in rows]
            return [from_row(row) for row in rows]

    async def exists(self, material_id: int) -> bool:
        async with self._scope("check material") as session:
            found = await session.scalar(select(Material.id).where(Material.id == material_id))
            return found is not None

    # ========================================
    # Update / Delete
    # ========================================

    async def update(self, material: MaterialBase, route_id: int | None = None) -> MaterialBase:
        """Replace the stored material with the payload (full-state replacement)."""
        return await ReplaceUpdateCoordinator(self._session_factory).replace(material, route_id=route_id)

    async def delete(self, material_id: int) -> bool:
        """
        Delete a material with its subcomponents, every edge touching it and
        the user records referencing it. Returns False if it does not exist.
        """
        async with self._scope(f"delete material {material_id}") as session:
            row = await session.get(Material, material_id)
            if row is None:
                return False

            owned = await delete_children(session, row.type, material_id)
            await drop_orphaned_edges(session, owned)
            edges = await purge_material_edges(session, material_id)
            await session.execute(delete(UserMaterialData).where(UserMaterialData.material_id == material_id))
            await session.execute(delete(UserMaterialScore).where(UserMaterialScore.material_id == material_id))
            await session.delete(row)

        logger.info(f"Deleted material {material_id} ({edges} relationships removed)")
        return True

    # ========================================
    # Asset linkage
    # ========================================

    async def assign_asset(self, material_id: int, asset_id: int) -> bool:
        """Link a file asset; False if the material is missing or cannot hold assets."""
        async with self._scope("assign asset") as session:
            row = await session.get(Material, material_id)
            if row is None or to_material_type(row.type) not in ASSET_CAPABLE_TYPES:
                return False
            row.asset_id = asset_id
            row.updated_at = utcnow()
        logger.info(f"Assigned asset {asset_id} to material {material_id}")
        return True

    async def remove_asset(self, material_id: int) -> bool:
        async with self._scope("remove asset") as session:
            row = await session.get(Material, material_id)
            if row is None or to_material_type(row.type) not in ASSET_CAPABLE_TYPES:
                return False
            row.asset_id = None
            row.updated_at = utcnow()
        logger.info(f"Removed asset from material {material_id}")
        return True

    async def get_asset_id(self, material_id: int) -> int | None:
        async with self._scope("get asset") as session:
            row = await session.get(Material, material_id)
            if row is None or to_material_type(row.type) not in ASSET_CAPABLE_TYPES:
                return None
            return row.asset_id

    async def get_by_asset_id(self, asset_id: int) -> list[MaterialBase]:
        """Asset-capable materials referencing the given asset."""
        async with self._scope("find materials by asset") as session:
            rows = await session.scalars(
                select(Material)
                .where(
                    Material.asset_id == asset_id,
                    Material.type.in_([t.value for t in ASSET_CAPABLE_TYPES]),
                )
                .order_by(Material.id)
            )
            return [from_row(row) for row in rows]

    # ========================================
    # Voice assets and processing status
    # ========================================

    async def _voice_row(self, session, voice_id: int) -> Material | None:
        row = await session.get(Material, voice_id)
        if row is None or row.type != MaterialType.VOICE.value:
            return None
        return row

    async def add_voice_asset(self, voice_id: int, asset_id: int) -> bool:
        async with self._scope("add voice asset") as session:
            row = await self._voice_row(session, voice_id)
            if row is None:
                return False
            asset_ids = list(row.voice_asset_ids or [])
            if asset_id not in asset_ids:
                row.voice_asset_ids = [*asset_ids, asset_id]
                row.updated_at = utcnow()
                logger.info(f"Added asset {asset_id} to voice material {voice_id}")
        return True

    async def remove_voice_asset(self, voice_id: int, asset_id: int) -> bool:
        async with self._scope("remove voice asset") as session:
            row = await self._voice_row(session, voice_id)
            if row is None:
                return False
            asset_ids = list(row.voice_asset_ids or [])
            if asset_id in asset_ids:
                row.voice_asset_ids = [a for a in asset_ids if a != asset_id]
                row.updated_at = utcnow()
                logger.info(f"Removed asset {asset_id} from voice material {voice_id}")
        return True

    async def get_voice_asset_ids(self, voice_id: int) -> list[int]:
        async with self._scope("get voice assets") as session:
            row = await self._voice_row(session, voice_id)
            return list(row.voice_asset_ids or []) if row else []

    async def set_processing_status(self, voice_id: int, status: str, job_id: str | None = None) -> MaterialBase:
        """Record the processing state reported by the external status poller."""
        async with self._scope("set processing status") as session:
            row = await self._voice_row(session, voice_id)
            if row is None:
                raise NotFoundError("Voice material", voice_id)
            row.voice_status = status
            if job_id is not None:
                row.service_job_id = job_id
            row.updated_at = utcnow()
            await session.flush()
            return from_row(row)

    async def refresh_voice_status(self, voice_id: int, asset_statuses: Mapping[int, str]) -> str:
        """
        Recompute the voice status from per-asset states and persist it when it changed.

        Assets of the material missing from `asset_statuses` are ignored.
        """
        async with self._scope("refresh voice status") as session:
            row = await self._voice_row(session, voice_id)
            if row is None:
                raise NotFoundError("Voice material", voice_id)
            statuses = [asset_statuses[a] for a in (row.voice_asset_ids or []) if a in asset_statuses]
            status = aggregate_voice_status(statuses)
            if row.voice_status != status:
                row.voice_status = status
                row.updated_at = utcnow()
                logger.info(f"Updated voice material {voice_id} status to {status}")
            return status

    async def require(self, material_id: int, variant: str | MaterialType | None = None) -> MaterialBase:
        """Get a material or raise NotFoundError; TypeMismatchError if the variant differs."""
        material = await self.get(material_id)
        if material is None:
            raise NotFoundError("Material", material_id)
        if variant is not None and material.material_type != to_material_type(variant):
            raise TypeMismatchError(
                f"Material {material_id} is a {material.type}, not a {to_material_type(variant) or variant}"
            )
        return material
