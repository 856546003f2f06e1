"""
Replace-Update Coordinator.

An update is a full-state replacement, never a field patch. Inside one
transaction the coordinator:

1. loads the existing material (NotFoundError if absent)
2. rejects a variant change (TypeMismatchError)
3. captures created_at, unique_id and, if the payload has none, asset_id
4. deletes the existing subcomponents
5. deletes the material row
6. inserts the new row under the same id with the captured fields and a
   fresh updated_at
7. inserts the payload's subcomponents
8. commits; any failure rolls the whole sequence back

The payload's `related` list, when present, is synchronized in the same
transaction. Identity, variant, existence and cycle checks all run before
the first write.
"""

from __future__ import annotations

from loguru import logger

from training_assets.db.database import SessionFactory, async_session_scope
from training_assets.db.models import Material
from training_assets.errors import NotFoundError, TypeMismatchError, ValidationFailure
from training_assets.graph.edges import check_contained_materials, sync_contained_materials
from training_assets.materials.children import (
    claimed_subcomponents,
    delete_children,
    drop_orphaned_edges,
    insert_children,
)
from training_assets.materials.rows import load_material, to_row, utcnow
from training_assets.materials.schemas import MaterialBase
from training_assets.materials.validation import validate_material
from training_assets.materials.variants import is_asset_capable


class ReplaceUpdateCoordinator:
    """Atomically swaps a stored material for a complete new payload."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self._session_factory = session_factory

    async def replace(self, material: MaterialBase, route_id: int | None = None) -> MaterialBase:
        if material.id is None:
            raise ValidationFailure("Material id is required for update")
        if route_id is not None and route_id != material.id:
            raise TypeMismatchError(f"Route id {route_id} does not match material id {material.id}")
        validate_material(material)

        material_id = material.id
        related_ids = [ref.id for ref in material.related] if material.related is not None else None

        async with async_session_scope(self._session_factory, f"replace material {material_id}") as session:
            existing = await session.get(Material, material_id)
            if existing is None:
                raise NotFoundError("Material", material_id)
            if existing.type != material.material_type.value:
                raise TypeMismatchError(
                    f"Cannot change material {material_id} from {existing.type} to {material.type}"
                )
            if related_ids is not None:
                await check_contained_materials(session, material_id, related_ids)

            created_at = existing.created_at
            unique_id = existing.unique_id
            asset_id = existing.asset_id

            owned = await delete_children(session, existing.type, material_id)
            kept = claimed_subcomponents(material, owned)
            await drop_orphaned_edges(session, owned, kept)

            await session.delete(existing)
            await session.flush()

            row = to_row(material, material_id=material_id, updated_at=utcnow())
            row.created_at = created_at
            row.unique_id = unique_id
            if is_asset_capable(row.type) and row.asset_id is None:
                row.asset_id = asset_id
            session.add(row)
            await session.flush()

            await insert_children(session, material, material_id, kept)
            if related_ids is not None:
                await sync_contained_materials(session, material_id, related_ids)

            replaced = await load_material(session, material_id)

        logger.info(f"Replaced {replaced.type} material {material_id} ('{replaced.name}')")
        return replaced
