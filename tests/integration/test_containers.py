"""
Integration tests for training programs, learning paths and their materials.
"""

import pytest

from training_assets.errors import ConflictError, NotFoundError
from training_assets.materials.schemas import PdfMaterial


class TestContainerRegistry:
    @pytest.mark.asyncio
    async def test_create_and_get(self, registry):
        program = await registry.create_program("Onboarding", "First week")
        path = await registry.create_learning_path("Safety")

        assert (await registry.get_program(program.id)).name == "Onboarding"
        assert (await registry.get_learning_path(path.id)).name == "Safety"
        assert await registry.get_program(404) is None

    @pytest.mark.asyncio
    async def test_link_and_unlink(self, registry):
        program = await registry.create_program("Onboarding")
        first = await registry.create_learning_path("Safety")
        second = await registry.create_learning_path("Tools")

        assert await registry.link_learning_path(program.id, first.id)
        assert await registry.link_learning_path(program.id, second.id)
        assert not await registry.link_learning_path(program.id, first.id)
        assert await registry.list_program_learning_paths(program.id) == [first.id, second.id]

        assert await registry.unlink_learning_path(program.id, first.id)
        assert not await registry.unlink_learning_path(program.id, first.id)
        assert await registry.list_program_learning_paths(program.id) == [second.id]

    @pytest.mark.asyncio
    async def test_link_unknown(self, registry):
        program = await registry.create_program("Onboarding")
        with pytest.raises(NotFoundError):
            await registry.link_learning_path(program.id, 404)
        with pytest.raises(NotFoundError):
            await registry.list_program_learning_paths(404)


class TestContainerMaterials:
    @pytest.mark.asyncio
    async def test_learning_path_materials(self, store, graph, registry):
        path = await registry.create_learning_path("Safety")
        a = await store.create(PdfMaterial(name="A"))
        b = await store.create(PdfMaterial(name="B"))

        await graph.assign_to_learning_path(a.id, path.id)
        await graph.assign_to_learning_path(b.id, path.id)

        listed = await graph.list_learning_path_materials(path.id)
        assert [(m.material.name, m.display_order, m.relationship_type) for m in listed] == [
            ("A", 1, "contains"),
            ("B", 2, "contains"),
        ]

        assert await graph.reorder_learning_path(path.id, {a.id: 5, 999: 1}) == 1
        assert [m.material.name for m in await graph.list_learning_path_materials(path.id)] == ["B", "A"]

        assert await graph.remove_from_learning_path(a.id, path.id)
        assert not await graph.remove_from_learning_path(a.id, path.id)

    @pytest.mark.asyncio
    async def test_program_materials(self, store, graph, registry):
        program = await registry.create_program("Onboarding")
        pdf = await store.create(PdfMaterial(name="Handbook"))

        await graph.assign_to_training_program(pdf.id, program.id)
        with pytest.raises(ConflictError):
            await graph.assign_to_training_program(pdf.id, program.id)

        [listed] = await graph.list_training_program_materials(program.id)
        assert listed.material.id == pdf.id
        assert listed.relationship_type == "assigned"

        assert await graph.remove_from_training_program(pdf.id, program.id)
        assert await graph.list_training_program_materials(program.id) == []

    @pytest.mark.asyncio
    async def test_unknown_container_or_material(self, store, graph, registry):
        path = await registry.create_learning_path("Safety")
        pdf = await store.create(PdfMaterial(name="Handbook"))

        with pytest.raises(NotFoundError):
            await graph.assign_to_learning_path(pdf.id, 404)
        with pytest.raises(NotFoundError):
            await graph.assign_to_training_program(pdf.id, 404)
        with pytest.raises(NotFoundError):
            await graph.assign_to_learning_path(404, path.id)

    @pytest.mark.asyncio
    async def test_deleting_material_leaves_containers(self, store, graph, registry):
        path = await registry.create_learning_path("Safety")
        pdf = await store.create(PdfMaterial(name="Handbook"))
        await graph.assign_to_learning_path(pdf.id, path.id)

        await store.delete(pdf.id)

        assert await graph.list_learning_path_materials(path.id) == []
        assert (await registry.get_learning_path(path.id)) is not None
