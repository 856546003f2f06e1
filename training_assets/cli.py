"""
Training Assets CLI.

Maintenance and inspection commands for the material repository.

Commands:
- training-assets db init                        - Create tables
- training-assets material show ID               - Print a material as JSON
- training-assets material import FILE           - Create a material from JSON
- training-assets graph hierarchy ID             - Render the containment tree
- training-assets graph check-cycle PARENT CHILD - Test a containment edge
- training-assets graph config                   - Show relationship graph settings
- training-assets progress program USER ID       - Program progress for a user
- training-assets progress learning-path USER ID - Learning path progress for a user
- training-assets progress user USER             - Progress across all programs for a user
- training-assets progress quiz ID               - Attempts and average score for a quiz
"""
from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable
from pathlib import Path
from typing import Optional, TypeVar

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.syntax import Syntax
from rich.tree import Tree
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from training_assets.db.database import dispose_async_engine, init_db
from training_assets.errors import TrainingAssetError, ValidationFailure
from training_assets.graph import HierarchyNode, RelationshipGraph
from training_assets.materials.schemas import parse_material
from training_assets.materials.store import MaterialStore
from training_assets.scoring import ProgressTracker, SubmissionService

T = TypeVar("T")

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="training-assets",
    help="Training material repository tools",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management")
material_app = typer.Typer(help="Material inspection and import")
graph_app = typer.Typer(help="Relationship graph inspection")
progress_app = typer.Typer(help="User progress")

app.add_typer(db_app, name="db")
app.add_typer(material_app, name="material")
app.add_typer(graph_app, name="graph")
app.add_typer(progress_app, name="progress")

console = Console()


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, translating domain errors into a red message and exit code 1."""

    async def runner() -> T:
        try:
            return await coro
        finally:
            await dispose_async_engine()

    try:
        return asyncio.run(runner())
    except ValidationFailure as exc:
        rprint(f"[red]✗ {exc}[/red]")
        for error in exc.errors:
            rprint(f"  [red]- {error}[/red]")
        raise typer.Exit(code=1)
    except TrainingAssetError as exc:
        rprint(f"[red]✗ {exc}[/red]")
        raise typer.Exit(code=1)


# =============================================================================
# db
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """Create all tables."""
    try:
        init_db()
    except SQLAlchemyError as exc:
        rprint(f"[red]✗ Could not initialize database: {exc.__class__.__name__}[/red]")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database tables initialized")


# =============================================================================
# material
# =============================================================================


@material_app.command("show")
def material_show(material_id: int = typer.Argument(..., help="Material id")) -> None:
    """Print a material with its children and related references."""
    material = _run(MaterialStore().get(material_id))
    if material is None:
        rprint(f"[red]✗ Material {material_id} not found[/red]")
        raise typer.Exit(code=1)
    console.print(Syntax(material.model_dump_json(indent=2), "json"))


@material_app.command("import")
def material_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON payload file"),
) -> None:
    """Create a material from a JSON payload."""
    try:
        material = parse_material(path.read_bytes())
    except ValidationFailure as exc:
        rprint(f"[red]✗ {exc}[/red]")
        for error in exc.errors:
            rprint(f"  [red]- {error}[/red]")
        raise typer.Exit(code=1)

    created = _run(MaterialStore().create(material))
    rprint(f"[green]✓[/green] Created {created.type} material [bold]{created.id}[/bold] ({created.name})")


# =============================================================================
# graph
# =============================================================================


def _add_nodes(branch: Tree, nodes: list[HierarchyNode]) -> None:
    for node in nodes:
        label = f"[bold]{node.material.name}[/bold] [dim]#{node.material.id} {node.material.type}[/dim]"
        if node.display_order is not None:
            label = f"{node.display_order}. {label}"
        _add_nodes(branch.add(label), node.children)


@graph_app.command("hierarchy")
def graph_hierarchy(
    material_id: int = typer.Argument(..., help="Root material id"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", help="Levels to expand"),
) -> None:
    """Render the containment tree under a material."""
    hierarchy = _run(RelationshipGraph().get_hierarchy(material_id, max_depth))
    tree = Tree(f"[bold cyan]{hierarchy.root.name}[/bold cyan] [dim]#{hierarchy.root.id} {hierarchy.root.type}[/dim]")
    _add_nodes(tree, hierarchy.children)
    console.print(tree)
    rprint(f"[dim]{hierarchy.total_materials} materials, depth {hierarchy.total_depth}[/dim]")


@graph_app.command("check-cycle")
def graph_check_cycle(
    parent_id: int = typer.Argument(..., help="Parent material id"),
    child_id: int = typer.Argument(..., help="Child material id"),
) -> None:
    """Report whether PARENT contains CHILD would create a cycle."""
    if _run(RelationshipGraph().would_create_cycle(parent_id, child_id)):
        rprint(f"[red]✗[/red] {parent_id} -> {child_id} would create a circular reference")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] {parent_id} -> {child_id} is safe")


@graph_app.command("config")
def graph_config() -> None:
    """Show the relationship graph settings."""
    for key, value in get_settings().get_graph_config().items():
        rprint(f"[cyan]{key}[/cyan]: {value}")


# =============================================================================
# progress
# =============================================================================


@progress_app.command("program")
def progress_program(
    user_id: str = typer.Argument(..., help="User id"),
    program_id: int = typer.Argument(..., help="Training program id"),
) -> None:
    """Show a user's progress through a training program."""
    progress = _run(ProgressTracker().get_program_progress(user_id, program_id))
    rprint(f"Program {program_id}: [bold]{progress}%[/bold] complete for {user_id}")


@progress_app.command("learning-path")
def progress_learning_path(
    user_id: str = typer.Argument(..., help="User id"),
    learning_path_id: int = typer.Argument(..., help="Learning path id"),
) -> None:
    """Show a user's progress through a learning path."""
    progress = _run(ProgressTracker().get_learning_path_progress(user_id, learning_path_id))
    rprint(f"Learning path {learning_path_id}: [bold]{progress}%[/bold] complete for {user_id}")


@progress_app.command("user")
def progress_user(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Show a user's progress in every program they have records in."""
    progress = _run(SubmissionService().get_user_progress(user_id))
    for program in progress.programs:
        done = sum(1 for m in program.materials if m.completed)
        rprint(
            f"[bold]{program.name}[/bold] #{program.program_id}: "
            f"{program.progress}% ({done}/{len(program.materials)})"
        )
    for material in progress.standalone_materials:
        rprint(f"[dim]standalone[/dim] {material.name} #{material.material_id}: score {material.score}")
    if not progress.programs and not progress.standalone_materials:
        rprint(f"[yellow]No progress recorded for {user_id}[/yellow]")


@progress_app.command("quiz")
def progress_quiz(
    material_id: int = typer.Argument(..., help="Quiz material id"),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's attempts"),
) -> None:
    """Show attempts and the average score for a quiz."""
    report = _run(SubmissionService().get_material_quiz_progress(material_id, user_id))
    rprint(f"[bold]{report.name}[/bold]: {report.total_attempts} attempts, average score {report.average_score:.2f}")
    for attempt in report.attempts:
        rprint(f"  {attempt.user_id}: {attempt.score} ({attempt.progress}%)")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """CLI entry point."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")

    app()


if __name__ == "__main__":
    run()
