"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Integration tests run against an in-memory SQLite database through
aiosqlite; every test gets a fresh schema.
"""
import sys
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings  # noqa: E402
from training_assets.db.database import init_db_async, make_session_factory  # noqa: E402
from training_assets.graph import ContainerRegistry, RelationshipGraph  # noqa: E402
from training_assets.materials.schemas import (  # noqa: E402
    QuizAnswerPayload,
    QuizMaterial,
    QuizQuestionPayload,
)
from training_assets.materials.store import MaterialStore  # noqa: E402
from training_assets.scoring import SubmissionService  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings for every test so monkeypatched env vars apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db_async(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return MaterialStore(session_factory)


@pytest.fixture
def graph(session_factory):
    return RelationshipGraph(session_factory)


@pytest.fixture
def registry(session_factory):
    return ContainerRegistry(session_factory)


@pytest.fixture
def submissions(session_factory):
    return SubmissionService(session_factory)


@pytest.fixture
def sample_quiz():
    """A quiz with one boolean, one checkboxes and one text question."""
    return QuizMaterial(
        name="Lockout/tagout quiz",
        description="Checks the lockout procedure",
        evaluation_mode=True,
        min_score=Decimal("5"),
        questions=[
            QuizQuestionPayload(
                question_number=1,
                question_type="boolean",
                text="Isolate energy sources before maintenance?",
                score=Decimal("5"),
                answers=[
                    QuizAnswerPayload(text="Yes", correct_answer=True),
                    QuizAnswerPayload(text="No", correct_answer=False),
                ],
            ),
            QuizQuestionPayload(
                question_number=2,
                question_type="checkboxes",
                text="Which devices are lockout devices?",
                score=Decimal("3"),
                answers=[
                    QuizAnswerPayload(text="Padlock", correct_answer=True),
                    QuizAnswerPayload(text="Hasp", correct_answer=True),
                    QuizAnswerPayload(text="Sticky note", correct_answer=False),
                ],
            ),
            QuizQuestionPayload(
                question_number=3,
                question_type="text",
                text="Describe the verification step.",
            ),
        ],
    )
