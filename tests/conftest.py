"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from atomic_mastery.config import Settings
from atomic_mastery.core.state import Element, LessonStructure


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings isolated from the environment and .env file."""
    return Settings(_env_file=None, log_file=None, mastery_retry_base_delay=0.0)


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def two_element_lesson():
    """Lesson with A(weight=1, order=1) -> B(weight=1, order=2)."""
    return LessonStructure(
        lesson_id="lesson-1",
        elements=[
            Element(id="A", title="Atom A", weight=1, order=1),
            Element(id="B", title="Atom B", weight=1, order=2),
        ],
    )


@pytest.fixture
def single_element_lesson():
    return LessonStructure(
        lesson_id="lesson-solo",
        elements=[Element(id="X", title="Only atom", weight=1, order=1)],
    )
