# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

import logging
from collections.abc import Generator

import pytest
import structlog

from src.core.config import clear_settings_cache
from src.infrastructure.events import reset_event_bus
from src.utils.logging import clear_context, remove_handler


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_singletons() -> Generator[None, None, None]:
    """Reset cached settings and the event bus around every test."""
    clear_settings_cache()
    reset_event_bus()
    yield
    clear_settings_cache()
    reset_event_bus()


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def sample_course_id() -> str:
    """Provide a sample course ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440002"


@pytest.fixture
def sample_term_id() -> str:
    """Provide a sample term ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440003"


@pytest.fixture
def sample_teacher_id() -> str:
    """Provide a sample teacher ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440004"


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Undo setup_logging: handler, levels, structlog config and context."""
    root = logging.getLogger()
    root_level = root.level
    yield
    remove_handler(root)
    root.setLevel(root_level)
    logging.getLogger("src").setLevel(logging.NOTSET)
    clear_context()
    structlog.reset_defaults()
