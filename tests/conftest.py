"""Pytest configuration and shared fixtures."""

from collections.abc import Generator

import pytest
from loguru import logger


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collect loguru messages (level + text) emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda msg: messages.append(msg.record["level"].name + " " + msg.record["message"]),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)
