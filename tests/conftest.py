"""Fixtures shared by the whole test suite."""

from __future__ import annotations

import pytest
import logging
from typing import Generator

from puppetgraph.utils.logger import LOGGER_NAMESPACE, disable_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Undo whatever handlers a CLI invocation installed during a test."""
    root_logger = logging.getLogger(LOGGER_NAMESPACE)
    saved = (list(root_logger.handlers), root_logger.level, root_logger.propagate)

    yield

    disable_logging()
    root_logger.handlers[:] = saved[0]
    root_logger.setLevel(saved[1])
    root_logger.propagate = saved[2]
