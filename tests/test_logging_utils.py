"""Tests for shared logging helpers."""

import logging
from unittest.mock import patch

import pytest

from common import logging_utils
from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    with patch.object(logging_utils, "_CONFIGURED", False):
        yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Test root logger setup."""

    def test_installs_one_handler(self, root_logger):
        before = len(root_logger.handlers)
        configure_logging("DEBUG")
        configure_logging("WARNING")
        assert len(root_logger.handlers) == before + 1
        assert root_logger.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, root_logger):
        configure_logging("chatty")
        assert root_logger.level == logging.INFO


class TestHelpers:
    """Test structured extras and timing."""

    def test_extra_context_drops_none(self):
        assert extra_context(event="resolve", package=None, steps=3) == {"event": "resolve", "steps": 3}

    def test_debug_gate(self):
        logger = logging.getLogger("relock.test.gate")
        logger.setLevel(logging.INFO)
        assert not is_debug_enabled(logger)
        logger.setLevel(logging.DEBUG)
        assert is_debug_enabled(logger)

    def test_timer(self):
        with patch("common.logging_utils.time.perf_counter", side_effect=[1.0, 1.25]):
            with Timer() as timer:
                pass
        assert timer.duration_ms() == 250.0
