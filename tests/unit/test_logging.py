import logging

import pytest

from taxroll_archive.utils import logging as log_utils
from taxroll_archive.utils.logging import get_logger, set_default_level


@pytest.fixture(autouse=True)
def restore_default_level():
    previous = log_utils._default_level
    yield
    set_default_level(previous)


class TestGetLogger:

    def test_module_loggers_follow_configured_level(self):
        logger = get_logger("taxroll_archive.tests.follows")

        set_default_level("WARNING")

        assert logger.level == logging.WARNING
        assert logger.handlers[0].level == logging.WARNING
        assert get_logger("taxroll_archive.tests.created_later").level == logging.WARNING

    def test_explicit_level_is_not_overridden(self):
        logger = get_logger("taxroll_archive.tests.pinned", level="DEBUG")

        set_default_level("ERROR")

        assert logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        assert get_logger("taxroll_archive.tests.unknown", level="LOUD").level == logging.INFO

    def test_repeated_calls_reuse_handler(self):
        get_logger("taxroll_archive.tests.reused")
        logger = get_logger("taxroll_archive.tests.reused")

        assert len(logger.handlers) == 1
