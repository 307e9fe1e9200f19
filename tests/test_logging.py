"""
Tests for logging configuration
"""
import logging

import pytest

from aquaassist.core.logging import setup_logging


class TestSetupLogging:
    """Test suite for setup_logging."""

    def teardown_method(self):
        logging.getLogger("aquaassist").setLevel(logging.NOTSET)

    def test_sets_package_level_and_quiets_clients(self):
        logger = setup_logging("debug")

        assert logger.name == "aquaassist"
        assert logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_repeated_calls_adjust_level(self):
        setup_logging("info")
        logger = setup_logging("error")

        assert logger.level == logging.ERROR

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            setup_logging("chatty")
