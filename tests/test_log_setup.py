"""
tests/test_log_setup.py

Tests for console and rotating file logging setup.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from hearts_cfr.config import LoggingConfig
from hearts_cfr.log_setup import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_creates_named_log_file(tmp_path, root_logger):
    cfg = LoggingConfig(log_dir=str(tmp_path / "logs"), log_file_prefix="unit")
    path = setup_logging(cfg, run_name="abc")
    assert path.endswith("unit_run_abc.log")

    logging.getLogger("hearts_cfr.test").debug("hello from a test")
    for handler in root_logger.handlers:
        handler.flush()
    assert "hello from a test" in open(path, encoding="utf-8").read()


def test_handler_levels(tmp_path, root_logger):
    cfg = LoggingConfig(
        log_dir=str(tmp_path), log_level_console="WARNING", log_level_file="INFO", log_max_bytes=1024
    )
    setup_logging(cfg, run_name="levels")
    file_handlers = [h for h in root_logger.handlers if isinstance(h, RotatingFileHandler)]
    console_handlers = [h for h in root_logger.handlers if not isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1 and len(console_handlers) == 1
    assert file_handlers[0].level == logging.INFO
    assert file_handlers[0].maxBytes == 1024
    assert console_handlers[0].level == logging.WARNING
    assert root_logger.level == logging.INFO
