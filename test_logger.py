"""
Tests for the library logger setup.
"""

import logging

import pytest

from httpdoc import ConfigError
from httpdoc.logger import LOG_LEVEL_ENV, get_module_logger, parse_level, setup_logger


@pytest.fixture
def library_logger(monkeypatch):
    logger = logging.getLogger("httpdoc")
    handlers = list(logger.handlers)
    level = logger.level
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


def own_handlers(logger):
    return [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]


def test_module_loggers_are_children_of_the_library_logger():
    logger = get_module_logger("decoder")

    assert logger.name == "httpdoc.decoder"
    assert logger.parent is logging.getLogger("httpdoc")


def test_library_is_silent_until_configured():
    assert any(isinstance(h, logging.NullHandler) for h in logging.getLogger("httpdoc").handlers)


def test_repeated_setup_only_changes_the_level(library_logger):
    setup_logger(level=logging.INFO)
    setup_logger(level="debug")

    handlers = own_handlers(library_logger)
    assert len(handlers) == 1
    assert library_logger.level == logging.DEBUG
    assert handlers[0].level == logging.DEBUG


def test_setup_reads_level_from_environment(library_logger, monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "warning")

    setup_logger()

    assert library_logger.level == logging.WARNING


def test_setup_writes_to_log_file(library_logger, tmp_path):
    log_file = tmp_path / "httpdoc.log"

    setup_logger(level=logging.INFO, log_file=str(log_file))
    get_module_logger("document").info("Loaded https://example.com/")
    for handler in own_handlers(library_logger):
        handler.flush()

    assert "httpdoc.document - INFO - Loaded https://example.com/" in log_file.read_text()


@pytest.mark.parametrize("value,expected", [
    (None, logging.INFO),
    ("", logging.INFO),
    (logging.ERROR, logging.ERROR),
    (" Debug ", logging.DEBUG),
    ("WARN", logging.WARNING),
])
def test_parse_level(value, expected):
    assert parse_level(value) == expected


def test_parse_level_rejects_unknown_names():
    with pytest.raises(ConfigError) as excinfo:
        parse_level("chatty")

    assert excinfo.value.details["variable"] == LOG_LEVEL_ENV
