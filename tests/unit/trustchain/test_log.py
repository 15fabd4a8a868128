# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import logging

import pytest
from rich.logging import RichHandler

from trustchain import log


@pytest.fixture
def root_logger():
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


def _added(logger, handler_type):
    return [h for h in logger.handlers if type(h) is handler_type]


def test_logs_dir_follows_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    assert log.logs_dir() == tmp_path / "trustchain" / "logs"


def test_prepare_logfile(tmp_path):
    logfile = log.prepare_logfile(tmp_path / "logs")

    assert logfile.parent.is_dir()
    assert logfile.name.startswith("trustchain-")
    assert logfile.suffix == ".log"


def test_setup_root_logging(root_logger, tmp_path):
    logfile = tmp_path / "trustchain.log"

    log.setup_root_logging(logfile)
    logging.getLogger("trustchain.test").debug("debug message")

    [console_handler] = _added(root_logger, RichHandler)
    assert console_handler.level == logging.WARNING
    [file_handler] = _added(root_logger, logging.FileHandler)
    file_handler.flush()
    assert "debug message" in logfile.read_text()


def test_setup_root_logging_verbose(root_logger):
    log.setup_root_logging(verbose=True)

    [console_handler] = _added(root_logger, RichHandler)
    assert console_handler.level == logging.DEBUG
    assert _added(root_logger, logging.FileHandler) == []
