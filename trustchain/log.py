# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import datetime
import logging
import os
from pathlib import Path

from rich.logging import RichHandler

LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def logs_dir() -> Path:
    """Directory holding the log files, following the XDG layout."""
    state_home = os.environ.get("XDG_STATE_HOME") or Path.home() / ".local/state"
    return Path(state_home) / "trustchain" / "logs"


def prepare_logfile(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S.%f")
    return directory / f"trustchain-{timestamp}.log"


def setup_root_logging(logfile: Path | None = None, verbose: bool = False):
    """Log everything to the logfile and warnings to the console.

    :param logfile: file receiving debug logs, none when not set
    :param verbose: also show debug logs on the console
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    console_handler = RichHandler(show_path=False, rich_tracebacks=verbose)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(console_handler)

    if logfile:
        file_handler = logging.FileHandler(logfile)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        LOG.debug(f"Logging to {logfile}")

    # lightkube's http client is chatty at debug level
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
