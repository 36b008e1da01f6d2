"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    name: str = "packsmith",
    *,
    log_dir: str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str | None]:
    """
    Configure the operational logger for a CLI run.

    Logs go to stderr and, when `log_dir` is given, to a UTF-8 file under it.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{name}.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Operational logging initialized (file=%s)", log_file or "<none>")
    return logger, log_file
