import logging
from pathlib import Path

from packsmith.foundation.logging_utils import LOG_FORMAT, setup_operational_logger


def test_operational_logger_writes_utf8_file(tmp_path: Path):
    logger, log_file = setup_operational_logger("test.packsmith.file", log_dir=str(tmp_path / "logs"))
    try:
        logger.info("Copied arrow → and accents é")
        for handler in logger.handlers:
            handler.flush()

        assert log_file == str(tmp_path / "logs" / "test.packsmith.file.log")
        with open(log_file, "r", encoding="utf-8") as file:
            content = file.read()
        assert "| INFO | Copied arrow → and accents é" in content
        assert "Operational logging initialized" in content
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()


def test_operational_logger_is_idempotent_and_stream_only_without_dir():
    setup_operational_logger("test.packsmith.stream")
    logger, log_file = setup_operational_logger("test.packsmith.stream", verbose=True)

    assert log_file is None
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.DEBUG
    assert logger.handlers[0].formatter._fmt == LOG_FORMAT
    assert logger.propagate is False
    logger.handlers.clear()
