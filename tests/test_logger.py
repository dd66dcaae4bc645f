import logging
from pathlib import Path

import pytest

from dbmd.utils.logger import get_daily_log_path, set_level, setup_logging


def test_level_from_argument_and_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    assert setup_logging("dbmd.test_logger.arg", "debug").level == logging.DEBUG
    monkeypatch.setenv("DBMD_LOG_LEVEL", "WARNING")
    assert setup_logging("dbmd.test_logger.env").level == logging.WARNING
    monkeypatch.delenv("DBMD_LOG_LEVEL")
    assert setup_logging("dbmd.test_logger.default").level == logging.INFO
    assert setup_logging("dbmd.test_logger.bogus", "LOUD").level == logging.INFO


def test_handlers_are_not_duplicated() -> None:
    setup_logging("dbmd.test_logger.dup")
    logger = setup_logging("dbmd.test_logger.dup")
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_log_dir_adds_daily_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DBMD_LOG_DIR", str(tmp_path / "logs"))
    logger = setup_logging("dbmd.test_logger.file", "INFO")
    try:
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        log_path = Path(get_daily_log_path(str(tmp_path / "logs")))
        assert log_path.name.startswith("dbmd_")
        assert "hello" in log_path.read_text(encoding="utf-8")
    finally:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)


def test_set_level_updates_project_loggers() -> None:
    logger = setup_logging("dbmd.test_logger.relevel", "INFO")
    set_level("ERROR")
    try:
        assert logger.level == logging.ERROR
        assert logging.getLogger("dbmd.schema_pipeline.pipeline").level == logging.ERROR
    finally:
        set_level("INFO")
