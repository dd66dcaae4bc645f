# Structured logging
import logging
import os
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(module)s:%(lineno)d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_daily_log_path(log_dir: str) -> str:
    """Generate a log file path with the current date"""
    today = datetime.now().strftime("%Y-%m-%d")
    return os.path.join(log_dir, f"dbmd_{today}.log")


def setup_logging(name: str = __name__, level: int | str | None = None) -> logging.Logger:
    """Setup structured logging on stderr, plus a daily log file when DBMD_LOG_DIR is set.

    Args:
        name: The module name to attach to the logger.
        level: Optional logging level (int or string like 'INFO').
            If None, uses the DBMD_LOG_LEVEL environment variable or defaults to INFO.
    """
    logger = logging.getLogger(name)
    # Resolve configured log level (function arg > env var > default)
    if level is None:
        env_level = os.getenv("DBMD_LOG_LEVEL")
        level = env_level if env_level else logging.INFO
    if isinstance(level, str):
        # logging.getLevelName returns an int when given a known name like 'INFO'
        resolved_level = logging.getLevelName(level.upper())
        if not isinstance(resolved_level, int):
            resolved_level = logging.INFO
    else:
        resolved_level = int(level)
    logger.setLevel(resolved_level)
    logger.propagate = False  # prevent bubbling to root logger

    # Clear old handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    log_dir = os.getenv("DBMD_LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(get_daily_log_path(log_dir), mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(resolved_level)
        logger.addHandler(file_handler)

    # Console handler; StreamHandler writes to stderr so stdout stays free for artifacts.
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(resolved_level)
    logger.addHandler(console_handler)

    # Suppress noisy third-party logs globally
    for lib in ("sqlalchemy.engine", "sqlalchemy.pool", "urllib3"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return logger


def set_level(level: int | str) -> None:
    """Re-apply a level to every already configured dbmd logger."""
    for name in list(logging.root.manager.loggerDict):
        if name == "dbmd" or name.startswith("dbmd."):
            setup_logging(name, level)
