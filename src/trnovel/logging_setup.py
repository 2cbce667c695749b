"""Logging setup with a per-run log file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .error_log import ErrorLogStore
from .utils import ensure_dir

LOGGER_NAME = "trnovel"


@dataclass
class LoggingContext:
    root_dir: Path
    run_id: str
    log_level: int
    console_level: int
    logger: logging.Logger
    formatter: logging.Formatter
    error_log_store: ErrorLogStore
    log_path: Path


def initialize_logging(config: Config, run_id: str) -> LoggingContext:
    root_dir = ensure_dir(config.paths.logs)
    log_level = _parse_log_level(config.logging.level)
    console_level = _parse_log_level(config.logging.console_level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(min(log_level, console_level))
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_path = root_dir / f"run-{run_id}.log"
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    error_log_store = ErrorLogStore(ensure_dir(config.paths.errors))

    return LoggingContext(
        root_dir=root_dir,
        run_id=run_id,
        log_level=log_level,
        console_level=console_level,
        logger=logger,
        formatter=formatter,
        error_log_store=error_log_store,
        log_path=log_path,
    )


def _parse_log_level(level: str) -> int:
    value = getattr(logging, level.upper(), logging.INFO)
    return value if isinstance(value, int) else logging.INFO
