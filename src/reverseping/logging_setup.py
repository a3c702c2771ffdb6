"""Global structlog configuration."""

import logging as py_logging
import sys
from pathlib import Path
from typing import Optional

import structlog

from .config import LoggingConfig


def configure_logging(logging_config: LoggingConfig, log_file: Optional[Path] = None) -> None:
    """Configure stdlib logging and structlog once for the whole process.

    Records go to stderr and, when ``logging_config.file`` or ``log_file`` is
    set, are appended to that file as well.
    """
    level = getattr(py_logging, logging_config.level.upper(), py_logging.INFO)

    handlers: list[py_logging.Handler] = [py_logging.StreamHandler(sys.stderr)]
    target = logging_config.file or log_file
    if target is not None:
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(py_logging.FileHandler(target, encoding="utf-8"))

    py_logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False) if logging_config.format.lower() == "console"
            else structlog.processors.JSONRenderer(sort_keys=True)
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(__name__).debug("Logging configured.", level=logging_config.level, format=logging_config.format)
