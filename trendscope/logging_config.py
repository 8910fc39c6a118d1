from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from trendscope.config import AppSettings
from trendscope.telemetry import TELEMETRY_LOGGER_NAME

ROOT_LOGGER_NAME = "trendscope"
LOG_FILE_NAME = "trendscope.log"
TELEMETRY_LOG_FILE_NAME = "trendscope-telemetry.log"

_PRE_CHAIN: tuple[Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
)


@dataclass(frozen=True)
class LogTargets:
    application: Path
    telemetry: Path

    @classmethod
    def under(cls, log_dir: Path) -> LogTargets:
        return cls(
            application=log_dir / LOG_FILE_NAME,
            telemetry=log_dir / TELEMETRY_LOG_FILE_NAME,
        )


def configure_application_logging(settings: AppSettings) -> Path:
    """
    Install handlers for the `trendscope` logger tree and return the JSON log path.

    The console shows records at `settings.log_level`; the JSON file under
    `settings.log_dir` keeps everything from DEBUG up. Telemetry records are written
    to a separate JSON file only. Reconfiguring replaces handlers from earlier calls.
    """
    targets = LogTargets.under(settings.log_dir)
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    _configure_structlog()

    console_level = resolve_log_level(settings.log_level)
    app_logger = _claim_logger(ROOT_LOGGER_NAME, level=logging.DEBUG)
    app_logger.addHandler(_console_handler(sys.stdout, level=console_level))
    app_logger.addHandler(_json_file_handler(targets.application, level=logging.DEBUG))

    telemetry_logger = _claim_logger(TELEMETRY_LOGGER_NAME, level=logging.INFO)
    telemetry_logger.addHandler(_json_file_handler(targets.telemetry, level=logging.INFO))

    app_logger.info(
        "logging configured console_level=%s log_file=%s telemetry_file=%s",
        logging.getLevelName(console_level),
        targets.application,
        targets.telemetry,
    )
    return targets.application


def resolve_log_level(raw_level: str) -> int:
    level = logging.getLevelName(raw_level.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _claim_logger(name: str, *, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def _console_handler(stream: TextIO, *, level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=list(_PRE_CHAIN),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=_is_tty(stream)),
            ],
        )
    )
    return handler


def _json_file_handler(path: Path, *, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=list(_PRE_CHAIN),
            processors=[
                _add_callsite,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
        )
    )
    return handler


def _add_callsite(_logger: logging.Logger, _method_name: str, event_dict: EventDict) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict.update(module=record.module, lineno=record.lineno, func_name=record.funcName)
    return event_dict


def _is_tty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, OSError, ValueError):
        return False
