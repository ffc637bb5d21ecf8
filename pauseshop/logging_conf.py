"""Logging setup: structlog events rendered as JSON by stdlib handlers.

Everything lives under ``<PAUSESHOP_HOME>/logs``::

    pauseshop.log            application events (INFO and up)
    error.log                errors only
    providers/<name>.log     one file per search provider
"""

from __future__ import annotations

import logging
import logging.config
import os
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

ROOT_LOGGER = "pauseshop"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGING_INITIALISED = False


@dataclass(frozen=True)
class LogPaths:
    root: Path

    @classmethod
    def current(cls) -> "LogPaths":
        home = os.environ.get("PAUSESHOP_HOME")
        base = Path(home).expanduser().resolve() if home else Path(__file__).resolve().parents[1]
        return cls(base / "logs")

    @property
    def app(self) -> Path:
        return self.root / "pauseshop.log"

    @property
    def errors(self) -> Path:
        return self.root / "error.log"

    @property
    def providers(self) -> Path:
        return self.root / "providers"

    def provider(self, name: str) -> Path:
        return self.providers / f"{name}.log"

    def ensure(self) -> None:
        self.providers.mkdir(parents=True, exist_ok=True)
        for path in (self.app, self.errors):
            path.touch(exist_ok=True)


def _logging_config(paths: LogPaths, verbose: bool) -> dict[str, Any]:
    level = "DEBUG" if verbose else "INFO"

    def file_handler(path: Path, handler_level: str) -> dict[str, Any]:
        return {
            "class": "logging.FileHandler",
            "level": handler_level,
            "filename": str(path),
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT}},
        "handlers": {
            # rich owns the terminal; raw events only show with --verbose
            "console": {"class": "logging.StreamHandler", "level": level if verbose else "WARNING", "formatter": "json"},
            "app_file": file_handler(paths.app, "INFO"),
            "error_file": file_handler(paths.errors, "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "app_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers once per process; later calls can only raise verbosity."""

    global _LOGGING_INITIALISED
    paths = LogPaths.current()
    paths.ensure()
    if _LOGGING_INITIALISED:
        if verbose:
            root = logging.getLogger(ROOT_LOGGER)
            root.setLevel(logging.DEBUG)
            for handler in root.handlers:
                if not isinstance(handler, logging.FileHandler):
                    handler.setLevel(logging.DEBUG)
        return structlog.get_logger(ROOT_LOGGER)

    logging.config.dictConfig(_logging_config(paths, verbose))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def _attach_file(logger_name: str, path: Path) -> None:
    py_logger = logging.getLogger(logger_name)
    target = str(path)
    for handler in py_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.INFO)
    shared = logging.getLogger(ROOT_LOGGER).handlers
    if shared:
        handler.setFormatter(shared[0].formatter)
    py_logger.addHandler(handler)


def provider_logger(provider_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to one provider; its events also land in ``providers/<name>.log``."""

    configure_logging(verbose)
    logger_name = f"{ROOT_LOGGER}.provider.{provider_name}"
    _attach_file(logger_name, LogPaths.current().provider(provider_name))
    return structlog.get_logger(logger_name).bind(provider=provider_name)


def log_file(provider_name: str | None = None) -> Path:
    paths = LogPaths.current()
    return paths.provider(provider_name) if provider_name else paths.app


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=max(line_count, 0)))


__all__ = ["LogPaths", "configure_logging", "log_file", "provider_logger", "tail_log"]
