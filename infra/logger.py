"""
Pipeline logging for scanwiki.

Every phase gets its own PipelineLogger, which writes:
- human-readable lines to the console
- one JSON object per record to {workspace}/.logs/{stage}.jsonl

Structured context is passed as keyword arguments and ends up both in the
JSON record and (for item/page) in the console prefix:

    logger = create_logger("build-ocr", log_dir=workspace / ".logs")
    logger.info("Uploaded", item="book", page=12)
    logger.warning("OCR fetch failed after retries", item="book", error=str(e))

Handlers are created lazily on the first record so that reading status never
creates an empty log directory.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


CONTEXT_FIELDS = (
    'workspace',
    'stage',
    'item',
    'page',
    'attempt',
    'project',
    'duration_seconds',
    'error',
)


class FlushingFileHandler(logging.FileHandler):
    """FileHandler that flushes after every emit for real-time log visibility."""
    def emit(self, record):
        super().emit(record)
        self.flush()


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Format log records for human-readable console output."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨'
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%H:%M:%S')
        icon = self.ICONS.get(record.levelname, 'ℹ️')

        parts = [f"[{timestamp}]", icon]

        if hasattr(record, 'stage'):
            parts.append(f"[{record.stage}]")
        if hasattr(record, 'item'):
            parts.append(f"[{record.item}]")
        if hasattr(record, 'page'):
            parts.append(f"[page {record.page}]")

        parts.append(record.getMessage())

        if hasattr(record, 'error'):
            parts.append(f"({record.error})")

        return ' '.join(parts)


class PipelineLogger:
    """Structured logger for one pipeline stage.

    Console and JSONL handlers are attached on first use; each instance owns
    a uniquely named logging.Logger so handlers never accumulate.
    """
    def __init__(
        self,
        stage: str,
        log_dir: Optional[Path] = None,
        console_output: bool = True,
        json_output: bool = True,
        level: str = "INFO",
        filename: Optional[str] = None
    ):
        self.stage = stage
        self.log_dir = Path(log_dir) if log_dir else None
        self.console_output = console_output
        self.json_output = json_output and log_dir is not None
        self.level = level
        self.filename = filename or f"{stage}.jsonl"
        self.context: Dict[str, Any] = {}

        self._logger = None
        self._initialized = False
        self.log_file = None

    def _ensure_initialized(self):
        if self._initialized:
            return

        logger_name = f"scanwiki.{self.stage}.{id(self)}"
        self._logger = logging.getLogger(logger_name)
        self._logger.setLevel(getattr(logging, self.level.upper()))
        self._logger.propagate = False

        if self.console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(HumanFormatter())
            self._logger.addHandler(console_handler)

        if self.json_output:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            json_file = self.log_dir / self.filename
            json_handler = FlushingFileHandler(json_file, mode='a', encoding='utf-8')
            json_handler.setFormatter(JSONFormatter())
            self._logger.addHandler(json_handler)
            self.log_file = json_file

        self._initialized = True

    @property
    def logger(self) -> logging.Logger:
        self._ensure_initialized()
        return self._logger

    def _log(self, level: str, message: str, **kwargs):
        reserved_params = {}
        for param in ['exc_info', 'stack_info', 'stacklevel']:
            if param in kwargs:
                reserved_params[param] = kwargs.pop(param)

        extra = {
            'stage': self.stage,
            **self.context,
            **kwargs
        }

        self.logger.log(
            getattr(logging, level.upper()),
            message,
            extra=extra,
            **reserved_params
        )

    def debug(self, message: str, **kwargs):
        self._log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log('INFO', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log('WARNING', message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log('ERROR', message, **kwargs)

    @contextmanager
    def context_scope(self, **context):
        """
        Temporarily add context to all logs within scope.

        Example:
            with logger.context_scope(item="book"):
                logger.info("Rasterizing...")  # Includes item="book"
        """
        old_context = self.context.copy()
        self.context.update(context)
        try:
            yield
        finally:
            self.context = old_context

    def close(self):
        if self._initialized and self._logger:
            for handler in self._logger.handlers[:]:
                handler.close()
                self._logger.removeHandler(handler)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def default_level() -> str:
    return "DEBUG" if os.environ.get("DEBUG", "").lower() in ("true", "1", "yes") else "INFO"


def create_logger(stage: str, **kwargs) -> PipelineLogger:
    kwargs.setdefault('level', default_level())
    return PipelineLogger(stage, **kwargs)
