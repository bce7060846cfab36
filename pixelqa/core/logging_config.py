"""Logging setup for PixelQA.

Console output goes to stderr so that the CLI can keep stdout for its JSON
report. Every analysis run is tagged with a correlation ID, which ties the
gateway's per-candidate lines to one run, and every formatted record is
scrubbed of oracle credentials and inline image data.
"""
import json
import logging
import logging.handlers
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

NO_CORRELATION_ID = "-"

_correlation_id: ContextVar[Optional[str]] = ContextVar("pixelqa_correlation_id", default=None)

REDACTIONS = (
    (re.compile(r'(?i)(api[_-]?key["\s]*[:=]["\s]*)[a-zA-Z0-9_-]+'), r"\1[REDACTED]"),
    (re.compile(r'(?i)(bearer\s+)[^\s"]+'), r"\1[REDACTED]"),
    (re.compile(r'(?i)(x-dashscope-api-key["\s]*[:=]["\s]*)[^\s"]+'), r"\1[REDACTED]"),
    (re.compile(r"AIza[0-9A-Za-z_-]{35}"), "[GEMINI_KEY_REDACTED]"),
    (re.compile(r"\bsk-[0-9A-Za-z]{16,}"), "[DASHSCOPE_KEY_REDACTED]"),
    (re.compile(r"(data:image/[a-z]+;base64,)[A-Za-z0-9+/=]{64,}"), r"\1[...]"),
)

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("PIL", "urllib3", "requests", "httpx", "httpcore", "google_genai")


def redact(text: str) -> str:
    for pattern, replacement in REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class CorrelationIDFilter(logging.Filter):
    """Stamp each record with the current run's correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or NO_CORRELATION_ID
        return True


class SecuritySafeFormatter(logging.Formatter):
    """Formatter that redacts API keys, bearer tokens and base64 images."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class StructuredFormatter(SecuritySafeFormatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "run": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return redact(json.dumps(entry, ensure_ascii=False, default=str))


class HumanReadableFormatter(SecuritySafeFormatter):
    """``time - logger - LEVEL - run - message`` for the terminal."""

    def __init__(self, include_correlation_id: bool = True):
        parts = ["%(asctime)s", "%(name)s", "%(levelname)s"]
        if include_correlation_id:
            parts.append("%(correlation_id)s")
        parts.append("%(message)s")
        super().__init__(" - ".join(parts))


class LoggingManager:
    """Installs PixelQA's handlers on the root logger, once."""

    def __init__(self):
        self._handlers: Dict[str, logging.Handler] = {}

    @property
    def is_configured(self) -> bool:
        return bool(self._handlers)

    def configure(
        self,
        log_level: str = "INFO",
        log_dir: Optional[Union[str, Path]] = None,
        enable_file_logging: bool = False,
        structured_logging: bool = False,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ) -> None:
        """Configure root logging.

        Args:
            log_level: Level name; unknown names fall back to INFO
            log_dir: Directory for ``pixelqa.log``; only used with file logging
            enable_file_logging: Also write a rotating log file
            structured_logging: JSON lines instead of the human-readable format
            max_file_size: Rotation threshold in bytes
            backup_count: Rotated files to keep
        """
        if self.is_configured:
            return

        level = getattr(logging, str(log_level).upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
        formatter = StructuredFormatter() if structured_logging else HumanReadableFormatter()

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()

        self._install(root, "console", logging.StreamHandler(sys.stderr), level, formatter)
        if enable_file_logging:
            directory = Path(log_dir or "logs")
            directory.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                directory / "pixelqa.log", maxBytes=max_file_size,
                backupCount=backup_count, encoding="utf-8",
            )
            self._install(root, "file", file_handler, level, formatter)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

        logging.getLogger(__name__).debug(
            f"Logging configured (level={logging.getLevelName(level)}, file={enable_file_logging}, "
            f"structured={structured_logging})"
        )

    def _install(self, root: logging.Logger, key: str, handler: logging.Handler,
                 level: int, formatter: logging.Formatter) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIDFilter())
        root.addHandler(handler)
        self._handlers[key] = handler

    def shutdown(self) -> None:
        """Remove and close the handlers installed by :meth:`configure`."""
        root = logging.getLogger()
        for handler in self._handlers.values():
            root.removeHandler(handler)
            handler.close()
        self._handlers.clear()


logging_manager = LoggingManager()


def configure_logging(**kwargs) -> None:
    """Configure application logging (no-op after the first call)."""
    logging_manager.configure(**kwargs)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CorrelationContext:
    """Scope a correlation ID to a block; a fresh 12-character ID if none is given."""

    def __init__(self, corr_id: Optional[str] = None):
        self.corr_id = corr_id or uuid.uuid4().hex[:12]
        self._token = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self.corr_id)
        return self.corr_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _correlation_id.reset(self._token)
