"""Logging setup for the contribution ledger.

Everything logs below the ``mkoba_ledger`` logger. Store calls are wrapped
in ``LogContext``, which times them and masks member contact details before
anything reaches a log file.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FILE = "mkoba_ledger.log"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Context keys replaced entirely in log output
SECRET_FIELDS = {"password", "token", "secret", "api_key", "database_url"}

# Context keys that keep their last digits so officials can tell members apart
PHONE_FIELDS = {"phone", "phone_number"}
PHONE_VISIBLE_DIGITS = 3

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: str) -> int:
    """Map a level name to its logging constant (INFO when unknown)."""
    return LOG_LEVEL_MAP.get(level.strip().upper(), logging.INFO)


def mask_phone(phone: object) -> str:
    """Hide all but the last digits of a phone number: ``*******001``."""
    text = str(phone)
    if len(text) <= PHONE_VISIBLE_DIGITS:
        return "*" * len(text)
    return "*" * (len(text) - PHONE_VISIBLE_DIGITS) + text[-PHONE_VISIBLE_DIGITS:]


def sanitize_context(context: dict[str, object]) -> dict[str, object]:
    """Mask secrets and phone numbers in a context dict.

    Nested dicts (audit ``changes``) are masked the same way.

    Args:
        context: Dictionary of context values.

    Returns:
        A new dictionary safe to log.
    """
    sanitized: dict[str, object] = {}
    for key, value in context.items():
        lowered = key.lower()
        if lowered in SECRET_FIELDS:
            sanitized[key] = "***"
        elif lowered in PHONE_FIELDS and value:
            sanitized[key] = mask_phone(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_context(value)
        else:
            sanitized[key] = value
    return sanitized


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. None uses DEFAULT_LOG_FILE, "" disables file logging.
        console_output: Whether to also log to stderr.

    Returns:
        The package root logger.
    """
    numeric_level = resolve_level(level)

    logger = logging.getLogger("mkoba_ledger")
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if log_file is None:
        log_file = DEFAULT_LOG_FILE
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    if console_output:
        handlers.append(logging.StreamHandler(sys.stderr))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the package logger.

    Args:
        name: Module name (typically __name__).

    Returns:
        A logger instance for the module.
    """
    if name.startswith("mkoba_ledger"):
        return logging.getLogger(name)
    return logging.getLogger(f"mkoba_ledger.{name}")


class LogContext:
    """Times an operation and logs how it ended.

    Start and success are logged at DEBUG with the elapsed milliseconds. A
    successful call slower than ``warn_after`` seconds is logged at WARNING,
    and a failure at ERROR with its traceback. Exceptions always propagate.
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        warn_after: Optional[float] = None,
        **context: object,
    ):
        """Initialize log context.

        Args:
            logger: Logger instance to use.
            operation: Name of the operation being performed.
            warn_after: Seconds after which a successful call counts as slow.
            **context: Values describing the call; masked before logging.
        """
        self.logger = logger
        self.operation = operation
        self.warn_after = warn_after
        self.context = sanitize_context(context)
        self.elapsed_ms = 0.0
        self._start_ns = 0

    def _describe(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.context.items())

    def __enter__(self) -> "LogContext":
        self.logger.debug(f"Starting {self.operation}: {self._describe()}")
        self._start_ns = time.perf_counter_ns()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> bool:
        self.elapsed_ms = (time.perf_counter_ns() - self._start_ns) / 1_000_000
        if exc_type is not None:
            self.logger.error(
                f"Error in {self.operation} after {self.elapsed_ms:.1f} ms: {exc_type.__name__}: {exc_val}",
                exc_info=True,
            )
        elif self.warn_after is not None and self.elapsed_ms > self.warn_after * 1000:
            self.logger.warning(
                f"Slow {self.operation}: {self.elapsed_ms:.1f} ms ({self._describe()})"
            )
        else:
            self.logger.debug(f"Completed {self.operation} in {self.elapsed_ms:.1f} ms")
        return False
