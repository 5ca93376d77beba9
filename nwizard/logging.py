from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "NWIZARD_LOG_DIR",
        Path.home() / ".local" / "state" / "nwizard" / "logs",
    )
)


def _should_log_renewal(record) -> bool:
    """Keep routine credential renewals out of the console and operations sinks."""
    tags = record["extra"].get("tags", [])

    if record["level"].no >= logger.level("WARNING").no:
        return True

    if "sudo" in tags and "renewed" in record["message"].lower():
        return record["level"].no <= logger.level("TRACE").no

    return True


def _should_log_transcript(record) -> bool:
    """Transcript records belong to the session transcript sink only."""
    return not record["extra"].get("transcript", False)


def _combined_filter(record) -> bool:
    """Combined filter for all log suppression rules."""
    return _should_log_renewal(record) and _should_log_transcript(record)


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
    console: bool = True,
) -> Logger:
    """
    Setup multi-tier logging with separate sinks for different log levels.

    Logging Tiers:
    - CRITICAL/ERROR: Spawn failures, persistence failures
    - SUCCESS/INFO: Commands started/finished, selections saved, startup/shutdown
    - DEBUG: Navigation transitions, credential renewals, renewal scheduling
    - TRACE: Ultra-verbose (throttled output progress of the running command)

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug is enabled (3 day retention)
    - trace.log: TRACE+ events when --trace is enabled (1 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Custom log directory (defaults to ~/.local/state/nwizard/logs)
        console: Attach the stderr sink. Disabled while curses owns the terminal.
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr) - User-facing, filtered
    if console:
        logger.add(
            sys.stderr,
            level=console_level,
            enqueue=True,
            backtrace=False,
            diagnose=False,
            filter=_combined_filter,
            colorize=True,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[source]: <10}</cyan> | "
                "{message}"
            ),
        )

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log - Important events only (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        filter=_combined_filter,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <15} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log - Detailed diagnostics (DEBUG+ when debug=True)
    if debug or trace:
        logger.add(
            log_dir / "debug.log",
            level="DEBUG",
            rotation="10 MB",
            retention="3 days",
            compression="zip",
            enqueue=True,
            backtrace=True,
            diagnose=True,
            filter=_should_log_transcript,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <15} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    # SINK 4: Trace Log - Ultra-verbose (TRACE only, when trace=True)
    if trace:
        logger.add(
            log_dir / "trace.log",
            level="TRACE",
            rotation="50 MB",
            retention="1 day",
            compression="zip",
            enqueue=True,
            backtrace=False,
            diagnose=False,
            filter=_should_log_transcript,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <15} | "
                "{message}"
            ),
        )

    # SINK 5: Structured JSON Log - For analysis tools (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        serialize=True,
        filter=_should_log_transcript,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking a command execution
        tags: Tags for filtering (e.g., ["exec", "process"])
        source: Source component (e.g., "exec", "sudo", "menu")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking operations with automatic timing.

    Logs operation start, completion, and failure with duration tracking.

    Example:
        with operation_context("persist", path=str(path)) as log:
            log.debug("Writing selections")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.debug(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.debug(
                f"{operation.capitalize()} completed",
                duration_seconds=round(duration, 2),
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source, tags, and context for the domain.
    """

    @staticmethod
    def for_executor(job_id: str | None = None) -> Logger:
        """Logger for child process execution."""
        if job_id is None:
            job_id = f"exec-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source="exec", tags=["exec", "process"])

    @staticmethod
    def for_sudo() -> Logger:
        """Logger for credential authentication and renewal."""
        return logger.bind(source="sudo", tags=["sudo", "privilege"])

    @staticmethod
    def for_menu() -> Logger:
        """Logger for menu navigation and UI operations."""
        return logger.bind(source="menu", tags=["ui", "menu"])

    @staticmethod
    def for_storage() -> Logger:
        """Logger for persisted selection reads and writes."""
        return logger.bind(source="storage", tags=["storage", "selections"])

    @staticmethod
    def for_session() -> Logger:
        """Logger for the session orchestrator (tick loop, shutdown, signals)."""
        return logger.bind(source="session", tags=["session"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, shutdown, config)."""
        return logger.bind(source="system", tags=["system"])


class ThrottledLogger:
    """
    Logger wrapper that emits at most one message per key per interval.

    The process runner uses it for output progress, which would otherwise be
    logged on every tick that reads data.
    """

    def __init__(self, log: Logger, interval_seconds: float = 5.0):
        self.log = log
        self.interval = interval_seconds
        self.last_log_time: dict[str, float] = {}

    def debug(self, key: str, message: str, **kwargs) -> None:
        self._throttled_log("DEBUG", key, message, **kwargs)

    def trace(self, key: str, message: str, **kwargs) -> None:
        self._throttled_log("TRACE", key, message, **kwargs)

    def _throttled_log(self, level: str, key: str, message: str, **kwargs) -> None:
        now = time.time()
        if now - self.last_log_time.get(key, float("-inf")) < self.interval:
            return
        self.log.log(level, message, **kwargs)
        self.last_log_time[key] = now
