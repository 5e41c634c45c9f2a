# ABOUTME: Structured logging configuration using loguru for the event engine.
# ABOUTME: Supports bound context fields (event_session_id, states, durations) and console/file output.

import sys
from pathlib import Path

from loguru import logger

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    format_string: str | None = None,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """
    Configure loguru sinks.

    Removes loguru's default handler, then adds a colored stderr sink and a
    rotating, compressed file sink as requested. Context attached with
    logger.bind() is rendered in the {extra} column.

    Args:
        log_level: Minimum log level ("DEBUG", "INFO", "WARNING", "ERROR")
        log_dir: Directory for log files (default: "logs")
        console_output: Enable console logging (default: True)
        file_output: Enable file logging (default: True)
        format_string: Custom format string (default: DEFAULT_FORMAT)
        rotation: When to rotate log files (default: "100 MB")
        retention: How long to keep old logs (default: "30 days")
        compression: Compression for rotated logs (default: "zip")

    Raises:
        ValueError: If log_level is invalid
    """
    log_level = log_level.upper()
    if log_level not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log level: '{log_level}'. "
            f"Must be one of: {', '.join(sorted(VALID_LEVELS))}"
        )

    logger.remove()
    fmt = format_string or DEFAULT_FORMAT

    if console_output:
        logger.add(
            sys.stderr,
            format=fmt,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    if file_output:
        log_dir = Path(log_dir) if log_dir is not None else Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_dir / "trpg_events_{time:YYYY-MM-DD}.log"),
            format=fmt,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=True,
            enqueue=True,  # Thread-safe
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"console={console_output}, file={file_output}"
    )


def log_state_transition(
    event_session_id: str,
    from_state: str,
    to_state: str,
    duration_ms: float | None = None
) -> None:
    """
    Log an event session state transition.

    Usage:
        >>> log_state_transition(
        ...     event_session_id="evs_123",
        ...     from_state="dice_rolling",
        ...     to_state="processing_result",
        ...     duration_ms=4.2
        ... )
    """
    context = {
        "event_session_id": event_session_id,
        "from_state": from_state,
        "to_state": to_state,
    }

    if duration_ms is not None:
        context["duration_ms"] = duration_ms

    logger.bind(**context).info(f"State transition: {from_state} -> {to_state}")


def log_collaborator_call(
    operation: str,
    event_session_id: str,
    duration_ms: float,
    succeeded: bool
) -> None:
    """Log one reasoning service call with its measured duration"""
    bound = logger.bind(
        operation=operation,
        event_session_id=event_session_id,
        duration_ms=duration_ms,
        succeeded=succeeded,
    )
    if succeeded:
        bound.info(f"Reasoning service call '{operation}' completed")
    else:
        bound.warning(f"Reasoning service call '{operation}' failed")
