"""Console and structured logging for fairshare.

Human-readable status lines go to stderr through a Rich console so they never
mix with the report on stdout. Structured events go through structlog, either
as JSON lines to a rotating file or as key/value lines on stderr.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from fairshare.config import Config

_console = Console(stderr=True, highlight=False)

LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    SIGNAL = "⚡"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def scheduler_started(interval: int) -> None:
    """Log live mode startup."""
    info(f"Refreshing every [cyan]{interval}s[/], Ctrl-C to exit", Icon.OK)


def cancellation_received() -> None:
    """Log cancellation observed by the scheduler."""
    info("Received interrupt, exiting...", Icon.SIGNAL)


def scheduler_stopped() -> None:
    """Log scheduler shutdown complete."""
    info("Exiting...", Icon.OK)


def sample_failed(error_msg: str) -> None:
    """Log metrics collection failure."""
    error(f"Sample failed: {error_msg}", Icon.FAIL)


def channel_broken(error_msg: str) -> None:
    """Log cancellation channel failure."""
    error(f"Cancellation channel closed: {error_msg}", Icon.FAIL)


def config_invalid(error_msg: str) -> None:
    """Log configuration error."""
    error(f"Invalid configuration: {error_msg}", Icon.FAIL)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure(config: Config) -> None:
    """Configure structlog over stdlib logging.

    With ``config.log_path`` set, events are written as JSON lines to a
    rotating file. Otherwise they are rendered as key/value lines on stderr.
    """
    level = getattr(logging, config.log_level.upper())

    if config.log_path is not None:
        config.log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            config.log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        handler = logging.StreamHandler(sys.stderr)
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
            ],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_structlog() -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for machine-readable events."""
    return structlog.get_logger()
