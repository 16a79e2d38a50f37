"""Command-line entry point for fairshare."""

import signal
import sys
from pathlib import Path

import click

from fairshare import logging as console
from fairshare.config import LOG_LEVELS, Config
from fairshare.errors import ConfigError
from fairshare.monitor import PsutilMetricsSource
from fairshare.report import ConsoleReporter
from fairshare.scheduler import CancellationChannel, RefreshScheduler


def install_signal_handlers(channel: CancellationChannel) -> dict:
    """Route SIGINT and SIGTERM into the cancellation channel.

    Returns:
        The previous handlers, keyed by signal, for restore_signal_handlers().
    """

    def handler(signum, frame) -> None:
        channel.send()

    previous = {}
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            previous[sig] = signal.signal(sig, handler)
    return previous


def restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        # None means the handler was not installed from Python
        if handler is not None:
            signal.signal(sig, handler)


@click.command()
@click.version_option(package_name="fairshare")
@click.option(
    "--threshold",
    "-t",
    type=float,
    default=None,
    help="Excessive load threshold in percent of total core capacity [default: 100].",
)
@click.option(
    "--active-threshold",
    "-a",
    type=float,
    default=None,
    help="Per-core usage percent above which a user counts as active [default: 1].",
)
@click.option(
    "--fair-share",
    "-f",
    type=float,
    default=None,
    help="Fixed fair share percent (default: 100 / number of active users).",
)
@click.option(
    "--interval", "-i", type=int, default=None, help="Update interval in seconds [default: 5]."
)
@click.option("--live", "-l", is_flag=True, help="Refresh until interrupted.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML config file (default: ~/.config/fairshare/config.toml).",
)
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default=None, help="Log verbosity.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write JSON logs to this file instead of stderr.",
)
def main(
    threshold: float | None,
    active_threshold: float | None,
    fair_share: float | None,
    interval: int | None,
    live: bool,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """Show per-user CPU usage against each user's fair share."""
    try:
        config = Config.load(config_path).with_overrides(
            excessive_load_threshold_percent=threshold,
            active_usage_threshold_percent=active_threshold,
            fair_share_override_percent=fair_share,
            interval_seconds=interval,
            live_mode=live or None,
            log_level=log_level,
            log_path=log_file,
        )
    except ConfigError as e:
        console.config_invalid(str(e))
        sys.exit(1)

    console.configure(config)

    channel = CancellationChannel()
    scheduler = RefreshScheduler(
        PsutilMetricsSource(sample_window=config.sample_window),
        ConsoleReporter(),
        config,
        channel=channel,
    )
    previous = install_signal_handlers(channel)
    try:
        scheduler.start()
        # Short joins keep the main thread responsive to signals on every platform
        while scheduler.is_running:
            scheduler.join(timeout=0.5)
    finally:
        restore_signal_handlers(previous)

    if scheduler.failure is not None:
        sys.exit(1)


if __name__ == "__main__":
    main()
