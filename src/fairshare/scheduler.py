"""Refresh loop for fairshare."""

import threading
import time
from collections.abc import Callable
from enum import Enum
from queue import Empty, Full, Queue

import structlog

from fairshare import logging as console
from fairshare.config import Config
from fairshare.errors import CancellationChannelClosed, MetricsUnavailable, NoActiveUsers
from fairshare.fairshare import classify, compute
from fairshare.load import evaluate
from fairshare.models import CycleReport, FairShareResult, UsageRow
from fairshare.monitor import MetricsSource
from fairshare.report import Reporter
from fairshare.usage import aggregate

log = structlog.get_logger()

Clock = Callable[[], float]

_CANCEL = object()
_CLOSED = object()


class SchedulerState(Enum):
    """Lifecycle of the refresh loop."""

    IDLE = "idle"
    SAMPLING = "sampling"
    REPORTING = "reporting"
    SLEEPING = "sleeping"
    TERMINATED = "terminated"


class CancellationChannel:
    """
    One-shot, single-slot channel carrying a cancellation request.

    A signal handler (the producer) calls send(); the scheduler (the
    consumer) calls wait() with the remaining interval as timeout. A
    cancellation sent while the scheduler is busy stays buffered until its
    next wait.
    """

    def __init__(self) -> None:
        self._queue: Queue[object] = Queue(maxsize=1)
        self._sent = False
        self._closed = False

    @property
    def cancelled(self) -> bool:
        """Whether a cancellation has been sent."""
        return self._sent

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self) -> bool:
        """Request cancellation. Only the first call has any effect.

        Returns:
            True if this call delivered the cancellation.
        """
        if self._sent or self._closed:
            return False
        try:
            self._queue.put_nowait(_CANCEL)
        except Full:
            return False
        self._sent = True
        return True

    def close(self) -> None:
        """Break the channel; a pending or later wait() raises."""
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except Full:
            pass  # cancellation already buffered, it wins

    def wait(self, timeout: float) -> bool:
        """
        Block until cancellation or timeout.

        A timeout of zero or less polls without blocking.

        Returns:
            True if cancelled, False if the timeout elapsed.

        Raises:
            CancellationChannelClosed: The channel was closed.
        """
        if self._closed and self._queue.empty():
            raise CancellationChannelClosed("channel closed")
        try:
            if timeout <= 0:
                item = self._queue.get_nowait()
            else:
                item = self._queue.get(timeout=timeout)
        except Empty:
            return False
        if item is _CLOSED:
            raise CancellationChannelClosed("channel closed while waiting")
        return True


def sleep_duration(interval: float, elapsed: float) -> float:
    """Time left in the interval after a cycle took ``elapsed`` seconds."""
    return max(0.0, interval - elapsed)


def run_cycle(source: MetricsSource, config: Config, clock: Clock = time.monotonic) -> CycleReport:
    """
    Sample the host once and evaluate fair share and load.

    Raises:
        MetricsUnavailable: The source could not produce a snapshot.
    """
    started = clock()

    samples = source.list_processes()
    directory = source.list_users()
    core_count = source.logical_core_count()
    load_one_minute = source.load_average_one_minute()

    usages = aggregate(samples, directory)

    fair_share: FairShareResult | None = None
    no_active_users: NoActiveUsers | None = None
    try:
        fair_share = compute(
            usages,
            core_count,
            config.active_usage_threshold_percent,
            config.fair_share_override_percent,
        )
    except NoActiveUsers as e:
        no_active_users = e

    fair_percent = fair_share.fair_share_percent if fair_share is not None else None

    rows = []
    for usage in usages:
        share = usage.share(core_count)
        bucket = classify(share, fair_percent) if fair_percent is not None else None
        rows.append(UsageRow(usage, share, bucket))

    load = evaluate(
        load_one_minute,
        core_count,
        config.excessive_load_threshold_percent,
        usages,
        fair_percent,
    )

    return CycleReport(
        rows=tuple(rows),
        core_count=core_count,
        load=load,
        fair_share=fair_share,
        no_active_users=no_active_users,
        duration=clock() - started,
    )


class RefreshScheduler:
    """
    Drives sample → report cycles, once or on a fixed interval.

    The wait between cycles is a bounded wait on the cancellation channel,
    so cancellation is only observed between cycles and never interrupts a
    report half way.
    """

    def __init__(
        self,
        source: MetricsSource,
        reporter: Reporter,
        config: Config,
        channel: CancellationChannel | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """
        Initialize the RefreshScheduler.

        Args:
            source: Supplier of process, user and host metrics.
            reporter: Receives each cycle's results.
            config: Immutable run configuration.
            channel: Cancellation channel; a fresh one is created if omitted.
            clock: Monotonic time source used to measure cycles.
        """
        self._source = source
        self._reporter = reporter
        self._config = config
        self._channel = channel if channel is not None else CancellationChannel()
        self._clock = clock
        self._state = SchedulerState.IDLE
        self._cycles = 0
        self._failure: BaseException | None = None
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    @property
    def channel(self) -> CancellationChannel:
        return self._channel

    @property
    def failure(self) -> BaseException | None:
        """Error that terminated the loop abnormally, if any."""
        return self._failure

    @property
    def is_running(self) -> bool:
        """Check if the scheduler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Run the loop in a background daemon thread."""
        if self.is_running or self._state is not SchedulerState.IDLE:
            return

        self._thread = threading.Thread(
            target=self._run_thread,
            daemon=True,
            name="RefreshScheduler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Request cancellation and wait for the thread to finish.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._channel.send()
        self.join(timeout)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run_thread(self) -> None:
        try:
            self.run()
        except Exception as e:
            self._failure = e
            self._state = SchedulerState.TERMINATED
            log.exception("scheduler_crashed")

    def run(self) -> None:
        """Run the loop in the calling thread until terminated."""
        live = self._config.live_mode
        interval = self._config.interval_seconds

        if live:
            console.scheduler_started(interval)

        while True:
            self._state = SchedulerState.SAMPLING
            cycle_start = self._clock()
            self._reporter.begin_cycle(live)

            report: CycleReport | None = None
            sample_error: MetricsUnavailable | None = None
            try:
                report = run_cycle(self._source, self._config, self._clock)
            except MetricsUnavailable as e:
                sample_error = e
                console.sample_failed(str(e))
                log.debug("metrics_unavailable", error=str(e))

            self._state = SchedulerState.REPORTING
            if report is not None:
                self._reporter.report(report)
                log.debug(
                    "cycle_complete",
                    users=len(report.rows),
                    duration=round(report.duration, 3),
                    fair_share=report.fair_share.fair_share_percent if report.fair_share else None,
                    excessive=report.load.verdict.excessive,
                )
            elif sample_error is not None:
                self._reporter.metrics_unavailable(sample_error)
            self._cycles += 1

            if not live:
                break

            pause = sleep_duration(interval, self._clock() - cycle_start)
            self._state = SchedulerState.SLEEPING
            try:
                if self._channel.wait(pause):
                    console.cancellation_received()
                    log.info("cancelled", cycles=self._cycles)
                    break
            except CancellationChannelClosed as e:
                console.channel_broken(str(e))
                log.debug("cancellation_channel_closed", error=str(e))
                self._failure = e
                break

        self._state = SchedulerState.TERMINATED
        self._reporter.shutdown()
        console.scheduler_stopped()
