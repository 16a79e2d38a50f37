"""Verification Test: process churn while sampling.

Processes can exit at any time between enumeration and reading their CPU
counters. Sampling must skip them instead of failing the cycle.
"""

import multiprocessing
import random
import time

import pytest
from conftest import RecordingReporter

from fairshare.config import Config
from fairshare.monitor import PsutilMetricsSource
from fairshare.scheduler import CancellationChannel, RefreshScheduler, SchedulerState


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class TestProcessChurn:
    """Process churn verification suite tests."""

    def test_source_survives_process_termination(self):
        """
        Test that sampling doesn't fail when processes die between cycles.

        The source caches Process objects from the priming pass; many of
        them are gone by the time of the second reading.
        """
        processes = []
        for _ in range(30):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        source = PsutilMetricsSource(sample_window=0.1)

        try:
            first = source.list_processes()
            assert len(first) > 0

            for p in random.sample(processes, 15):
                p.terminate()
                time.sleep(0.02)

            for _ in range(3):
                try:
                    samples = source.list_processes()
                except Exception as e:
                    pytest.fail(f"Sampling crashed with exception: {e}")
                assert isinstance(samples, list)
        finally:
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_live_loop_during_rapid_churn(self):
        """
        Test the live loop keeps reporting while processes are created and destroyed.
        """
        channel = CancellationChannel()
        reporter = RecordingReporter()
        config = Config(live_mode=True, interval_seconds=0, sample_window=0.1)
        scheduler = RefreshScheduler(
            PsutilMetricsSource(sample_window=config.sample_window),
            reporter,
            config,
            channel=channel,
        )

        processes = []
        try:
            scheduler.start()

            start_time = time.time()
            while time.time() - start_time < 2.0:
                for _ in range(3):
                    p = multiprocessing.Process(target=dummy_worker, args=(10.0,))
                    p.start()
                    processes.append(p)

                alive = [p for p in processes if p.is_alive()]
                if len(alive) > 6:
                    for p in random.sample(alive, 3):
                        p.terminate()

                time.sleep(0.1)

            assert scheduler.is_running, "Scheduler died during churn"
        finally:
            scheduler.stop(timeout=5.0)
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=0.5)

        assert scheduler.state is SchedulerState.TERMINATED
        assert scheduler.failure is None
        assert len(reporter.reports) >= 1
        assert "unavailable" not in reporter.kinds()
