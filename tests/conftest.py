"""Shared test fixtures for fairshare."""

from dataclasses import dataclass, field

import pytest

from fairshare.errors import MetricsUnavailable
from fairshare.models import CycleReport, ProcessSample


@dataclass
class FakeMetricsSource:
    """In-memory metrics source with a fixed snapshot."""

    processes: list[ProcessSample] = field(default_factory=list)
    users: dict[str, str] = field(default_factory=dict)
    cores: float = 4.0
    load: float = 0.5
    failures: int = 0  # Number of leading list_processes calls that fail
    calls: int = 0

    def list_processes(self) -> list[ProcessSample]:
        self.calls += 1
        if self.calls <= self.failures:
            raise MetricsUnavailable("permission denied")
        return list(self.processes)

    def list_users(self) -> dict[str, str]:
        return dict(self.users)

    def logical_core_count(self) -> float:
        return self.cores

    def load_average_one_minute(self) -> float:
        return self.load


class RecordingReporter:
    """Reporter that remembers every call in order."""

    def __init__(self, on_report=None) -> None:
        self.events: list[tuple[str, object]] = []
        self.reports: list[CycleReport] = []
        self._on_report = on_report

    def begin_cycle(self, live: bool) -> None:
        self.events.append(("begin", live))

    def report(self, report: CycleReport) -> None:
        self.events.append(("report", report))
        self.reports.append(report)
        if self._on_report is not None:
            self._on_report(report)

    def metrics_unavailable(self, error: MetricsUnavailable) -> None:
        self.events.append(("unavailable", error))

    def shutdown(self) -> None:
        self.events.append(("shutdown", None))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_samples(*pairs: tuple[str | None, float]) -> list[ProcessSample]:
    """Build ProcessSamples from (user_id, cpu_percent) pairs."""
    return [ProcessSample(user_id=uid, cpu_usage_percent=cpu) for uid, cpu in pairs]


@pytest.fixture
def alice_bob_source() -> FakeMetricsSource:
    """Two users on a four-core host: alice at 50%, bob at 5%."""
    return FakeMetricsSource(
        processes=make_samples(("u1", 40.0), ("u1", 10.0), ("u2", 5.0)),
        users={"u1": "alice", "u2": "bob"},
        cores=4.0,
    )


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()
