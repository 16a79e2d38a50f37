"""Process and host metrics collection for fairshare."""

import time
from typing import Protocol

import psutil

from fairshare.errors import MetricsUnavailable
from fairshare.models import ProcessSample

try:
    import pwd
except ImportError:  # Windows
    pwd = None


class MetricsSource(Protocol):
    """Supplier of the per-cycle host snapshot."""

    def list_processes(self) -> list[ProcessSample]: ...

    def list_users(self) -> dict[str, str]: ...

    def logical_core_count(self) -> float: ...

    def load_average_one_minute(self) -> float: ...


class PsutilMetricsSource:
    """
    Metrics source backed by psutil.

    psutil reports a process's CPU percentage relative to the previous call
    on the same Process object, so the first listing primes every process and
    waits ``sample_window`` seconds before taking readings. Later listings
    reuse the Process objects cached by psutil.process_iter().

    Processes that exit, deny access or turn zombie mid-poll are skipped.
    Failing to enumerate processes or users at all raises MetricsUnavailable.
    """

    # uids only exists on POSIX
    _ATTRS = (
        ["uids", "username", "cpu_percent"]
        if hasattr(psutil.Process, "uids")
        else ["username", "cpu_percent"]
    )

    def __init__(self, sample_window: float = 0.5) -> None:
        """
        Initialize the source.

        Args:
            sample_window: Seconds between the priming call and the first
                reading. Default 0.5s.
        """
        self._sample_window = max(0.0, sample_window)
        self._primed = False

    @property
    def primed(self) -> bool:
        """Whether per-process CPU counters have a baseline."""
        return self._primed

    def _prime(self) -> None:
        """Take the baseline CPU reading of every process."""
        try:
            for proc in psutil.process_iter():
                try:
                    proc.cpu_percent(interval=None)
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as e:
            raise MetricsUnavailable(f"Cannot enumerate processes: {e}") from e

        self._primed = True
        if self._sample_window > 0:
            time.sleep(self._sample_window)

    def list_processes(self) -> list[ProcessSample]:
        """Read the current CPU usage and owner of every process."""
        if not self._primed:
            self._prime()

        samples: list[ProcessSample] = []
        try:
            for proc in psutil.process_iter(attrs=self._ATTRS):
                try:
                    info = proc.info
                    samples.append(
                        ProcessSample(
                            user_id=self._owner_id(info),
                            cpu_usage_percent=float(info.get("cpu_percent") or 0.0),
                        )
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as e:
            raise MetricsUnavailable(f"Cannot enumerate processes: {e}") from e

        return samples

    @staticmethod
    def _owner_id(info: dict) -> str | None:
        """Real uid where the platform has one, otherwise the owner name.

        When uids cannot be read but the owner name can, the name is looked
        up in the pwd database so the id still matches list_users() keys.
        """
        uids = info.get("uids")
        if uids is not None:
            return str(uids.real)
        username = info.get("username")
        if username is None or pwd is None:
            return username
        try:
            return str(pwd.getpwnam(username).pw_uid)
        except KeyError:
            return username

    def list_users(self) -> dict[str, str]:
        """Map user ids to login names."""
        try:
            if pwd is not None:
                return {str(entry.pw_uid): entry.pw_name for entry in pwd.getpwall()}
            return {user.name: user.name for user in psutil.users()}
        except (psutil.Error, OSError) as e:
            raise MetricsUnavailable(f"Cannot enumerate users: {e}") from e

    def logical_core_count(self) -> float:
        count = psutil.cpu_count(logical=True)
        if not count:
            raise MetricsUnavailable("Logical core count is undetermined")
        return float(count)

    def load_average_one_minute(self) -> float:
        try:
            return psutil.getloadavg()[0]
        except (psutil.Error, OSError) as e:
            raise MetricsUnavailable(f"Cannot read load average: {e}") from e
