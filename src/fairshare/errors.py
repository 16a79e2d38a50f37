"""Exception types for fairshare."""


class FairshareError(Exception):
    """Base class for fairshare errors."""


class MetricsUnavailable(FairshareError):
    """The metrics source could not produce a snapshot.

    Raised when processes or users cannot be enumerated at all, e.g. due to
    insufficient permissions. Individual processes that vanish or deny access
    mid-poll are skipped instead.
    """


class NoActiveUsers(FairshareError):
    """No user is above the active threshold and no fair share override is set.

    Fair share is undefined in this state, so classification is skipped for
    the cycle while raw usages are still reported.
    """

    def __init__(self, active_threshold_percent: float) -> None:
        self.active_threshold_percent = active_threshold_percent
        super().__init__(
            f"No active users above {active_threshold_percent:.2f}% per-core usage"
        )


class CancellationChannelClosed(FairshareError):
    """The cancellation channel was closed while the scheduler waited on it."""


class ConfigError(FairshareError, ValueError):
    """Invalid configuration value or unreadable config file."""
