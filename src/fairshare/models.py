"""Data models for fairshare."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from fairshare.errors import NoActiveUsers

# user_id -> display name, refreshed every cycle
UserDirectory = Mapping[str, str]


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Instantaneous CPU reading of one process."""

    user_id: str | None  # None when the OS reports no owner
    cpu_usage_percent: float  # 0.0 - 100.0 * core_count


@dataclass(slots=True, frozen=True)
class UserUsage:
    """Summed CPU usage of every process owned by one user."""

    username: str
    total_cpu_percent: float

    @property
    def equivalent_cores(self) -> float:
        """Number of fully busy cores this usage amounts to."""
        return self.total_cpu_percent / 100.0

    def share(self, core_count: float) -> float:
        """Usage as a percentage of total host capacity."""
        return self.total_cpu_percent / core_count


class FairShareSource(Enum):
    """Where the fair share value came from."""

    OVERRIDE = "override"
    COMPUTED = "computed"


class Classification(Enum):
    """Position of a user's share relative to the fair share."""

    OVER = "over"
    NEAR = "near"
    UNDER = "under"


@dataclass(slots=True, frozen=True)
class FairShareResult:
    """Outcome of the fair share calculation for one cycle."""

    fair_share_percent: float
    active_user_count: int
    source: FairShareSource
    active_threshold_percent: float


@dataclass(slots=True, frozen=True)
class LoadVerdict:
    """Whether the 1-minute load average is above the configured limit."""

    excessive: bool
    load_one_minute: float
    threshold_absolute: float


@dataclass(slots=True, frozen=True)
class Offender:
    """A user above fair share while the host is under excessive load."""

    usage: UserUsage
    share: float
    excess: float  # share - fair share


@dataclass(slots=True, frozen=True)
class LoadEvaluation:
    """Load verdict plus the users exceeding fair share, if any."""

    verdict: LoadVerdict
    offenders: tuple[Offender, ...] = ()


@dataclass(slots=True, frozen=True)
class UsageRow:
    """One line of the usage table."""

    usage: UserUsage
    share: float
    classification: Classification | None  # None without a fair share


@dataclass(slots=True, frozen=True)
class CycleReport:
    """Everything one sample-aggregate-evaluate pass hands to the reporter."""

    rows: tuple[UsageRow, ...]
    core_count: float
    load: LoadEvaluation
    fair_share: FairShareResult | None = None
    no_active_users: NoActiveUsers | None = None
    duration: float = 0.0

    @property
    def usages(self) -> list[UserUsage]:
        """Aggregated usages, highest first."""
        return [row.usage for row in self.rows]
