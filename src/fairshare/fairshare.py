"""Fair share calculation and classification."""

from collections.abc import Sequence

from fairshare.errors import NoActiveUsers
from fairshare.models import Classification, FairShareResult, FairShareSource, UserUsage


def count_active(
    usages: Sequence[UserUsage], core_count: float, active_threshold_percent: float
) -> int:
    """Count users whose per-core share is above the active threshold."""
    return sum(1 for u in usages if u.share(core_count) > active_threshold_percent)


def compute(
    usages: Sequence[UserUsage],
    core_count: float,
    active_threshold_percent: float,
    fair_share_override: float | None = None,
) -> FairShareResult:
    """
    Compute the fair share for this cycle.

    The fair share is the override when one is configured, otherwise 100%
    split evenly between active users.

    Args:
        usages: Aggregated per-user usage.
        core_count: Logical core count of the host.
        active_threshold_percent: Per-core share a user needs to count as active.
        fair_share_override: Fixed fair share, bypassing the active user count.

    Raises:
        NoActiveUsers: No active users and no override, so fair share is undefined.
        ValueError: core_count is not positive.
    """
    if core_count <= 0:
        raise ValueError(f"core_count must be > 0, got {core_count}")

    active = count_active(usages, core_count, active_threshold_percent)

    if fair_share_override is not None:
        return FairShareResult(
            fair_share_percent=fair_share_override,
            active_user_count=active,
            source=FairShareSource.OVERRIDE,
            active_threshold_percent=active_threshold_percent,
        )

    if active == 0:
        raise NoActiveUsers(active_threshold_percent)

    return FairShareResult(
        fair_share_percent=100.0 / active,
        active_user_count=active,
        source=FairShareSource.COMPUTED,
        active_threshold_percent=active_threshold_percent,
    )


def classify(share: float, fair_share_percent: float) -> Classification:
    """Bucket a per-core share against the fair share."""
    if share > fair_share_percent:
        return Classification.OVER
    if share > fair_share_percent * 0.5:
        return Classification.NEAR
    return Classification.UNDER
