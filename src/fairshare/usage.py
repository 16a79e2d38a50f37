"""Aggregation of per-process CPU samples into per-user usage."""

from collections.abc import Iterable

from fairshare.models import ProcessSample, UserDirectory, UserUsage


def display_name(user_id: str | None, directory: UserDirectory) -> str:
    """Resolve a user id to a display name.

    Unknown ids never fail: they fall back to ``UID:<id>``, or
    ``UID:Unknown`` when the process has no owner id at all.
    """
    if user_id is None:
        return "UID:Unknown"
    name = directory.get(user_id)
    if name is None:
        return f"UID:{user_id}"
    return name


def aggregate(samples: Iterable[ProcessSample], directory: UserDirectory) -> list[UserUsage]:
    """
    Sum CPU usage per user.

    Args:
        samples: Process readings from a single cycle.
        directory: user_id -> display name mapping for the same cycle.

    Returns:
        One UserUsage per user with nonzero usage, sorted by usage descending.
    """
    totals: dict[str, float] = {}
    for sample in samples:
        name = display_name(sample.user_id, directory)
        totals[name] = totals.get(name, 0.0) + sample.cpu_usage_percent

    usages = [UserUsage(name, total) for name, total in totals.items() if total != 0.0]
    usages.sort(key=lambda u: u.total_cpu_percent, reverse=True)
    return usages
