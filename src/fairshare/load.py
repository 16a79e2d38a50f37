"""Excessive load detection."""

from collections.abc import Sequence

from fairshare.models import LoadEvaluation, LoadVerdict, Offender, UserUsage


def evaluate(
    load_one_minute: float,
    core_count: float,
    load_threshold_percent: float,
    usages: Sequence[UserUsage],
    fair_share_percent: float | None,
) -> LoadEvaluation:
    """
    Compare the 1-minute load average against a fraction of core capacity.

    When the load is excessive and a fair share is known, the users above
    fair share are returned in input order together with their excess.
    """
    threshold = (load_threshold_percent / 100.0) * core_count
    verdict = LoadVerdict(
        excessive=load_one_minute > threshold,
        load_one_minute=load_one_minute,
        threshold_absolute=threshold,
    )
    if not verdict.excessive or fair_share_percent is None:
        return LoadEvaluation(verdict)

    offenders = []
    for usage in usages:
        share = usage.share(core_count)
        if share > fair_share_percent:
            offenders.append(Offender(usage, share, share - fair_share_percent))
    return LoadEvaluation(verdict, tuple(offenders))
