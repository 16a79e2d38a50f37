"""Rendering of cycle results."""

from typing import Protocol

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fairshare.errors import MetricsUnavailable
from fairshare.models import Classification, CycleReport, FairShareSource

CLASSIFICATION_STYLES = {
    Classification.OVER: "red",
    Classification.NEAR: "yellow",
    Classification.UNDER: "green",
}


class Reporter(Protocol):
    """Receiver of per-cycle results."""

    def begin_cycle(self, live: bool) -> None: ...

    def report(self, report: CycleReport) -> None: ...

    def metrics_unavailable(self, error: MetricsUnavailable) -> None: ...

    def shutdown(self) -> None: ...


def _table(*columns: str) -> Table:
    """Borderless table with a header row."""
    table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False)
    for column in columns:
        table.add_column(column, justify="left" if column == "Username" else "right")
    return table


class ConsoleReporter:
    """Prints fair share, usage and load sections to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        """Initialize ConsoleReporter."""
        self._console = console if console is not None else Console(highlight=False)

    @property
    def console(self) -> Console:
        return self._console

    def begin_cycle(self, live: bool) -> None:
        """Clear the screen between live refreshes."""
        if live:
            self._console.clear()

    def report(self, report: CycleReport) -> None:
        self._print_fair_share(report)
        self._print_usage_table(report)
        self._console.print(f"\nTotal cores: {int(report.core_count)}")
        verdict = report.load.verdict
        self._console.print(f"1 minute load average: {verdict.load_one_minute:.2f}")
        if verdict.excessive:
            self._print_excessive_load(report)

    def metrics_unavailable(self, error: MetricsUnavailable) -> None:
        self._console.print(f"[bold red]Metrics unavailable:[/] {escape(str(error))}")

    def shutdown(self) -> None:
        pass

    def _print_fair_share(self, report: CycleReport) -> None:
        """Explain where this cycle's fair share comes from."""
        self._console.print("\nFair Share Calculation:")
        fair = report.fair_share

        if fair is None:
            threshold = report.no_active_users.active_threshold_percent
            self._console.print(
                f"  No active users (usage > {threshold:.2f}%), fair share unavailable\n"
            )
            return

        if fair.source is FairShareSource.OVERRIDE:
            self._console.print(
                f"Using user-specified fair share: {fair.fair_share_percent:.2f}%\n"
            )
            return

        self._console.print("Using active users calculation:")
        self._console.print(
            f"  Active users (usage > {fair.active_threshold_percent:.2f}%): "
            f"{fair.active_user_count}"
        )
        self._console.print(
            f"  Fair share = 100% / {fair.active_user_count} = {fair.fair_share_percent:.2f}%\n"
        )

    def _print_usage_table(self, report: CycleReport) -> None:
        table = _table(
            "Username",
            "Total CPU Usage (%)",
            "Equivalent Cores Used",
            "System CPU Share (%)",
        )
        for row in report.rows:
            style = CLASSIFICATION_STYLES.get(row.classification)
            table.add_row(
                escape(row.usage.username),
                f"{row.usage.total_cpu_percent:.2f}",
                f"{row.usage.equivalent_cores:.2f}",
                f"{row.share:.2f}",
                style=style,
            )
        self._console.print(table)

    def _print_excessive_load(self, report: CycleReport) -> None:
        self._console.print("\n[bold red]Excessive load detected![/]")
        if report.fair_share is None:
            self._console.print("Users exceeding fair share: unavailable (no active users)")
            return

        self._console.print(
            f"Users exceeding fair share ({report.fair_share.fair_share_percent:.2f}%):"
        )
        table = _table("Username", "System CPU Share (%)", "Excess Usage (%)")
        for offender in report.load.offenders:
            table.add_row(
                escape(offender.usage.username),
                f"{offender.share:.2f}%",
                f"{offender.excess:.2f}%",
            )
        self._console.print(table)
