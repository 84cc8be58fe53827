"""Test utilities shared across test modules."""

from collections.abc import Awaitable, Callable

from addon_fetcher.data_types import AddonTotal, ReportState


def collect_totals_async() -> tuple[
    Callable[[AddonTotal], Awaitable[None]], list[AddonTotal]
]:
    """Create an async callback that collects totals in a list.

    Example:
        callback, totals = collect_totals_async()
        aggregator = Aggregator(on_complete=callback)
        ...
        assert totals[0].total == 15
    """
    totals: list[AddonTotal] = []

    async def callback(total: AddonTotal) -> None:
        totals.append(total)

    return callback, totals


class RecordingReporter:
    """Reporter that remembers every total it was handed."""

    def __init__(self) -> None:
        self.totals: list[AddonTotal] = []

    async def report(self, total: AddonTotal) -> ReportState:
        self.totals.append(total)
        return ReportState.LOGGED

    def by_name(self) -> dict[str, AddonTotal]:
        return {total.name: total for total in self.totals}
