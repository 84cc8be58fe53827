"""Join per-source counts into one total per add-on.

Every add-on gets one count from each source, in whatever order the fetches
finish. The aggregator stores counts as they arrive and fires the completion
callback exactly once, when the last expected source has answered.

A source that cannot answer (bad status, unreachable page, changed layout)
is recorded as a failure, so the add-on still completes, as a partial total,
instead of waiting forever. Anything still pending when the driver gives up
is completed the same way by flush_partial().

All methods run on a single event loop; there is no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from addon_fetcher.data_types import SOURCES, AccumulatorState, AddonTotal

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    counts: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    arrivals: int = 0
    complete: bool = False


class Aggregator:
    """Accumulates per-source counts and reports each add-on once.

    Example::

        async def report(total: AddonTotal) -> None:
            print(total.name, total.total)

        aggregator = Aggregator(on_complete=report)
        await aggregator.record_count("GoldCounter", 10, "curseforge")
        await aggregator.record_count("GoldCounter", 5, "wowinterface")
        # report() ran once with total 15
    """

    def __init__(
        self,
        on_complete: Callable[[AddonTotal], Awaitable[None]],
        sources: tuple[str, ...] = SOURCES,
    ) -> None:
        """Initialize the aggregator.

        Args:
            on_complete: Async callback invoked once per add-on with its total.
            sources: Sources every add-on expects a count from.
        """
        self.on_complete = on_complete
        self.sources = sources
        self._accumulators: dict[str, _Accumulator] = {}

    def state(self, addon_name: str) -> AccumulatorState:
        acc = self._accumulators.get(addon_name)
        if acc is None:
            return AccumulatorState.ABSENT
        if acc.complete:
            return AccumulatorState.COMPLETE
        if acc.arrivals == 0:
            return AccumulatorState.ABSENT
        return AccumulatorState.PARTIAL

    def expect(self, addon_names: list[str]) -> None:
        """Track add-ons up front so flush_partial() covers silent ones too."""
        for addon_name in addon_names:
            self._accumulators.setdefault(addon_name, _Accumulator())

    def pending(self) -> list[str]:
        """Names of expected or partially reported add-ons not yet complete."""
        return [
            name
            for name, acc in self._accumulators.items()
            if not acc.complete
        ]

    async def record_count(
        self, addon_name: str, count: int, source: str | None = None
    ) -> bool:
        """Record one source's count for an add-on.

        Args:
            addon_name: The add-on the count belongs to.
            count: The download count from one source.
            source: Which source produced it. When omitted, the count is
                attributed to the first source that has not reported yet.

        Returns:
            True if the count was accepted. False if the add-on is already
            complete or the source is unknown or has already reported.
        """
        if source is not None and source not in self.sources:
            logger.warning(
                f"Ignoring count {count} for {addon_name}: "
                f"unknown source {source}"
            )
            return False

        acc = self._accumulators.setdefault(addon_name, _Accumulator())
        if acc.complete:
            logger.warning(
                f"Ignoring count {count} for {addon_name}: "
                "total was already reported"
            )
            return False

        key = source or self._next_unreported(acc)
        if key is None or key in acc.counts or key in acc.failed:
            logger.warning(
                f"Ignoring count {count} for {addon_name}: "
                f"{key or 'every source'} already reported"
            )
            return False

        acc.counts[key] = count
        acc.arrivals += 1
        logger.debug(f"{addon_name}: {key} reported {count}")
        await self._complete_if_ready(addon_name, acc)
        return True

    async def record_failure(
        self, addon_name: str, source: str, error: Exception | str
    ) -> None:
        """Record that a source will never produce a count for an add-on."""
        if source not in self.sources:
            logger.warning(
                f"Ignoring failure for {addon_name}: unknown source {source}"
            )
            return

        acc = self._accumulators.setdefault(addon_name, _Accumulator())
        if acc.complete or source in acc.counts or source in acc.failed:
            return

        acc.failed[source] = str(error)
        acc.arrivals += 1
        await self._complete_if_ready(addon_name, acc)

    async def flush_partial(self) -> list[AddonTotal]:
        """Complete every pending add-on with whatever counts it has.

        Sources that never answered are listed as missing.
        """
        totals: list[AddonTotal] = []
        for addon_name in self.pending():
            totals.append(
                await self._complete(addon_name, self._accumulators[addon_name])
            )
        return totals

    def _next_unreported(self, acc: _Accumulator) -> str | None:
        for source in self.sources:
            if source not in acc.counts and source not in acc.failed:
                return source
        return None

    async def _complete_if_ready(
        self, addon_name: str, acc: _Accumulator
    ) -> None:
        if acc.arrivals >= len(self.sources):
            await self._complete(addon_name, acc)

    async def _complete(self, addon_name: str, acc: _Accumulator) -> AddonTotal:
        acc.complete = True
        missing = tuple(
            source for source in self.sources if source not in acc.counts
        )
        total = AddonTotal(
            name=addon_name,
            total=sum(acc.counts.values()),
            counts=dict(acc.counts),
            missing=missing,
        )
        await self.on_complete(total)
        return total
