"""Reporters: what happens to an add-on total once it is complete.

LogReporter only logs. RemoteReporter logs, then makes sure the collection
API has a record for the add-on and posts the new total. Reporting failures
are logged and end that add-on's report; they never stop the run.
"""

from __future__ import annotations

import logging
from typing import Protocol

from addon_fetcher.common.exceptions import RemoteApiError, TransientException
from addon_fetcher.data_types import AddonTotal, ReportState, SourceUrlRegistry
from addon_fetcher.remote import RemoteApiClient

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    async def report(self, total: AddonTotal) -> ReportState: ...


def log_total(total: AddonTotal) -> None:
    """Log one line: timestamp, add-on name, total."""
    timestamp = total.reported_at.isoformat(timespec="seconds")
    if total.partial:
        logger.warning(
            f"{timestamp} {total.name} {total.total} "
            f"(partial, missing: {', '.join(total.missing)})"
        )
    else:
        logger.info(f"{timestamp} {total.name} {total.total}")


class LogReporter:
    """Log-only mode."""

    async def report(self, total: AddonTotal) -> ReportState:
        log_total(total)
        return ReportState.LOGGED


class RemoteReporter:
    """Remote-report mode.

    Per add-on the report walks::

        CHECKING -> CREATING -> CREATED -> UPDATING -> UPDATED   (unknown add-on)
        CHECKING -> UPDATING -> UPDATED                          (known add-on)

    and stops in FAILED at the first call that errors. Every state passed
    through is kept in ``history`` for inspection.

    Partial totals are logged but not posted: a count missing one source
    would overwrite the stored total with a smaller number.
    """

    def __init__(
        self, client: RemoteApiClient, registry: SourceUrlRegistry
    ) -> None:
        """Initialize the reporter.

        Args:
            client: API client, already configured with base URL and token.
            registry: Source URLs, needed when creating a new record.
        """
        self.client = client
        self.registry = registry
        self.history: dict[str, list[ReportState]] = {}

    def _enter(self, addon_name: str, state: ReportState) -> ReportState:
        self.history.setdefault(addon_name, []).append(state)
        return state

    async def report(self, total: AddonTotal) -> ReportState:
        log_total(total)
        name = total.name
        self.history[name] = [ReportState.NOT_REPORTED]

        if total.partial:
            logger.warning(
                f"Not posting partial total for {name} to {self.client.base_url}"
            )
            return ReportState.NOT_REPORTED

        state = self._enter(name, ReportState.CHECKING)
        try:
            known = await self.client.list_addons()

            if name not in known:
                state = self._enter(name, ReportState.CREATING)
                await self.client.create_addon(
                    name, self.registry.urls_for(name)
                )
                state = self._enter(name, ReportState.CREATED)
                logger.info(f"Created {name} at {self.client.base_url}")

            state = self._enter(name, ReportState.UPDATING)
            await self.client.update_downloads(name, total.total)
        except RemoteApiError as e:
            logger.error(
                f"Reporting {name} failed while {state.value}: "
                f"statusCode={e.status_code}, url={e.url}, body={e.body}"
            )
            return self._enter(name, ReportState.FAILED)
        except TransientException as e:
            logger.error(f"Reporting {name} failed while {state.value}: {e}")
            return self._enter(name, ReportState.FAILED)

        logger.debug(f"Posted {total.total} downloads for {name}")
        return self._enter(name, ReportState.UPDATED)
