"""Data types shared by the loader, driver, aggregator and reporters.

1. AddonDescriptor and SourceUrlRegistry come out of the configuration file.
2. Response and FetchJob flow between the driver and the request manager.
3. AddonTotal is what the aggregator hands to reporters once an add-on is done.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from addon_fetcher.common.exceptions import ConfigurationError

SOURCE_CURSEFORGE = "curseforge"
SOURCE_WOWINTERFACE = "wowinterface"

# Order matters: it is the fetch order and the key order in reports.
SOURCES: tuple[str, ...] = (SOURCE_CURSEFORGE, SOURCE_WOWINTERFACE)


@dataclass(frozen=True)
class AddonDescriptor:
    """One configured add-on and the two pages its counts come from.

    Attributes:
        name: Add-on name, unique across the configuration.
        curseforge_url: Project page on CurseForge (source A).
        wowinterface_url: Author listing on WoWInterface (source B).
    """

    name: str
    curseforge_url: str
    wowinterface_url: str

    @property
    def source_urls(self) -> dict[str, str]:
        """Map each source key to its URL, in fetch order."""
        return {
            SOURCE_CURSEFORGE: self.curseforge_url,
            SOURCE_WOWINTERFACE: self.wowinterface_url,
        }


class SourceUrlRegistry:
    """Add-on name to source URLs, kept for the lifetime of a run.

    The remote reporter needs the URLs again when it has to create a record
    for an add-on the endpoint has never seen.
    """

    def __init__(self) -> None:
        self._urls: dict[str, dict[str, str]] = {}

    def register(self, descriptor: AddonDescriptor) -> None:
        if descriptor.name in self._urls:
            raise ConfigurationError(
                f'Duplicate addon name "{descriptor.name}".'
            )
        self._urls[descriptor.name] = descriptor.source_urls

    def urls_for(self, addon_name: str) -> dict[str, str]:
        return dict(self._urls[addon_name])

    def __contains__(self, addon_name: object) -> bool:
        return addon_name in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)


@dataclass
class AddonConfig:
    """Everything the configuration loader produces."""

    descriptors: list[AddonDescriptor]
    registry: SourceUrlRegistry


@dataclass
class Response:
    """HTTP response data returned by the request manager.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers.
        text: Decoded response body.
        url: The URL that was fetched.
    """

    status_code: int
    headers: dict[str, str]
    text: str
    url: str


@dataclass(frozen=True)
class FetchJob:
    """One page to fetch: a single source of a single add-on."""

    addon: AddonDescriptor
    source: str
    url: str


class AccumulatorState(Enum):
    """Where an add-on stands in the aggregator.

    Values:
        ABSENT: No source has reported yet.
        PARTIAL: Some, but not all, sources have reported.
        COMPLETE: The total has been handed to the reporter.
    """

    ABSENT = "absent"
    PARTIAL = "partial"
    COMPLETE = "complete"


class ReportState(Enum):
    """Outcome of reporting one add-on total.

    Remote reporting walks CHECKING -> (CREATING -> CREATED ->) UPDATING ->
    UPDATED and lands in FAILED if any step errors. Log-only reporting ends
    in LOGGED.
    """

    NOT_REPORTED = "not_reported"
    CHECKING = "checking"
    CREATING = "creating"
    CREATED = "created"
    UPDATING = "updating"
    UPDATED = "updated"
    LOGGED = "logged"
    FAILED = "failed"


@dataclass
class AddonTotal:
    """The aggregated download count for one add-on.

    Attributes:
        name: Add-on name.
        total: Sum of the per-source counts that arrived.
        counts: Count per source, for the sources that produced one.
        missing: Sources that never produced a count.
        reported_at: When the total was completed.
    """

    name: str
    total: int
    counts: dict[str, int]
    missing: tuple[str, ...] = ()
    reported_at: datetime = field(
        default_factory=lambda: datetime.now().astimezone()
    )

    @property
    def partial(self) -> bool:
        return bool(self.missing)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total": self.total,
            "counts": dict(self.counts),
            "missing": list(self.missing),
            "partial": self.partial,
            "reported_at": self.reported_at.isoformat(),
        }
