"""Configuration loading for the add-on list and extractor rules.

The add-on file is a JSON array::

    [
      {
        "name": "GoldCounter",
        "curseforge": "http://wow.curseforge.com/addons/goldcounter/",
        "wowinterface": "http://www.wowinterface.com/downloads/author-318870.html"
      }
    ]

Every failure here is fatal and happens before any page is fetched.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from addon_fetcher.common.exceptions import (
    ConfigurationError,
    MissingEntriesError,
    MissingFieldError,
)
from addon_fetcher.data_types import (
    AddonConfig,
    AddonDescriptor,
    SourceUrlRegistry,
)
from addon_fetcher.extractors import ExtractionRules

logger = logging.getLogger(__name__)


class AddonEntry(BaseModel):
    """Schema of one entry in the add-on file."""

    model_config = ConfigDict(extra="ignore", strict=True)

    name: str
    curseforge: str
    wowinterface: str


def _read_json(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Could not read file: {e.strerror or e}", str(path)
        ) from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON: {e}", str(path)) from e


def _validation_error(
    error: ValidationError, index: int, path: Path
) -> ConfigurationError:
    """Translate a pydantic error for one entry into our taxonomy.

    A missing field wins over any other problem so the message names it.
    """
    for err in error.errors():
        if err["type"] == "missing" and err["loc"]:
            return MissingFieldError(str(err["loc"][0]), index, str(path))

    summary = ", ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'entry'}: {err['msg']}"
        for err in error.errors()
    )
    return ConfigurationError(
        f"Invalid addon entry {index}: {summary}", str(path)
    )


def load_addons(path: Path | str) -> AddonConfig:
    """Load and validate the add-on file.

    Args:
        path: Path to the JSON add-on file.

    Returns:
        AddonConfig with one descriptor per entry, in file order, and the
        source URL registry.

    Raises:
        MissingEntriesError: If the array is empty.
        MissingFieldError: If an entry lacks name, curseforge or wowinterface.
        ConfigurationError: For unreadable files, invalid JSON, a non-array
            top level, wrongly typed values or duplicate names.
    """
    path = Path(path)
    data = _read_json(path)

    if not isinstance(data, list):
        raise ConfigurationError(
            "Expected a JSON array of addon entries.", str(path)
        )
    if len(data) < 1:
        raise MissingEntriesError(str(path))

    registry = SourceUrlRegistry()
    descriptors: list[AddonDescriptor] = []
    for index, raw_entry in enumerate(data):
        try:
            entry = AddonEntry.model_validate(raw_entry)
        except ValidationError as e:
            raise _validation_error(e, index, path) from e

        descriptor = AddonDescriptor(
            name=entry.name,
            curseforge_url=entry.curseforge,
            wowinterface_url=entry.wowinterface,
        )
        registry.register(descriptor)
        descriptors.append(descriptor)

    logger.debug(f"Loaded {len(descriptors)} addon(s) from {path}")
    return AddonConfig(descriptors=descriptors, registry=registry)


def load_rules(path: Path | str) -> ExtractionRules:
    """Load extractor rule overrides from a JSON file.

    Any rule or field left out keeps its default, so a file containing only
    ``{"curseforge": {"label_text": "Total Downloads"}}`` is valid.

    Raises:
        ConfigurationError: For unreadable files, invalid JSON or values
            that do not fit the rule models.
    """
    path = Path(path)
    data = _read_json(path)

    try:
        return ExtractionRules.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid extraction rules: {e}", str(path)
        ) from e
