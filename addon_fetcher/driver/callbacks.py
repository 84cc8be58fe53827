"""Callback functions for the driver's on_total parameter.

Example::

    from addon_fetcher.driver.callbacks import save_to_jsonl_path

    driver = AsyncDriver(
        config, build_extractors(), on_total=save_to_jsonl_path("totals.jsonl")
    )
    await driver.run()
"""

import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TextIO

from addon_fetcher.data_types import AddonTotal


def save_to_jsonl_file(
    file_handle: TextIO,
) -> Callable[[AddonTotal], Awaitable[None]]:
    """Create a callback that writes each total to an open JSONL file.

    Args:
        file_handle: An open file handle to write JSON lines to.
            The caller is responsible for opening and closing the file.

    Returns:
        An async callback for the driver's on_total parameter.
    """

    async def callback(total: AddonTotal) -> None:
        json.dump(total.to_dict(), file_handle)
        file_handle.write("\n")
        file_handle.flush()

    return callback


def save_to_jsonl_path(
    file_path: Path | str,
) -> Callable[[AddonTotal], Awaitable[None]]:
    """Create a callback that appends each total to a JSONL file.

    The file is opened for each write, so nothing has to be closed afterwards.

    Warning:
        This appends. Delete the file first if you want only this run's totals.

    Args:
        file_path: Path to the JSONL file to append to.

    Returns:
        An async callback for the driver's on_total parameter.
    """
    path = Path(file_path)

    async def callback(total: AddonTotal) -> None:
        with path.open("a", encoding="utf-8") as file_handle:
            json.dump(total.to_dict(), file_handle)
            file_handle.write("\n")

    return callback
