"""Command line entry point.

Usage:
    addon-download-count-fetcher -f addons.json
    addon-download-count-fetcher -f addons.json -u https://example.com/api -t TOKEN
    addon-download-count-fetcher -f addons.json --workers 8 -o totals.jsonl
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path

import click

from addon_fetcher import __version__
from addon_fetcher.common.exceptions import ConfigurationError
from addon_fetcher.common.request_manager import (
    DEFAULT_TIMEOUT,
    AsyncRequestManager,
)
from addon_fetcher.config import load_addons, load_rules
from addon_fetcher.data_types import AddonConfig, ReportState
from addon_fetcher.driver.async_driver import AsyncDriver, RunSummary
from addon_fetcher.driver.callbacks import save_to_jsonl_path
from addon_fetcher.extractors import ExtractionRules, build_extractors
from addon_fetcher.remote import RemoteApiClient
from addon_fetcher.reporter import LogReporter, RemoteReporter, Reporter

EXAMPLE = """\b
Example:
  $ addon-download-count-fetcher -f addon.json -u https://example.com/ -t TOKEN

\b
  addon.json contents:
  [
    {
      "name": "GoldCounter",
      "curseforge": "http://wow.curseforge.com/addons/goldcounter/",
      "wowinterface": "http://www.wowinterface.com/downloads/author-318870.html"
    }
  ]
"""


@click.command(epilog=EXAMPLE)
@click.version_option(version=__version__)
@click.option(
    "-f",
    "--file",
    "file_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="Path to JSON file with addon details.",
)
@click.option(
    "-u",
    "--url",
    "api_url",
    envvar="ADDON_API_URL",
    default=None,
    help="Base URL of REST API to post totals to.",
)
@click.option(
    "-t",
    "--token",
    "api_token",
    envvar="ADDON_API_TOKEN",
    default=None,
    help="API token sent with every REST API request (required with --url).",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=4,
    show_default=True,
    help="Maximum number of pages fetched at the same time.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Timeout in seconds for each HTTP request.",
)
@click.option(
    "--completion-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help=(
        "Seconds to wait for all pages; addons still waiting afterwards "
        "are reported as partial."
    ),
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON file overriding the page extraction rules.",
)
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append every total to this JSON lines file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    file_path: str,
    api_url: str | None,
    api_token: str | None,
    workers: int,
    timeout: float,
    completion_timeout: float | None,
    rules_path: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Fetch addon download counts from CurseForge and WoWInterface.

    Totals are logged, and posted to the REST API when --url is given.
    """
    if api_url and not api_token:
        raise click.UsageError(
            "The token argument is required when --url is provided.", ctx=ctx
        )

    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        config = load_addons(file_path)
        rules = load_rules(rules_path) if rules_path else ExtractionRules()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    summary = asyncio.run(
        _run(
            config,
            rules,
            api_url,
            api_token,
            workers,
            timeout,
            completion_timeout,
            Path(output_path) if output_path else None,
        )
    )

    failed = [
        name
        for name, state in summary.report_states.items()
        if state is ReportState.FAILED
    ]
    click.echo(
        f"Done. {len(summary.complete)} complete, "
        f"{len(summary.partial)} partial, {len(failed)} report failure(s)."
    )


async def _run(
    config: AddonConfig,
    rules: ExtractionRules,
    api_url: str | None,
    api_token: str | None,
    workers: int,
    timeout: float,
    completion_timeout: float | None,
    output_path: Path | None,
) -> RunSummary:
    on_total = save_to_jsonl_path(output_path) if output_path else None

    async with AsyncExitStack() as stack:
        request_manager = await stack.enter_async_context(
            AsyncRequestManager(timeout=timeout)
        )
        reporter: Reporter = LogReporter()
        if api_url and api_token:
            client = await stack.enter_async_context(
                RemoteApiClient(api_url, api_token, timeout=timeout)
            )
            reporter = RemoteReporter(client, config.registry)

        driver = AsyncDriver(
            config,
            build_extractors(rules),
            reporter=reporter,
            request_manager=request_manager,
            on_total=on_total,
            num_workers=workers,
            completion_timeout=completion_timeout,
        )
        return await driver.run()


def main() -> None:
    """Entry point for the ``addon-download-count-fetcher`` console script."""
    cli()
