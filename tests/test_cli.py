"""Tests for the command line entry point."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from addon_fetcher import __version__
from addon_fetcher.cli import cli
from tests.conftest import write_addons_file
from tests.mock_server import ApiState

CLEAN_ENV = {"ADDON_API_URL": None, "ADDON_API_TOKEN": None}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestUsage:
    """Argument validation happens before anything is loaded or fetched."""

    def test_file_is_required(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 2
        assert "--file" in result.output

    def test_url_requires_token(
        self, runner: CliRunner, addons_file: Path
    ) -> None:
        """--url without a token shall be a usage error."""
        result = runner.invoke(
            cli,
            ["-f", str(addons_file), "-u", "http://example.com/api"],
            env=CLEAN_ENV,
        )

        assert result.exit_code == 2
        assert "token argument is required" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_shows_example(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "addon.json contents" in result.output

    @pytest.mark.parametrize("workers", ["0", "-1", "many"])
    def test_invalid_workers(
        self, runner: CliRunner, addons_file: Path, workers: str
    ) -> None:
        result = runner.invoke(
            cli, ["-f", str(addons_file), "--workers", workers], env=CLEAN_ENV
        )

        assert result.exit_code == 2


class TestConfigurationErrors:
    """A broken add-on file shall exit 1 before any page is fetched."""

    def test_empty_array(self, runner: CliRunner, tmp_path: Path) -> None:
        path = write_addons_file(tmp_path / "addons.json", [])

        result = runner.invoke(cli, ["-f", str(path)], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "at least one addon entry" in result.output

    def test_missing_field(self, runner: CliRunner, tmp_path: Path) -> None:
        path = write_addons_file(
            tmp_path / "addons.json",
            [{"name": "GoldCounter", "curseforge": "http://example.com/a"}],
        )

        result = runner.invoke(cli, ["-f", str(path)], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert '"wowinterface" was missing' in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["-f", str(tmp_path / "absent.json")], env=CLEAN_ENV
        )

        assert result.exit_code == 1

    def test_bad_rules(
        self, runner: CliRunner, addons_file: Path, tmp_path: Path
    ) -> None:
        rules = tmp_path / "rules.json"
        rules.write_text('{"curseforge": {"colour": "blue"}}', encoding="utf-8")

        result = runner.invoke(
            cli, ["-f", str(addons_file), "--rules", str(rules)], env=CLEAN_ENV
        )

        assert result.exit_code == 1
        assert "Invalid extraction rules" in result.output

    def test_bad_rules_xpath_fails_before_fetching(
        self,
        runner: CliRunner,
        addons_file: Path,
        tmp_path: Path,
        api_url: str,
        api_state: ApiState,
    ) -> None:
        """A malformed XPath rule shall exit 1 without touching the network."""
        rules = tmp_path / "rules.json"
        rules.write_text(
            '{"wowinterface": {"stats_cell_xpath": "*[last("}}',
            encoding="utf-8",
        )

        result = runner.invoke(
            cli,
            [
                "-f", str(addons_file),
                "--rules", str(rules),
                "-u", api_url,
                "-t", "secret",
            ],
            env=CLEAN_ENV,
        )

        assert result.exit_code == 1
        assert "Invalid XPath expression" in result.output
        assert api_state.calls == []


class TestRun:
    """End-to-end runs against the mock server."""

    def test_log_only_run(
        self, runner: CliRunner, addons_file: Path, tmp_path: Path
    ) -> None:
        """A log-only run shall write every total to the output file."""
        output = tmp_path / "totals.jsonl"

        result = runner.invoke(
            cli,
            ["-f", str(addons_file), "-o", str(output), "--workers", "2"],
            env=CLEAN_ENV,
        )

        assert result.exit_code == 0, result.output
        assert "Done. 3 complete, 0 partial, 0 report failure(s)." in result.output
        records = [json.loads(line) for line in output.read_text().splitlines()]
        assert {r["name"]: r["total"] for r in records} == {
            "GoldCounter": 6912,
            "Bag Sorter": 30,
            "QuestLog Plus": 15900,
        }

    def test_remote_run_posts_totals(
        self,
        runner: CliRunner,
        addons_file: Path,
        api_url: str,
        api_state: ApiState,
    ) -> None:
        """With --url and --token every add-on shall be created and updated."""
        result = runner.invoke(
            cli,
            ["-f", str(addons_file), "-u", api_url, "-t", "secret"],
            env=CLEAN_ENV,
        )

        assert result.exit_code == 0, result.output
        updates = {
            name: body["count"]
            for route, name, body in api_state.calls
            if route == "update"
        }
        assert updates == {
            "GoldCounter": 6912,
            "Bag Sorter": 30,
            "QuestLog Plus": 15900,
        }
        assert api_state.known == set(updates)
        assert all(h["api-token"] == "secret" for h in api_state.headers)

    def test_url_and_token_from_environment(
        self,
        runner: CliRunner,
        addons_file: Path,
        api_url: str,
        api_state: ApiState,
    ) -> None:
        result = runner.invoke(
            cli,
            ["-f", str(addons_file)],
            env={"ADDON_API_URL": api_url, "ADDON_API_TOKEN": "from-env"},
        )

        assert result.exit_code == 0, result.output
        assert api_state.headers
        assert all(h["api-token"] == "from-env" for h in api_state.headers)

    def test_report_failures_are_counted(
        self,
        runner: CliRunner,
        addons_file: Path,
        api_url: str,
        api_state: ApiState,
    ) -> None:
        """Reporting errors shall not change the exit code."""
        api_state.fail["update"] = 500

        result = runner.invoke(
            cli,
            ["-f", str(addons_file), "-u", api_url, "-t", "secret"],
            env=CLEAN_ENV,
        )

        assert result.exit_code == 0, result.output
        assert "3 report failure(s)" in result.output
