"""
Unit tests for the ceiba CLI interface.
"""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from ceiba.cli import handle_errors, main
from ceiba.exceptions import ConfigurationError


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture
def patched_store(fake_store):
    """Route BigQueryStore construction to the fake store."""
    with patch("ceiba.store.bigquery.BigQueryStore", return_value=fake_store) as store_cls, \
            patch("ceiba.cli.configure_logging"):
        yield store_cls


class TestCLIMain:
    """Test main CLI functionality."""

    def test_cli_help(self, runner):
        """Test CLI help output."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "ceiba: Declarative, non-destructive schema sync" in result.output
        for command in ("init", "validate-config", "hash", "sync", "sync-tables"):
            assert command in result.output

    def test_cli_version(self, runner):
        """Test CLI version output."""
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestInitCommand:
    """Test init command functionality."""

    def test_init_writes_example(self, runner, tmp_path):
        """Test an example configuration is written and loads."""
        output = tmp_path / "ceiba.yaml"

        result = runner.invoke(main, ["init", "-o", str(output)])

        assert result.exit_code == 0
        assert "Configuration file created" in result.output
        data = yaml.safe_load(output.read_text())
        assert data["datasets"][0]["id"] == "analytics"
        assert [t["id"] for t in data["datasets"][0]["tables"]] == ["events", "daily_events"]

    def test_init_keeps_existing_file(self, runner, tmp_path):
        """Test declining the overwrite prompt leaves the file alone."""
        output = tmp_path / "ceiba.yaml"
        output.write_text("keep: me\n")

        result = runner.invoke(main, ["init", "-o", str(output)], input="n\n")

        assert result.exit_code == 0
        assert output.read_text() == "keep: me\n"


class TestValidateConfigCommand:
    """Test validate-config command."""

    def test_valid(self, runner, temp_config_file):
        """Test a valid configuration prints a summary."""
        result = runner.invoke(main, ["validate-config", "-c", temp_config_file])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "analytics" in result.output

    def test_invalid(self, runner, tmp_path):
        """Test an invalid configuration exits with status 1."""
        path = tmp_path / "bad.yaml"
        path.write_text("datasets:\n  - id: ds\n    tables:\n      - {id: v, type: view}\n")

        result = runner.invoke(main, ["validate-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestHashCommand:
    """Test hash command."""

    def test_hash(self, runner, temp_config_file):
        """Test hashes are printed for every scope."""
        result = runner.invoke(main, ["hash", "-c", temp_config_file])

        assert result.exit_code == 0
        assert "properties" in result.output
        assert "events" in result.output

    def test_hash_unknown_dataset(self, runner, temp_config_file):
        """Test an undeclared dataset id fails."""
        result = runner.invoke(main, ["hash", "-c", temp_config_file, "-d", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestSyncCommand:
    """Test sync and sync-tables commands."""

    def test_sync_creates_dataset(self, runner, temp_config_file, patched_store, fake_store):
        """Test sync builds a store per dataset and creates it."""
        result = runner.invoke(main, ["sync", "-c", temp_config_file])

        assert result.exit_code == 0, result.output
        patched_store.assert_called_once_with(
            project="test-project", location="EU", credentials_file=None
        )
        assert "analytics" in fake_store.datasets
        assert "created" in result.output

    def test_sync_writes_output(self, runner, temp_config_file, patched_store, tmp_path):
        """Test the synchronized specs are written as YAML."""
        output = tmp_path / "state.yaml"

        result = runner.invoke(main, ["sync", "-c", temp_config_file, "-o", str(output)])

        assert result.exit_code == 0, result.output
        state = yaml.safe_load(output.read_text())
        assert state["datasets"][0]["id"] == "analytics"
        assert "ceiba_dataset_hash" not in str(state)

    def test_sync_ignore_cache(self, runner, temp_config_file, patched_store, fake_store):
        """Test --ignore-cache inspects every table on an existing dataset."""
        runner.invoke(main, ["sync", "-c", temp_config_file])
        fake_store.reset_calls()

        result = runner.invoke(main, ["sync", "-c", temp_config_file, "--ignore-cache"])

        assert result.exit_code == 0, result.output
        assert len(fake_store.calls_to("get_table")) == 2

    def test_sync_unknown_dataset(self, runner, temp_config_file, patched_store):
        """Test selecting an undeclared dataset fails."""
        result = runner.invoke(main, ["sync", "-c", temp_config_file, "-d", "nope"])

        assert result.exit_code == 1

    def test_sync_tables(self, runner, temp_config_file, patched_store, fake_store):
        """Test a partial sync of an existing dataset."""
        runner.invoke(main, ["sync", "-c", temp_config_file])
        fake_store.reset_calls()

        result = runner.invoke(
            main, ["sync-tables", "-c", temp_config_file, "-d", "analytics", "-t", "events"]
        )

        assert result.exit_code == 0, result.output
        assert "unchanged" in result.output
        assert fake_store.writes == []

    def test_sync_tables_missing_dataset(self, runner, temp_config_file, patched_store):
        """Test a partial sync never creates the dataset."""
        result = runner.invoke(
            main, ["sync-tables", "-c", temp_config_file, "-d", "analytics", "-t", "events"]
        )

        assert result.exit_code == 1
        assert "does not exist" in result.output


class TestHandleErrors:
    """Test the error handling decorator."""

    def test_ceiba_error_exits_1(self):
        """Test ceiba errors become exit status 1."""
        @handle_errors
        def failing():
            raise ConfigurationError("bad")

        with pytest.raises(SystemExit) as exc_info:
            failing()

        assert exc_info.value.code == 1

    def test_passes_through_result(self):
        """Test successful calls return normally."""
        @handle_errors
        def ok():
            return 42

        assert ok() == 42
