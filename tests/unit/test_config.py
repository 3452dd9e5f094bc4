"""
Tests for ceiba.config module.
"""

import logging
import logging.handlers

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from ceiba.config import CeibaConfig, LoggingConfig, configure_logging
from ceiba.exceptions import ConfigurationError


class TestLoggingConfig:
    """Test LoggingConfig."""

    def test_defaults(self):
        """Test default logging values."""
        config = LoggingConfig()

        assert config.level == "INFO"
        assert config.file is None
        assert config.backup_count == 5

    def test_invalid_level(self):
        """Test unknown levels are rejected."""
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="LOUD")


class TestCeibaConfig:
    """Test CeibaConfig loading."""

    def test_from_yaml(self, temp_config_file):
        """Test datasets inherit project and location from the top level."""
        config = CeibaConfig.from_yaml(temp_config_file)

        assert config.project == "test-project"
        dataset = config.get_dataset("analytics")
        assert dataset.project == "test-project"
        assert dataset.location == "EU"
        assert dataset.table_ids == ["events", "daily"]

    def test_dataset_values_take_precedence(self, tmp_path):
        """Test per-dataset project and location are not overwritten."""
        path = tmp_path / "c.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "project": "top",
                    "datasets": [{"id": "ds", "project": "own", "location": "asia-east1"}],
                }
            )
        )

        dataset = CeibaConfig.from_yaml(path).get_dataset("ds")

        assert dataset.project == "own"
        assert dataset.location == "asia-east1"

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        """Test ${VAR} references are expanded."""
        monkeypatch.setenv("GCP_PROJECT", "from-env")
        path = tmp_path / "c.yaml"
        path.write_text("project: ${GCP_PROJECT}\ndatasets:\n  - id: ds\n")

        config = CeibaConfig.from_yaml(path)

        assert config.get_dataset("ds").project == "from-env"

    def test_project_from_environment(self, tmp_path, monkeypatch):
        """Test CEIBA_PROJECT fills datasets when the file has no project."""
        monkeypatch.setenv("CEIBA_PROJECT", "env-project")
        path = tmp_path / "c.yaml"
        path.write_text("datasets:\n  - id: ds\n")

        config = CeibaConfig.from_yaml(path)

        assert config.get_dataset("ds").project == "env-project"
        assert config.get_dataset("ds").location == "US"

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            CeibaConfig.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigurationError."""
        path = tmp_path / "c.yaml"
        path.write_text("datasets: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            CeibaConfig.from_yaml(path)

    def test_invalid_dataset(self, tmp_path):
        """Test a dataset without a project raises ConfigurationError."""
        path = tmp_path / "c.yaml"
        path.write_text("datasets:\n  - id: ds\n    tables:\n      - {id: v, type: view}\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            CeibaConfig.from_yaml(path)

    def test_non_mapping(self, tmp_path):
        """Test a top-level list is rejected."""
        path = tmp_path / "c.yaml"
        path.write_text("- a\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            CeibaConfig.from_yaml(path)

    def test_get_dataset_missing(self, temp_config_file):
        """Test looking up an undeclared dataset."""
        config = CeibaConfig.from_yaml(temp_config_file)

        with pytest.raises(ConfigurationError, match="not found"):
            config.get_dataset("nope")

    def test_validate_config_duplicates(self, sample_dataset):
        """Test the same dataset cannot be declared twice."""
        config = CeibaConfig(datasets=[sample_dataset, sample_dataset])

        with pytest.raises(ConfigurationError, match="more than once"):
            config.validate_config()

    def test_to_yaml_round_trip(self, temp_config_file, tmp_path):
        """Test a saved configuration loads back equal."""
        config = CeibaConfig.from_yaml(temp_config_file)
        out = tmp_path / "out.yaml"

        config.to_yaml(out)

        reloaded = CeibaConfig.from_yaml(out)
        assert reloaded.datasets == config.datasets
        assert reloaded.logging == config.logging


class TestConfigureLogging:
    """Test configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        """Put the root logger back the way pytest configured it."""
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_level(self):
        """Test the configured level is applied to the root logger."""
        configure_logging(LoggingConfig(level="WARNING"))

        assert logging.getLogger().level == logging.WARNING

    def test_debug_overrides_level(self):
        """Test debug mode forces DEBUG."""
        configure_logging(LoggingConfig(level="ERROR"), debug=True)

        assert logging.getLogger().level == logging.DEBUG

    def test_rotating_file(self, tmp_path):
        """Test a log file adds a rotating handler."""
        configure_logging(LoggingConfig(file=str(tmp_path / "ceiba.log")))

        handlers = logging.getLogger().handlers
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)
        for handler in handlers:
            handler.close()
