"""
Configuration system for ceiba using Pydantic.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError
from .schema.models import DatasetSpec


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class CeibaConfig(BaseSettings):
    """Main ceiba configuration."""

    project: Optional[str] = Field(None, description="Default cloud project id")
    location: str = Field("US", description="Default dataset location")
    credentials_file: Optional[str] = Field(
        None, description="Service account key file; application default credentials if unset"
    )
    ignore_cache: bool = Field(
        False, description="Disregard cached hash labels and fully reconcile"
    )

    datasets: List[DatasetSpec] = Field(
        default_factory=list, description="Declared datasets"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="CEIBA_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CeibaConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)
            data = cls._apply_dataset_defaults(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    @classmethod
    def _apply_dataset_defaults(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill each dataset's project and location from the top level."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        defaults = {
            "project": data.get("project") or os.environ.get("CEIBA_PROJECT"),
            "location": data.get("location") or os.environ.get("CEIBA_LOCATION", "US"),
        }
        datasets = []
        for dataset in data.get("datasets") or []:
            if isinstance(dataset, dict):
                dataset = dict(dataset)
                for key, value in defaults.items():
                    if value and not dataset.get(key):
                        dataset[key] = value
            datasets.append(dataset)
        return {**data, "datasets": datasets}

    def get_dataset(self, dataset_id: str) -> DatasetSpec:
        """Get a declared dataset by id."""
        for dataset in self.datasets:
            if dataset.id == dataset_id:
                return dataset
        raise ConfigurationError(f"Dataset '{dataset_id}' not found in configuration")

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        seen = set()
        for dataset in self.datasets:
            key = (dataset.project, dataset.id)
            if key in seen:
                raise ConfigurationError(
                    f"Dataset {dataset.project}.{dataset.id} is declared more than once"
                )
            seen.add(key)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        data = self.model_dump(
            exclude_none=True, exclude={"datasets"}, mode="json"
        )
        data["datasets"] = [d.to_dict() for d in self.datasets]
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)


def configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Configure the root logger from a LoggingConfig."""
    level = logging.DEBUG if debug else getattr(logging, config.level)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.max_size,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )
    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)
