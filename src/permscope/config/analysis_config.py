"""
Analysis configuration for Permscope.

Provides configuration for activity collection, worker scheduling and the
Log Analytics workspace, loaded from files or environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml


class ConfigurationError(Exception):
    """Raised when a configuration is invalid or cannot be loaded."""

    pass


@dataclass
class AnalysisConfiguration:
    """
    Complete analysis configuration.

    Attributes:
        lookback_days: Days of activity to analyze
        max_entries: Row cap for the initial query of each application
        max_workers: Worker pool width
        stall_timeout_seconds: Seconds without a result before the batch stops
        min_window_days: Window width at which bisection stops
        workspace_id: Log Analytics workspace ID
        log_table: Table holding Graph activity
        principal_column: Column identifying the calling application
        query_timeout_seconds: Server-side timeout for each query
    """

    lookback_days: int = 30
    max_entries: int = 100000
    max_workers: int = 10
    stall_timeout_seconds: float = 300.0
    min_window_days: float = 1.0
    workspace_id: str = ""
    log_table: str = "MicrosoftGraphActivityLogs"
    principal_column: str = "AppId"
    query_timeout_seconds: int = 600

    @property
    def min_window(self) -> timedelta:
        """Minimum bisection window as a timedelta."""
        return timedelta(days=self.min_window_days)

    def validate(self) -> list[str]:
        """
        Validate configuration values.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.lookback_days < 1:
            errors.append("lookback_days must be at least 1")
        if self.max_entries < 1:
            errors.append("max_entries must be at least 1")
        if self.max_workers < 1:
            errors.append("max_workers must be at least 1")
        if self.stall_timeout_seconds <= 0:
            errors.append("stall_timeout_seconds must be positive")
        if self.min_window_days <= 0:
            errors.append("min_window_days must be positive")
        if self.min_window_days > self.lookback_days:
            errors.append("min_window_days cannot exceed lookback_days")
        if self.query_timeout_seconds < 1:
            errors.append("query_timeout_seconds must be at least 1")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "lookback_days": self.lookback_days,
            "max_entries": self.max_entries,
            "max_workers": self.max_workers,
            "stall_timeout_seconds": self.stall_timeout_seconds,
            "min_window_days": self.min_window_days,
            "workspace_id": self.workspace_id,
            "log_table": self.log_table,
            "principal_column": self.principal_column,
            "query_timeout_seconds": self.query_timeout_seconds,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisConfiguration:
        """Create from dictionary."""
        defaults = cls()
        try:
            return cls(
                lookback_days=int(data.get("lookback_days", defaults.lookback_days)),
                max_entries=int(data.get("max_entries", defaults.max_entries)),
                max_workers=int(data.get("max_workers", defaults.max_workers)),
                stall_timeout_seconds=float(
                    data.get("stall_timeout_seconds", defaults.stall_timeout_seconds)
                ),
                min_window_days=float(data.get("min_window_days", defaults.min_window_days)),
                workspace_id=str(data.get("workspace_id", defaults.workspace_id)),
                log_table=str(data.get("log_table", defaults.log_table)),
                principal_column=str(data.get("principal_column", defaults.principal_column)),
                query_timeout_seconds=int(
                    data.get("query_timeout_seconds", defaults.query_timeout_seconds)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

    @classmethod
    def from_json(cls, json_str: str) -> AnalysisConfiguration:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_file(cls, path: str) -> AnalysisConfiguration:
        """Load configuration from a JSON or YAML file."""
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot parse configuration file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return cls.from_dict(data)

    def save(self, path: str) -> None:
        """Save configuration to a JSON or YAML file."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config_from_env() -> AnalysisConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        PERMSCOPE_CONFIG_FILE: Path to configuration file
        PERMSCOPE_WORKSPACE_ID: Log Analytics workspace ID
        PERMSCOPE_LOOKBACK_DAYS: Days of activity to analyze
        PERMSCOPE_MAX_ENTRIES: Initial row cap per application
        PERMSCOPE_MAX_WORKERS: Worker pool width
        PERMSCOPE_STALL_TIMEOUT: Stall timeout in seconds

    Returns:
        AnalysisConfiguration instance
    """
    config_file = os.getenv("PERMSCOPE_CONFIG_FILE")
    if config_file and os.path.exists(config_file):
        config = AnalysisConfiguration.from_file(config_file)
    else:
        config = AnalysisConfiguration()

    overrides = {
        "workspace_id": os.getenv("PERMSCOPE_WORKSPACE_ID"),
        "lookback_days": os.getenv("PERMSCOPE_LOOKBACK_DAYS"),
        "max_entries": os.getenv("PERMSCOPE_MAX_ENTRIES"),
        "max_workers": os.getenv("PERMSCOPE_MAX_WORKERS"),
        "stall_timeout_seconds": os.getenv("PERMSCOPE_STALL_TIMEOUT"),
    }
    overrides = {k: v for k, v in overrides.items() if v}
    if overrides:
        config = AnalysisConfiguration.from_dict({**config.to_dict(), **overrides})

    return config
