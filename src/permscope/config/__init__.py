"""
Configuration management for Permscope.

Provides the analysis configuration and utilities for loading it from
files and environment variables.
"""

from permscope.config.analysis_config import (
    AnalysisConfiguration,
    ConfigurationError,
    load_config_from_env,
)

__all__ = [
    "AnalysisConfiguration",
    "ConfigurationError",
    "load_config_from_env",
]
