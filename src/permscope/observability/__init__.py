"""
Observability for Permscope.

Provides logging configuration and analysis event logging.
"""

from permscope.observability.logging import (
    HumanReadableFormatter,
    PermscopeLogger,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "HumanReadableFormatter",
    "PermscopeLogger",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
]
