"""
Error classification system for the fasting-state core.

This module provides a structured exception hierarchy separating recoverable
data problems (transient reads, malformed sync messages) from system failures
that must stay visible (contract violations, persistence outages).
"""

from .data_quality import (
    DataQualityError,
    TransientReadError,
    MalformedSyncMessageError,
)
from .system_failures import (
    SystemFailureError,
    PersistenceError,
    StateContractError,
    ConfigurationError,
)

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "TransientReadError",
    "MalformedSyncMessageError",
    # System Failures
    "SystemFailureError",
    "PersistenceError",
    "StateContractError",
    "ConfigurationError",
]
