"""
Data quality error classifications for fasting-state records.

These exceptions describe problems with a stored record or an inbound sync
message that the core recovers from locally instead of surfacing them.
"""

from typing import Optional, Dict, Any


class DataQualityError(Exception):
    """Base class for data quality issues that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class TransientReadError(DataQualityError):
    """A stored field was momentarily unreadable or could not be decoded."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field_name = field_name


class MalformedSyncMessageError(DataQualityError):
    """Inbound sync message exists but is not a well-formed session record."""

    def __init__(self, message: str, raw_data: Optional[Dict[str, Any]] = None,
                 path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.path = path
