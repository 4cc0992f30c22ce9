"""
Durable storage for the singleton fasting record.
"""
from .session_store import SessionStore

__all__ = ["SessionStore"]
