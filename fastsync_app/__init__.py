"""
FastSync App - Intermittent Fasting State Core

Tracks a single intermittent-fasting session and keeps it consistent between
a handheld app and a paired wearable. Provides the durable fasting-state
store, device-to-device synchronization, a multi-subscriber state stream and
a live elapsed-time ticker that every presentation surface derives from.
"""

__version__ = "0.1.0"
__author__ = "FastSync Team"
