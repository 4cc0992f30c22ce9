"""
Device-to-device synchronization of the fasting session.
"""
from .codec import FASTING_PATH, decode_session, encode_session
from .cross_device import CrossDeviceSync

__all__ = ["FASTING_PATH", "CrossDeviceSync", "decode_session", "encode_session"]
