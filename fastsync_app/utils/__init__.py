"""
Utility functions module.

Time Semantics:
- All timestamps are integer milliseconds since the Unix epoch
- Wall-clock time is read through ``now_millis`` so tests can patch one place
- Durations are non-negative integer milliseconds
"""
