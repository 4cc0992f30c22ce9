"""
Wire format for fasting session sync messages.

A message is a flat key/value map carrying the four session fields, addressed
to one fixed logical path.
"""

from typing import Any, Mapping

from ..errors import MalformedSyncMessageError
from ..models.session import FastingSession

FASTING_PATH = "/fasting_state"

IS_FASTING_KEY = "is_fasting"
START_TIME_KEY = "start_time_millis"
FASTING_GOAL_KEY = "fasting_goal_id"
UPDATE_TIMESTAMP_KEY = "update_timestamp"

REQUIRED_KEYS = (IS_FASTING_KEY, START_TIME_KEY, FASTING_GOAL_KEY, UPDATE_TIMESTAMP_KEY)


def encode_session(session: FastingSession) -> dict[str, Any]:
    """Serialize a session into a sync data map."""
    return {
        IS_FASTING_KEY: bool(session.is_fasting),
        START_TIME_KEY: int(session.start_time_millis),
        FASTING_GOAL_KEY: str(session.fasting_goal_id),
        UPDATE_TIMESTAMP_KEY: int(session.last_updated_millis),
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_session(data_map: Mapping[str, Any]) -> FastingSession:
    """
    Parse a sync data map.

    Only checks that the map is a well-formed record; values are applied as
    received.

    Raises:
        MalformedSyncMessageError: when a key is missing or has the wrong type.
    """
    if not isinstance(data_map, Mapping):
        raise MalformedSyncMessageError(
            f"Sync payload is not a map: {type(data_map).__name__}",
            path=FASTING_PATH
        )

    missing = [key for key in REQUIRED_KEYS if key not in data_map]
    if missing:
        raise MalformedSyncMessageError(
            f"Sync payload missing keys: {missing}",
            raw_data=dict(data_map),
            path=FASTING_PATH
        )

    is_fasting = data_map[IS_FASTING_KEY]
    start_time = data_map[START_TIME_KEY]
    goal_id = data_map[FASTING_GOAL_KEY]
    updated_at = data_map[UPDATE_TIMESTAMP_KEY]

    problems = []
    if not isinstance(is_fasting, bool):
        problems.append(IS_FASTING_KEY)
    if not _is_int(start_time):
        problems.append(START_TIME_KEY)
    if not isinstance(goal_id, str) or not goal_id:
        problems.append(FASTING_GOAL_KEY)
    if not _is_int(updated_at) or updated_at < 0:
        problems.append(UPDATE_TIMESTAMP_KEY)

    if problems:
        raise MalformedSyncMessageError(
            f"Sync payload has invalid values for: {problems}",
            raw_data=dict(data_map),
            path=FASTING_PATH
        )

    return FastingSession(
        is_fasting=is_fasting,
        start_time_millis=start_time,
        fasting_goal_id=goal_id,
        last_updated_millis=updated_at,
    )
