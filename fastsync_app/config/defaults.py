"""Default configuration parameters for the fasting-state core."""

from dataclasses import dataclass

from ..models.goals import DEFAULT_GOAL_ID
from ..sync.codec import FASTING_PATH


@dataclass(frozen=True)
class StoreParams:
    """Local persistence parameters."""
    db_path: str = "fasting_state.db"


@dataclass(frozen=True)
class SyncParams:
    """Cross-device sync parameters."""
    enabled: bool = True
    path: str = FASTING_PATH                  # Logical path of the session data item
    transport: str = "file"                   # file, loopback
    spool_dir: str = ".fastsync/spool"        # Shared directory for the file transport
    device_id: str = "phone"                  # Identifies this device's writes
    poll_interval_ms: int = 1000


@dataclass(frozen=True)
class TickerParams:
    """Elapsed-time ticker parameters."""
    interval_ms: int = 1000


@dataclass(frozen=True)
class GoalParams:
    """Goal selection parameters."""
    default_goal_id: str = DEFAULT_GOAL_ID


@dataclass(frozen=True)
class LoggingParams:
    """Logging parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    store: StoreParams
    sync: SyncParams
    ticker: TickerParams
    goals: GoalParams
    logging: LoggingParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        store=StoreParams(),
        sync=SyncParams(),
        ticker=TickerParams(),
        goals=GoalParams(),
        logging=LoggingParams(),
    )
