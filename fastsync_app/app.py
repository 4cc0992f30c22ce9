"""
Application coordinator.

Wires the fasting-state store, cross-device sync and elapsed-time ticker from
configuration and owns their lifecycle on one device.
"""

from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from .config.defaults import DefaultConfig, SyncParams
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .errors import ConfigurationError
from .logging.config import configure_logging
from .persistence.session_store import SessionStore
from .state.store import FastingStateStore
from .state.ticker import ElapsedTimeTicker
from .sync.base import BaseSyncTransport
from .sync.cross_device import CrossDeviceSync
from .sync.file_transport import FileSyncTransport
from .sync.loopback import LoopbackTransport
from .utils.time import now_millis

logger = structlog.get_logger(__name__)


def build_transport(params: SyncParams) -> BaseSyncTransport:
    """Create the transport named by the sync configuration."""
    if params.transport == "file":
        return FileSyncTransport(
            name=f"file:{params.device_id}",
            spool_dir=params.spool_dir,
            device_id=params.device_id,
            poll_interval_ms=params.poll_interval_ms,
        )
    if params.transport == "loopback":
        return LoopbackTransport(params.device_id)
    raise ConfigurationError(f"Unsupported sync transport: {params.transport}")


class FastingApp:
    """
    Per-device composition root.

    Manages the pipeline:
    User action → Store → (Stream → Ticker, consumers) + (Sync → paired device)
    """

    def __init__(
        self,
        config: DefaultConfig,
        transport: Optional[BaseSyncTransport] = None,
        clock: Callable[[], int] = now_millis,
    ):
        self.config = config
        self.store = FastingStateStore(
            SessionStore(config.store.db_path),
            clock=clock,
            default_goal_id=config.goals.default_goal_id,
        )
        self.ticker = ElapsedTimeTicker(clock=clock, interval_ms=config.ticker.interval_ms)

        self.transport: Optional[BaseSyncTransport] = None
        self.sync: Optional[CrossDeviceSync] = None
        if config.sync.enabled:
            self.transport = transport or build_transport(config.sync)
            self.sync = CrossDeviceSync(self.store, self.transport, path=config.sync.path)

        self._started = False

    @classmethod
    def create(
        cls,
        config_dir: Optional[Path] = None,
        overrides: Optional[dict[str, Any]] = None,
        transport: Optional[BaseSyncTransport] = None,
        clock: Callable[[], int] = now_millis,
        setup_logging: bool = False,
    ) -> "FastingApp":
        """Load, validate and apply configuration, then build the app."""
        loader = ConfigLoader.create(config_dir)
        merged = loader.merge_config(overrides)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            messages = [f"{err.field}: {err.message} (got: {err.value})" for err in errors]
            logger.error("Configuration validation failed", errors=messages)
            raise ConfigurationError("Invalid configuration", errors=messages)

        config = loader.build_config(merged)
        if setup_logging:
            configure_logging(level=config.logging.level, format_json=config.logging.format_json)

        return cls(config, transport=transport, clock=clock)

    async def start(self) -> None:
        """Load the stored session, start syncing and ticking."""
        if self._started:
            return

        if self.sync is not None:
            self.sync.attach()
        if isinstance(self.transport, FileSyncTransport):
            self.transport.start_polling()

        session = await self.store.refresh()
        self.ticker.start(self.store.read())
        self._started = True

        logger.info(
            "Fasting app started",
            is_fasting=session.is_fasting,
            sync_enabled=self.sync is not None,
            transport=self.transport.name if self.transport else None
        )

    async def close(self) -> None:
        """Stop ticking, flush pending sync pushes and stop polling."""
        if not self._started:
            return

        await self.ticker.stop()
        if self.sync is not None:
            await self.sync.flush()
            self.sync.detach()
        if isinstance(self.transport, FileSyncTransport):
            await self.transport.stop_polling()

        self._started = False
        logger.info("Fasting app closed")
