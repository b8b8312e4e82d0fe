"""Settings snapshot store with watchfiles hot-reload.

SettingsStore owns the one live Settings reference the pipeline reads from.
Reads are a single attribute load — no lock on the request path. A reload
builds a complete new Settings first and only then swaps the reference, so
an in-flight request keeps whichever snapshot it already took.

Usage (in lifespan):
    store = SettingsStore(load_settings())
    asyncio.create_task(store.start_watcher(settings.path))
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

import watchfiles

from tlsgate.config import Settings, SettingsError, read_settings_file
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


class SettingsStore:
    """Atomically swappable holder for the current Settings snapshot."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        # Serialises writers only; readers never take it.
        self._write_lock = threading.Lock()

    # ── Public read API ───────────────────────────────────────────────────────

    def get(self) -> Optional[Settings]:
        """Return the current snapshot (None if nothing was ever published)."""
        return self._settings

    # ── Publish ───────────────────────────────────────────────────────────────

    def publish(self, settings: Settings) -> None:
        """Replace the current snapshot with a fully built one."""
        with self._write_lock:
            self._settings = settings

    def reload(self, path: str) -> bool:
        """Re-read ``path`` and publish the result.

        Returns True on success. On any config error the prior snapshot is kept
        and False is returned. Never raises.
        """
        try:
            settings = read_settings_file(path)
        except SettingsError as exc:
            logger.error(
                "Config reload failed — keeping prior settings",
                path=path,
                error=str(exc),
            )
            return False

        self.publish(settings)
        logger.info(
            "Settings hot-reloaded",
            path=path,
            mode=settings.mode.value,
            rules=len(settings.rules),
        )
        return True

    # ── Hot-reload watcher ────────────────────────────────────────────────────

    async def start_watcher(self, path: str) -> None:
        """Reload settings whenever ``path`` changes.

        Designed to run as an asyncio.Task; cancelled on shutdown. File reads
        are small and synchronous, matching the rest of the config layer.
        """
        logger.info("Config file watcher started", path=path)
        try:
            async for _ in watchfiles.awatch(path):
                try:
                    self.reload(path)
                except Exception as exc:  # noqa: BLE001
                    # One bad save must not end the watcher.
                    logger.error(
                        "Unexpected error reloading config — keeping prior settings",
                        path=path,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
        except asyncio.CancelledError:
            logger.debug("Config file watcher cancelled", path=path)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Config file watcher error (watcher stopped)",
                error=str(exc),
                path=path,
            )
