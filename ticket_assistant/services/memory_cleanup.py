"""
Periodic session expiration.
"""
import asyncio
import logging
from typing import Dict, Optional

from ticket_assistant.config import SESSION_SWEEP_INTERVAL_MINUTES
from ticket_assistant.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Runs ``SessionStore.sweep()`` every ``interval_minutes`` on the running event loop."""

    def __init__(self, store: SessionStore, interval_minutes: float = SESSION_SWEEP_INTERVAL_MINUTES):
        self.store = store
        self.cleanup_interval = interval_minutes * 60
        self._cleanup_task: Optional[asyncio.Task] = None
        self.total_removed = 0

    @property
    def running(self) -> bool:
        return self._cleanup_task is not None

    def start_cleanup_task(self):
        """Start the periodic cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())
            logger.info(f"Started session sweep task (every {self.cleanup_interval / 60:g} minutes)")

    def stop_cleanup_task(self):
        """Stop the periodic cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            self._cleanup_task = None
            logger.info("Stopped session sweep task")

    async def _periodic_cleanup(self):
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in periodic session sweep: {e}")

    async def run_once(self) -> Dict[str, int]:
        """Sweep now. Returns ``{"cleaned": n, "remaining": m}``."""
        cleaned = await self.store.sweep()
        self.total_removed += cleaned
        return {"cleaned": cleaned, "remaining": len(self.store)}
