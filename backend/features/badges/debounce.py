"""
Debounced quest-state evaluation.

Every push() cancels the scheduled pass and schedules a new one `delay`
seconds out; only the last state of a burst is evaluated. A state whose hash
matches the last evaluated one is ignored and drops any scheduled pass, so an
undone change is never evaluated. Once the delay has elapsed the pass
is running and later pushes no longer cancel it.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

logger = logging.getLogger("smi")

StateCallback = Callable[[Mapping[str, Any]], Awaitable[Any]]


def state_hash(state: Mapping[str, Any]) -> str:
    canonical = json.dumps(state, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class QuestStateDebouncer:
    def __init__(self, callback: StateCallback, delay_seconds: float = 0.1):
        self._callback = callback
        self._delay = delay_seconds
        self._scheduled: Optional[asyncio.Task] = None
        self._scheduled_hash: Optional[str] = None
        self._running: Optional[asyncio.Task] = None
        self._last_processed: Optional[str] = None

    @property
    def last_processed_hash(self) -> Optional[str]:
        return self._last_processed

    @property
    def has_pending(self) -> bool:
        return self._scheduled is not None and not self._scheduled.done()

    def push(self, state: Mapping[str, Any]) -> bool:
        """Schedule evaluation of state. Returns False when it was skipped."""
        digest = state_hash(state)
        if digest == self._last_processed:
            # Back to the evaluated state: an intermediate pass must not fire
            self.cancel()
            logger.debug("[DEBOUNCE] Skipping unchanged quest state")
            return False
        if self.has_pending and digest == self._scheduled_hash:
            return False

        self.cancel()
        self._scheduled_hash = digest
        self._scheduled = asyncio.get_running_loop().create_task(self._run(state, digest))
        return True

    async def _run(self, state: Mapping[str, Any], digest: str) -> None:
        await asyncio.sleep(self._delay)

        # Past the suspension point: this pass can no longer be superseded
        self._running = asyncio.current_task()
        self._scheduled = None
        self._scheduled_hash = None
        self._last_processed = digest
        try:
            await self._callback(state)
        except Exception:
            logger.exception("[DEBOUNCE] Quest state evaluation failed")

    async def wait(self) -> None:
        """Wait until no pass is scheduled or running."""
        while True:
            task = self._scheduled if self.has_pending else self._running
            if task is None or task.done():
                return
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    def cancel(self) -> None:
        """Drop the scheduled pass. A running pass is left to finish."""
        if self.has_pending:
            self._scheduled.cancel()
        self._scheduled = None
        self._scheduled_hash = None
