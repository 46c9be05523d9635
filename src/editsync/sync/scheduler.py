"""Debounced save scheduling.

Trailing debounce: every ``schedule()`` restarts the timer, and the commit
callback only runs once the timer elapses without another edit.
``flush_now()`` skips the rest of the window; the timer is cancelled first
so it can never fire a second commit.

Timers come from an asyncio event loop (``call_later``).  Any object with
``call_later(delay, callback)`` and ``time()`` can stand in for the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class SaveScheduler:
    """One pending commit at a time, restarted on every edit."""

    def __init__(
        self,
        on_commit: Callable[[], Any],
        window: float,
        *,
        loop: Any = None,
    ) -> None:
        self.on_commit = on_commit
        self.window = window
        self._loop = loop
        self._handle: Any = None
        self._due_at: float | None = None

    @property
    def loop(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def pending(self) -> bool:
        """True while a commit is waiting for its timer."""
        return self._handle is not None

    @property
    def due_at(self) -> float | None:
        """Loop time at which the pending commit fires, if any."""
        return self._due_at

    def time(self) -> float:
        return self.loop.time()

    def schedule(self, delay: float | None = None) -> float:
        """(Re)start the timer.  Returns the delay used, in seconds."""
        self.cancel()
        delay = self.window if delay is None else max(delay, 0.0)
        self._due_at = self.loop.time() + delay
        self._handle = self.loop.call_later(delay, self._fire)
        return delay

    def flush_now(self) -> bool:
        """Cancel the timer and commit immediately.

        Returns ``True`` if a timer was pending.
        """
        was_pending = self.pending
        self.cancel()
        self.on_commit()
        return was_pending

    def cancel(self) -> None:
        """Clear the pending timer, if any.  No other side effects."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._due_at = None

    def _fire(self) -> None:
        self._handle = None
        self._due_at = None
        logger.debug("debounce window elapsed, committing")
        self.on_commit()
