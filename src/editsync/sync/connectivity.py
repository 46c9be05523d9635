"""Online/offline signal.

Listeners are fire-and-forget: failures are logged but never raise or
interrupt the caller flipping the signal.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Connectivity:
    """Holds the current online state and notifies listeners on transitions."""

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._lock = threading.Lock()
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, fn: Callable[[bool], None]) -> Callable[[], None]:
        """Register *fn(online)*; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(fn)
                except ValueError:
                    pass

        return _unsubscribe

    def set_online(self, online: bool) -> None:
        """Update the state.  Listeners only hear about actual transitions."""
        with self._lock:
            if online == self._online:
                return
            self._online = online
            listeners = list(self._listeners)
        logger.info("connectivity: %s", "online" if online else "offline")
        for fn in listeners:
            try:
                fn(online)
            except Exception as exc:
                logger.warning("connectivity listener error: %s", exc)
