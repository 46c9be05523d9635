"""Retry decisions with bounded exponential backoff.

``attempt`` is the 1-based number of the save attempt that just failed.
Only network failures are retried; the sequence ends once ``attempt``
reaches ``max_attempts``.  Delays grow by ``multiplier`` per attempt and are
capped at ``max_delay_ms``.  Optional jitter adds up to ``jitter * delay``
on top (still capped) so many sessions reconnecting at once do not retry in
lockstep.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from editsync.core.config import RetryConfig, resolve_config
from editsync.core.errors import classify_failure, is_retryable


@dataclass(frozen=True)
class RetryAfter:
    delay_ms: float

    @property
    def delay(self) -> float:
        """Delay in seconds."""
        return self.delay_ms / 1000.0


@dataclass(frozen=True)
class GiveUp:
    reason: str


class RetryPolicy:
    """Stateless backoff calculator configured from the ``retry`` config section.

    Raises ConfigError if the merged settings are invalid.
    """

    def __init__(self, config: RetryConfig | dict | None = None, *, rng: random.Random | None = None) -> None:
        settings = resolve_config({"retry": dict(config or {})})["retry"]
        self.base_delay_ms: float = settings["base_delay_ms"]
        self.multiplier: float = float(settings["multiplier"])
        self.max_delay_ms: float = settings["max_delay_ms"]
        self.max_attempts: int = settings["max_attempts"]
        self.jitter: float = settings.get("jitter", 0.0)
        self._rng = rng or random.Random()

    def backoff_ms(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number *attempt*."""
        delay = self._capped(attempt)
        if self.jitter:
            delay = min(delay + delay * self.jitter * self._rng.random(), self.max_delay_ms)
        return delay

    def _capped(self, attempt: int) -> float:
        if self.base_delay_ms <= 0:
            return 0.0
        try:
            delay = self.base_delay_ms * (self.multiplier ** max(attempt - 1, 0))
        except OverflowError:
            return self.max_delay_ms
        return min(delay, self.max_delay_ms)

    def decide(self, attempt: int, error: BaseException) -> RetryAfter | GiveUp:
        kind = classify_failure(error)
        if not is_retryable(kind):
            return GiveUp(f"{kind} errors are not retried")
        if attempt >= self.max_attempts:
            return GiveUp(f"gave up after {attempt} attempts")
        return RetryAfter(self.backoff_ms(attempt))
