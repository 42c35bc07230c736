"""
Real-time synchronizer (autoticker).

There is no background timer: callers poll ``check()`` at least as often
as the configured interval. Each check compares wall-clock time with the
stored next-due timestamp, applies every simulated hour that has come due
(up to a catch-up cap) through the scheduler in one atomic advance, and
reschedules next-due to ``now + interval``. Sparse polling therefore
causes lag, never failure.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from worldsim.core.errors import ConcurrencyConflict, ValidationError
from worldsim.core.tick_engine import TickScheduler
from worldsim.core.world import AutotickerState

logger = logging.getLogger(__name__)


# Real-world milliseconds per simulated hour
NAMED_RATES: dict[str, int] = {
    "realtime": 3_600_000,
    "fast": 60_000,
    "very_fast": 10_000,
    "test": 1_000,
    "slow": 300_000,
}


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def resolve_rate(rate: str | int, min_interval_ms: int = 1_000) -> tuple[int, str | None]:
    """Return ``(interval_ms, rate_name)`` for a named or custom rate."""
    if isinstance(rate, str) and not rate.isdigit():
        try:
            return NAMED_RATES[rate], rate
        except KeyError:
            raise ValidationError(
                f"Unknown tick rate {rate!r}; expected one of {sorted(NAMED_RATES)} "
                f"or a custom interval in ms"
            ) from None
    if isinstance(rate, bool):
        raise ValidationError(f"Invalid tick rate {rate!r}")
    interval = int(rate)
    if interval < min_interval_ms:
        raise ValidationError(
            f"Custom tick rate must be at least {min_interval_ms} ms, got {interval}"
        )
    for name, ms in NAMED_RATES.items():
        if ms == interval:
            return interval, name
    return interval, None


class RealTimeSynchronizer:
    """
    Keeps one world's clock in step with wall-clock time.

    Parameters
    ----------
    scheduler : TickScheduler
        Every tick is applied through it.
    now_ms : callable, optional
        Wall-clock source in milliseconds; injectable for tests.
    """

    def __init__(
        self,
        scheduler: TickScheduler,
        now_ms: Callable[[], int] | None = None,
    ):
        self.scheduler = scheduler
        self.world = scheduler.world
        self.now_ms = now_ms or wall_clock_ms
        cfg = self.world.config.autoticker_config
        self.min_interval_ms = int(cfg["min_interval_ms"])
        self.max_catch_up = int(cfg["max_catch_up_ticks"])

    @property
    def state(self) -> AutotickerState:
        return self.world.autoticker

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, now_ms: int | None = None) -> AutotickerState:
        with self.scheduler.locked():
            now = self._now(now_ms)
            state = self.state
            state.enabled = True
            state.last_checked_ms = now
            state.next_due_ms = now + state.interval_ms
            state.version += 1
            logger.info(
                "Autoticker started for world %s at %d ms/hour",
                self.world.world_id, state.interval_ms,
            )
            return state

    def stop(self) -> AutotickerState:
        with self.scheduler.locked():
            state = self.state
            state.enabled = False
            state.next_due_ms = None
            state.version += 1
            logger.info("Autoticker stopped for world %s", self.world.world_id)
            return state

    def set_rate(self, rate: str | int, now_ms: int | None = None) -> AutotickerState:
        """Change the interval; a running schedule restarts from now."""
        interval, name = resolve_rate(rate, self.min_interval_ms)
        with self.scheduler.locked():
            state = self.state
            state.interval_ms = interval
            state.rate_name = name
            state.version += 1
            logger.info(
                "Tick rate for world %s set to %s (%d ms/hour)",
                self.world.world_id, name or "custom", interval,
            )
            if state.enabled:
                now = self._now(now_ms)
                state.next_due_ms = now + interval
                state.last_checked_ms = now
            return state

    # ------------------------------------------------------------------
    # Check
    # ------------------------------------------------------------------

    def check(self, now_ms: int | None = None) -> int:
        """Apply every simulated hour that has come due; return how many."""
        try:
            return self._check_once(now_ms)
        except ConcurrencyConflict:
            logger.info("Autotick check raced on world %s; retrying", self.world.world_id)
            return self._check_once(now_ms)

    def _check_once(self, now_ms: int | None) -> int:
        # Read without the lock; the compare-and-swap below rejects the
        # plan if another writer changed the schedule in between.
        state = self.state
        expected_version = state.version
        next_due, interval = state.next_due_ms, state.interval_ms
        now = self._now(now_ms)
        if not state.enabled or next_due is None:
            return 0
        if now < next_due:
            with self.scheduler.locked():
                if self.state.version == expected_version:
                    self.state.last_checked_ms = now
            return 0

        due = 1 + (now - next_due) // interval
        ticks = min(due, self.max_catch_up)

        with self.scheduler.locked() as world:
            if world.paused:
                return 0
            previous = self.state.to_dict()
            self._compare_and_swap(expected_version, now)
            if due > ticks:
                logger.warning(
                    "World %s is %d simulated hours behind; applying %d",
                    world.world_id, due, ticks,
                )
            try:
                self.scheduler.advance(ticks, automatic=True)
            except Exception:
                world.autoticker = AutotickerState.from_dict(previous)
                raise
            self.state.total_auto_ticks += ticks
            return ticks

    def _compare_and_swap(self, expected_version: int, now: int) -> None:
        state = self.state
        if state.version != expected_version:
            raise ConcurrencyConflict(
                f"Autoticker state for world {self.world.world_id!r} changed during check"
            )
        state.next_due_ms = now + state.interval_ms
        state.last_checked_ms = now
        state.version += 1

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, now_ms: int | None = None) -> dict[str, Any]:
        with self.scheduler.locked():
            state = self.state
            now = self._now(now_ms)
            behind = 0
            if state.enabled and state.next_due_ms is not None and now >= state.next_due_ms:
                behind = 1 + (now - state.next_due_ms) // state.interval_ms
            return {
                **state.to_dict(),
                "paused": self.world.paused,
                "current_hour": self.world.current_hour,
                "hours_behind": behind,
                "ms_until_next": (
                    max(0, state.next_due_ms - now) if state.next_due_ms is not None else None
                ),
            }

    def _now(self, now_ms: int | None) -> int:
        return int(now_ms) if now_ms is not None else int(self.now_ms())
