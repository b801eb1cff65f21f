"""BeastMode: a recurring forced reset of the check-in flow.

While enabled, a fixed-period timer fires and sends the active flow back to
its first question, whatever was in progress. Submissions made while enabled
stamp a "last submit" time so that after a restart the countdown picks up
from where it was instead of starting over.

The enabled flag and the stamp are a plain SchedulerState value; the
functions below derive new values from old ones and the scheduler persists
them through the RecordStore.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Callable

from wth.flow import CheckInFlow
from wth.models import CheckInRecord, SchedulerState
from wth.store import RecordStore
from wth.workspace import now_local

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_SECONDS = 15 * 60


def now_ms() -> int:
    return int(time.time() * 1000)


# ── State transitions ─────────────────────────────────────────


def enable(state: SchedulerState) -> SchedulerState:
    return replace(state, enabled=True)


def disable(state: SchedulerState) -> SchedulerState:
    return replace(state, enabled=False)


def stamp_submit(state: SchedulerState, at_ms: int) -> SchedulerState:
    """Record a submission time; ignored while BeastMode is off."""
    if not state.enabled:
        return state
    return replace(state, last_submit_at=at_ms)


def countdown_seconds(state: SchedulerState, at_ms: int, period_seconds: float) -> float:
    """Seconds until the next forced reset, measured from the last submission.

    Without a stamp the full period applies. The result stays within
    [0, period_seconds].
    """
    if state.last_submit_at is None:
        return float(period_seconds)
    elapsed = (at_ms - state.last_submit_at) / 1000
    return min(float(period_seconds), max(0.0, period_seconds - elapsed))


def seconds_to_boundary(now: datetime, period_seconds: float) -> float:
    """Seconds until the next wall-clock multiple of the period (e.g. :15, :30)."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    since_midnight = (now - midnight).total_seconds()
    return period_seconds - (since_midnight % period_seconds)


# ── Scheduler ─────────────────────────────────────────────────


class ReflectionScheduler:
    """Runs the BeastMode timer on the current asyncio event loop."""

    def __init__(
        self,
        store: RecordStore,
        flow: CheckInFlow | None = None,
        period_seconds: float = DEFAULT_PERIOD_SECONDS,
        align_to_clock: bool = False,
        clock_ms: Callable[[], int] = now_ms,
        wall_clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.period_seconds = period_seconds
        self.align_to_clock = align_to_clock
        self.clock_ms = clock_ms
        self.wall_clock = wall_clock or now_local
        self.state = store.load_scheduler_state()
        self.flow: CheckInFlow | None = None
        self.fire_count = 0
        self._task: asyncio.Task | None = None
        self._next_fire_at: float | None = None
        self._pending_delay: float | None = None
        self._context: tuple[str | None, int | None] = (None, None)
        if flow is not None:
            self.attach(flow)

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Flow binding ──────────────────────────────────────────

    def attach(self, flow: CheckInFlow) -> None:
        """Point the timer at ``flow``; the previous flow gets no more resets."""
        self.detach()
        self.flow = flow
        self._context = (flow.day, flow.hour)
        flow.add_listener(self._on_submit)
        flow.add_select_listener(self._on_select)

    def detach(self) -> None:
        if self.flow is not None:
            self.flow.remove_listener(self._on_submit)
            self.flow.remove_select_listener(self._on_select)
        self.flow = None

    def _on_submit(self, record: CheckInRecord) -> None:
        if not self.state.enabled:
            return
        self.state = stamp_submit(self.state, self.clock_ms())
        self.store.save_scheduler_state(self.state)

    def _on_select(self, day: str, hour: int) -> None:
        """A new active hour drops the reset scheduled for the old one."""
        previous, self._context = self._context, (day, hour)
        if previous == self._context or not self.state.enabled:
            return
        if self._task is None and self._pending_delay is None:
            return
        self._cancel()
        self._schedule(self._first_delay(fresh=True))
        logger.debug("BeastMode restarted for %s hour %d", day, hour)

    # ── Lifecycle ─────────────────────────────────────────────

    def _first_delay(self, fresh: bool) -> float:
        if self.align_to_clock:
            return seconds_to_boundary(self.wall_clock(), self.period_seconds)
        if fresh:
            return float(self.period_seconds)
        return countdown_seconds(self.state, self.clock_ms(), self.period_seconds)

    def start(self) -> None:
        """Resume the timer after a restart if BeastMode was left on."""
        if self.state.enabled and not self.running:
            delay = self._pending_delay
            self._schedule(delay if delay is not None else self._first_delay(fresh=False))

    def enable(self) -> None:
        self.state = enable(self.state)
        self.store.save_scheduler_state(self.state)
        self._cancel()
        self._schedule(self._first_delay(fresh=True))
        logger.info("BeastMode on, first reset in %.0fs", self.countdown() or 0)

    def disable(self) -> None:
        """Stop the timer; whatever the flow holds stays as it is."""
        self.state = disable(self.state)
        self.store.save_scheduler_state(self.state)
        self._cancel()
        logger.info("BeastMode off")

    def stop(self) -> None:
        """Cancel the timer without touching the persisted state."""
        self._cancel()

    def countdown(self) -> float | None:
        """Seconds left until the next forced reset, or None when off."""
        if not self.state.enabled:
            return None
        if self._next_fire_at is not None and self.running:
            return max(0.0, self._next_fire_at - time.monotonic())
        if self._pending_delay is not None:
            return self._pending_delay
        return self._first_delay(fresh=False)

    # ── Timer ─────────────────────────────────────────────────

    def _schedule(self, delay: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; BeastMode timer starts with start()")
            self._pending_delay = delay
            return
        self._pending_delay = None
        self._next_fire_at = time.monotonic() + delay
        self._task = loop.create_task(self._run(delay))

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None
        self._next_fire_at = None
        self._pending_delay = None

    async def _run(self, first_delay: float) -> None:
        delay = first_delay
        while True:
            await asyncio.sleep(delay)
            if asyncio.current_task() is not self._task:
                return
            self._fire()
            delay = self.period_seconds
            self._next_fire_at = time.monotonic() + delay

    def _fire(self) -> None:
        self.fire_count += 1
        if self.flow is None:
            return
        state = self.flow.force_reset()
        logger.info("BeastMode reset hour %s to %s", self.flow.hour, state.value if state else None)
