"""
rvbattery/scheduler.py
======================
Battery Energy Source — Discrete-Event Clock

A minimal discrete-event simulator that energy sources, device models and
telemetry glue share by reference.  It owns the simulated clock and a
priority queue of pending callbacks.

Ordering:
    - Events run in timestamp order.
    - Events with equal timestamps run in the order they were scheduled.
    - Cancelled events stay in the heap and are skipped when popped.

Lifecycle:
    schedule() / stop()  →  run()  →  is_finished() == True

Once finished the simulator refuses new events; callers that may run after
the end of a simulation (energy sources) check ``is_finished()`` first.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event handle
# ---------------------------------------------------------------------------

@dataclass(order=True)
class EventId:
    """Handle to a scheduled callback.

    Attributes:
        time:      Absolute simulated time at which the callback fires [s].
        uid:       Monotonic sequence number; breaks ties between equal times.
        callback:  Callable invoked with ``args`` when the event fires.
        args:      Positional arguments passed to ``callback``.
        cancelled: True once :meth:`cancel` has been called.
        executed:  True once the callback has run.
    """
    time:      float
    uid:       int
    callback:  Callable[..., Any] = field(compare=False)
    args:      tuple = field(default=(), compare=False)
    cancelled: bool = field(default=False, compare=False)
    executed:  bool = field(default=False, compare=False)

    def cancel(self) -> None:
        """Prevent the callback from running.  Safe to call more than once."""
        self.cancelled = True

    def is_expired(self) -> bool:
        """True if the event already ran or was cancelled."""
        return self.cancelled or self.executed

    def is_pending(self) -> bool:
        return not self.is_expired()


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------

class Simulator:
    """Discrete-event clock with a cancellable callback queue.

    Args:
        start_time: Initial simulated time [s].  Default 0.0.

    Raises:
        ValueError: If ``start_time`` is negative.
    """

    def __init__(self, start_time: float = 0.0) -> None:
        if start_time < 0.0:
            raise ValueError(
                f"Start time must be non-negative; received start_time={start_time!r}"
            )
        self._now: float = start_time
        self._queue: list[EventId] = []
        self._uids = itertools.count()
        self._stop_time: float | None = None
        self._running: bool = False
        self._finished: bool = False

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def now(self) -> float:
        """Current simulated time [s]."""
        return self._now

    def is_finished(self) -> bool:
        """True once :meth:`run` has returned."""
        return self._finished

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> EventId:
        """Schedule ``callback(*args)`` to run ``delay`` seconds from now.

        Raises:
            ValueError:   If ``delay`` is negative.
            RuntimeError: If the simulator has already finished.
        """
        if delay < 0.0:
            raise ValueError(f"Delay must be non-negative; received delay={delay!r}")
        if self._finished:
            raise RuntimeError("Cannot schedule an event on a finished simulator")

        event = EventId(time=self._now + delay, uid=next(self._uids),
                        callback=callback, args=args)
        heapq.heappush(self._queue, event)
        return event

    def schedule_now(self, callback: Callable[..., Any], *args: Any) -> EventId:
        return self.schedule(0.0, callback, *args)

    def cancel(self, event: EventId | None) -> None:
        """Cancel ``event``.  ``None`` and already expired events are ignored."""
        if event is not None:
            event.cancel()

    def stop(self, delay: float = 0.0) -> None:
        """End the run ``delay`` seconds from now.

        Events scheduled exactly at the stop time still run.
        """
        if delay < 0.0:
            raise ValueError(f"Delay must be non-negative; received delay={delay!r}")
        self._stop_time = self._now + delay

    def pending_events(self) -> int:
        """Number of events that are scheduled and not cancelled."""
        return sum(1 for event in self._queue if event.is_pending())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Dispatch events until the queue empties or the stop time passes."""
        if self._running:
            raise RuntimeError("Simulator.run() is not re-entrant")

        self._running = True
        logger.debug(
            "Simulator started at t=%.3f s with %d pending events (stop=%s)",
            self._now, self.pending_events(), self._stop_time,
        )
        try:
            while self._queue:
                event = self._queue[0]
                if self._stop_time is not None and event.time > self._stop_time:
                    break
                heapq.heappop(self._queue)
                if event.cancelled:
                    continue
                self._now = event.time
                event.executed = True
                event.callback(*event.args)

            if self._stop_time is not None:
                self._now = max(self._now, self._stop_time)
        finally:
            self._running = False
            self._finished = True
            self._queue.clear()
        logger.debug("Simulator finished at t=%.3f s", self._now)
