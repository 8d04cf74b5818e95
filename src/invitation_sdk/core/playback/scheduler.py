"""One-shot timer scheduling for playback sessions.

Two implementations share the same surface:

- ``ThreadingScheduler`` fires callbacks on wall-clock time using
  ``threading.Timer``. Every callback runs while holding the scheduler lock,
  so a session never sees two callbacks at once.
- ``ManualScheduler`` keeps a virtual clock that only moves when
  ``advance()`` is called. Tests and the MCP playback tools use it to step
  through a slideshow deterministically.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, ContextManager, Optional, Protocol

logger = logging.getLogger("StoryInvitation.playback.scheduler")


class TimerHandle:
    """A scheduled callback that can be cancelled before it fires."""

    def __init__(self, due_ms: float, callback: Callable[[], None], label: str = "",
                 on_cancel: Optional[Callable[[], None]] = None):
        self.due_ms = due_ms
        self.label = label
        self._callback = callback
        self._on_cancel = on_cancel
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    def _run(self) -> None:
        if not self.active:
            return
        self.fired = True
        self._callback()


class Scheduler(Protocol):
    """What a playback session needs from a clock."""
    lock: ContextManager

    def call_later(self, delay_ms: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle: ...


class ManualScheduler:
    """Virtual-clock scheduler; time advances only on request."""

    def __init__(self):
        self.lock = threading.RLock()
        self.now_ms: float = 0.0
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        handle = TimerHandle(self.now_ms + max(0.0, delay_ms), callback, label)
        heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
        return handle

    def pending(self, label: Optional[str] = None) -> list[TimerHandle]:
        """Active handles, optionally filtered by label, in due order."""
        handles = [h for _, _, h in sorted(self._queue) if h.active]
        if label is not None:
            handles = [h for h in handles if h.label == label]
        return handles

    def advance(self, ms: float) -> int:
        """Move the clock forward, firing everything that falls due.

        Callbacks scheduled while advancing also fire if they are due before
        the target time. Returns the number of callbacks run.
        """
        target = self.now_ms + max(0.0, ms)
        fired = 0
        with self.lock:
            while self._queue and self._queue[0][0] <= target:
                due, _, handle = heapq.heappop(self._queue)
                if not handle.active:
                    continue
                self.now_ms = max(self.now_ms, due)
                handle._run()
                fired += 1
            self.now_ms = target
        return fired

    def run_due(self) -> int:
        """Fire callbacks that are already due without moving the clock."""
        return self.advance(0)


class ThreadingScheduler:
    """Wall-clock scheduler backed by ``threading.Timer``."""

    def __init__(self):
        self.lock = threading.RLock()
        self._timers: dict[int, tuple[TimerHandle, threading.Timer]] = {}
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        delay_ms = max(0.0, delay_ms)
        key = next(self._seq)

        def fire():
            with self.lock:
                self._timers.pop(key, None)
                try:
                    handle._run()
                except Exception as e:
                    logger.error(f"Timer callback '{label}' failed: {e}")

        handle = TimerHandle(time.monotonic() * 1000 + delay_ms, callback, label,
                             on_cancel=lambda: self._cancel(key))
        timer = threading.Timer(delay_ms / 1000.0, fire)
        timer.daemon = True
        with self.lock:
            self._timers[key] = (handle, timer)
        timer.start()
        return handle

    def pending_count(self) -> int:
        """Timer threads that are still waiting to fire."""
        with self.lock:
            return len(self._timers)

    def _cancel(self, key: int) -> None:
        with self.lock:
            entry = self._timers.pop(key, None)
        if entry is not None:
            entry[1].cancel()

    def shutdown(self) -> None:
        """Cancel every outstanding timer thread."""
        with self.lock:
            entries = list(self._timers.values())
            self._timers.clear()
        for handle, timer in entries:
            handle.cancelled = True
            timer.cancel()
