"""Playback session: timed, navigable progression through a slide sequence.

A session owns one slide sequence for one viewing. It advances on a timer,
accepts manual forward/back requests, pauses while the viewer holds the
screen, and stops at the terminal details page. Navigation requests are
recorded as a pending direction first and applied on the next scheduler
tick, so two requests made before the tick collapse into the last one.

At most one auto-advance timer is outstanding for a session at any time.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from .scheduler import Scheduler
from .slide import Slide

logger = logging.getLogger("StoryInvitation.playback.session")

AUTO_ADVANCE_LABEL = "auto-advance"
NAVIGATION_LABEL = "navigation-tick"


class EmptySequenceError(ValueError):
    """Raised when a session is requested for an empty slide sequence."""

    def __init__(self):
        super().__init__("Cannot create a playback session from an empty slide sequence")


class PendingDirection(str, Enum):
    NONE = "none"
    ADVANCING = "advancing"
    RETREATING = "retreating"


class SessionEvent(str, Enum):
    ENDED = "session_ended"
    RESTARTED = "session_restarted"


class PlaybackState(BaseModel):
    """Read-only snapshot a hosting view renders from."""
    current_index: int
    slide_count: int
    paused: bool
    pending_direction: PendingDirection
    closed: bool
    on_terminal: bool
    timer_pending: bool
    current_duration_ms: int


EventListener = Callable[[SessionEvent, "PlaybackSession"], None]
SlideChangedHook = Callable[[int], None]


class PlaybackSession:
    """Drives a slide sequence; create with ``PlaybackSession.create``."""

    def __init__(self, slides: Sequence[Slide], scheduler: Scheduler,
                 on_event: Optional[EventListener] = None,
                 on_slide_changed: Optional[SlideChangedHook] = None):
        if not slides:
            raise EmptySequenceError()
        self._slides: tuple[Slide, ...] = tuple(slides)
        self._scheduler = scheduler
        self._on_event = on_event
        self._on_slide_changed = on_slide_changed

        self._current_index = 0
        self._paused = False
        self._pending = PendingDirection.NONE
        self._closed = False
        self._timer = None
        self._tick = None

        with self._scheduler.lock:
            self._schedule_auto_advance()

    @classmethod
    def create(cls, slides: Sequence[Slide], scheduler: Scheduler,
               on_event: Optional[EventListener] = None,
               on_slide_changed: Optional[SlideChangedHook] = None) -> "PlaybackSession":
        return cls(slides, scheduler, on_event=on_event, on_slide_changed=on_slide_changed)

    # ── State ───────────────────────────────────────────────────────────

    @property
    def slides(self) -> tuple[Slide, ...]:
        return self._slides

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_slide(self) -> Slide:
        return self._slides[self._current_index]

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def pending_direction(self) -> PendingDirection:
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def on_terminal(self) -> bool:
        return self.current_slide.is_terminal

    @property
    def on_last(self) -> bool:
        return self._current_index == len(self._slides) - 1

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and self._timer.active

    def snapshot(self) -> PlaybackState:
        return PlaybackState(
            current_index=self._current_index,
            slide_count=len(self._slides),
            paused=self._paused,
            pending_direction=self._pending,
            closed=self._closed,
            on_terminal=self.on_terminal,
            timer_pending=self.timer_pending,
            current_duration_ms=self.current_slide.effective_duration_ms,
        )

    # ── Navigation ──────────────────────────────────────────────────────

    def advance(self) -> None:
        """Request the next slide, or end the session from the last one."""
        with self._scheduler.lock:
            if self._closed:
                return
            if self.on_terminal or self.on_last:
                if self._pending == PendingDirection.NONE:
                    self._finish(SessionEvent.ENDED)
                else:
                    logger.debug("advance() ignored on last slide while a request is pending")
                return
            self._cancel_timer()
            self._pending = PendingDirection.ADVANCING
            self._schedule_tick()

    def retreat(self) -> None:
        """Request the previous slide; no-op on the first slide."""
        with self._scheduler.lock:
            if self._closed or self._current_index == 0:
                return
            self._cancel_timer()
            self._pending = PendingDirection.RETREATING
            self._schedule_tick()

    def pause(self) -> None:
        with self._scheduler.lock:
            if self._closed or self._paused:
                return
            self._paused = True
            self._cancel_timer()

    def resume(self) -> None:
        """Resume playback; the current slide gets its full duration again."""
        with self._scheduler.lock:
            if self._closed or not self._paused:
                return
            self._paused = False
            self._schedule_auto_advance()

    def restart(self) -> "PlaybackSession":
        """Discard this session and return a fresh one over the same slides."""
        with self._scheduler.lock:
            self._teardown()
            fresh = PlaybackSession(
                self._slides, self._scheduler,
                on_event=self._on_event,
                on_slide_changed=self._on_slide_changed,
            )
            self._emit(SessionEvent.RESTARTED, fresh)
            return fresh

    def close(self) -> None:
        with self._scheduler.lock:
            if self._closed:
                return
            self._finish(SessionEvent.ENDED)

    # ── Internals ───────────────────────────────────────────────────────

    def _finish(self, event: SessionEvent) -> None:
        self._teardown()
        self._emit(event, self)

    def _teardown(self) -> None:
        self._cancel_timer()
        if self._tick is not None:
            self._tick.cancel()
            self._tick = None
        self._pending = PendingDirection.NONE
        self._closed = True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_tick(self) -> None:
        if self._tick is not None and self._tick.active:
            return
        self._tick = self._scheduler.call_later(0, self._resolve_pending, label=NAVIGATION_LABEL)

    def _resolve_pending(self) -> None:
        self._tick = None
        if self._closed or self._pending == PendingDirection.NONE:
            return

        last = len(self._slides) - 1
        if self._pending == PendingDirection.ADVANCING:
            self._current_index = min(self._current_index + 1, last)
        else:
            self._current_index = max(self._current_index - 1, 0)
        self._pending = PendingDirection.NONE

        if self._on_slide_changed is not None:
            try:
                self._on_slide_changed(self._current_index)
            except Exception as e:
                logger.warning(f"on_slide_changed hook failed: {e}")

        self._schedule_auto_advance()

    def _schedule_auto_advance(self) -> None:
        self._cancel_timer()
        if self._closed or self._paused or self._pending != PendingDirection.NONE:
            return
        if self.on_terminal:
            return
        self._timer = self._scheduler.call_later(
            self.current_slide.effective_duration_ms,
            self._on_timer,
            label=AUTO_ADVANCE_LABEL,
        )

    def _on_timer(self) -> None:
        self._timer = None
        self.advance()

    def _emit(self, event: SessionEvent, session: "PlaybackSession") -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, session)
        except Exception as e:
            logger.warning(f"Session event listener failed on {event.value}: {e}")
