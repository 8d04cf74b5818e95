"""Playback package: public API re-exports."""

from .slide import Slide, DEFAULT_DURATION_MS
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler, TimerHandle
from .session import (
    AUTO_ADVANCE_LABEL,
    NAVIGATION_LABEL,
    EmptySequenceError,
    PendingDirection,
    PlaybackSession,
    PlaybackState,
    SessionEvent,
)
from .progress import ProgressSegment, SegmentFill, render_progress, render_segments
from .interaction import InteractionController, TapAction, resolve_tap, LEFT_ZONE_RATIO
from .audio import BackgroundAudio, SilentPlayer
from .preload import PreloadReport, preload_images

__all__ = [
    "Slide",
    "DEFAULT_DURATION_MS",
    "ManualScheduler",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
    "AUTO_ADVANCE_LABEL",
    "NAVIGATION_LABEL",
    "EmptySequenceError",
    "PendingDirection",
    "PlaybackSession",
    "PlaybackState",
    "SessionEvent",
    "ProgressSegment",
    "SegmentFill",
    "render_progress",
    "render_segments",
    "InteractionController",
    "TapAction",
    "resolve_tap",
    "LEFT_ZONE_RATIO",
    "BackgroundAudio",
    "SilentPlayer",
    "PreloadReport",
    "preload_images",
]
