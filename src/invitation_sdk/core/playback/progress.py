"""Segmented progress indicator derived from session state."""

from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel

from .session import PendingDirection, PlaybackSession
from .slide import Slide


class SegmentFill(str, Enum):
    EMPTY = "empty"
    FULL = "full"
    ANIMATING = "animating"


class ProgressSegment(BaseModel):
    """Render instructions for one bar of the indicator.

    ``animation_key`` is only set on the animating segment. It changes
    whenever the current index or the paused flag changes; a renderer keys
    its fill animation on it so the fill starts over from empty.
    """
    index: int
    fill: SegmentFill
    duration_ms: int
    paused: bool = False
    animation_key: Optional[str] = None


def render_segments(slides: Sequence[Slide], current: int,
                    pending: PendingDirection, paused: bool) -> list[ProgressSegment]:
    segments = []
    for index, slide in enumerate(slides):
        duration = slide.effective_duration_ms
        if index < current or (index == current and pending == PendingDirection.ADVANCING):
            segments.append(ProgressSegment(index=index, fill=SegmentFill.FULL, duration_ms=duration))
        elif index == current and pending == PendingDirection.NONE:
            segments.append(ProgressSegment(
                index=index,
                fill=SegmentFill.ANIMATING,
                duration_ms=duration,
                paused=paused,
                animation_key=f"{current}-{paused}",
            ))
        else:
            segments.append(ProgressSegment(index=index, fill=SegmentFill.EMPTY, duration_ms=duration))
    return segments


def render_progress(session: PlaybackSession) -> list[ProgressSegment]:
    return render_segments(
        session.slides,
        session.current_index,
        session.pending_direction,
        session.paused,
    )
