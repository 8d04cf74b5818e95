"""Maps viewer gestures onto session operations.

- Tap on the left 30% of the viewport: previous slide.
- Tap anywhere else: next slide.
- Press and hold: pause until the press is released, cancelled, or the
  pointer leaves the viewport.
"""

from enum import Enum
from typing import Optional

from .audio import BackgroundAudio
from .session import PlaybackSession

LEFT_ZONE_RATIO = 0.3


class TapAction(str, Enum):
    RETREAT = "retreat"
    ADVANCE = "advance"


def resolve_tap(x: float, viewport_width: float) -> TapAction:
    """Decide which tap zone an x coordinate falls into."""
    if viewport_width <= 0:
        raise ValueError("viewport_width must be positive")
    if x < viewport_width * LEFT_ZONE_RATIO:
        return TapAction.RETREAT
    return TapAction.ADVANCE


class InteractionController:
    """Routes gestures from a view to the session it currently shows."""

    def __init__(self, session: PlaybackSession,
                 audio: Optional[BackgroundAudio] = None):
        self.session = session
        self.audio = audio
        self._holding = False

    def bind(self, session: PlaybackSession) -> None:
        """Point the controller at a new session (after a restart)."""
        self.session = session
        self._holding = False

    def tap(self, x: float, viewport_width: float) -> TapAction:
        action = resolve_tap(x, viewport_width)
        if action == TapAction.RETREAT:
            self.session.retreat()
        else:
            self.session.advance()
        if self.audio is not None:
            self.audio.try_play()
        return action

    def press(self) -> None:
        self._holding = True
        self.session.pause()

    def release(self) -> None:
        if not self._holding:
            return
        self._holding = False
        self.session.resume()

    # Pointer cancel and leave end a hold the same way a release does.
    cancel = release
    leave = release
