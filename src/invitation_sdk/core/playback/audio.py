"""Background music owned by the hosting view.

Playback failures (autoplay blocked, missing file) are logged and ignored;
they never affect slide progression.
"""

import logging
from typing import Protocol

logger = logging.getLogger("StoryInvitation.playback.audio")

DEFAULT_TRACK = "/bgm.mp3"
DEFAULT_VOLUME = 0.5


class AudioPlayer(Protocol):
    def play(self) -> None: ...
    def pause(self) -> None: ...


class SilentPlayer:
    """Player that records requests without producing sound."""

    def __init__(self, track: str = DEFAULT_TRACK, volume: float = DEFAULT_VOLUME,
                 loop: bool = True):
        self.track = track
        self.volume = volume
        self.loop = loop
        self.play_calls = 0
        self.pause_calls = 0

    def play(self) -> None:
        self.play_calls += 1

    def pause(self) -> None:
        self.pause_calls += 1


class BackgroundAudio:
    """Looping background track with a mute toggle."""

    def __init__(self, player: AudioPlayer):
        self._player = player
        self.playing = False
        self.muted = False

    def start(self) -> bool:
        """Attempt autoplay. Returns whether the track is now playing."""
        self.playing = self._safe_play()
        return self.playing

    def try_play(self) -> bool:
        """Retry playback after a user gesture if autoplay was refused."""
        if not self.playing and not self.muted:
            self.playing = self._safe_play()
        return self.playing

    def toggle_mute(self) -> bool:
        """Flip the mute state. Returns the new ``muted`` value."""
        if self.muted:
            self.playing = self._safe_play()
        else:
            self._safe_pause()
            self.playing = False
        self.muted = not self.muted
        return self.muted

    def stop(self) -> None:
        self._safe_pause()
        self.playing = False

    def _safe_play(self) -> bool:
        try:
            self._player.play()
            return True
        except Exception as e:
            logger.info(f"Background audio could not start: {e}")
            return False

    def _safe_pause(self) -> None:
        try:
            self._player.pause()
        except Exception as e:
            logger.info(f"Background audio could not pause: {e}")
