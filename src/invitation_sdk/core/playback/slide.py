"""Slide data model consumed by the playback engine."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict

DEFAULT_DURATION_MS = 3000


class Slide(BaseModel):
    """One timed unit of a playback sequence.

    ``content`` is opaque to the engine; the slide builder decides what goes
    in it. The terminal slide (details page) carries no image and never
    auto-advances.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: int
    image_url: Optional[str] = None
    content: Any = None
    duration_ms: Optional[int] = None
    is_terminal: bool = False

    @property
    def effective_duration_ms(self) -> int:
        if self.duration_ms is None or self.duration_ms <= 0:
            return DEFAULT_DURATION_MS
        return self.duration_ms
