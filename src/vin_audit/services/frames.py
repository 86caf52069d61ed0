"""Frame sampling interface for uploaded videos."""

from collections.abc import AsyncIterator
from typing import Protocol

DEFAULT_FRAME_COUNT = 8
END_OF_STREAM_MARGIN = 0.1


class FrameSampler(Protocol):
    """Extracts evenly spaced still frames from a video file."""

    def sample(
        self, video_path: str, frame_count: int = DEFAULT_FRAME_COUNT
    ) -> AsyncIterator[bytes]:
        """Yield encoded still images; every call decodes from scratch."""


def sample_timestamps(duration: float, frame_count: int) -> list[float]:
    """Return frame_count seek positions spread evenly across duration.

    The first position is 0 and none reaches past duration minus a small
    margin, so seeking never lands on end-of-stream. Clips shorter than the
    margin are clamped to their midpoint and repeated positions are dropped,
    so fewer than frame_count positions may come back.
    """
    if frame_count <= 0 or duration <= 0:
        return []
    interval = duration / frame_count
    last_safe = max(duration - END_OF_STREAM_MARGIN, duration / 2)
    positions = (min(index * interval, last_safe) for index in range(frame_count))
    return list(dict.fromkeys(positions))
