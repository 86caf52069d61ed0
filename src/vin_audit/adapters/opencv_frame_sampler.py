"""OpenCV-backed video frame sampler."""

import asyncio
import logging
import math
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import cv2

from vin_audit.domain.errors import VideoDecodeError
from vin_audit.services.frames import (
    DEFAULT_FRAME_COUNT,
    FrameSampler,
    sample_timestamps,
)

logger = logging.getLogger(__name__)


@dataclass
class OpenCVFrameSampler(FrameSampler):
    """Seeks through a video with cv2.VideoCapture and JPEG-encodes frames."""

    jpeg_quality: int = 80
    default_duration: float = 10.0
    capture_factory: Callable[[str], Any] = field(default=cv2.VideoCapture)

    async def sample(
        self, video_path: str, frame_count: int = DEFAULT_FRAME_COUNT
    ) -> AsyncIterator[bytes]:
        """Yield frame_count JPEG frames evenly spaced across the video."""
        capture = await asyncio.to_thread(self.capture_factory, video_path)
        try:
            if not capture.isOpened():
                raise VideoDecodeError(f"Failed to open video file: {video_path}")
            duration = self._duration(capture)
            for timestamp in sample_timestamps(duration, frame_count):
                frame = await asyncio.to_thread(self._grab, capture, timestamp)
                if frame is None:
                    logger.warning(
                        "Skipping unreadable frame",
                        extra={"video_path": video_path, "timestamp": timestamp},
                    )
                    continue
                yield frame
        finally:
            capture.release()

    def _duration(self, capture: Any) -> float:
        """Return the clip length in seconds, or the default when unknown."""
        fps = capture.get(cv2.CAP_PROP_FPS)
        frame_total = capture.get(cv2.CAP_PROP_FRAME_COUNT)
        if fps and fps > 0 and frame_total and frame_total > 0:
            duration = frame_total / fps
            if math.isfinite(duration):
                return duration
        logger.info(
            "Video duration unknown, assuming default",
            extra={"default_duration": self.default_duration},
        )
        return self.default_duration

    def _grab(self, capture: Any, timestamp: float) -> bytes | None:
        capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000)
        ok, frame = capture.read()
        if not ok or frame is None:
            return None
        ok, buf = cv2.imencode(
            ".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality]
        )
        if not ok:
            return None
        return bytes(buf)
