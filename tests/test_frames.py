"""Tests for video frame sampling."""

import asyncio

import cv2
import numpy as np
import pytest

from vin_audit.adapters.opencv_frame_sampler import OpenCVFrameSampler
from vin_audit.domain.errors import VideoDecodeError
from vin_audit.services.frames import sample_timestamps


class _FakeCapture:
    def __init__(self, fps: float, frame_total: float, opened: bool = True) -> None:
        self.fps = fps
        self.frame_total = frame_total
        self.opened = opened
        self.seeks: list[float] = []
        self.released = False

    def isOpened(self) -> bool:  # noqa: N802
        return self.opened

    def get(self, prop: int) -> float:
        if prop == cv2.CAP_PROP_FPS:
            return self.fps
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return self.frame_total
        return 0.0

    def set(self, prop: int, value: float) -> bool:
        assert prop == cv2.CAP_PROP_POS_MSEC
        self.seeks.append(value)
        return True

    def read(self) -> tuple[bool, np.ndarray]:
        return True, np.zeros((16, 16, 3), dtype=np.uint8)

    def release(self) -> None:
        self.released = True


async def _collect(sampler: OpenCVFrameSampler, frame_count: int = 8) -> list[bytes]:
    return [frame async for frame in sampler.sample("clip.mp4", frame_count)]


def test_sample_timestamps_strictly_increase_within_duration() -> None:
    timestamps = sample_timestamps(8.0, 8)

    assert len(timestamps) == 8
    assert timestamps[0] == 0.0
    assert all(a < b for a, b in zip(timestamps, timestamps[1:], strict=False))
    assert timestamps[-1] < 8.0


def test_sample_timestamps_never_reach_end_of_stream() -> None:
    timestamps = sample_timestamps(0.5, 8)

    assert max(timestamps) <= 0.4


def test_sample_timestamps_for_clip_shorter_than_margin_are_distinct() -> None:
    timestamps = sample_timestamps(0.05, 8)

    assert 1 < len(timestamps) < 8
    assert all(a < b for a, b in zip(timestamps, timestamps[1:], strict=False))
    assert timestamps[-1] < 0.05


def test_sample_timestamps_empty_for_zero_frames() -> None:
    assert sample_timestamps(8.0, 0) == []


def test_sampler_encodes_jpeg_frames_at_each_timestamp() -> None:
    capture = _FakeCapture(fps=30.0, frame_total=240.0)
    sampler = OpenCVFrameSampler(capture_factory=lambda _path: capture)

    frames = asyncio.run(_collect(sampler))

    assert len(frames) == 8
    assert all(frame.startswith(b"\xff\xd8") for frame in frames)
    assert capture.seeks == [index * 1000.0 for index in range(8)]
    assert capture.released


def test_sampler_falls_back_to_default_duration() -> None:
    capture = _FakeCapture(fps=0.0, frame_total=0.0)
    sampler = OpenCVFrameSampler(
        default_duration=10.0, capture_factory=lambda _path: capture
    )

    asyncio.run(_collect(sampler, frame_count=4))

    assert capture.seeks == [0.0, 2500.0, 5000.0, 7500.0]


def test_sampler_raises_when_video_cannot_open() -> None:
    capture = _FakeCapture(fps=30.0, frame_total=240.0, opened=False)
    sampler = OpenCVFrameSampler(capture_factory=lambda _path: capture)

    with pytest.raises(VideoDecodeError):
        asyncio.run(_collect(sampler))
    assert capture.released


def test_sampler_resamples_on_every_call() -> None:
    captures: list[_FakeCapture] = []

    def factory(_path: str) -> _FakeCapture:
        capture = _FakeCapture(fps=10.0, frame_total=80.0)
        captures.append(capture)
        return capture

    sampler = OpenCVFrameSampler(capture_factory=factory)

    first = asyncio.run(_collect(sampler))
    second = asyncio.run(_collect(sampler))

    assert len(first) == len(second) == 8
    assert len(captures) == 2
