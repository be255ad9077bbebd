"""
Test Configuration
==================

Pytest fixtures and test configuration for SignCam.
"""

import threading
import time

import cv2
import numpy as np
import pytest

from signcam.stream.frame import JpegFrame


LABELS = ["TEACH", "STRONG", "STOP", "SORRY", "PLEASE"]


def encode_jpeg(value: int, size: int = 32) -> bytes:
    """Encode a solid gray square as JPEG bytes."""
    image = np.full((size, size, 3), value, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image)
    assert ok
    return encoded.tobytes()


def encode_noise_jpeg(width: int = 61, height: int = 45, gray: bool = False, params=()) -> bytes:
    """Encode seeded noise so most of the file is entropy-coded scan data."""
    rng = np.random.default_rng(7)
    shape = (height, width) if gray else (height, width, 3)
    image = rng.integers(0, 256, shape, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image, list(params))
    assert ok
    return encoded.tobytes()


def cut_scan(data: bytes) -> bytes:
    """Cut a JPEG halfway through its scan data and close it with EOI."""
    scan_start = data.index(b"\xff\xda")
    cut = scan_start + (len(data) - scan_start) // 2
    return data[:cut] + b"\xff\xd9"


def make_frame(data: bytes, frame_id: int = 0) -> JpegFrame:
    return JpegFrame(frame_id=frame_id, timestamp=time.monotonic(), data=data)


class ConcurrencyProbe:
    """Slow synthetic classifier that records how many calls overlap."""

    def __init__(self, latency: float = 0.05, num_labels: int = len(LABELS)) -> None:
        self.latency = latency
        self.num_labels = num_labels
        self.calls = 0
        self.max_concurrent = 0
        self._active = 0
        self._lock = threading.Lock()

    def predict(self, batch: np.ndarray) -> np.ndarray:
        with self._lock:
            self.calls += 1
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)
        try:
            time.sleep(self.latency)
            return np.arange(self.num_labels, dtype=np.float32)[np.newaxis, :]
        finally:
            with self._lock:
                self._active -= 1


class FakeSink:
    """In-memory preview sink."""

    def __init__(self) -> None:
        self.writes = []

    def write(self, data: bytes) -> None:
        self.writes.append(data)


@pytest.fixture
def labels():
    """Default label set."""
    return list(LABELS)


@pytest.fixture
def jpeg_frames():
    """Three distinct, valid JPEG images (dark, mid, bright)."""
    return [encode_jpeg(20), encode_jpeg(128), encode_jpeg(235)]


@pytest.fixture
def corrupt_frame():
    """Byte span with JPEG markers that does not decode."""
    return make_frame(b"\xff\xd8not a jpeg at all\xff\xd9", frame_id=99)


@pytest.fixture
def truncated_frame():
    """Real JPEG whose scan stops halfway, closed with an EOI marker."""
    return make_frame(cut_scan(encode_noise_jpeg()), frame_id=98)


@pytest.fixture
def fake_sink():
    return FakeSink()
