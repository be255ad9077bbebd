"""
MJPEG Demuxer
=============

Splits a framing-free MJPEG byte stream into JPEG frames.

The demuxer accumulates incoming chunks in a byte window and cuts a frame
whenever it finds a Start-Of-Image marker followed by an End-Of-Image
marker. Chunks may be split anywhere; the emitted frames do not depend on
where the chunk boundaries fall.

Design Rules:
    - First SOI in the window, first EOI after it
    - Never raises on malformed input
    - Marker-less noise is truncated to a small tail to bound memory
    - Not reentrant: feed() must be called serially in arrival order

Known limitation:
    Scan data that happens to contain FF D9 before the real EOI ends the
    frame early. The resulting partial JPEG fails to decode downstream and
    is dropped there.
"""

import logging
import time
from typing import List

from signcam.stream.frame import JpegFrame


logger = logging.getLogger(__name__)


SOI_MARKER = b"\xff\xd8"
EOI_MARKER = b"\xff\xd9"

DEFAULT_MAX_WINDOW_BYTES = 1024 * 1024
DEFAULT_TAIL_BYTES = 1024


class MjpegDemuxer:
    """
    Stateful MJPEG frame extractor.

    Attributes:
        max_window_bytes: Window size above which marker-less data is truncated
        tail_bytes: Bytes kept after a truncation (may hold a split SOI)
        frames_emitted: Total frames emitted
        truncations: Number of times marker-less data was discarded

    Example:
        demuxer = MjpegDemuxer()

        for frame in demuxer.feed(chunk):
            handle(frame)
    """

    def __init__(
        self,
        max_window_bytes: int = DEFAULT_MAX_WINDOW_BYTES,
        tail_bytes: int = DEFAULT_TAIL_BYTES,
    ) -> None:
        """
        Initialize demuxer.

        Args:
            max_window_bytes: Truncation threshold for marker-less data
            tail_bytes: Bytes retained after truncation. Must be >= 1 and
                smaller than max_window_bytes.
        """
        if tail_bytes < 1:
            raise ValueError("tail_bytes must be >= 1")
        if tail_bytes >= max_window_bytes:
            raise ValueError("tail_bytes must be smaller than max_window_bytes")

        self.max_window_bytes = max_window_bytes
        self.tail_bytes = tail_bytes

        self._window = bytearray()
        self._next_frame_id: int = 0
        self._bytes_in: int = 0
        self._bytes_discarded: int = 0
        self.frames_emitted: int = 0
        self.truncations: int = 0

    @property
    def buffered(self) -> int:
        """Bytes currently held in the window."""
        return len(self._window)

    def feed(self, chunk: bytes) -> List[JpegFrame]:
        """
        Append a chunk and extract every complete frame now available.

        Args:
            chunk: Raw bytes of any length from the capture stream

        Returns:
            Frames in the order their EOI markers were found (may be empty)
        """
        self._bytes_in += len(chunk)
        self._window += chunk

        frames: List[JpegFrame] = []
        window = self._window

        while True:
            soi = window.find(SOI_MARKER)
            if soi == -1:
                if len(window) > self.max_window_bytes:
                    dropped = len(window) - self.tail_bytes
                    del window[:dropped]
                    self._bytes_discarded += dropped
                    self.truncations += 1
                    logger.debug(
                        f"No SOI in {dropped + self.tail_bytes} bytes, "
                        f"discarded {dropped}"
                    )
                break

            eoi = window.find(EOI_MARKER, soi + 2)
            if eoi == -1:
                # Incomplete frame: the bytes before SOI can never matter again
                if soi > 0:
                    del window[:soi]
                    self._bytes_discarded += soi
                break

            end = eoi + len(EOI_MARKER)
            data = bytes(window[soi:end])
            self._bytes_discarded += soi
            del window[:end]

            frames.append(
                JpegFrame(
                    frame_id=self._next_frame_id,
                    timestamp=time.monotonic(),
                    data=data,
                )
            )
            self._next_frame_id += 1
            self.frames_emitted += 1

        return frames

    def reset(self) -> int:
        """
        Discard any buffered bytes.

        Returns:
            Number of bytes discarded.
        """
        cleared = len(self._window)
        self._window.clear()
        self._bytes_discarded += cleared
        return cleared

    def metrics(self) -> dict:
        """
        Get demuxer metrics for observability.

        Returns:
            Dict with frames_emitted, bytes_in, bytes_discarded,
            truncations, buffered
        """
        return {
            "frames_emitted": self.frames_emitted,
            "bytes_in": self._bytes_in,
            "bytes_discarded": self._bytes_discarded,
            "truncations": self.truncations,
            "buffered": self.buffered,
        }
