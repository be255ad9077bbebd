"""
Preview Forwarder
=================

Writes every demuxed JPEG frame to the live preview sink.

The sink is normally the stdin of an ffplay process reading MJPEG. The
forwarder must never block or fail the pipeline: the preview window can be
closed by the user at any time.

Design Rules:
    - Frames are written verbatim, in stream order
    - Sink errors are logged once and swallowed, never retried
    - After a sink error the forwarder stops writing
    - Frames are skipped while the sink's write buffer is over the limit
"""

import logging
from typing import Optional, Protocol

from signcam.stream.frame import JpegFrame


logger = logging.getLogger(__name__)


# Closed pipes surface as OSError (BrokenPipeError, ConnectionResetError),
# closed transports as RuntimeError, closed file objects as ValueError.
SINK_ERRORS = (OSError, RuntimeError, ValueError)


class PreviewSink(Protocol):
    """Anything that accepts frame bytes, e.g. asyncio.StreamWriter."""

    def write(self, data: bytes) -> None:
        ...


class PreviewForwarder:
    """
    Non-blocking preview writer.

    Attributes:
        max_pending_bytes: Skip frames while the sink buffers more than this
            (0 = no limit). Only applies to sinks exposing an asyncio transport.
        closed: Whether the sink has been given up on

    Example:
        forwarder = PreviewForwarder(sink=player.stdin)
        forwarder.forward(frame)
    """

    def __init__(
        self,
        sink: Optional[PreviewSink] = None,
        max_pending_bytes: int = 0,
    ) -> None:
        """
        Initialize preview forwarder.

        Args:
            sink: Byte sink, or None to disable preview
            max_pending_bytes: Backpressure limit in bytes (0 = no limit)
        """
        self._sink = sink
        self.max_pending_bytes = max_pending_bytes
        self._closed: bool = sink is None

        self.frames_received: int = 0
        self.frames_written: int = 0
        self.frames_skipped: int = 0
        self.bytes_written: int = 0
        self.write_errors: int = 0

    @property
    def closed(self) -> bool:
        """Whether frames are no longer written to the sink."""
        return self._closed

    def forward(self, frame: JpegFrame) -> bool:
        """
        Write a frame to the preview sink.

        Args:
            frame: Frame to display

        Returns:
            True if the frame was handed to the sink, False if it was skipped.
        """
        self.frames_received += 1

        if self._closed:
            return False

        if self._sink_is_closing():
            self._close("sink is closing")
            return False

        if self.max_pending_bytes and self._pending_bytes() > self.max_pending_bytes:
            self.frames_skipped += 1
            return False

        try:
            self._sink.write(frame.data)
        except SINK_ERRORS as e:
            self.write_errors += 1
            self._close(f"write failed: {e!r}")
            return False

        self.frames_written += 1
        self.bytes_written += frame.size
        return True

    def close(self) -> None:
        """Stop forwarding frames."""
        if not self._closed:
            self._close("closed by owner")

    def _close(self, reason: str) -> None:
        self._closed = True
        logger.warning(f"Preview disabled ({reason}) after {self.frames_written} frames")

    def _sink_is_closing(self) -> bool:
        is_closing = getattr(self._sink, "is_closing", None)
        return bool(is_closing()) if callable(is_closing) else False

    def _pending_bytes(self) -> int:
        transport = getattr(self._sink, "transport", None)
        get_size = getattr(transport, "get_write_buffer_size", None)
        return get_size() if callable(get_size) else 0

    def metrics(self) -> dict:
        """
        Get forwarder metrics for observability.

        Returns:
            Dict with frame counters and closed flag
        """
        return {
            "frames_received": self.frames_received,
            "frames_written": self.frames_written,
            "frames_skipped": self.frames_skipped,
            "bytes_written": self.bytes_written,
            "write_errors": self.write_errors,
            "closed": self._closed,
        }
