"""
Frame Data Model
=================

Internal frame representation for the capture pipeline.

This module defines the typed JpegFrame class that is passed from the
demuxer to the preview forwarder and the inference gate.

Design Rules:
    - This is the ONLY frame format passed to downstream stages
    - Does NOT decode or manipulate image data
    - Holds the exact bytes from SOI to EOI inclusive
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class JpegFrame:
    """
    Complete JPEG image extracted from the MJPEG stream.

    Frames are immutable, so the preview forwarder and the inference gate
    can share the same instance.

    Attributes:
        frame_id: Monotonically increasing counter assigned by the demuxer
        timestamp: time.monotonic() when the frame was completed
        data: JPEG bytes, starting with FF D8 and ending with FF D9
    """

    frame_id: int
    timestamp: float
    data: bytes

    @property
    def size(self) -> int:
        """Frame size in bytes."""
        return len(self.data)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image bytes."""
        return (
            f"JpegFrame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"size={self.size})"
        )
