"""
Stream Module
=============

MJPEG byte-stream ingestion components.

This module provides the ingestion layer for SignCam:
    - JpegFrame: Typed frame data model (internal representation)
    - MjpegDemuxer: Splits an MJPEG byte stream into JPEG frames
    - read_stream_chunks / read_file_chunks: Async chunk sources

Example:
    from signcam.stream import MjpegDemuxer, read_file_chunks

    demuxer = MjpegDemuxer()

    async for chunk in read_file_chunks("recording.mjpeg"):
        for frame in demuxer.feed(chunk):
            process(frame)
"""

from signcam.stream.frame import JpegFrame
from signcam.stream.demuxer import MjpegDemuxer, SOI_MARKER, EOI_MARKER
from signcam.stream.source import read_stream_chunks, read_file_chunks


__all__ = [
    "JpegFrame",
    "MjpegDemuxer",
    "SOI_MARKER",
    "EOI_MARKER",
    "read_stream_chunks",
    "read_file_chunks",
]
