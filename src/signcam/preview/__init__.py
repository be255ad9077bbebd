"""
Preview Module
==============

Live preview forwarding.

Components:
    - PreviewForwarder: Writes frames to a sink without ever blocking
    - PreviewSink: Protocol for byte sinks
"""

from signcam.preview.forwarder import PreviewForwarder, PreviewSink

__all__ = [
    "PreviewForwarder",
    "PreviewSink",
]
