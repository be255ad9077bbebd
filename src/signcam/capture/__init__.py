"""
Capture Module
==============

External process collaborators for camera capture and preview.

Components:
    - FFmpegCapture: Opens the camera and produces the MJPEG byte stream
    - FFplayPreview: Displays frames written to its stdin
"""

from signcam.capture.processes import FFmpegCapture, FFplayPreview, ManagedProcess

__all__ = [
    "FFmpegCapture",
    "FFplayPreview",
    "ManagedProcess",
]
