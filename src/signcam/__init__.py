"""
SignCam
=======

Real-time sign classification over a Motion-JPEG camera stream.

This package reads the MJPEG byte stream produced by an external capture
process, splits it into JPEG frames, forwards every frame to a live preview
and classifies a subsample of frames without ever stalling capture.

Components:
    - stream: MJPEG demuxing and chunk sources
    - preview: Non-blocking preview forwarding
    - inference: Admission gate, classifier adapter and backends
    - reporting: Throttled prediction reporting
    - pipeline: Orchestrator tying the stages together
    - capture: ffmpeg / ffplay subprocess collaborators

Example:
    from signcam.config import settings
    from signcam.pipeline import PipelineOrchestrator

    # Service is started via FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "SignCam Project"

__all__ = [
    "__version__",
]
