"""
Pipeline Module
===============

Top-level orchestration of the capture pipeline.

Components:
    - PipelineOrchestrator: Drives chunks through demuxer, preview and gate
    - PipelineState: IDLE -> RUNNING -> DRAINING -> STOPPED
"""

from signcam.pipeline.orchestrator import PipelineOrchestrator, PipelineState

__all__ = [
    "PipelineOrchestrator",
    "PipelineState",
]
