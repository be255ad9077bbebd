"""
Reporting Module
================

Throttled prediction output. Reporting is observational only and never
feeds back into the pipeline.

Components:
    - PredictionReporter: At most one line per interval
    - format_prediction: Top-k line formatting
"""

from signcam.reporting.reporter import PredictionReporter, format_prediction

__all__ = [
    "PredictionReporter",
    "format_prediction",
]
