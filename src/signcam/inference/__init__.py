"""
Inference Module
================

Classification of sampled frames.

Components:
    - InferenceGate: Single-slot, drop-when-busy admission control
    - ClassifierAdapter: JPEG -> normalized batch -> softmax distribution
    - Classifier: Protocol for classifier backends
    - MockClassifier: Deterministic backend for testing
    - check_scan_complete: Rejects JPEGs whose scan data stops early
    - TorchScriptClassifier: TorchScript backend (production)

Design Philosophy:
    The classifier is an opaque capability. The pipeline only relies on
    predict(batch) -> scores over a fixed, ordered label set.
"""

from signcam.inference.classifier import (
    Classifier,
    ClassifierAdapter,
    softmax,
    to_batch,
)
from signcam.inference.gate import InferenceGate, InferenceGateMetrics
from signcam.inference.image_decoder import decode_frame_rgb
from signcam.inference.jpeg_scan import check_scan_complete
from signcam.inference.mock import MockClassifier

# Torch backend imported separately to avoid mandatory dependency
try:
    from signcam.inference.torch_backend import TorchScriptClassifier
    _TORCH_AVAILABLE = True
except ImportError:
    _TORCH_AVAILABLE = False
    TorchScriptClassifier = None  # type: ignore

__all__ = [
    "Classifier",
    "ClassifierAdapter",
    "InferenceGate",
    "InferenceGateMetrics",
    "MockClassifier",
    "check_scan_complete",
    "TorchScriptClassifier",
    "decode_frame_rgb",
    "softmax",
    "to_batch",
    "_TORCH_AVAILABLE",
]
