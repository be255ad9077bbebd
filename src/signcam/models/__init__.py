"""
Data Models
===========

Typed data passed between pipeline stages.

Models:
    - LabelScore: One (label, probability) pair
    - LabelDistribution: Softmax distribution over the label set
"""

from signcam.models.prediction import LabelDistribution, LabelScore

__all__ = [
    "LabelScore",
    "LabelDistribution",
]
