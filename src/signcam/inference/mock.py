"""
Mock Classifier
===============

Deterministic classifier backend for tests and dry runs.

Design Rules:
    - No model files, no external runtime
    - Same input always produces the same scores
    - Optional artificial latency to exercise load shedding
"""

import logging
import time

import numpy as np


logger = logging.getLogger(__name__)


class MockClassifier:
    """
    Deterministic mock classifier.

    The winning label is chosen from the mean image brightness, so a dark
    frame and a bright frame map to different labels. The winner gets a raw
    score of `confidence`, all other labels score 0.

    Attributes:
        num_labels: Length of the score vector
        latency: Seconds to sleep per call (simulates a slow model)
        confidence: Raw score of the winning label
        calls: Number of predict() calls
    """

    def __init__(
        self,
        num_labels: int = 5,
        latency: float = 0.0,
        confidence: float = 4.0,
    ) -> None:
        """
        Initialize mock classifier.

        Args:
            num_labels: Number of scores to return
            latency: Artificial delay per prediction in seconds
            confidence: Raw score given to the winning label
        """
        if num_labels < 1:
            raise ValueError("num_labels must be >= 1")

        self.num_labels = num_labels
        self.latency = latency
        self.confidence = confidence
        self.calls: int = 0

        logger.info(
            f"MockClassifier initialized: num_labels={num_labels}, "
            f"latency={latency * 1000:.0f}ms"
        )

    def predict(self, batch: np.ndarray) -> np.ndarray:
        self.calls += 1
        if self.latency > 0:
            time.sleep(self.latency)

        brightness = float(np.clip(np.mean(batch), 0.0, 1.0))
        winner = min(int(brightness * self.num_labels), self.num_labels - 1)

        scores = np.zeros((1, self.num_labels), dtype=np.float32)
        scores[0, winner] = self.confidence
        return scores
