"""
Classifier Adapter
==================

Bridges JPEG frames and an opaque image classifier.

The adapter decodes a frame, normalizes it to the classifier's input
contract, invokes the classifier and turns its raw scores into a
LabelDistribution.

Classifier contract:
    predict(batch) -> scores
        batch:  float32, shape (1, H, W, 3) or (1, 3, H, W), RGB in [0, 1]
        scores: unnormalized, shape (1, L) or (L,)

Design Rules:
    - Blocking: run it off the event loop (see InferenceGate)
    - Decode failures raise ImageDecodeError BEFORE the classifier is called
    - Softmax is always applied by the adapter
"""

import logging
import time
from typing import Protocol, Sequence

import numpy as np

from signcam.inference.image_decoder import decode_frame_rgb
from signcam.models.prediction import LabelDistribution
from signcam.stream.frame import JpegFrame


logger = logging.getLogger(__name__)


class Classifier(Protocol):
    """
    Protocol for classifier backends.

    Implemented by:
        - MockClassifier (deterministic, for testing)
        - TorchScriptClassifier (production)
    """

    def predict(self, batch: np.ndarray) -> np.ndarray:
        """
        Score a single-image batch.

        Args:
            batch: Normalized float32 image batch

        Returns:
            Raw (unnormalized) scores, one per label
        """
        ...


def softmax(scores: np.ndarray) -> np.ndarray:
    """Numerically stable softmax over a 1-D score vector."""
    scores = np.asarray(scores, dtype=np.float64).ravel()
    shifted = scores - np.max(scores)
    exp = np.exp(shifted)
    return exp / exp.sum()


def to_batch(rgb: np.ndarray, channels_first: bool = False) -> np.ndarray:
    """
    Convert a uint8 RGB image to a normalized single-image batch.

    Args:
        rgb: Image (H, W, 3), dtype=uint8
        channels_first: Return (1, 3, H, W) instead of (1, H, W, 3)

    Returns:
        float32 batch with values in [0, 1]
    """
    image = rgb.astype(np.float32) / 255.0
    if channels_first:
        image = np.transpose(image, (2, 0, 1))
    return np.ascontiguousarray(image[np.newaxis, ...])


class ClassifierAdapter:
    """
    Frame-to-distribution adapter around a Classifier.

    Attributes:
        classifier: Backend implementing predict()
        labels: Ordered label set
        image_size: Square input size expected by the classifier
        channels_first: Whether the backend expects NCHW batches

    Example:
        adapter = ClassifierAdapter(MockClassifier(num_labels=5), labels=LABELS)
        distribution = adapter.classify(frame)
        print(distribution.top(2))
    """

    def __init__(
        self,
        classifier: Classifier,
        labels: Sequence[str],
        image_size: int = 224,
        channels_first: bool = False,
    ) -> None:
        self.classifier = classifier
        self.labels = list(labels)
        self.image_size = image_size
        self.channels_first = channels_first

    def classify(self, frame: JpegFrame) -> LabelDistribution:
        """
        Decode, normalize and classify a frame.

        Args:
            frame: Frame holding JPEG bytes

        Returns:
            LabelDistribution in classifier output order

        Raises:
            ImageDecodeError: If the frame cannot be decoded. The classifier
                is not called in that case.
        """
        rgb = decode_frame_rgb(frame, self.image_size, self.image_size)
        batch = to_batch(rgb, channels_first=self.channels_first)

        scores = np.asarray(self.classifier.predict(batch))
        if scores.ndim > 1:
            scores = scores[0]

        probabilities = softmax(scores)

        if len(probabilities) != len(self.labels):
            logger.debug(
                f"Classifier returned {len(probabilities)} scores "
                f"for {len(self.labels)} labels"
            )

        return LabelDistribution.from_probabilities(
            probabilities,
            self.labels,
            frame_id=frame.frame_id,
            timestamp=time.monotonic(),
        )

    def warmup(self) -> None:
        """Run the classifier once on a black image."""
        shape = (
            (1, 3, self.image_size, self.image_size)
            if self.channels_first
            else (1, self.image_size, self.image_size, 3)
        )
        started = time.perf_counter()
        self.classifier.predict(np.zeros(shape, dtype=np.float32))
        logger.info(
            f"Classifier warm-up done in {(time.perf_counter() - started) * 1000:.0f}ms"
        )
