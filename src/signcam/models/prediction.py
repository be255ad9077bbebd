"""
Prediction Models
=================

Data models for classifier output.

These models are produced by the ClassifierAdapter and consumed by the
PredictionReporter and the status API.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class LabelScore:
    """
    Probability assigned to one label.

    Attributes:
        label: Label name (or positional index if outside the label set)
        probability: Softmax probability in [0, 1]
    """

    label: str
    probability: float


@dataclass(frozen=True, slots=True)
class LabelDistribution:
    """
    Softmax-normalized distribution over the label set.

    Entries follow the classifier's output order, not probability order.
    Use ranked() or top() for a sorted view.

    Attributes:
        scores: One LabelScore per classifier output
        frame_id: Frame the distribution was computed from
        timestamp: time.monotonic() when inference completed
    """

    scores: Tuple[LabelScore, ...]
    frame_id: int
    timestamp: float

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.scores:
            raise ValueError("scores must not be empty")
        total = math.fsum(s.probability for s in self.scores)
        if not math.isclose(total, 1.0, abs_tol=1e-3):
            raise ValueError(f"probabilities must sum to 1, got {total:.6f}")

    @classmethod
    def from_probabilities(
        cls,
        probabilities: Sequence[float],
        labels: Sequence[str],
        frame_id: int,
        timestamp: float,
    ) -> "LabelDistribution":
        """
        Pair probabilities with labels.

        Outputs beyond the label set are named by their index.
        """
        scores = tuple(
            LabelScore(
                label=labels[i] if i < len(labels) else str(i),
                probability=float(p),
            )
            for i, p in enumerate(probabilities)
        )
        return cls(scores=scores, frame_id=frame_id, timestamp=timestamp)

    def ranked(self) -> List[LabelScore]:
        """Scores sorted by descending probability (stable for ties)."""
        return sorted(self.scores, key=lambda s: s.probability, reverse=True)

    def top(self, k: int = 2) -> List[LabelScore]:
        """The k most probable labels."""
        return self.ranked()[:k]

    def to_dict(self) -> dict:
        """Export as a JSON-friendly dict."""
        return {
            "frame_id": self.frame_id,
            "scores": [
                {"label": s.label, "probability": round(s.probability, 6)}
                for s in self.ranked()
            ],
        }
