"""
Prediction Reporter
===================

Throttled, human-readable prediction output.

Inference may complete many times per second. The reporter emits at most
one line per interval so that output volume does not depend on the
camera frame rate:

    2026-01-01T12:00:00.000Z  STOP: 91.2% | PLEASE: 4.0%

Lines go to the `signcam.report` logger. The latest distribution is kept
regardless of throttling for the status API.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from signcam.models.prediction import LabelDistribution


logger = logging.getLogger(__name__)
report_logger = logging.getLogger("signcam.report")


def format_prediction(distribution: LabelDistribution, top_k: int = 2) -> str:
    """
    Format the top-k labels of a distribution as one line.

    Args:
        distribution: Distribution to format
        top_k: Number of labels to include

    Returns:
        Timestamped line, e.g. "<iso>  STOP: 91.2% | PLEASE: 4.0%"
    """
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z")
    parts = [
        f"{score.label}: {score.probability * 100:.1f}%"
        for score in distribution.top(top_k)
    ]
    return f"{stamp}  " + " | ".join(parts)


class PredictionReporter:
    """
    Rate-limited reporter for label distributions.

    Attributes:
        interval: Seconds that must pass (strictly) between reported lines
        top_k: Labels per line
        latest: Most recent distribution received (reported or not)
        reported: Number of lines emitted
        suppressed: Number of distributions not reported due to throttling

    Example:
        reporter = PredictionReporter(interval_ms=500)
        gate = InferenceGate(adapter, on_result=reporter.report)
    """

    def __init__(
        self,
        interval_ms: int = 500,
        top_k: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize reporter.

        Args:
            interval_ms: A line is reported only once more than this has passed
            top_k: Labels per line
            clock: Monotonic time source in seconds
        """
        if top_k < 1:
            raise ValueError("top_k must be >= 1")

        self.interval = interval_ms / 1000.0
        self.top_k = top_k
        self._clock = clock
        self._last_report: Optional[float] = None

        self.latest: Optional[LabelDistribution] = None
        self.reported: int = 0
        self.suppressed: int = 0

    def report(self, distribution: LabelDistribution) -> Optional[str]:
        """
        Record a distribution and report it unless throttled.

        Args:
            distribution: Fresh classifier output

        Returns:
            The emitted line, or None if throttled.
        """
        self.latest = distribution

        now = self._clock()
        if self._last_report is not None and now - self._last_report <= self.interval:
            self.suppressed += 1
            return None

        self._last_report = now
        self.reported += 1

        line = format_prediction(distribution, self.top_k)
        report_logger.info(line)
        return line

    def metrics(self) -> dict:
        """
        Get reporter metrics for observability.

        Returns:
            Dict with reported and suppressed counts
        """
        return {
            "reported": self.reported,
            "suppressed": self.suppressed,
        }
