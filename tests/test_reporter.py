"""
Prediction Reporter Tests
=========================
"""

import logging
import re

import pytest

from signcam.models.prediction import LabelDistribution
from signcam.reporting.reporter import PredictionReporter, format_prediction


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def make_distribution(probabilities, frame_id=0):
    return LabelDistribution.from_probabilities(
        probabilities,
        ["TEACH", "STRONG", "STOP", "SORRY", "PLEASE"],
        frame_id=frame_id,
        timestamp=0.0,
    )


class TestFormatting:

    def test_top_two_line(self):
        line = format_prediction(make_distribution([0.05, 0.02, 0.912, 0.008, 0.01]))

        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z  ", line)
        assert line.endswith("STOP: 91.2% | TEACH: 5.0%")

    def test_top_one_line(self):
        line = format_prediction(make_distribution([0.1, 0.6, 0.1, 0.1, 0.1]), top_k=1)

        assert line.endswith("STRONG: 60.0%")
        assert "|" not in line


class TestThrottling:

    def test_first_distribution_is_reported(self):
        reporter = PredictionReporter(interval_ms=500, clock=FakeClock())

        assert reporter.report(make_distribution([0.2] * 5)) is not None
        assert reporter.reported == 1

    def test_reports_at_most_once_per_interval(self):
        clock = FakeClock()
        reporter = PredictionReporter(interval_ms=450, clock=clock)

        emitted = []
        for step in range(20):
            clock.now = 100.0 + step * 0.1
            if reporter.report(make_distribution([0.2] * 5, frame_id=step)):
                emitted.append(step)

        assert emitted == [0, 5, 10, 15]
        assert reporter.suppressed == 16

    def test_exact_interval_is_still_throttled(self):
        clock = FakeClock()
        reporter = PredictionReporter(interval_ms=500, clock=clock)

        reporter.report(make_distribution([0.2] * 5, frame_id=1))
        clock.now = 100.5
        assert reporter.report(make_distribution([0.2] * 5, frame_id=2)) is None

        clock.now = 100.501
        assert reporter.report(make_distribution([0.2] * 5, frame_id=3)) is not None
        assert reporter.reported == 2

    def test_latest_kept_when_throttled(self):
        clock = FakeClock()
        reporter = PredictionReporter(interval_ms=500, clock=clock)

        reporter.report(make_distribution([0.2] * 5, frame_id=1))
        clock.now += 0.1
        assert reporter.report(make_distribution([0.2] * 5, frame_id=2)) is None

        assert reporter.latest.frame_id == 2

    def test_lines_go_to_report_logger(self, caplog):
        reporter = PredictionReporter(interval_ms=0, clock=FakeClock())

        with caplog.at_level(logging.INFO, logger="signcam.report"):
            reporter.report(make_distribution([0.0, 0.0, 0.0, 0.0, 1.0]))

        assert any("PLEASE: 100.0%" in r.getMessage() for r in caplog.records)

    def test_invalid_top_k(self):
        with pytest.raises(ValueError):
            PredictionReporter(top_k=0)
