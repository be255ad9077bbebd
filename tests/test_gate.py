"""
Inference Gate Tests
====================

Load shedding and admission-state guarantees.
"""

import asyncio

import numpy as np

from signcam.inference.classifier import ClassifierAdapter
from signcam.inference.gate import InferenceGate
from signcam.reporting.reporter import PredictionReporter

from conftest import LABELS, ConcurrencyProbe, encode_jpeg, make_frame


class FailingClassifier:
    def predict(self, batch: np.ndarray) -> np.ndarray:
        raise RuntimeError("model exploded")


def make_gate(classifier, results=None):
    adapter = ClassifierAdapter(classifier, LABELS, image_size=32)
    on_result = results.append if results is not None else None
    return InferenceGate(adapter, on_result=on_result)


class TestAdmission:

    def test_second_submit_dropped_while_busy(self):
        probe = ConcurrencyProbe(latency=0.05)
        results = []
        jpeg = encode_jpeg(128)

        async def scenario():
            gate = make_gate(probe, results)
            first = gate.submit(make_frame(jpeg, 0))
            second = gate.submit(make_frame(jpeg, 1))
            busy = gate.in_flight
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate, first, second, busy

        gate, first, second, busy = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert busy is True
        assert gate.in_flight is False
        assert gate.metrics.dropped == 1
        assert [d.frame_id for d in results] == [0]

    def test_at_most_one_inference_in_flight(self):
        probe = ConcurrencyProbe(latency=0.03)
        results = []
        jpeg = encode_jpeg(128)
        total = 30

        async def scenario():
            gate = make_gate(probe, results)
            for i in range(total):
                gate.submit(make_frame(jpeg, i))
                await asyncio.sleep(0.005)
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate

        gate = asyncio.run(scenario())

        assert probe.max_concurrent == 1
        assert gate.metrics.max_in_flight == 1
        assert gate.metrics.submitted == total
        assert gate.metrics.accepted + gate.metrics.dropped == total
        assert 1 <= gate.metrics.accepted < total
        assert probe.calls == gate.metrics.accepted
        assert len(results) == gate.metrics.completed == gate.metrics.accepted

    def test_accepted_frames_keep_stream_order(self):
        probe = ConcurrencyProbe(latency=0.01)
        results = []
        jpeg = encode_jpeg(128)

        async def scenario():
            gate = make_gate(probe, results)
            for i in range(20):
                gate.submit(make_frame(jpeg, i))
                await asyncio.sleep(0.004)
            await gate.wait_idle(timeout=5.0)
            gate.close()

        asyncio.run(scenario())

        ids = [d.frame_id for d in results]
        assert ids == sorted(ids)
        assert ids[0] == 0

    def test_submit_does_not_block_caller(self):
        probe = ConcurrencyProbe(latency=0.2)
        jpeg = encode_jpeg(128)

        async def scenario():
            gate = make_gate(probe)
            loop = asyncio.get_running_loop()
            started = loop.time()
            gate.submit(make_frame(jpeg, 0))
            elapsed = loop.time() - started
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return elapsed

        assert asyncio.run(scenario()) < 0.1


class TestFailureRecovery:

    def test_decode_failure_resets_admission(self, corrupt_frame):
        probe = ConcurrencyProbe(latency=0.0)
        results = []

        async def scenario():
            gate = make_gate(probe, results)
            assert gate.submit(corrupt_frame) is True
            await gate.wait_idle(timeout=5.0)
            busy_after_failure = gate.in_flight
            accepted_next = gate.submit(make_frame(encode_jpeg(50), 100))
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate, busy_after_failure, accepted_next

        gate, busy_after_failure, accepted_next = asyncio.run(scenario())

        assert busy_after_failure is False
        assert accepted_next is True
        assert gate.metrics.decode_failures == 1
        assert probe.calls == 1
        assert [d.frame_id for d in results] == [100]

    def test_truncated_frame_is_not_classified_or_reported(self, truncated_frame):
        probe = ConcurrencyProbe(latency=0.0)
        reporter = PredictionReporter(interval_ms=0)

        async def scenario():
            adapter = ClassifierAdapter(probe, LABELS, image_size=32)
            gate = InferenceGate(adapter, on_result=reporter.report)
            assert gate.submit(truncated_frame) is True
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate

        gate = asyncio.run(scenario())

        assert probe.calls == 0
        assert gate.metrics.decode_failures == 1
        assert gate.in_flight is False
        assert reporter.reported == 0
        assert reporter.latest is None

    def test_classifier_error_resets_admission(self):
        results = []

        async def scenario():
            gate = make_gate(FailingClassifier(), results)
            gate.submit(make_frame(encode_jpeg(50), 0))
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate

        gate = asyncio.run(scenario())

        assert gate.in_flight is False
        assert gate.metrics.errors == 1
        assert results == []

    def test_callback_error_is_contained(self):
        probe = ConcurrencyProbe(latency=0.0)

        def explode(distribution):
            raise ValueError("reporter broke")

        async def scenario():
            adapter = ClassifierAdapter(probe, LABELS, image_size=32)
            gate = InferenceGate(adapter, on_result=explode)
            gate.submit(make_frame(encode_jpeg(50), 0))
            await gate.wait_idle(timeout=5.0)
            gate.close()
            return gate

        gate = asyncio.run(scenario())

        assert gate.metrics.completed == 1
        assert gate.in_flight is False

    def test_wait_idle_without_work(self):
        async def scenario():
            gate = make_gate(ConcurrencyProbe())
            idle = await gate.wait_idle(timeout=0.1)
            gate.close()
            return idle

        assert asyncio.run(scenario()) is True
