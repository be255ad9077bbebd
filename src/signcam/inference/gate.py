"""
Inference Gate
==============

Non-blocking admission control in front of the classifier.

The camera produces frames faster than the classifier can score them.
Instead of queueing, the gate admits a frame only when no inference is in
flight and silently drops it otherwise.

This module provides the InferenceGate class which:
    - Admits at most one inference at a time (test-and-set on a lock)
    - Runs the blocking classifier call on a dedicated worker thread
    - Returns to the caller immediately, whether admitted or dropped
    - Releases admission on every exit path, including decode failure
    - Hands successful distributions to a result callback

Design Rules:
    - submit() must be called from the event loop thread
    - Dropping a frame is not an error
    - Decode failures are recovered locally, never propagated
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Set

from signcam.exceptions import ImageDecodeError
from signcam.inference.classifier import ClassifierAdapter
from signcam.models.prediction import LabelDistribution
from signcam.stream.frame import JpegFrame


logger = logging.getLogger(__name__)


ResultCallback = Callable[[LabelDistribution], None]


class InferenceGateMetrics:
    """Metrics for InferenceGate observability."""

    __slots__ = (
        "submitted",
        "accepted",
        "dropped",
        "completed",
        "decode_failures",
        "errors",
        "max_in_flight",
    )

    def __init__(self) -> None:
        self.submitted: int = 0
        self.accepted: int = 0
        self.dropped: int = 0
        self.completed: int = 0
        self.decode_failures: int = 0
        self.errors: int = 0
        self.max_in_flight: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "submitted": self.submitted,
            "accepted": self.accepted,
            "dropped": self.dropped,
            "completed": self.completed,
            "decode_failures": self.decode_failures,
            "errors": self.errors,
            "max_in_flight": self.max_in_flight,
        }


class InferenceGate:
    """
    Single-slot admission gate for classifier calls.

    Attributes:
        adapter: ClassifierAdapter performing decode + predict
        metrics: Operational counters
        in_flight: Whether an inference is currently running

    Example:
        gate = InferenceGate(adapter, on_result=reporter.report)

        # Inside the event loop, for every frame
        gate.submit(frame)

        # On shutdown
        await gate.wait_idle(timeout=2.0)
        gate.close()
    """

    def __init__(
        self,
        adapter: ClassifierAdapter,
        on_result: Optional[ResultCallback] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        """
        Initialize inference gate.

        Args:
            adapter: ClassifierAdapter to run admitted frames through
            on_result: Called on the event loop with each distribution
            executor: Worker pool for classifier calls. A private
                single-thread pool is created when omitted.
        """
        self.adapter = adapter
        self._on_result = on_result

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="inference",
        )

        # Admission state: held exactly while decode + predict runs
        self._busy = threading.Lock()
        self._in_flight: int = 0
        self._tasks: Set[asyncio.Task] = set()

        self.metrics = InferenceGateMetrics()

    @property
    def in_flight(self) -> bool:
        """Whether an inference is currently running."""
        return self._busy.locked()

    def submit(self, frame: JpegFrame) -> bool:
        """
        Offer a frame for inference.

        Never blocks. If an inference is already running the frame is
        dropped.

        Args:
            frame: Frame to classify

        Returns:
            True if the frame was dispatched, False if it was dropped.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        self.metrics.submitted += 1

        if not self._busy.acquire(blocking=False):
            self.metrics.dropped += 1
            return False

        try:
            loop = asyncio.get_running_loop()
            task = loop.create_task(
                self._run(frame),
                name=f"inference-{frame.frame_id}",
            )
        except BaseException:
            self._busy.release()
            raise

        self.metrics.accepted += 1
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self, frame: JpegFrame) -> None:
        """Classify an admitted frame and release admission."""
        loop = asyncio.get_running_loop()

        self._in_flight += 1
        self.metrics.max_in_flight = max(self.metrics.max_in_flight, self._in_flight)

        try:
            distribution = await loop.run_in_executor(
                self._executor,
                self.adapter.classify,
                frame,
            )
        except ImageDecodeError as e:
            self.metrics.decode_failures += 1
            logger.debug(f"Dropped undecodable frame: {e}")
            return
        except Exception as e:
            self.metrics.errors += 1
            logger.warning(f"Inference error (frame={frame.frame_id}): {e!r}")
            return
        finally:
            self._in_flight -= 1
            self._busy.release()

        self.metrics.completed += 1

        if self._on_result is not None:
            try:
                self._on_result(distribution)
            except Exception as e:
                logger.error(f"Result callback failed (frame={frame.frame_id}): {e!r}")

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the in-flight inference (if any) to finish.

        Does not cancel anything.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            True if no inference is pending afterwards.
        """
        if not self._tasks:
            return True
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending

    def close(self) -> None:
        """Release the worker pool without interrupting a running call."""
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def to_dict(self) -> dict:
        """Metrics plus current admission state."""
        return {**self.metrics.to_dict(), "in_flight": self.in_flight}
