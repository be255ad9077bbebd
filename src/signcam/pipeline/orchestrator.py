"""
Pipeline Orchestrator
=====================

Drives the capture byte stream through the pipeline.

For every chunk from the source the orchestrator feeds the demuxer, and
for every frame it emits the orchestrator calls, in order:
    1. PreviewForwarder.forward(frame)
    2. InferenceGate.submit(frame)

Both calls return immediately, so chunk ingestion never waits on the
preview or on the classifier.

Lifecycle:
    IDLE -> RUNNING -> DRAINING -> STOPPED

    stop() moves a running pipeline to DRAINING: no further chunks are
    accepted and run() returns once the source is released. In-flight
    inference is not cancelled. A source that ends or fails without a stop
    request is fatal: run() raises SourceTerminatedError.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Optional

from signcam.exceptions import SourceTerminatedError
from signcam.inference.gate import InferenceGate
from signcam.preview.forwarder import PreviewForwarder
from signcam.stream.demuxer import MjpegDemuxer


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """
    Orchestrator lifecycle states.

    Attributes:
        IDLE: Created, run() not called yet
        RUNNING: Consuming chunks
        DRAINING: Stop requested, no new chunks accepted
        STOPPED: Terminal, never left
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    STOPPED = "STOPPED"


async def _next_chunk(iterator: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class PipelineOrchestrator:
    """
    Owner of the ingestion loop.

    Attributes:
        demuxer: MJPEG demuxer (mutated only by run())
        preview: Preview forwarder
        gate: Inference gate
        state: Current lifecycle state
        chunks_received: Chunks consumed from the source

    Example:
        orchestrator = PipelineOrchestrator(demuxer, preview, gate)
        task = asyncio.create_task(orchestrator.run(capture.chunks()))

        # Later, stop gracefully
        orchestrator.stop()
        await task
    """

    def __init__(
        self,
        demuxer: MjpegDemuxer,
        preview: PreviewForwarder,
        gate: InferenceGate,
    ) -> None:
        self.demuxer = demuxer
        self.preview = preview
        self.gate = gate

        self._state = PipelineState.IDLE
        self._stop_event: asyncio.Event = asyncio.Event()

        self.chunks_received: int = 0
        self.bytes_received: int = 0

    @property
    def state(self) -> PipelineState:
        """Current lifecycle state."""
        return self._state

    async def run(self, source: AsyncIterable[bytes]) -> None:
        """
        Consume the source until it ends or stop() is called.

        Args:
            source: Async iterable of byte chunks

        Raises:
            RuntimeError: If the orchestrator was already started or stopped
            SourceTerminatedError: If the source ended or failed while
                running. The orchestrator is STOPPED afterwards.
        """
        if self._state is not PipelineState.IDLE:
            raise RuntimeError(f"Cannot run pipeline in state {self._state.value}")

        self._state = PipelineState.RUNNING
        logger.info("Pipeline running")

        iterator = source.__aiter__()
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        pending_chunk: Optional[asyncio.Task] = None
        source_error: Optional[BaseException] = None
        terminated = False

        try:
            while True:
                pending_chunk = asyncio.ensure_future(_next_chunk(iterator))
                done, _ = await asyncio.wait(
                    {pending_chunk, stop_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_waiter in done:
                    break

                try:
                    chunk = pending_chunk.result()
                except Exception as e:
                    terminated = True
                    source_error = e
                    break
                finally:
                    pending_chunk = None

                if chunk is None:
                    terminated = True
                    break

                self._process_chunk(chunk)
        finally:
            self._state = PipelineState.DRAINING
            stop_waiter.cancel()
            if pending_chunk is not None and not pending_chunk.done():
                pending_chunk.cancel()
                await asyncio.gather(pending_chunk, return_exceptions=True)
            await self._close_source(iterator)
            self._state = PipelineState.STOPPED

        if terminated:
            if source_error is not None:
                logger.error(f"Capture stream failed: {source_error!r}")
                raise SourceTerminatedError(
                    f"Capture stream failed: {source_error}"
                ) from source_error
            logger.error("Capture stream ended")
            raise SourceTerminatedError("Capture stream ended")

        logger.info("Pipeline stopped")

    def stop(self) -> None:
        """
        Request shutdown.

        Safe to call from a signal handler on the event loop and more than
        once. An orchestrator that never ran goes straight to STOPPED.
        """
        if self._state is PipelineState.IDLE:
            self._state = PipelineState.STOPPED
        elif self._state is PipelineState.RUNNING:
            logger.info("Pipeline stopping...")
            self._state = PipelineState.DRAINING
        self._stop_event.set()

    def _process_chunk(self, chunk: bytes) -> None:
        self.chunks_received += 1
        self.bytes_received += len(chunk)

        for frame in self.demuxer.feed(chunk):
            self.preview.forward(frame)
            self.gate.submit(frame)

    async def _close_source(self, iterator: AsyncIterator[bytes]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(f"Error closing capture source: {e!r}")

    def metrics(self) -> dict:
        """
        Get pipeline metrics for observability.

        Returns:
            Dict with state, chunk counters and per-stage metrics
        """
        return {
            "state": self._state.value,
            "chunks_received": self.chunks_received,
            "bytes_received": self.bytes_received,
            "demuxer": self.demuxer.metrics(),
            "preview": self.preview.metrics(),
            "inference": self.gate.to_dict(),
        }
