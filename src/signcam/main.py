"""
SignCam Main Application
========================

FastAPI entry point for the live sign classification pipeline.

Startup:
    1. Load the classifier backend (fail fast) and warm it up
    2. Open the ffplay preview window (optional)
    3. Open the camera with ffmpeg
    4. Run the pipeline orchestrator as a background task

If the capture stream ends the pipeline stops and the service shuts
itself down so that a process supervisor can restart it.

Endpoints:
    GET  /            - Service information
    GET  /health      - Liveness probe (is process alive?)
    GET  /ready       - Readiness probe (pipeline running?)
    GET  /metrics     - Pipeline counters
    GET  /prediction  - Latest label distribution
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from signcam.config import settings
from signcam.exceptions import ClassifierError, SourceTerminatedError
from signcam.capture import FFmpegCapture, FFplayPreview
from signcam.inference import (
    Classifier,
    ClassifierAdapter,
    InferenceGate,
    MockClassifier,
    TorchScriptClassifier,
    _TORCH_AVAILABLE,
)
from signcam.pipeline import PipelineOrchestrator, PipelineState
from signcam.preview import PreviewForwarder
from signcam.reporting import PredictionReporter
from signcam.stream import MjpegDemuxer


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_shutdown_flag: bool = False
_startup_time: float = 0.0

_capture: Optional[FFmpegCapture] = None
_player: Optional[FFplayPreview] = None
_gate: Optional[InferenceGate] = None
_reporter: Optional[PredictionReporter] = None
_orchestrator: Optional[PipelineOrchestrator] = None
_pipeline_task: Optional[asyncio.Task] = None
_source_error: Optional[str] = None


# =============================================================================
# Getters
# =============================================================================

def get_orchestrator() -> Optional[PipelineOrchestrator]:
    return _orchestrator

def get_reporter() -> Optional[PredictionReporter]:
    return _reporter

def is_ready() -> bool:
    return _orchestrator is not None and _orchestrator.state is PipelineState.RUNNING


# =============================================================================
# Classifier Factory
# =============================================================================

def create_classifier() -> Classifier:
    """
    Create classifier backend based on config.

    Fails fast if the torchscript backend is requested but unavailable.
    """
    backend = settings.classifier.backend

    if backend == "mock":
        logger.info("Using MockClassifier")
        return MockClassifier(num_labels=len(settings.classifier.labels))

    elif backend == "torchscript":
        if not _TORCH_AVAILABLE:
            raise ClassifierError(
                "TorchScript backend requested but torch is not installed. "
                "Install with: pip install 'signcam[torch]'"
            )

        logger.info(f"Using TorchScriptClassifier: {settings.classifier.model_path}")
        return TorchScriptClassifier(
            model_path=settings.classifier.model_path,
            device=settings.classifier.device,
        )

    else:
        raise ClassifierError(f"Unknown classifier backend: {backend}")


# =============================================================================
# Pipeline Task
# =============================================================================

async def run_pipeline(orchestrator: PipelineOrchestrator, capture: FFmpegCapture) -> None:
    """Run the orchestrator and shut the service down if capture ends."""
    global _source_error

    try:
        await orchestrator.run(capture.chunks())
    except SourceTerminatedError as e:
        try:
            exit_code = await asyncio.wait_for(capture.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            exit_code = capture.returncode
        _source_error = f"{e} (ffmpeg exit code {exit_code})"
        logger.error(_source_error)

        if not _shutdown_flag:
            request_shutdown()


def request_shutdown() -> None:
    """Ask uvicorn for a graceful shutdown, as a supervisor's SIGTERM would."""
    logger.info("Requesting service shutdown")
    signal.raise_signal(signal.SIGTERM)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _capture, _player, _gate, _reporter, _orchestrator
    global _pipeline_task, _startup_time, _shutdown_flag, _source_error

    _startup_time = time.time()
    _shutdown_flag = False
    _capture = _player = _orchestrator = _pipeline_task = None
    _source_error = None
    logger.info(f"Starting {settings.app.name} {settings.app.version}")

    # Classifier (fail fast)
    adapter = ClassifierAdapter(
        classifier=create_classifier(),
        labels=settings.classifier.labels,
        image_size=settings.classifier.image_size,
        channels_first=settings.classifier.channels_first,
    )
    if settings.classifier.warmup:
        await asyncio.to_thread(adapter.warmup)

    _reporter = PredictionReporter(
        interval_ms=settings.reporting.interval_ms,
        top_k=settings.reporting.top_k,
    )
    _gate = InferenceGate(adapter, on_result=_reporter.report)

    try:
        # Preview window
        sink = None
        if settings.preview.enabled:
            _player = FFplayPreview(ffplay_path=settings.preview.ffplay_path)
            await _player.start()
            sink = _player.sink
        else:
            logger.info("Preview disabled")

        preview = PreviewForwarder(
            sink=sink,
            max_pending_bytes=settings.preview.max_pending_bytes,
        )

        # Camera
        _capture = FFmpegCapture(
            ffmpeg_path=settings.capture.ffmpeg_path,
            input_format=settings.capture.input_format,
            device=settings.capture.device,
            width=settings.capture.width,
            height=settings.capture.height,
            fps=settings.capture.fps,
            quality=settings.capture.quality,
            chunk_size=settings.capture.chunk_size,
        )
        await _capture.start()

        _orchestrator = PipelineOrchestrator(
            demuxer=MjpegDemuxer(
                max_window_bytes=settings.demuxer.max_window_bytes,
                tail_bytes=settings.demuxer.tail_bytes,
            ),
            preview=preview,
            gate=_gate,
        )
    except Exception:
        logger.error("Startup failed, stopping started components")
        if _capture:
            await _capture.stop()
        if _player:
            await _player.stop()
        _gate.close()
        raise

    _pipeline_task = asyncio.create_task(
        run_pipeline(_orchestrator, _capture),
        name="pipeline",
    )

    logger.info("All components started")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    _orchestrator.stop()
    await _capture.stop()

    try:
        await asyncio.wait_for(_pipeline_task, timeout=5.0)
    except asyncio.TimeoutError:
        _pipeline_task.cancel()
        await asyncio.gather(_pipeline_task, return_exceptions=True)

    # In-flight inference is allowed to finish, not cancelled
    if not await _gate.wait_idle(timeout=2.0):
        logger.warning("Inference still running at shutdown")
    _gate.close()

    preview.close()
    if _player:
        await _player.stop()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="SignCam",
    description="Live sign classification over an MJPEG camera stream",
    version=settings.app.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "SignCam",
        "version": settings.app.version,
        "name": settings.app.name,
        "status": "running",
        "classifier_backend": settings.classifier.backend,
        "labels": settings.classifier.labels,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the pipeline consuming the camera?

    Returns 503 before startup completes and after the capture stream ends.
    """
    orchestrator = get_orchestrator()
    state = orchestrator.state.value if orchestrator else PipelineState.IDLE.value

    if is_ready():
        return JSONResponse({
            "status": "ready",
            "pipeline_state": state,
            "frames_emitted": orchestrator.demuxer.frames_emitted,
        })

    return JSONResponse(
        {
            "status": "not_ready",
            "pipeline_state": state,
            "error": _source_error,
        },
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    orchestrator = get_orchestrator()
    reporter = get_reporter()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "classifier_backend": settings.classifier.backend,
        "capture_running": _capture.running if _capture else False,
        "preview_running": _player.running if _player else False,
        "pipeline": orchestrator.metrics() if orchestrator else {},
        "reporting": reporter.metrics() if reporter else {},
    })


@app.get("/prediction")
async def prediction() -> JSONResponse:
    """Latest label distribution, ranked by probability."""
    reporter = get_reporter()
    latest = reporter.latest if reporter else None

    if latest is None:
        return JSONResponse(
            {"error": "No prediction available yet"},
            status_code=503,
        )

    return JSONResponse(latest.to_dict())


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "signcam.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
