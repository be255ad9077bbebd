#!/usr/bin/env python3
"""
MJPEG Replay Script
===================

Standalone script to push a recorded MJPEG file through the pipeline.

This script:
    1. Reads a .mjpeg recording in fixed-size chunks
    2. Runs demuxer, preview forwarder (no sink) and inference gate
    3. Uses the mock classifier with an artificial latency
    4. Reports how many frames were classified and how many were shed

Record a test file with, for example:
    ffmpeg -f v4l2 -i /dev/video0 -t 10 -vf scale=224:224 -f mjpeg clip.mjpeg

Usage:
    python scripts/replay_mjpeg.py clip.mjpeg --latency-ms 150
    python scripts/replay_mjpeg.py clip.mjpeg --chunk-size 4096 --fps 10
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from signcam.exceptions import SourceTerminatedError
from signcam.inference import ClassifierAdapter, InferenceGate, MockClassifier
from signcam.pipeline import PipelineOrchestrator
from signcam.preview import PreviewForwarder
from signcam.reporting import PredictionReporter
from signcam.stream import MjpegDemuxer, read_file_chunks


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)

LABELS = ["TEACH", "STRONG", "STOP", "SORRY", "PLEASE"]


async def run_replay(
    path: str,
    chunk_size: int,
    chunk_delay: float,
    latency: float,
    report_interval_ms: int,
) -> dict:
    """
    Replay a recording through the pipeline.

    Args:
        path: Path to the MJPEG recording
        chunk_size: Bytes per chunk
        chunk_delay: Seconds between chunks
        latency: Artificial classifier latency in seconds
        report_interval_ms: Prediction line throttle

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("MJPEG Replay")
    logger.info("=" * 60)
    logger.info(f"File: {path}")
    logger.info(f"Chunk size: {chunk_size} bytes")
    logger.info(f"Classifier latency: {latency * 1000:.0f}ms")
    logger.info("=" * 60)

    reporter = PredictionReporter(interval_ms=report_interval_ms)
    adapter = ClassifierAdapter(
        MockClassifier(num_labels=len(LABELS), latency=latency),
        labels=LABELS,
    )
    gate = InferenceGate(adapter, on_result=reporter.report)
    orchestrator = PipelineOrchestrator(
        demuxer=MjpegDemuxer(),
        preview=PreviewForwarder(sink=None),
        gate=gate,
    )

    start_time = time.time()
    try:
        await orchestrator.run(read_file_chunks(path, chunk_size, delay=chunk_delay))
    except SourceTerminatedError:
        logger.info("End of recording")
    finally:
        await gate.wait_idle(timeout=5.0)
        gate.close()

    total_time = time.time() - start_time
    demuxer_metrics = orchestrator.demuxer.metrics()
    gate_metrics = gate.metrics.to_dict()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Bytes read: {demuxer_metrics['bytes_in']}")
    logger.info(f"Frames demuxed: {demuxer_metrics['frames_emitted']}")
    logger.info(f"Bytes discarded: {demuxer_metrics['bytes_discarded']}")
    logger.info(f"Frames classified: {gate_metrics['completed']}")
    logger.info(f"Frames shed: {gate_metrics['dropped']}")
    logger.info(f"Decode failures: {gate_metrics['decode_failures']}")
    logger.info(f"Max concurrent inferences: {gate_metrics['max_in_flight']}")
    logger.info(f"Prediction lines: {reporter.reported}")
    logger.info("=" * 60)

    return {
        "duration": total_time,
        "frames": demuxer_metrics["frames_emitted"],
        **gate_metrics,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Replay an MJPEG recording through the SignCam pipeline"
    )
    parser.add_argument("path", type=str, help="MJPEG recording")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=65536,
        help="Bytes per chunk (default: 65536)",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=0.0,
        help="Approximate chunk rate to simulate a live camera (default: as fast as possible)",
    )
    parser.add_argument(
        "--latency-ms",
        type=int,
        default=100,
        help="Mock classifier latency in milliseconds (default: 100)",
    )
    parser.add_argument(
        "--report-interval-ms",
        type=int,
        default=500,
        help="Milliseconds between prediction lines (default: 500)",
    )

    args = parser.parse_args()

    result = asyncio.run(run_replay(
        path=args.path,
        chunk_size=args.chunk_size,
        chunk_delay=1.0 / args.fps if args.fps > 0 else 0.0,
        latency=args.latency_ms / 1000.0,
        report_interval_ms=args.report_interval_ms,
    ))

    # Exit with appropriate code
    sys.exit(0 if result["frames"] > 0 else 1)


if __name__ == "__main__":
    main()
