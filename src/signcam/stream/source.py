"""
Chunk Sources
=============

Async byte-chunk sources feeding the pipeline orchestrator.

A chunk source is any async iterator of bytes. Chunks have arbitrary
sizes and do not align with frame boundaries.

Example:
    async for chunk in read_stream_chunks(process.stdout):
        demuxer.feed(chunk)
"""

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Union


logger = logging.getLogger(__name__)


DEFAULT_CHUNK_SIZE = 65536


async def read_stream_chunks(
    reader: asyncio.StreamReader,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Yield chunks from a stream reader until EOF.

    Args:
        reader: Reader such as a subprocess stdout
        chunk_size: Maximum bytes per read

    Yields:
        Non-empty byte chunks in arrival order
    """
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            logger.debug("Stream reader reached EOF")
            return
        yield chunk


async def read_file_chunks(
    path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    delay: float = 0.0,
) -> AsyncIterator[bytes]:
    """
    Yield chunks from a recorded MJPEG file.

    File reads run in a worker thread so the event loop stays responsive.

    Args:
        path: Path to the .mjpeg recording
        chunk_size: Bytes per chunk
        delay: Seconds to sleep between chunks (simulates a live camera)

    Yields:
        Byte chunks in file order
    """
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, chunk_size)
            if not chunk:
                return
            yield chunk
            if delay > 0:
                await asyncio.sleep(delay)
