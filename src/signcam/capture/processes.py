"""
Capture and Preview Processes
=============================

ffmpeg / ffplay subprocess collaborators.

The pipeline core only needs a byte-chunk source and a byte sink. This
module supplies both from external processes:
    - FFmpegCapture opens the camera once and writes MJPEG to stdout
    - FFplayPreview reads MJPEG from stdin and shows a window

Design Rules:
    - Process lifetime is owned here, never by the pipeline core
    - stderr of each process is relayed line by line to the log
    - Missing executables fail fast with CaptureError
    - stop() interrupts first, kills only after a timeout
"""

import asyncio
import logging
import signal
import sys
from typing import AsyncIterator, List, Optional

from signcam.exceptions import CaptureError
from signcam.stream.source import read_stream_chunks


logger = logging.getLogger(__name__)


DEFAULT_STOP_TIMEOUT = 3.0


class ManagedProcess:
    """
    Base class for a long-running ffmpeg-family subprocess.

    Subclasses provide build_args() and the stdio layout.
    """

    name = "process"
    stdin_mode = asyncio.subprocess.DEVNULL
    stdout_mode = asyncio.subprocess.DEVNULL

    def __init__(self, executable: str, stop_timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        self.executable = executable
        self.stop_timeout = stop_timeout

        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None

    def build_args(self) -> List[str]:
        raise NotImplementedError

    @property
    def running(self) -> bool:
        """Whether the process was started and has not exited."""
        return self._process is not None and self._process.returncode is None

    @property
    def returncode(self) -> Optional[int]:
        """Exit code, or None while running or before start."""
        return self._process.returncode if self._process else None

    async def start(self) -> None:
        """
        Spawn the process.

        Raises:
            CaptureError: If already started or the executable is missing
        """
        if self._process is not None:
            raise CaptureError(f"{self.name} already started")

        args = self.build_args()
        logger.info(f"Starting {self.name}: {self.executable} {' '.join(args)}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdin=self.stdin_mode,
                stdout=self.stdout_mode,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CaptureError(f"{self.name} executable not found: {self.executable}") from e
        except OSError as e:
            raise CaptureError(f"Failed to start {self.name}: {e}") from e

        self._stderr_task = asyncio.create_task(
            self._relay_stderr(),
            name=f"{self.name}_stderr",
        )

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        if self._process is None:
            raise CaptureError(f"{self.name} not started")
        return await self._process.wait()

    async def stop(self) -> None:
        """
        Stop the process gracefully.

        Sends an interrupt (terminate on Windows), then kills the process
        if it has not exited within stop_timeout seconds.
        """
        process = self._process
        if process is None:
            return

        if process.returncode is None:
            self._before_stop()
            try:
                if sys.platform == "win32":
                    process.terminate()
                else:
                    process.send_signal(signal.SIGINT)
            except ProcessLookupError:
                pass

            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} did not exit in {self.stop_timeout}s, killing")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        if self._stderr_task is not None:
            await asyncio.gather(self._stderr_task, return_exceptions=True)
            self._stderr_task = None

        logger.info(f"{self.name} exited: {process.returncode}")

    def _before_stop(self) -> None:
        """Hook run before the process is interrupted."""

    async def _relay_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        async for raw in self._process.stderr:
            line = raw.decode(errors="replace").strip()
            if line:
                logger.warning(f"[{self.name}] {line}")


class FFmpegCapture(ManagedProcess):
    """
    Camera capture via ffmpeg, emitting MJPEG on stdout.

    The camera is opened exactly once; the preview is fed from the same
    stream instead of opening the device a second time.

    Example:
        capture = FFmpegCapture(input_format="v4l2", device="/dev/video0")
        await capture.start()

        async for chunk in capture.chunks():
            ...

        await capture.stop()
    """

    name = "ffmpeg"
    stdout_mode = asyncio.subprocess.PIPE

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        input_format: str = "dshow",
        device: str = "video=A4tech PC Camera",
        width: int = 224,
        height: int = 224,
        fps: int = 10,
        quality: int = 5,
        chunk_size: int = 65536,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ) -> None:
        """
        Initialize ffmpeg capture.

        Args:
            ffmpeg_path: ffmpeg executable
            input_format: ffmpeg -f input format for the camera
            device: ffmpeg -i device specifier
            width: Output width
            height: Output height
            fps: Output frame rate
            quality: MJPEG -q:v value
            chunk_size: Maximum bytes per stdout read
            stop_timeout: Seconds to wait before killing on stop
        """
        super().__init__(ffmpeg_path, stop_timeout)
        self.input_format = input_format
        self.device = device
        self.width = width
        self.height = height
        self.fps = fps
        self.quality = quality
        self.chunk_size = chunk_size

    def build_args(self) -> List[str]:
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-f", self.input_format,
            "-i", self.device,
            "-vf", f"fps={self.fps},scale={self.width}:{self.height}",
            "-q:v", str(self.quality),
            "-f", "mjpeg",
            "pipe:1",
        ]

    def chunks(self) -> AsyncIterator[bytes]:
        """
        Iterate over stdout chunks until ffmpeg exits.

        Raises:
            CaptureError: If the process was not started
        """
        if self._process is None or self._process.stdout is None:
            raise CaptureError("ffmpeg not started")
        return read_stream_chunks(self._process.stdout, self.chunk_size)


class FFplayPreview(ManagedProcess):
    """
    Preview window via ffplay reading MJPEG from stdin.

    ffplay never opens the camera; the stdin writer is handed to the
    PreviewForwarder as its sink.
    """

    name = "ffplay"
    stdin_mode = asyncio.subprocess.PIPE

    def __init__(
        self,
        ffplay_path: str = "ffplay",
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ) -> None:
        super().__init__(ffplay_path, stop_timeout)

    def build_args(self) -> List[str]:
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-fflags", "nobuffer",
            "-f", "mjpeg",
            "-i", "pipe:0",
        ]

    @property
    def sink(self) -> Optional[asyncio.StreamWriter]:
        """stdin writer of the running process."""
        return self._process.stdin if self._process else None

    def _before_stop(self) -> None:
        if self._process is not None and self._process.stdin is not None:
            self._process.stdin.close()
