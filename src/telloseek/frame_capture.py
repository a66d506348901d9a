# src/telloseek/frame_capture.py
"""
Frame capture from the vehicle's UDP video stream.

Grabs a single frame with FFmpeg and returns it as PNG bytes. Each call
spawns a short-lived ``ffmpeg`` process; the process is killed if it does not
finish within the timeout.
"""

import asyncio
import logging
import shutil
from typing import List

logger = logging.getLogger(__name__)


class FrameCaptureError(RuntimeError):
    """Raised when a frame could not be captured."""


class FrameCapture:

    def __init__(self, timeout: float = 10.0, ffmpeg_binary: str = 'ffmpeg'):
        self.timeout = timeout
        self.ffmpeg_binary = ffmpeg_binary

    def build_command(self, address: str, port: int) -> List[str]:
        return [
            self.ffmpeg_binary,
            '-i', f'udp://{address}:{port}',
            '-frames:v', '1',        # grab one frame
            '-f', 'image2pipe',
            '-vcodec', 'png',
            'pipe:1',
        ]

    async def capture(self, address: str, port: int) -> bytes:
        """
        Capture one still frame.

        Args:
            address: Vehicle IP address
            port: Video stream UDP port

        Returns:
            bytes: PNG-encoded image

        Raises:
            FrameCaptureError: FFmpeg missing, not startable, failed, timed out
                or produced no output.
        """
        if not shutil.which(self.ffmpeg_binary):
            raise FrameCaptureError(f"{self.ffmpeg_binary} not found on PATH")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(address, port),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FrameCaptureError(f"could not start {self.ffmpeg_binary}: {e}") from e
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            raise FrameCaptureError(f"frame capture timed out after {self.timeout}s")
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        if process.returncode != 0:
            tail = stderr.decode(errors='replace')[-200:].strip()
            raise FrameCaptureError(f"ffmpeg exited with code {process.returncode}: {tail}")
        if not stdout:
            raise FrameCaptureError("ffmpeg produced no image data")

        logger.debug(f"Captured snapshot ({len(stdout)} bytes)")
        return stdout

    @staticmethod
    async def _kill(process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
