"""Validation of cached media files using ffprobe and mutagen."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

from .process import ProcessResult, run_process

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ProcessResult]]


class MediaProbe:
    """Check that a file on disk contains decodable media."""

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        timeout: float = 15,
        runner: Optional[Runner] = None,
    ):
        """Initialize probe.

        Args:
            ffprobe_path: ffprobe executable
            timeout: Seconds before ffprobe is killed
            runner: Process runner (defaults to run_process)
        """
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout
        self.runner = runner or run_process

    def video_command(self, path: Path) -> List[str]:
        return [
            self.ffprobe_path,
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "csv=s=x:p=0",
            str(path),
        ]

    async def probe_video(self, path: Path) -> bool:
        """Return True if the file has a video stream with readable dimensions."""
        try:
            result = await self.runner(self.video_command(path), timeout=self.timeout)
        except FileNotFoundError:
            logger.error("❌ ffprobe is not installed or not available in PATH")
            return False
        except asyncio.TimeoutError:
            logger.warning("⚠️ ffprobe timed out while probing: %s", path)
            return False
        except OSError as e:
            logger.error("❌ ffprobe failed to start: %s", e)
            return False

        if not result.ok:
            logger.debug("ffprobe failed for %s: %s", path, result.stderr.strip())
            return False

        return parse_dimensions(result.stdout) is not None

    def probe_audio(self, path: Path) -> bool:
        """Return True if mutagen recognises the file as audio with a length."""
        try:
            audio = MutagenFile(str(path))
        except (MutagenError, OSError) as e:
            logger.debug("mutagen could not read %s: %s", path, e)
            return False

        if audio is None or audio.info is None:
            return False

        return getattr(audio.info, "length", 0) > 0


def parse_dimensions(output: str) -> Optional[tuple]:
    """Parse the first ``WIDTHxHEIGHT`` line from ffprobe csv output.

    Returns:
        (width, height) tuple, or None when nothing usable was reported
    """
    for line in output.splitlines():
        parts = line.strip().rstrip("x").split("x")
        if len(parts) != 2:
            continue
        try:
            width, height = int(parts[0]), int(parts[1])
        except ValueError:
            continue
        if width > 0 and height > 0:
            return width, height
    return None
