"""Downloaded artifact cache and per-key in-flight tracking."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from .errors import CacheCorrupt
from .models import Track
from .probe import MediaProbe

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Left behind by interrupted or in-progress downloads
PARTIAL_SUFFIXES = (".part", ".ytdl", ".temp", ".tmp")


def cache_key(track: Track) -> str:
    """Build the cache key for a track.

    Audio and video renditions of the same item are different artifacts, so
    the media kind is part of the key.
    """
    kind = "video" if track.video else "audio"
    return f"{track.id}_{kind}"


class CacheManager:
    """Look up, validate and evict cached artifacts in the downloads directory."""

    def __init__(
        self,
        downloads_dir: Path,
        probe: Optional[MediaProbe] = None,
        validate_audio: bool = True,
    ):
        """Initialize cache manager.

        Args:
            downloads_dir: Directory holding {key}.{ext} artifacts
            probe: Media probe used for validation
            validate_audio: Validate audio files too (video is always probed)
        """
        self.downloads_dir = Path(downloads_dir)
        self.probe = probe or MediaProbe()
        self.validate_audio = validate_audio

    def ensure_dir(self):
        """Create the downloads directory if needed."""
        self.downloads_dir.mkdir(parents=True, exist_ok=True)

    def lookup(self, key: str) -> Optional[Path]:
        """Find a cached artifact for a key.

        Args:
            key: Cache key

        Returns:
            Path to the first matching file, or None
        """
        if not self.downloads_dir.is_dir():
            return None

        for path in sorted(self.downloads_dir.glob(f"{key}.*")):
            if path.suffix in PARTIAL_SUFFIXES or not path.is_file():
                continue
            return path
        return None

    async def validate(self, path: Path, video: bool) -> bool:
        """Check that a cached artifact is usable."""
        if video:
            return await self.probe.probe_video(path)
        if not self.validate_audio:
            return True
        return await asyncio.to_thread(self.probe.probe_audio, path)

    def evict(self, path: Path):
        """Delete a cached artifact. Failures are logged, not raised."""
        try:
            path.unlink()
            logger.info("🧹 Evicted cached file: %s", path.name)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("⚠️ Failed to evict %s: %s", path, e)

    def evict_key(self, key: str):
        """Delete every file for a key, partial downloads included."""
        if not self.downloads_dir.is_dir():
            return

        for path in self.downloads_dir.glob(f"{key}.*"):
            if path.is_file():
                self.evict(path)

    async def get_valid(self, key: str, video: bool) -> Optional[Path]:
        """Return a validated cached artifact, evicting it if corrupt.

        Args:
            key: Cache key
            video: Whether the artifact is a video rendition

        Returns:
            Path to a valid artifact, or None on miss
        """
        path = self.lookup(key)
        if path is None:
            return None

        try:
            if not await self.validate(path, video):
                raise CacheCorrupt(f"Cached file failed validation: {path.name}")
        except CacheCorrupt as e:
            logger.warning("⚠️ %s", e)
            self.evict(path)
            return None

        return path


class _Flight:
    def __init__(self, task: "asyncio.Task"):
        self.task = task
        self.waiters = 0


class InFlight:
    """Share one running fetch between concurrent callers of the same key.

    The shared task is cancelled only once every waiter has been cancelled,
    so one user abandoning a request does not break another user's download.
    """

    def __init__(self):
        self._flights: Dict[str, _Flight] = {}
        # Cancelled fetches still cleaning up, by key
        self._stopping: Dict[str, "asyncio.Task"] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._flights

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` for a key unless a run for that key is pending.

        Args:
            key: Cache key
            factory: Coroutine function performing the fetch

        Returns:
            Result of the shared fetch
        """
        flight = self._flights.get(key)
        if flight is None:
            previous = self._stopping.get(key)
            flight = _Flight(asyncio.ensure_future(_after(previous, factory)))
            self._flights[key] = flight
            flight.task.add_done_callback(lambda _: self._finish(key, flight))
        else:
            logger.info("⏳ Waiting for in-flight download: %s", key)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                # Callers arriving while the task winds down start a new fetch
                self._finish(key, flight)
                self._stopping[key] = flight.task
                flight.task.add_done_callback(lambda t: self._stopped(key, t))
                flight.task.cancel()
                # Let the fetch reap its process before we propagate
                await asyncio.wait({flight.task})
            raise
        finally:
            flight.waiters -= 1

    def _finish(self, key: str, flight: _Flight):
        if self._flights.get(key) is flight:
            del self._flights[key]

    def _stopped(self, key: str, task: "asyncio.Task"):
        if self._stopping.get(key) is task:
            del self._stopping[key]


async def _after(previous: Optional["asyncio.Task"], factory: Callable[[], Awaitable[T]]) -> T:
    # A cancelled fetch for the same key may still be removing its files
    if previous is not None and not previous.done():
        await asyncio.wait({previous})
    return await factory()
