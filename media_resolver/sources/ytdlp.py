"""Generic source backed by the yt-dlp command line."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import requests

from ..cache import CacheManager, InFlight, cache_key
from ..config import Config
from ..cookies import CookiePool, RestrictedSources
from ..errors import (
    ArtifactMissing,
    DownloadFailed,
    ExtractionFailed,
    LiveUnsupportedForFile,
    MediaResolverError,
    NoValidStream,
)
from ..models import Descriptor, Track
from ..probe import MediaProbe
from ..process import ProcessResult, resolver_env, run_process
from .base import BaseSource

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ProcessResult]]

PLATFORM_YTDLP = "YtDlp"
PLATFORM_YOUTUBE = "YouTube"


class YtDlpSource(BaseSource):
    """Source for any URL yt-dlp can extract.

    Retrieval tries a direct stream address first and falls back to
    downloading into the local cache. Live streams can only be played
    through the direct stream path.
    """

    name = PLATFORM_YTDLP

    def __init__(
        self,
        config: Config,
        cookies: Optional[CookiePool] = None,
        cache: Optional[CacheManager] = None,
        runner: Optional[Runner] = None,
    ):
        """Initialize yt-dlp source.

        Args:
            config: Configuration object
            cookies: Cookie pool for restricted sources
            cache: Cache manager for downloaded artifacts
            runner: Process runner (defaults to run_process)
        """
        super().__init__(config)
        self.runner = runner or run_process
        self.cookies = cookies or CookiePool(config.cookies_dir)
        self.restricted = RestrictedSources(config.restricted_patterns)
        self.cache = cache or CacheManager(
            config.downloads_dir,
            MediaProbe(config.probe_path, config.probe_timeout, self.runner),
            validate_audio=config.validate_audio,
        )
        self.in_flight = InFlight()
        self.env = resolver_env(config.search_path)

    def is_download_supported(self, source: str) -> bool:
        return source in (self.name, PLATFORM_YOUTUBE)

    # -- metadata ---------------------------------------------------------

    async def extract_metadata(self, url: str) -> Descriptor:
        """Extract metadata for a URL.

        Args:
            url: Media or playlist URL

        Returns:
            Descriptor, possibly a container with entries

        Raises:
            ExtractionFailed: If yt-dlp fails or emits unparseable output
        """
        url = url.strip()
        args = ["-J", "--no-warnings"]
        if self.config.playlist_limit:
            args += ["--playlist-end", str(self.config.playlist_limit)]
        args += self._cookie_args(url)
        args.append(url)

        try:
            result = await self._run(args)
        except OSError as e:
            raise ExtractionFailed(f"Could not run yt-dlp: {e}") from e

        if not result.ok:
            logger.error("❌ Metadata extraction failed for %s\n%s", url, result.stderr)
            raise ExtractionFailed(
                f"Metadata extraction failed (exit {result.returncode})", result.stderr
            )

        descriptor = parse_metadata(result.stdout)
        logger.debug(
            "Metadata extracted: id=%s title=%s live=%s was_live=%s",
            descriptor.id,
            descriptor.title,
            descriptor.is_live,
            descriptor.was_live,
        )
        return descriptor

    async def get_tracks(self, query: str, video: bool = False) -> List[Track]:
        """Resolve a URL into tracks, expanding playlists.

        Live streams are returned as tracks flagged ``is_live``; whether they
        can be played is decided at retrieval time.
        """
        info = await self.extract_metadata(query)

        if info.is_live:
            logger.info("🔴 Live stream detected: %s (%s)", info.title, info.id)
        elif info.was_live:
            logger.info("Past live stream: %s", info.title)

        if info.is_container:
            leaves = list(info.leaves())
            logger.info("📝 Playlist detected: %d entries", len(leaves))
            for entry in leaves:
                if entry.is_live:
                    logger.info("Including live entry: %s", entry.title)
            return [entry.to_track(self.name, video) for entry in leaves]

        return [info.to_track(self.name, video)]

    # -- retrieval --------------------------------------------------------

    async def download(self, track: Track) -> str:
        """Produce a playable location for a track.

        Tries a direct stream first, even for live tracks. Non-live tracks
        then fall back to the cache and finally to a full download.

        Returns:
            Stream URL or local file path

        Raises:
            LiveUnsupportedForFile: Live track without a usable stream
            DownloadFailed, ArtifactMissing: Fetch failures
        """
        logger.info(
            "🎵 Resolving %s (video=%s, live=%s)", track.id, track.video, track.is_live
        )

        try:
            stream_url = await self.resolve_direct_stream(track)
            logger.info("✅ Direct stream for %s", track.id)
            return stream_url
        except NoValidStream as e:
            logger.warning("⚠️ Direct stream failed for %s: %s", track.id, e)
            if track.is_live:
                raise LiveUnsupportedForFile(
                    "Live stream cannot be downloaded as a file; "
                    "only direct streaming is supported",
                    e.diagnostics,
                ) from e

        return await self.fetch_and_cache(track)

    async def resolve_direct_stream(self, track: Track) -> str:
        """Resolve a directly playable address for a track.

        yt-dlp is asked once for candidate addresses; each is checked with a
        HEAD request and the first reachable one wins.

        Raises:
            NoValidStream: If yt-dlp fails or no candidate is reachable
        """
        args = [
            "-g",
            "--no-playlist",
            "--geo-bypass",
            "--no-check-certificate",
            "--prefer-free-formats",
            "--no-warnings",
            "-f",
            self.stream_format(track),
        ]
        args += self._cookie_args(track.url)
        args.append(track.url)

        try:
            result = await self._run(args)
        except OSError as e:
            raise NoValidStream(f"Could not run yt-dlp: {e}") from e

        if not result.ok:
            logger.error(
                "❌ yt-dlp -g failed after %.1fs\n%s", result.elapsed, result.stderr
            )
            raise NoValidStream(
                f"Stream extraction failed (exit {result.returncode})", result.stderr
            )

        candidates = parse_stream_urls(result.stdout)
        if not candidates:
            raise NoValidStream("yt-dlp returned no stream URL")

        for idx, candidate in enumerate(candidates, 1):
            logger.debug("Checking stream candidate #%d: %s", idx, candidate)
            try:
                await asyncio.to_thread(
                    check_stream_url,
                    candidate,
                    self.config.stream_check_timeout,
                    self.config.user_agent,
                )
                return candidate
            except requests.RequestException as e:
                logger.warning("⚠️ Stream candidate #%d invalid: %s", idx, e)

        raise NoValidStream(f"None of {len(candidates)} stream URLs were reachable")

    async def fetch_and_cache(self, track: Track) -> str:
        """Return a cached file for a track, downloading it if needed.

        Concurrent calls for the same track and media kind share a single
        download.

        Raises:
            LiveUnsupportedForFile: If the track is live
            DownloadFailed: If yt-dlp fails
            ArtifactMissing: If the reported file does not exist
        """
        if track.is_live:
            raise LiveUnsupportedForFile("Live stream cannot be downloaded as a file")

        key = cache_key(track)
        return await self.in_flight.run(key, lambda: self._fetch(track, key))

    async def _fetch(self, track: Track, key: str) -> str:
        self.cache.ensure_dir()

        cached = await self.cache.get_valid(key, track.video)
        if cached is not None:
            logger.info("📁 Using cached file: %s", cached)
            return str(cached)

        try:
            return await self._download(track, key)
        except (MediaResolverError, asyncio.CancelledError):
            # Nothing left under this key may be served as a cache hit
            self.cache.evict_key(key)
            raise

    async def _download(self, track: Track, key: str) -> str:
        args = self.download_args(track, key)
        logger.info("⬇️ Downloading %s", track.url)
        logger.debug("yt-dlp args: %s", args)

        try:
            result = await self._run(args)
        except OSError as e:
            raise DownloadFailed(f"Could not run yt-dlp: {e}") from e

        if not result.ok:
            logger.error(
                "❌ yt-dlp download failed after %.1fs\nTrack: %s\nURL: %s\n"
                "STDOUT:\n%s\nSTDERR:\n%s",
                result.elapsed,
                track.id,
                track.url,
                result.stdout,
                result.stderr,
            )
            raise DownloadFailed(
                f"Download failed (exit {result.returncode})", result.stderr
            )

        final_path = parse_final_path(result.stdout)
        if not final_path:
            raise DownloadFailed("yt-dlp did not report a file path", result.stderr)

        path = Path(final_path)
        if not path.is_file():
            raise ArtifactMissing(f"Downloaded file missing at {path}")

        size_mb = path.stat().st_size / 1024 / 1024
        logger.info(
            "✅ Download complete: %s (%.2f MB) in %.1fs",
            path,
            size_mb,
            result.elapsed,
        )
        return str(path)

    # -- yt-dlp arguments -------------------------------------------------

    def stream_format(self, track: Track) -> str:
        """Format selector for direct streams.

        HLS manifests are excluded for YouTube so the result is a single
        address the player can open without fetching segments.
        """
        height = self.config.max_height
        if self.restricted.matches(track.url):
            if track.video:
                return (
                    f"bestvideo*[protocol!=m3u8][height<={height}]"
                    "/best[protocol!=m3u8]"
                )
            return "bestaudio[protocol!=m3u8]/bestaudio"

        if track.video:
            return f"bestvideo*[height<={height}]/best"
        return "bestaudio/best"

    def download_args(self, track: Track, key: str) -> List[str]:
        """Build the yt-dlp argument list for a cache download."""
        height = self.config.max_height
        template = str(self.cache.downloads_dir / f"{key}.%(ext)s")

        args = [
            "--no-playlist",
            "--no-warnings",
            "--geo-bypass",
            "--ignore-errors",
            "--no-check-certificate",
            "--prefer-free-formats",
            "--force-overwrites",
            "--concurrent-fragments", "4",
            "--fragment-retries", "10",
            "--retries", "5",
            "--file-access-retries", "5",
            "--extractor-retries", "3",
            "--hls-prefer-ffmpeg",
            "--hls-use-mpegts",
            "--downloader", "ffmpeg",
            "--no-mtime",
            "--print", "after_move:filepath",
            "-o", template,
        ]

        if track.video:
            args += [
                "-f",
                f"bestvideo*[height<={height}][vcodec!=vp9]/best[height<={height}]/best",
                "--merge-output-format", "mp4",
                "--remux-video", "mp4",
            ]
        else:
            args += [
                "-f",
                "bestaudio[acodec=opus]/bestaudio/best",
                "--extract-audio",
                "--audio-format", "opus",
                "--audio-quality", "0",
            ]

        args += self._cookie_args(track.url)
        args.append(track.url)
        return args

    def _cookie_args(self, url: str) -> List[str]:
        if not self.restricted.matches(url):
            return []

        cookie = self.cookies.get_random_cookie_file()
        if not cookie:
            return []
        return ["--cookies", cookie]

    async def _run(self, args: List[str]) -> ProcessResult:
        return await self.runner([self.config.resolver_path] + args, env=self.env)


def check_stream_url(url: str, timeout: float, user_agent: str):
    """Check that a stream URL answers a HEAD request without an error status.

    Raises:
        requests.RequestException: If the URL is unreachable or returns >= 400
    """
    response = requests.head(
        url,
        headers={"User-Agent": user_agent},
        timeout=timeout,
        allow_redirects=True,
    )
    try:
        response.raise_for_status()
        logger.debug(
            "Stream URL validated | Content-Type: %s",
            response.headers.get("Content-Type", ""),
        )
    finally:
        response.close()


def parse_metadata(output: str) -> Descriptor:
    """Parse yt-dlp JSON output into a descriptor.

    A single JSON document is expected. Output with one JSON object per
    line (as printed for playlists in per-entry mode) becomes a container.

    Raises:
        ExtractionFailed: If the output is empty or not JSON
    """
    output = output.strip()
    if not output:
        raise ExtractionFailed("yt-dlp returned no metadata")

    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        return Descriptor.from_dict(data)

    try:
        objects = [json.loads(line) for line in output.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise ExtractionFailed(f"Invalid JSON from yt-dlp: {e}", output[:500]) from e

    entries = [obj for obj in objects if isinstance(obj, dict)]
    if not entries:
        raise ExtractionFailed("Invalid JSON from yt-dlp", output[:500])
    if len(entries) == 1:
        return Descriptor.from_dict(entries[0])
    return Descriptor.from_dict({"_type": "playlist", "entries": entries})


def parse_stream_urls(output: str) -> List[str]:
    """Extract candidate stream URLs, one per line."""
    urls = []
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("http"):
            urls.append(line)
    return urls


def parse_final_path(output: str) -> Optional[str]:
    """Get the file path printed by ``--print after_move:filepath``.

    The last non-empty line is used since yt-dlp may print other lines first.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return None
    return os.path.expanduser(lines[-1])
