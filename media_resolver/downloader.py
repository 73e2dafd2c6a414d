"""Main downloader orchestrator."""

import logging
from typing import List, Optional, Sequence, Tuple

from .config import Config
from .cookies import CookiePool
from .errors import InvalidReference
from .models import Track
from .sources import BaseSource, YtDlpSource

logger = logging.getLogger(__name__)


def default_sources(config: Config) -> List[Tuple[int, BaseSource]]:
    """Build the prioritized source list used by the CLI and bots.

    Args:
        config: Configuration object

    Returns:
        List of (priority, source) pairs
    """
    cookies = CookiePool(config.cookies_dir)
    return [
        (60, YtDlpSource(config, cookies=cookies)),
    ]


class Downloader:
    """Route queries and tracks to the appropriate source."""

    def __init__(
        self,
        config: Config,
        sources: Optional[Sequence[Tuple[int, BaseSource]]] = None,
    ):
        """Initialize downloader.

        Args:
            config: Configuration object
            sources: (priority, source) pairs; defaults to default_sources()
        """
        self.config = config
        if sources is None:
            sources = default_sources(config)

        # Highest priority first; ties keep the given order
        ordered = sorted(enumerate(sources), key=lambda item: (-item[1][0], item[0]))
        self.sources: List[BaseSource] = [source for _, (_, source) in ordered]

    def select(self, query: str) -> BaseSource:
        """Pick the highest-priority source that accepts a query.

        Raises:
            InvalidReference: If no source accepts the query
        """
        for source in self.sources:
            if source.is_valid(query):
                return source

        raise InvalidReference(
            f"Invalid URL: '{query}'\nURLs must include a scheme and a host"
        )

    def source_for_track(self, track: Track) -> BaseSource:
        """Pick the highest-priority source able to retrieve a track.

        Raises:
            InvalidReference: If no source supports the track's origin
        """
        for source in self.sources:
            if source.is_download_supported(track.source):
                return source

        raise InvalidReference(f"No source can download tracks from {track.source}")

    async def get_tracks(self, query: str, video: bool = False) -> List[Track]:
        """Resolve a query into tracks."""
        source = self.select(query)
        logger.info("🎵 Detected source: %s", source.name)
        return await source.get_tracks(query.strip(), video)

    async def download(self, track: Track) -> str:
        """Produce a playable location for a track."""
        source = self.source_for_track(track)
        return await source.download(track)

    async def resolve(self, query: str, video: bool = False) -> List[str]:
        """Resolve a query and retrieve every track, in order.

        Returns:
            Playable locations, one per track
        """
        tracks = await self.get_tracks(query, video)
        return [await self.download(track) for track in tracks]
