"""Base source class with common functionality."""

from abc import ABC, abstractmethod
from typing import List
from urllib.parse import urlparse

from ..config import Config
from ..models import Track


class BaseSource(ABC):
    """Base class for platform-specific sources.

    A source turns a query into tracks and a track into a playable location.
    """

    name: str = ""

    def __init__(self, config: Config):
        """Initialize base source.

        Args:
            config: Configuration object
        """
        self.config = config

    def is_valid(self, query: str) -> bool:
        """Check whether a query is a URL this source can handle.

        Args:
            query: Raw user query

        Returns:
            True if the query parses as a URL with both scheme and host
        """
        return is_url(query)

    @abstractmethod
    async def get_tracks(self, query: str, video: bool = False) -> List[Track]:
        """Resolve a query into tracks.

        Args:
            query: URL or reference
            video: Whether video renditions are wanted
        """

    @abstractmethod
    async def download(self, track: Track) -> str:
        """Produce a playable location (URL or file path) for a track."""

    def is_download_supported(self, source: str) -> bool:
        """Check whether this source can retrieve tracks produced by ``source``."""
        return source == self.name


def is_url(reference: str) -> bool:
    """Return True if ``reference`` parses as a URL with scheme and host.

    Never raises, whatever the input.
    """
    if not isinstance(reference, str):
        return False

    try:
        parsed = urlparse(reference.strip())
        if any(c.isspace() or not c.isprintable() for c in parsed.netloc):
            return False
        return bool(parsed.scheme) and bool(parsed.hostname)
    except ValueError:
        return False
