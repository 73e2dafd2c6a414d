"""Track and resolver descriptor types."""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass
class Track:
    """A unit of playable media.

    Tracks are produced by a source from resolver metadata and handed back to
    the same (or a compatible) source for retrieval.
    """

    id: str
    """Resolver-assigned identifier, unique within a source"""

    title: str
    """Display title"""

    url: str
    """Canonical page URL used for re-resolution"""

    source: str
    """Name of the source that produced this track"""

    duration: int = 0
    """Duration in seconds, truncated"""

    artwork: str = ""
    """Thumbnail URL"""

    video: bool = False
    """Whether the video rendition was requested"""

    is_live: bool = False
    """Whether the underlying media is an open-ended live stream"""


@dataclass
class Descriptor:
    """Metadata record emitted by the resolver for one item or a container."""

    id: str = ""
    title: str = ""
    duration: float = 0.0
    thumbnail: str = ""
    webpage_url: str = ""
    original_url: str = ""
    url: str = ""
    uploader: str = ""
    description: str = ""
    is_live: bool = False
    was_live: bool = False
    playlist: bool = False
    entries: List["Descriptor"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Descriptor":
        """Build a descriptor from resolver JSON.

        Missing or null fields fall back to empty values. Null entries, which
        the resolver emits for unavailable playlist items, are dropped.

        Args:
            data: Parsed JSON object

        Returns:
            Descriptor
        """
        entries = [
            cls.from_dict(entry)
            for entry in data.get("entries") or []
            if isinstance(entry, dict)
        ]

        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title") or "",
            duration=_to_float(data.get("duration")),
            thumbnail=data.get("thumbnail") or "",
            webpage_url=data.get("webpage_url") or "",
            original_url=data.get("original_url") or "",
            url=data.get("url") or "",
            uploader=data.get("uploader") or "",
            description=data.get("description") or "",
            is_live=bool(data.get("is_live")),
            was_live=bool(data.get("was_live")),
            playlist=data.get("_type") == "playlist",
            entries=entries,
        )

    @property
    def is_container(self) -> bool:
        """True when this descriptor groups other descriptors."""
        return bool(self.entries) or self.playlist

    def leaves(self) -> Iterator["Descriptor"]:
        """Yield every leaf descriptor, depth-first, in playlist order."""
        if not self.is_container:
            yield self
            return

        for entry in self.entries:
            yield from entry.leaves()

    def to_track(self, source: str, video: bool) -> Track:
        """Convert a leaf descriptor into a Track.

        The original URL is preferred over the resolved webpage URL because it
        survives redirects and shorteners better when re-resolving.
        """
        return Track(
            id=self.id,
            title=self.title,
            url=self.original_url or self.webpage_url or self.url,
            source=source,
            duration=int(self.duration),
            artwork=self.thumbnail,
            video=video,
            is_live=self.is_live,
        )


def _to_float(value: Optional[object]) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
