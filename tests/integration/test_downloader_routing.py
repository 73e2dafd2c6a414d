"""Integration tests for source selection in the Downloader."""

import asyncio
from typing import List

import pytest

from conftest import json_result
from media_resolver.downloader import Downloader, default_sources
from media_resolver.errors import InvalidReference
from media_resolver.models import Track
from media_resolver.process import ProcessResult
from media_resolver.sources.base import BaseSource
from media_resolver.sources.ytdlp import YtDlpSource


class StubSource(BaseSource):
    """Source accepting URLs that contain a marker."""

    def __init__(self, config, name, marker=""):
        super().__init__(config)
        self.name = name
        self.marker = marker
        self.downloaded: List[Track] = []

    def is_valid(self, query: str) -> bool:
        return super().is_valid(query) and self.marker in query

    async def get_tracks(self, query, video=False):
        return [Track(id="1", title=self.name, url=query, source=self.name, video=video)]

    async def download(self, track):
        self.downloaded.append(track)
        return f"{self.name}:{track.id}"


def test_default_sources(test_config):
    """Test the composition root builds the yt-dlp source."""
    sources = default_sources(test_config)

    assert [(p, type(s)) for p, s in sources] == [(60, YtDlpSource)]


def test_highest_priority_wins(test_config):
    """Test that priority, not list order, decides."""
    low = StubSource(test_config, "Low")
    high = StubSource(test_config, "High")
    downloader = Downloader(test_config, [(10, low), (90, high)])

    assert downloader.select("https://example.com/a") is high


def test_falls_through_to_accepting_source(test_config):
    """Test that a source rejecting the query is skipped."""
    special = StubSource(test_config, "Special", marker="special.tv")
    generic = StubSource(test_config, "Generic")
    downloader = Downloader(test_config, [(90, special), (60, generic)])

    assert downloader.select("https://example.com/a") is generic
    assert downloader.select("https://special.tv/a") is special


def test_invalid_reference(test_config):
    """Test that a non-URL query is rejected."""
    downloader = Downloader(test_config, [(60, StubSource(test_config, "Generic"))])

    with pytest.raises(InvalidReference):
        asyncio.run(downloader.get_tracks("not a url"))


def test_download_routes_by_track_source(test_config):
    """Test that tracks return to a source that supports them."""
    a = StubSource(test_config, "A")
    b = StubSource(test_config, "B")
    downloader = Downloader(test_config, [(90, a), (60, b)])
    track = Track(id="1", title="t", url="https://x.y/z", source="B")

    assert asyncio.run(downloader.download(track)) == "B:1"
    assert b.downloaded == [track]


def test_download_unsupported_source(test_config):
    """Test that a track nobody can download is rejected."""
    downloader = Downloader(test_config, [(60, StubSource(test_config, "A"))])
    track = Track(id="1", title="t", url="https://x.y/z", source="Elsewhere")

    with pytest.raises(InvalidReference):
        asyncio.run(downloader.download(track))


def test_ytdlp_supports_youtube_tracks(test_config, fake_runner):
    """Test that yt-dlp can retrieve tracks produced by a YouTube source."""
    source = YtDlpSource(test_config, runner=fake_runner)

    assert source.is_download_supported("YtDlp")
    assert source.is_download_supported("YouTube")
    assert not source.is_download_supported("Vimeo")


def test_resolve_end_to_end(test_config, fake_runner, make_descriptor, mock_requests_head):
    """Test query to locations through the real yt-dlp source."""
    fake_runner.metadata = json_result(
        {"_type": "playlist", "entries": [make_descriptor("a"), make_descriptor("b")]}
    )
    fake_runner.stream = lambda args: ProcessResult(
        0, f"https://cdn.example/{args[-1][-1]}\n", ""
    )
    downloader = Downloader(
        test_config, [(60, YtDlpSource(test_config, runner=fake_runner))]
    )

    locations = asyncio.run(downloader.resolve("https://www.youtube.com/playlist?list=PL"))

    assert locations == ["https://cdn.example/a", "https://cdn.example/b"]
