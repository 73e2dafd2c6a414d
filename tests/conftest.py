"""Shared pytest fixtures."""

import json
from pathlib import Path
from typing import Callable, List, Optional
from unittest.mock import Mock, patch

import pytest
import yaml

from media_resolver.config import Config
from media_resolver.process import ProcessResult


class FakeRunner:
    """Stand-in for run_process that answers like yt-dlp and ffprobe.

    Each mode can be set to a ProcessResult, or a callable taking the
    argument list and returning one.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.metadata: Optional[ProcessResult] = None
        self.stream: Optional[ProcessResult] = None
        self.download: Optional[ProcessResult] = None
        self.probe: Optional[ProcessResult] = ProcessResult(0, "1280x720\n", "")

    async def __call__(self, args, env=None, timeout=None) -> ProcessResult:
        self.calls.append(list(args))

        if args[0].endswith("ffprobe"):
            return self._answer(self.probe, args)
        if "-J" in args:
            return self._answer(self.metadata, args)
        if "-g" in args:
            return self._answer(self.stream, args)
        return self._answer(self.download, args)

    def _answer(self, response, args) -> ProcessResult:
        if response is None:
            raise AssertionError(f"Unexpected process invocation: {args}")
        if callable(response):
            return response(args)
        return response

    def resolver_calls(self, flag: Optional[str] = None) -> List[List[str]]:
        calls = [c for c in self.calls if not c[0].endswith("ffprobe")]
        if flag is None:
            return calls
        return [c for c in calls if flag in c]

    def download_calls(self) -> List[List[str]]:
        return self.resolver_calls("--print")


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def temp_downloads_dir(tmp_path):
    """Downloads directory path (not created)."""
    return tmp_path / "downloads"


@pytest.fixture
def cookies_dir(tmp_path):
    path = tmp_path / "cookies"
    path.mkdir()
    return path


@pytest.fixture
def temp_config_file(tmp_path, temp_downloads_dir, cookies_dir):
    """Create a temporary config file."""
    config_path = tmp_path / "config.yaml"
    config_data = {
        "downloads_dir": str(temp_downloads_dir),
        "resolver": {"path": "yt-dlp", "search_path": ["/usr/bin"]},
        "probe": {"path": "ffprobe", "timeout": 5},
        "stream": {"max_height": 720, "probe_timeout": 3},
        "cookies": {"directory": str(cookies_dir)},
        "cache": {"validate_audio": True},
    }
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def test_config(temp_config_file, monkeypatch):
    """Create a Config instance for testing."""
    monkeypatch.delenv("MEDIA_RESOLVER_DOWNLOADS_DIR", raising=False)
    monkeypatch.delenv("MEDIA_RESOLVER_COOKIES_DIR", raising=False)
    Config.reset()
    config = Config(temp_config_file)
    yield config
    Config.reset()


@pytest.fixture
def make_descriptor() -> Callable[..., dict]:
    """Factory for yt-dlp style metadata dicts."""

    def _make(video_id: str = "abc123", **overrides) -> dict:
        data = {
            "id": video_id,
            "title": f"Title {video_id}",
            "duration": 212.7,
            "thumbnail": f"https://i.ytimg.com/vi/{video_id}/hq.jpg",
            "webpage_url": f"https://www.youtube.com/watch?v={video_id}",
            "original_url": f"https://youtu.be/{video_id}",
            "is_live": False,
            "was_live": False,
        }
        data.update(overrides)
        return data

    return _make


def json_result(data) -> ProcessResult:
    return ProcessResult(0, json.dumps(data), "")


@pytest.fixture
def mock_requests_head():
    """Mock HEAD requests used to validate stream URLs."""
    with patch("media_resolver.sources.ytdlp.requests.head") as mock_head:
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.headers = {"Content-Type": "audio/webm"}
        mock_response.raise_for_status = Mock(return_value=None)
        mock_head.return_value = mock_response
        yield mock_head


def write_file(path: Path, data: bytes = b"media") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
