"""Unit tests for config module."""

from pathlib import Path

import pytest

from media_resolver.config import DEFAULT_RESTRICTED_PATTERNS, Config


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    monkeypatch.delenv("MEDIA_RESOLVER_DOWNLOADS_DIR", raising=False)
    monkeypatch.delenv("MEDIA_RESOLVER_COOKIES_DIR", raising=False)
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def sample_config_file(tmp_path):
    """Create a sample config file for testing."""
    config_content = """
downloads_dir: "~/test/downloads"

resolver:
  path: "/opt/bin/yt-dlp"
  search_path:
    - "~/.deno/bin"
    - "/usr/bin"
  playlist_limit: 25

probe:
  path: "/opt/bin/ffprobe"
  timeout: 20

stream:
  max_height: 480
  probe_timeout: 12

cookies:
  directory: "~/cookies"
  patterns:
    - "soundcloud\\\\.com"

cache:
  validate_audio: false
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(config_content)
    return config_file


def test_config_loads_file(sample_config_file):
    """Test that config loads from file."""
    config = Config(sample_config_file)
    assert config.config is not None
    assert config.config_path == sample_config_file


def test_config_is_singleton(sample_config_file):
    """Test that later constructions reuse the first instance."""
    config = Config(sample_config_file)
    assert Config() is config


def test_config_expands_home_directory(sample_config_file):
    """Test that ~ is expanded in paths."""
    config = Config(sample_config_file)
    downloads = str(config.downloads_dir)
    assert not downloads.startswith("~")
    assert "test/downloads" in downloads


def test_config_get_nested(sample_config_file):
    """Test getting nested config values."""
    config = Config(sample_config_file)
    assert config.get("resolver.path") == "/opt/bin/yt-dlp"
    assert config.get("stream.max_height") == 480


def test_config_get_with_default(sample_config_file):
    """Test getting config with default value."""
    config = Config(sample_config_file)
    assert config.get("nonexistent.key", "default") == "default"


def test_config_properties(sample_config_file):
    """Test config property accessors."""
    config = Config(sample_config_file)

    assert config.resolver_path == "/opt/bin/yt-dlp"
    assert config.playlist_limit == 25
    assert config.probe_path == "/opt/bin/ffprobe"
    assert config.probe_timeout == 20.0
    assert config.max_height == 480
    assert config.stream_check_timeout == 12.0
    assert config.restricted_patterns == ["soundcloud\\.com"]
    assert config.validate_audio is False
    assert not str(config.cookies_dir).startswith("~")
    assert all(not d.startswith("~") for d in config.search_path)


def test_config_missing_file_uses_defaults():
    """Test that a missing config file falls back to defaults."""
    config = Config(Path("/nonexistent/config.yaml"))

    assert config.downloads_dir == Path("downloads")
    assert config.resolver_path == "yt-dlp"
    assert config.probe_path == "ffprobe"
    assert config.max_height == 720
    assert config.playlist_limit is None
    assert config.restricted_patterns == DEFAULT_RESTRICTED_PATTERNS
    assert config.validate_audio is True
    assert "Mozilla" in config.user_agent


def test_config_environment_overrides(sample_config_file, monkeypatch, tmp_path):
    """Test that environment variables win over the file."""
    monkeypatch.setenv("MEDIA_RESOLVER_DOWNLOADS_DIR", str(tmp_path / "dl"))
    monkeypatch.setenv("MEDIA_RESOLVER_COOKIES_DIR", str(tmp_path / "ck"))

    config = Config(sample_config_file)
    assert config.downloads_dir == tmp_path / "dl"
    assert config.cookies_dir == tmp_path / "ck"


def test_config_empty_file(tmp_path):
    """Test that an empty YAML file is treated as no settings."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    config = Config(config_file)
    assert config.config == {}
    assert config.resolver_path == "yt-dlp"


def test_config_expands_home_in_lists(sample_config_file):
    """Test that ~ is expanded inside list values."""
    config = Config(sample_config_file)

    raw = config.get("resolver.search_path")
    assert raw[0] == str(Path.home() / ".deno" / "bin")
    assert raw[1] == "/usr/bin"
    assert config.search_path == raw
