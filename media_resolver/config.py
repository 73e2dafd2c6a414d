"""Configuration management for media-resolver."""

import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = [
    Path("config.yaml"),
    Path.home() / ".config" / "media-resolver" / "config.yaml",
]

DEFAULT_SEARCH_PATH = [
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "~/.deno/bin",
    "~/.bun/bin",
]

DEFAULT_RESTRICTED_PATTERNS = [r"(youtube\.com|youtu\.be|music\.youtube\.com)"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


def _expand_value(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("~"):
        return os.path.expanduser(value)
    if isinstance(value, list):
        return [_expand_value(item) for item in value]
    return value


class Config:
    """Media resolver configuration."""

    _instance = None

    def __new__(cls, config_path: Optional[Path] = None):
        """Singleton pattern for config."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singleton for testing."""
        cls._instance = None

    def __init__(self, config_path: Optional[Path] = None):
        """Load configuration from YAML file.

        Args:
            config_path: Explicit config file. When omitted, ./config.yaml and
                ~/.config/media-resolver/config.yaml are tried in order.
        """
        if self._initialized:
            return

        self.config_path = self._find_config(config_path)
        self.config = self._load_config()
        self._initialized = True

    def _find_config(self, config_path: Optional[Path]) -> Optional[Path]:
        if config_path is not None:
            return Path(config_path)

        for candidate in DEFAULT_CONFIG_PATHS:
            if candidate.exists():
                return candidate
        return None

    def _load_config(self) -> dict:
        """Load and parse config file."""
        if self.config_path is None or not self.config_path.exists():
            logger.debug("No configuration file found, using defaults")
            return {}

        with open(self.config_path) as f:
            config = yaml.safe_load(f) or {}

        # Expand home directory in paths
        self._expand_paths(config)
        return config

    def _expand_paths(self, config: dict):
        """Expand ~ in path values, including path lists."""
        for key, value in config.items():
            if isinstance(value, dict):
                self._expand_paths(value)
            else:
                config[key] = _expand_value(value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot-separated key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    @property
    def downloads_dir(self) -> Path:
        """Get cache directory for downloaded artifacts."""
        path = os.environ.get("MEDIA_RESOLVER_DOWNLOADS_DIR") or self.get(
            "downloads_dir", "downloads"
        )
        return Path(path)

    @property
    def resolver_path(self) -> str:
        """Get yt-dlp executable."""
        return self.get("resolver.path") or "yt-dlp"

    @property
    def search_path(self) -> List[str]:
        """Get directories exposed on PATH to the resolver process."""
        return self.get("resolver.search_path") or _expand_value(DEFAULT_SEARCH_PATH)

    @property
    def playlist_limit(self) -> Optional[int]:
        """Get maximum number of playlist entries to expand."""
        limit = self.get("resolver.playlist_limit")
        return int(limit) if limit else None

    @property
    def probe_path(self) -> str:
        """Get ffprobe executable."""
        return self.get("probe.path") or "ffprobe"

    @property
    def probe_timeout(self) -> float:
        """Get ffprobe timeout in seconds."""
        return float(self.get("probe.timeout", 15))

    @property
    def max_height(self) -> int:
        """Get video resolution ceiling."""
        return int(self.get("stream.max_height", 720))

    @property
    def stream_check_timeout(self) -> float:
        """Get timeout for stream reachability checks in seconds."""
        return float(self.get("stream.probe_timeout", 10))

    @property
    def user_agent(self) -> str:
        """Get User-Agent sent with stream reachability checks."""
        return self.get("stream.user_agent") or DEFAULT_USER_AGENT

    @property
    def cookies_dir(self) -> Path:
        """Get directory holding cookie files for restricted sources."""
        path = os.environ.get("MEDIA_RESOLVER_COOKIES_DIR") or self.get(
            "cookies.directory", "cookies"
        )
        return Path(os.path.expanduser(str(path)))

    @property
    def restricted_patterns(self) -> List[str]:
        """Get URL patterns that need cookies."""
        return self.get("cookies.patterns") or DEFAULT_RESTRICTED_PATTERNS

    @property
    def validate_audio(self) -> bool:
        """Get whether cached audio files are validated before reuse."""
        return bool(self.get("cache.validate_audio", True))
