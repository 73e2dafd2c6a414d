"""Platform-specific sources."""

from .base import BaseSource
from .ytdlp import YtDlpSource

__all__ = ["BaseSource", "YtDlpSource"]
