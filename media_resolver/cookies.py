"""Cookie file pool for restricted sources."""

import logging
import random
import re
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class CookiePool:
    """Pick a cookie file at random from a directory of Netscape cookie files."""

    def __init__(self, directory: Path):
        """Initialize cookie pool.

        Args:
            directory: Directory containing *.txt cookie files
        """
        self.directory = Path(directory)

    def files(self) -> List[Path]:
        """List available cookie files."""
        if not self.directory.is_dir():
            return []
        return sorted(p for p in self.directory.glob("*.txt") if p.is_file())

    def get_random_cookie_file(self) -> Optional[str]:
        """Get a random cookie file path, or None if the pool is empty."""
        files = self.files()
        if not files:
            return None

        cookie = random.choice(files)
        logger.debug("Using cookie file: %s", cookie)
        return str(cookie)


class RestrictedSources:
    """Case-insensitive URL patterns for platforms that need cookies."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    def matches(self, url: str) -> bool:
        return any(p.search(url) for p in self.patterns)
