"""Exception types raised by the resolution engine."""

import re

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def clean_diagnostics(text: str) -> str:
    """Strip ANSI colour codes and surrounding whitespace from resolver output."""
    if not text:
        return ""
    return _ANSI_ESCAPE.sub("", text).strip()


class MediaResolverError(Exception):
    """Base class for all typed failures.

    Attributes:
        diagnostics: Raw diagnostic text from the external process, if any
    """

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = clean_diagnostics(diagnostics)

    def __str__(self) -> str:
        message = super().__str__()
        if self.diagnostics:
            return f"{message}\n{self.diagnostics}"
        return message


class InvalidReference(MediaResolverError):
    """The query is not a reference any source accepts."""


class ExtractionFailed(MediaResolverError):
    """The resolver could not produce metadata."""


class LiveUnsupportedForFile(MediaResolverError):
    """A live stream cannot be fetched into a file."""


class NoValidStream(MediaResolverError):
    """No direct stream address could be resolved and validated."""


class DownloadFailed(MediaResolverError):
    """The resolver download invocation failed."""


class ArtifactMissing(MediaResolverError):
    """The resolver reported a file that does not exist on disk."""


class CacheCorrupt(MediaResolverError):
    """A cached artifact failed validation."""
