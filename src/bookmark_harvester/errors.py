"""Exceptions raised by the network and rendering layers.

Per-element extraction failures are not exceptions: the extractor returns None.
Everything here is caught at the per-candidate boundary and turned into an
``error`` string on the result object.
"""


class HarvesterError(Exception):
    """Base class for bookmark-harvester failures."""


class FetchError(HarvesterError):
    """An upstream request failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchTimeout(FetchError):
    """An upstream request exceeded its timeout."""


class RenderError(HarvesterError):
    """Opening or navigating an isolated rendering context failed."""


class SyncError(HarvesterError):
    """The cloud sync collaborator rejected the request or is not configured."""
