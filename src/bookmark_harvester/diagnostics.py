"""Injectable observability hook for the extraction pipeline.

Components accept an ``observer`` and call ``observer.event(name, **fields)``
at interesting points (strategy chosen, candidate skipped, retry scheduled).
The default observer discards everything.
"""

import logging

logger = logging.getLogger(__name__)


class NullObserver:
    def event(self, name: str, **fields) -> None:
        pass


class LoggingObserver:
    """Forward pipeline events to a logger at DEBUG level."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def event(self, name: str, **fields) -> None:
        if fields:
            details = " ".join(f"{k}={v!r}" for k, v in sorted(fields.items()))
            self._log.debug("%s %s", name, details)
        else:
            self._log.debug("%s", name)


class RecordingObserver:
    """Keep events in memory; handy for tests and --dump style debugging."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def event(self, name: str, **fields) -> None:
        self.events.append((name, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


NULL_OBSERVER = NullObserver()
