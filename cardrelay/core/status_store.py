"""Holder of the single latest known reader status."""

import time
from typing import Any, Callable, Dict

from cardrelay.models.status import ReaderStatus


def _now_ms() -> int:
    return int(time.time() * 1000)


class StatusStore:
    """
    Owns the process-wide ReaderStatus.

    Mutated only from the relay's event loop, so no locking is needed.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._status = ReaderStatus(timestamp=clock())

    def get_status(self) -> ReaderStatus:
        """Return the current status; the startup default if never updated."""
        return self._status

    def update_status(self, partial: Dict[str, Any]) -> ReaderStatus:
        """
        Shallow-merge ``partial`` onto the current status and stamp it.

        The timestamp never moves backwards, even if the clock does.

        Args:
            partial: Any subset of status fields; values are not validated

        Returns:
            The new full status
        """
        timestamp = max(self._clock(), self._status.timestamp)
        self._status = self._status.merged(partial, timestamp)
        return self._status
