"""Single-slot guard preventing overlapping runs of one operation."""

import threading


class InFlightGuard:
    """Mutual exclusion for a long-running operation without queuing.

    Callers that lose the race are told "busy" once; nothing is retried.

    Example:
        guard = InFlightGuard()
        if guard.try_start():
            try:
                await supervisor.connect(host, port)
            finally:
                guard.finish()
    """

    def __init__(self) -> None:
        """Initialize the guard in the idle state."""
        self._lock = threading.Lock()
        self._in_progress = False

    def try_start(self) -> bool:
        """Atomically move idle to busy.

        Returns:
            True if this caller won the transition, False if already busy.
        """
        with self._lock:
            if self._in_progress:
                return False
            self._in_progress = True
            return True

    def finish(self) -> None:
        """Return to idle unconditionally."""
        with self._lock:
            self._in_progress = False

    def is_in_progress(self) -> bool:
        """Return a snapshot of the busy flag."""
        return self._in_progress
