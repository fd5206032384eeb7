from __future__ import annotations

import threading

__all__ = ["WaitToken"]


class WaitToken:
    """
    One-shot signal used to block a caller until an operation completes.

    Releasing is idempotent, and a release that happens before anyone waits
    lets the waiter return immediately.

    :param timeout:
        Seconds :meth:`wait` blocks for by default. ``None`` waits forever.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        return self._event.is_set()

    def release(self) -> bool:
        """Signal the waiter. Returns ``False`` if already released."""
        with self._lock:
            if self._released:
                return False
            self._released = True
        self._event.set()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until released or until the timeout expires. Returns ``True``
        if the token was released.
        """
        if timeout is None:
            timeout = self.timeout
        return self._event.wait(timeout)
