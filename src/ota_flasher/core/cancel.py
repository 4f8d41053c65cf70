"""Cooperative cancellation for OTA sessions."""

import threading

from ota_flasher.errors import OtaCancelledError


class CancelToken:
    """
    One-shot cancellation flag shared between a session and its controller.

    The controller (CLI signal handler, UI button) calls cancel() from any
    thread; the session polls it at its suspension points.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OtaCancelledError once cancel() has been called."""
        if self._event.is_set():
            raise OtaCancelledError("OTA cancelled")
