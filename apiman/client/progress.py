from __future__ import annotations

import logging
from typing import List, Protocol

log = logging.getLogger("apiman.client")


class ProgressIndicator(Protocol):
    """Request-in-flight signal.

    Signals are fire-and-forget. There is no reference counting: when calls
    overlap, the visible state is whatever the last signal set.
    """

    def show(self) -> None: ...

    def hide(self) -> None: ...


class NullProgress:
    def show(self) -> None:
        pass

    def hide(self) -> None:
        pass


class LoggingProgress:
    """Emit progress signals as debug log records."""

    def show(self) -> None:
        log.debug("progress_show")

    def hide(self) -> None:
        log.debug("progress_hide")


class RecordingProgress:
    """Keep every signal in order, plus the current visibility."""

    def __init__(self) -> None:
        self.signals: List[str] = []
        self.visible = False

    def show(self) -> None:
        self.signals.append("show")
        self.visible = True

    def hide(self) -> None:
        self.signals.append("hide")
        self.visible = False

    def count(self, signal: str) -> int:
        return self.signals.count(signal)


class ConsoleSpinner:
    """Spinner on stderr while a request is in flight."""

    def __init__(self, message: str = "Waiting for server...", console=None):
        from rich.console import Console

        self._console = console or Console(stderr=True)
        self._message = message
        self._status = None

    def show(self) -> None:
        if self._status is not None:
            return
        self._status = self._console.status(self._message, spinner="dots")
        self._status.start()

    def hide(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
