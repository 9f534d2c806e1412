from __future__ import annotations

import logging
from threading import Lock
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from leapstream.core.types import Frame
    from leapstream.runtime.controller import Controller

logger = logging.getLogger(__name__)


class Listener:
    """
    Override the callbacks you care about. All of them run on the thread that
    delivers transport events, one at a time.
    """

    def on_init(self, controller: "Controller") -> None:
        pass

    def on_connect(self, controller: "Controller") -> None:
        pass

    def on_disconnect(self, controller: "Controller") -> None:
        pass

    def on_exit(self, controller: "Controller") -> None:
        pass

    def on_frame(self, controller: "Controller", frame: "Frame") -> None:
        pass


class ListenerRegistry:
    """Listeners attached to one controller, in attach order."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = Lock()

    def add(self, listener: Listener) -> bool:
        with self._lock:
            if listener in self._listeners:
                return False
            self._listeners.append(listener)
            return True

    def remove(self, listener: Listener) -> bool:
        with self._lock:
            if listener not in self._listeners:
                return False
            self._listeners.remove(listener)
            return True

    def drain(self) -> List[Listener]:
        with self._lock:
            out, self._listeners = self._listeners, []
            return out

    def __contains__(self, listener: object) -> bool:
        with self._lock:
            return listener in self._listeners

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def dispatch(self, callback: str, *args) -> None:
        # Snapshot so callbacks may add/remove listeners.
        with self._lock:
            targets = list(self._listeners)
        for listener in targets:
            logger.debug("%s -> %s", callback, type(listener).__name__)
            getattr(listener, callback)(*args)
