from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import orjson

logger = logging.getLogger(__name__)

HEARTBEAT_MESSAGE = orjson.dumps({"heartbeat": True}).decode()


class Heartbeat:
    """
    Periodic keep-alive on its own daemon thread.
    start() on connect, stop() on disconnect; restartable.
    """

    def __init__(self, send: Callable[[str], None], interval_ms: int = 100,
                 message: str = HEARTBEAT_MESSAGE) -> None:
        self._send = send
        self.interval_s = interval_ms / 1000.0
        self.message = message
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            stop = threading.Event()
            self._stop = stop
            self._thread = threading.Thread(target=self._run, args=(stop,), name="leapstream-heartbeat", daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        with self._lock:
            stop, thread = self._stop, self._thread
            self._stop = None
            self._thread = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval_s):
            try:
                self._send(self.message)
            except Exception as e:
                # Transport may be mid-teardown; next tick (or stop) decides.
                logger.warning("heartbeat send failed: %s", e)
