from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Optional

import websockets

from leapstream.core.config import Settings

if TYPE_CHECKING:
    from leapstream.runtime.controller import Controller

logger = logging.getLogger(__name__)


class WebSocketSource:
    """
    Duplex transport to the tracking service.

    Runs its own asyncio loop on a daemon thread. Messages are handed to the
    controller one at a time, in arrival order, on that thread. Owns the
    reconnect policy; the controller only sees open / message / close.
    """

    def __init__(self, controller: "Controller", settings: Optional[Settings] = None) -> None:
        self.controller = controller
        self.settings = settings or controller.settings
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._ws = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    @property
    def url(self) -> str:
        return self.settings.url

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._thread_main, name="leapstream-ws", daemon=True)
        self._thread.start()

    def _thread_main(self) -> None:
        try:
            asyncio.run(self._main())
        except asyncio.CancelledError:
            pass
        logger.debug("websocket thread exiting")

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        if self._stopping.is_set():
            return
        await self._run()

    async def _run(self) -> None:
        conn = self.settings.connection
        while not self._stopping.is_set():
            try:
                async with websockets.connect(self.url, ping_interval=None, max_size=2**22) as ws:
                    self._ws = ws
                    self.controller.handle_open()
                    try:
                        async for message in ws:
                            self._deliver(message)
                    finally:
                        self._ws = None
                        self.controller.handle_close()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.warning("connection to %s failed: %s", self.url, e)

            if not conn.reconnect or self._stopping.is_set():
                break
            logger.info("reconnecting in %.1fs", conn.reconnect_delay_s)
            await asyncio.sleep(conn.reconnect_delay_s)

    def _deliver(self, message) -> None:
        try:
            self.controller.handle_message(message)
        except ValueError:
            # covers FrameDecodeError and invalid JSON; the frame is lost
            logger.exception("dropping message from %s", self.url)

    def send(self, text: str) -> None:
        """Thread-safe, fire-and-forget."""
        loop, ws = self._loop, self._ws
        if loop is None or ws is None or loop.is_closed():
            raise ConnectionError("websocket not connected")
        fut = asyncio.run_coroutine_threadsafe(ws.send(text), loop)
        fut.add_done_callback(self._log_send_failure)

    @staticmethod
    def _log_send_failure(fut) -> None:
        if fut.cancelled():
            return
        e = fut.exception()
        if e is not None:
            logger.warning("send failed: %s", e)

    def close(self, timeout: float = 2.0) -> None:
        self._stopping.set()
        loop, task = self._loop, self._task
        if loop is not None and task is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                # loop already shut down
                pass
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
