"""
leapstream — Controller

Main entry point. Owns one transport session, decodes every frame message,
keeps the last 60 frames and notifies listeners.

    class Printer(Listener):
        def on_frame(self, controller, frame):
            print(frame.id, len(frame.hands))

    with Controller(listener=Printer()) as c:
        c.connect()
        ...

Lifecycle seen by a listener:
    on_init (once, when attached)
    on_connect / on_disconnect (any number of times)
    on_frame (per decoded frame, only while connected)
    on_exit (once, when removed or the controller is closed)

frame(0) is always the most recently decoded frame.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Mapping, Optional, Union

import orjson

from leapstream.core.config import Settings, DEFAULT_SETTINGS
from leapstream.core.control import ControlState, POLICY_DEFAULT, POLICY_BACKGROUND_FRAMES
from leapstream.core.types import Frame, GestureType
from leapstream.decoder.frame_decoder import (
    decode_frame, parse_message, get_hand_by_id, get_pointable_by_id,
)
from leapstream.runtime.heartbeat import Heartbeat
from leapstream.runtime.history import FrameHistory
from leapstream.runtime.listener import Listener, ListenerRegistry

logger = logging.getLogger(__name__)


def _is_handshake(message: Any) -> bool:
    # First message of a session: {"version": 3, "serviceVersion": "..."}
    return isinstance(message, Mapping) and "version" in message and "id" not in message


class Controller:
    POLICY_DEFAULT = POLICY_DEFAULT
    POLICY_BACKGROUND_FRAMES = POLICY_BACKGROUND_FRAMES

    get_hand_by_id = staticmethod(get_hand_by_id)
    get_pointable_by_id = staticmethod(get_pointable_by_id)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        listener: Optional[Listener] = None,
        transport: Any = None,
        host: Optional[str] = None,
    ) -> None:
        self.settings = (settings or DEFAULT_SETTINGS).with_host(host)
        self.state = ControlState()
        self.history = FrameHistory(self.settings.history.max_frames)
        self.protocol_version: Optional[int] = None
        self.service_version: Optional[str] = None

        self._listeners = ListenerRegistry()
        self._transport = transport
        self._heartbeat = Heartbeat(self._send_text, interval_ms=self.settings.heartbeat.interval_ms)
        self._closed = False
        self._close_lock = Lock()

        if listener is not None:
            self.add_listener(listener)

    # ---------------------------------------------------------------
    # listeners

    def add_listener(self, listener: Listener) -> bool:
        """Attach and immediately fire on_init. False if already attached."""
        if not self._listeners.add(listener):
            return False
        listener.on_init(self)
        return True

    def remove_listener(self, listener: Listener) -> bool:
        """Detach and fire on_exit. False if it was not attached."""
        if not self._listeners.remove(listener):
            return False
        listener.on_exit(self)
        return True

    # ---------------------------------------------------------------
    # transport

    @property
    def transport(self) -> Any:
        return self._transport

    def attach(self, transport: Any) -> None:
        """Use `transport` (anything with send(text) / close()) for outbound messages."""
        self._transport = transport

    def connect(self) -> Any:
        """
        Open a websocket session to `settings.url` on a background thread.

        A transport that is already attached is closed first, so at most one
        session feeds this controller. Raises RuntimeError once closed.
        """
        from leapstream.sensor.websocket_source import WebSocketSource

        with self._close_lock:
            if self._closed:
                raise RuntimeError("controller is closed")
            previous = self._transport
            if previous is not None:
                logger.debug("replacing transport %r", previous)
                previous.close()
            source = WebSocketSource(self, self.settings)
            self.attach(source)
            source.start()
        return source

    def handle_open(self) -> None:
        self.state.set_connected(True)
        logger.info("connected to %s", self.settings.url)
        self._push_requests()
        self._listeners.dispatch("on_connect", self)
        if self.settings.heartbeat.enabled:
            self._heartbeat.start()

    def handle_close(self) -> None:
        self._heartbeat.stop()
        if not self.state.swap_connected(False):
            return
        logger.info("disconnected from %s", self.settings.url)
        self._listeners.dispatch("on_disconnect", self)

    def handle_message(self, data: Union[str, bytes]) -> Optional[Frame]:
        """
        Decode one message, record it and fire on_frame.

        Decode errors propagate and nothing is recorded. Returns None for the
        session handshake, which is not a frame.
        """
        message = parse_message(data)
        if _is_handshake(message):
            self.protocol_version = message.get("version")
            self.service_version = message.get("serviceVersion")
            logger.info("service version %s (protocol v%s)", self.service_version, self.protocol_version)
            return None

        frame = decode_frame(message, controller=self)
        self.history.record(frame)
        self._listeners.dispatch("on_frame", self, frame)
        return frame

    # ---------------------------------------------------------------
    # queries

    def frame(self, history: int = 0) -> Frame:
        """
        frame() / frame(0) is the newest frame, frame(1) the one before, ...
        An invalid frame comes back for anything not stored.
        """
        return self.history.frame_at(history)

    def current_frame(self, age: int = 0) -> Frame:
        return self.history.frame_at(age)

    def is_connected(self) -> bool:
        return self.state.is_connected()

    # ---------------------------------------------------------------
    # service requests

    def enable_gesture(self, gesture_type: Union[GestureType, str], enable: bool = True) -> None:
        """
        The service only knows "gestures on" / "gestures off", so the request
        is sent when the first type is enabled or the last one disabled.
        """
        flipped = self.state.set_gesture(GestureType(gesture_type), enable)
        if flipped and self.is_connected():
            self._send({"enableGestures": bool(self.state.enabled_gestures())})

    def is_gesture_enabled(self, gesture_type: Union[GestureType, str]) -> bool:
        return GestureType(gesture_type) in self.state.enabled_gestures()

    def policy_flags(self) -> int:
        if not self.is_connected():
            return POLICY_DEFAULT
        return self.state.policy_flags()

    def set_policy_flags(self, flags: int) -> None:
        """Requested flags are (re)sent on every connect."""
        self.state.set_policy_flags(flags)
        if self.is_connected():
            self._send({"background": bool(flags & POLICY_BACKGROUND_FRAMES)})

    def _push_requests(self) -> None:
        if self.state.enabled_gestures():
            self._send({"enableGestures": True})
        if self.state.policy_flags() & POLICY_BACKGROUND_FRAMES:
            self._send({"background": True})

    def _send(self, payload: dict) -> None:
        self._send_text(orjson.dumps(payload).decode())

    def _send_text(self, text: str) -> None:
        if self._transport is None:
            logger.debug("no transport, dropping %s", text)
            return
        self._transport.send(text)

    # ---------------------------------------------------------------
    # teardown

    def close(self) -> None:
        """Stop the heartbeat, close the transport, fire on_exit. Idempotent."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._heartbeat.stop()
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
        if self.state.is_connected():
            # transport did not report the close itself
            self.handle_close()
        for listener in self._listeners.drain():
            listener.on_exit(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "Controller":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
