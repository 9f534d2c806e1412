from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import FrozenSet

from leapstream.core.types import GestureType


POLICY_DEFAULT = 0
POLICY_BACKGROUND_FRAMES = 1 << 0


@dataclass
class ControlState:
    """
    Shared control plane of one controller.
    Written by the transport thread (connect / disconnect), read from anywhere.
    """
    _connected: bool = False
    _policy_flags: int = POLICY_DEFAULT
    _gestures: FrozenSet[GestureType] = frozenset()
    _lock: Lock = field(default_factory=Lock, repr=False)

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def set_connected(self, value: bool) -> None:
        with self._lock:
            self._connected = value

    def swap_connected(self, value: bool) -> bool:
        """Set the flag and return the previous value in one step."""
        with self._lock:
            before, self._connected = self._connected, value
            return before

    def policy_flags(self) -> int:
        with self._lock:
            return self._policy_flags

    def set_policy_flags(self, flags: int) -> None:
        with self._lock:
            self._policy_flags = int(flags)

    def enabled_gestures(self) -> FrozenSet[GestureType]:
        with self._lock:
            return self._gestures

    def set_gesture(self, gesture_type: GestureType, enable: bool) -> bool:
        """Returns True when the 'any gesture enabled' flag flipped."""
        with self._lock:
            before = bool(self._gestures)
            if enable:
                self._gestures = self._gestures | {gesture_type}
            else:
                self._gestures = self._gestures - {gesture_type}
            return before != bool(self._gestures)
