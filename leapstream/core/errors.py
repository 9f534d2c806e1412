from __future__ import annotations


class FrameDecodeError(ValueError):
    """A wire message could not be turned into a Frame."""


class MalformedGestureType(FrameDecodeError):
    def __init__(self, gesture_type: object) -> None:
        super().__init__(f"unknown gesture type: {gesture_type!r}")
        self.gesture_type = gesture_type
