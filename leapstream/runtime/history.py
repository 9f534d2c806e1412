from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, List, Optional

from leapstream.core.types import Frame, INVALID_FRAME


MAX_HISTORY = 60


class FrameHistory:
    """
    Rolling window of decoded frames, newest first.

    Index 0 is the most recently recorded frame. Once `max_frames` is reached
    each record evicts the oldest entry (strict FIFO).
    Writes come from the transport thread; reads may come from anywhere.
    """

    def __init__(self, max_frames: int = MAX_HISTORY) -> None:
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")
        self.max_frames = max_frames
        self._frames: Deque[Frame] = deque(maxlen=max_frames)
        self._latest: Optional[Frame] = None
        self._lock = Lock()

    def record(self, frame: Frame) -> None:
        with self._lock:
            self._frames.appendleft(frame)
            self._latest = frame

    def frame_at(self, age: int = 0) -> Frame:
        """Frame `age` steps back from the newest; INVALID_FRAME when not stored."""
        if age < 0:
            return INVALID_FRAME
        with self._lock:
            if age >= len(self._frames):
                return INVALID_FRAME
            return self._frames[age]

    @property
    def latest(self) -> Frame:
        with self._lock:
            return self._latest if self._latest is not None else INVALID_FRAME

    def snapshot(self) -> List[Frame]:
        """Copy of the stored frames, newest first."""
        with self._lock:
            return list(self._frames)

    def clear(self) -> None:
        with self._lock:
            self._frames.clear()
            self._latest = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)
