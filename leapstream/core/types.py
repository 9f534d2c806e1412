"""
leapstream — tracking data model

Immutable snapshot of everything the tracking service reports for one frame:
hands, pointables (fingers + tools), gestures and the interaction box.

Entities are frozen. Cross references (pointable -> hand, entity -> frame,
hand -> its pointables) are linked once by the frame decoder while the frame is
being assembled, and never touched again.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Sequence, Tuple

from leapstream.core.errors import FrameDecodeError


Vec3 = Tuple[float, float, float]


# ============================================================
# Geometry
# ============================================================

@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    @classmethod
    def zero(cls) -> "Vector3":
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "Vector3":
        """Positional x, y, z from a wire array."""
        if not isinstance(values, (list, tuple)) or len(values) < 3:
            raise FrameDecodeError(f"expected 3 components, got {values!r}")
        try:
            return cls(float(values[0]), float(values[1]), float(values[2]))
        except (TypeError, ValueError) as e:
            raise FrameDecodeError(f"bad vector {values!r}: {e}") from e

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3":
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Vector3":
        return Vector3(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> "Vector3":
        return Vector3(-self.x, -self.y, -self.z)

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3") -> "Vector3":
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.dot(self))

    def normalized(self) -> "Vector3":
        m = self.magnitude
        if m <= 1e-12:
            return Vector3.zero()
        return self / m

    def distance_to(self, other: "Vector3") -> float:
        return (self - other).magnitude

    def angle_to(self, other: "Vector3") -> float:
        """Radians in [0, pi]; 0 when either vector is zero."""
        denom = self.magnitude * other.magnitude
        if denom <= 1e-12:
            return 0.0
        c = self.dot(other) / denom
        return math.acos(max(-1.0, min(1.0, c)))

    def as_tuple(self) -> Vec3:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Matrix:
    """
    3x3 rotation, stored as three basis vectors.
    Row-major on the wire: r[0] -> x_basis, r[1] -> y_basis, r[2] -> z_basis.
    """
    x_basis: Vector3
    y_basis: Vector3
    z_basis: Vector3

    @classmethod
    def identity(cls) -> "Matrix":
        return cls(Vector3(1.0, 0.0, 0.0), Vector3(0.0, 1.0, 0.0), Vector3(0.0, 0.0, 1.0))

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> "Matrix":
        if not isinstance(rows, (list, tuple)) or len(rows) < 3:
            raise FrameDecodeError(f"expected 3x3 matrix, got {rows!r}")
        return cls(Vector3.from_list(rows[0]), Vector3.from_list(rows[1]), Vector3.from_list(rows[2]))

    def transform_direction(self, v: Vector3) -> Vector3:
        return self.x_basis * v.x + self.y_basis * v.y + self.z_basis * v.z

    def transform_point(self, v: Vector3, origin: Optional[Vector3] = None) -> Vector3:
        out = self.transform_direction(v)
        return out + origin if origin is not None else out

    def __mul__(self, other: "Matrix") -> "Matrix":
        return Matrix(
            self.transform_direction(other.x_basis),
            self.transform_direction(other.y_basis),
            self.transform_direction(other.z_basis),
        )

    def to_rows(self) -> Tuple[Vec3, Vec3, Vec3]:
        return (self.x_basis.as_tuple(), self.y_basis.as_tuple(), self.z_basis.as_tuple())


# ============================================================
# Enums (values are the wire strings)
# ============================================================

class Zone(str, Enum):
    NONE = "none"
    HOVERING = "hovering"
    TOUCHING = "touching"


class GestureState(str, Enum):
    START = "start"
    UPDATE = "update"
    STOP = "stop"
    INVALID = "invalid"


class GestureType(str, Enum):
    CIRCLE = "circle"
    SWIPE = "swipe"
    SCREEN_TAP = "screenTap"
    KEY_TAP = "keyTap"


# ============================================================
# Entities
# ============================================================

# Back references are excluded from eq/repr so printing a hand does not
# walk the whole frame.
def _ref():
    return field(default=None, compare=False, repr=False)


@dataclass(frozen=True, eq=False)
class Pointable:
    """A finger or a tool. `hand` is None when the service did not associate one."""
    id: int
    hand_id: int
    length: float
    direction: Vector3
    tip_position: Vector3
    stabilized_tip_position: Vector3
    tip_velocity: Vector3
    touch_distance: float
    touch_zone: Zone
    time_visible: float
    frame: Optional["Frame"] = _ref()
    hand: Optional["Hand"] = _ref()

    is_tool: ClassVar[bool] = False

    @property
    def is_finger(self) -> bool:
        return not self.is_tool


@dataclass(frozen=True, eq=False)
class Finger(Pointable):
    pass


@dataclass(frozen=True, eq=False)
class Tool(Pointable):
    width: float = 0.0

    is_tool: ClassVar[bool] = True


def _first_by_id(items: Sequence[Any], item_id: int) -> Optional[Any]:
    for item in items:
        if item.id == item_id:
            return item
    return None


@dataclass(frozen=True, eq=False)
class Hand:
    id: int
    direction: Vector3
    palm_normal: Vector3
    palm_position: Vector3
    stabilized_palm_position: Vector3
    palm_velocity: Vector3
    rotation: Matrix
    scale_factor: float
    sphere_center: Vector3
    sphere_radius: float
    time_visible: float
    translation: Vector3
    frame: Optional["Frame"] = _ref()
    pointables: Tuple[Pointable, ...] = field(default=(), repr=False)
    fingers: Tuple[Finger, ...] = field(default=(), repr=False)
    tools: Tuple[Tool, ...] = field(default=(), repr=False)

    def pointable(self, pointable_id: int) -> Optional[Pointable]:
        return _first_by_id(self.pointables, pointable_id)

    def finger(self, finger_id: int) -> Optional[Finger]:
        return _first_by_id(self.fingers, finger_id)

    def tool(self, tool_id: int) -> Optional[Tool]:
        return _first_by_id(self.tools, tool_id)


@dataclass(frozen=True)
class InteractionBox:
    """Axis-aligned box used to normalize positions into [0, 1]."""
    center: Vector3
    width: float
    height: float
    depth: float

    def normalize_point(self, position: Vector3, clamp: bool = True) -> Vector3:
        def axis(p: float, c: float, size: float) -> float:
            if size == 0:
                return 0.5
            v = (p - c) / size + 0.5
            if clamp:
                v = max(0.0, min(1.0, v))
            return v

        return Vector3(
            axis(position.x, self.center.x, self.width),
            axis(position.y, self.center.y, self.height),
            axis(position.z, self.center.z, self.depth),
        )

    def denormalize_point(self, normalized: Vector3) -> Vector3:
        return Vector3(
            (normalized.x - 0.5) * self.width + self.center.x,
            (normalized.y - 0.5) * self.height + self.center.y,
            (normalized.z - 0.5) * self.depth + self.center.z,
        )


@dataclass(frozen=True, eq=False)
class Gesture:
    """
    A gesture event already recognized by the service.

    `hands` / `pointables` only hold ids that resolved inside the same frame.
    """
    id: int
    state: GestureState
    duration: int                      # microseconds
    hands: Tuple[Hand, ...] = field(default=(), repr=False)
    pointables: Tuple[Pointable, ...] = field(default=(), repr=False)
    frame: Optional["Frame"] = _ref()

    type: ClassVar[GestureType]

    @property
    def duration_seconds(self) -> float:
        return self.duration / 1_000_000


@dataclass(frozen=True, eq=False)
class CircleGesture(Gesture):
    center: Vector3 = Vector3.zero()
    normal: Vector3 = Vector3.zero()
    progress: float = 0.0              # number of turns
    radius: float = 0.0
    pointable: Optional[Pointable] = field(default=None, repr=False)

    type: ClassVar[GestureType] = GestureType.CIRCLE


@dataclass(frozen=True, eq=False)
class SwipeGesture(Gesture):
    start_position: Vector3 = Vector3.zero()
    position: Vector3 = Vector3.zero()
    direction: Vector3 = Vector3.zero()
    speed: float = 0.0

    type: ClassVar[GestureType] = GestureType.SWIPE


@dataclass(frozen=True, eq=False)
class ScreenTapGesture(Gesture):
    position: Vector3 = Vector3.zero()
    direction: Vector3 = Vector3.zero()
    progress: float = 0.0

    type: ClassVar[GestureType] = GestureType.SCREEN_TAP


@dataclass(frozen=True, eq=False)
class KeyTapGesture(Gesture):
    position: Vector3 = Vector3.zero()
    direction: Vector3 = Vector3.zero()
    progress: float = 0.0

    type: ClassVar[GestureType] = GestureType.KEY_TAP


# ============================================================
# Frame
# ============================================================

@dataclass(frozen=True, eq=False)
class Frame:
    """
    One snapshot from the tracking service.

    rotation / scale_factor / translation describe the motion since the
    previous frame. fingers and tools partition pointables.
    """
    id: int
    timestamp: int                     # device clock, microseconds
    hands: Tuple[Hand, ...] = ()
    pointables: Tuple[Pointable, ...] = ()
    fingers: Tuple[Finger, ...] = ()
    tools: Tuple[Tool, ...] = ()
    gestures: Tuple[Gesture, ...] = ()
    interaction_box: Optional[InteractionBox] = None
    rotation: Optional[Matrix] = None
    scale_factor: float = 1.0
    translation: Optional[Vector3] = None
    valid: bool = True
    controller: Any = _ref()

    @classmethod
    def invalid(cls) -> "Frame":
        return INVALID_FRAME

    @property
    def is_valid(self) -> bool:
        return self.valid

    def hand(self, hand_id: int) -> Optional[Hand]:
        return _first_by_id(self.hands, hand_id)

    def pointable(self, pointable_id: int) -> Optional[Pointable]:
        return _first_by_id(self.pointables, pointable_id)

    def finger(self, finger_id: int) -> Optional[Finger]:
        return _first_by_id(self.fingers, finger_id)

    def tool(self, tool_id: int) -> Optional[Tool]:
        return _first_by_id(self.tools, tool_id)

    def gesture(self, gesture_id: int) -> Optional[Gesture]:
        return _first_by_id(self.gestures, gesture_id)


INVALID_FRAME = Frame(id=0, timestamp=0, valid=False)
