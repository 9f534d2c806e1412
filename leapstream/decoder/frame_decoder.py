"""
leapstream — frame decoder

Wire message (one JSON object per frame) -> fully linked, frozen Frame.

Decode order matters: hands first, then pointables (which resolve their hand),
then gestures (which resolve hands and pointables). Every lookup is a linear
first-match by id inside the frame being built; a miss is never an error.

The hard failures are a gesture whose "type" is not one of
circle / swipe / screenTap / keyTap, and wrong-typed content (an array that
is not an array, an entry that is not an object, a number that is not a
number). Both raise FrameDecodeError; nothing half-built escapes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

import orjson

from leapstream.core.errors import FrameDecodeError, MalformedGestureType
from leapstream.core.types import (
    Vector3, Matrix, Zone, GestureState, GestureType,
    Pointable, Finger, Tool, Hand, InteractionBox, Frame,
    Gesture, CircleGesture, SwipeGesture, ScreenTapGesture, KeyTapGesture,
)

logger = logging.getLogger(__name__)

Message = Mapping[str, Any]


# ============================================================
# Field helpers
# ============================================================

def _vec(obj: Message, key: str) -> Vector3:
    raw = obj.get(key)
    if raw is None:
        return Vector3.zero()
    return Vector3.from_list(raw)


def _num(obj: Message, key: str, default: float = 0.0) -> float:
    raw = obj.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise FrameDecodeError(f"{key}: expected a number, got {raw!r}") from e


def _int(obj: Message, key: str, default: int = 0) -> int:
    raw = obj.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise FrameDecodeError(f"{key}: expected an integer, got {raw!r}") from e


def _entries(obj: Message, key: str) -> list:
    raw = obj.get(key)
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise FrameDecodeError(f"{key}: expected an array, got {type(raw).__name__}")
    return list(raw)


def _objects(obj: Message, key: str) -> List[Message]:
    entries = _entries(obj, key)
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise FrameDecodeError(f"{key}[{i}]: expected an object, got {type(entry).__name__}")
    return entries


_ZONES = {
    "hovering": Zone.HOVERING,
    "touching": Zone.TOUCHING,
}

_STATES = {
    "start": GestureState.START,
    "update": GestureState.UPDATE,
    "stop": GestureState.STOP,
}


def _zone(raw: Any) -> Zone:
    if not isinstance(raw, str):
        return Zone.NONE
    return _ZONES.get(raw, Zone.NONE)


def _state(raw: Any) -> GestureState:
    if not isinstance(raw, str):
        return GestureState.INVALID
    return _STATES.get(raw, GestureState.INVALID)


def _link(entity: Any, **refs: Any) -> None:
    # Entities are frozen; references are attached exactly once, before the
    # frame leaves the decoder.
    for name, value in refs.items():
        object.__setattr__(entity, name, value)


def get_hand_by_id(frame: Union[Frame, "_FrameBuilder"], hand_id: int) -> Optional[Hand]:
    for hand in frame.hands:
        if hand.id == hand_id:
            return hand
    return None


def get_pointable_by_id(frame: Union[Frame, "_FrameBuilder"], pointable_id: int) -> Optional[Pointable]:
    for pointable in frame.pointables:
        if pointable.id == pointable_id:
            return pointable
    return None


# ============================================================
# Builder
# ============================================================

class _FrameBuilder:
    """Mutable accumulation for one frame; `build()` freezes it."""

    def __init__(self, frame_id: int, timestamp: int) -> None:
        self.id = frame_id
        self.timestamp = timestamp
        self.hands: List[Hand] = []
        self.pointables: List[Pointable] = []
        self.fingers: List[Finger] = []
        self.tools: List[Tool] = []
        self.gestures: List[Gesture] = []
        self.interaction_box: Optional[InteractionBox] = None
        self.rotation: Optional[Matrix] = None
        self.scale_factor: float = 1.0
        self.translation: Optional[Vector3] = None
        # id(hand) -> (pointables, fingers, tools)
        self._members: Dict[int, Tuple[list, list, list]] = {}

    def add_hand(self, hand: Hand) -> None:
        self.hands.append(hand)
        self._members[id(hand)] = ([], [], [])

    def add_pointable(self, pointable: Pointable) -> None:
        self.pointables.append(pointable)
        side = self.tools if pointable.is_tool else self.fingers
        side.append(pointable)

        if pointable.hand is not None:
            members, fingers, tools = self._members[id(pointable.hand)]
            members.append(pointable)
            (tools if pointable.is_tool else fingers).append(pointable)

    def add_gesture(self, gesture: Gesture) -> None:
        self.gestures.append(gesture)

    def build(self, controller: Any = None) -> Frame:
        frame = Frame(
            id=self.id,
            timestamp=self.timestamp,
            hands=tuple(self.hands),
            pointables=tuple(self.pointables),
            fingers=tuple(self.fingers),
            tools=tuple(self.tools),
            gestures=tuple(self.gestures),
            interaction_box=self.interaction_box,
            rotation=self.rotation,
            scale_factor=self.scale_factor,
            translation=self.translation,
            controller=controller,
        )
        for hand in self.hands:
            members, fingers, tools = self._members[id(hand)]
            _link(hand, frame=frame, pointables=tuple(members), fingers=tuple(fingers), tools=tuple(tools))
        for pointable in self.pointables:
            _link(pointable, frame=frame)
        for gesture in self.gestures:
            _link(gesture, frame=frame)
        return frame


# ============================================================
# Sections
# ============================================================

def _decode_hand(h: Message) -> Hand:
    r = h.get("r")
    return Hand(
        id=_int(h, "id"),
        direction=_vec(h, "direction"),
        palm_normal=_vec(h, "palmNormal"),
        palm_position=_vec(h, "palmPosition"),
        stabilized_palm_position=_vec(h, "stabilizedPalmPosition"),
        palm_velocity=_vec(h, "palmVelocity"),
        rotation=Matrix.from_rows(r) if r is not None else Matrix.identity(),
        scale_factor=_num(h, "s", 1.0),
        sphere_center=_vec(h, "sphereCenter"),
        sphere_radius=_num(h, "sphereRadius"),
        time_visible=_num(h, "timeVisible"),
        translation=_vec(h, "t"),
    )


def _decode_interaction_box(box: Message) -> InteractionBox:
    size = _vec(box, "size")
    return InteractionBox(center=_vec(box, "center"), width=size.x, height=size.y, depth=size.z)


def _decode_pointable(p: Message, fb: _FrameBuilder) -> Pointable:
    is_tool = bool(p.get("tool", False))
    hand_id = _int(p, "handId", -1)
    common = dict(
        id=_int(p, "id"),
        hand_id=hand_id,
        length=_num(p, "length"),
        direction=_vec(p, "direction"),
        tip_position=_vec(p, "tipPosition"),
        stabilized_tip_position=_vec(p, "stabilizedTipPosition"),
        tip_velocity=_vec(p, "tipVelocity"),
        touch_distance=_num(p, "touchDist"),
        touch_zone=_zone(p.get("touchZone")),
        time_visible=_num(p, "timeVisible"),
        hand=get_hand_by_id(fb, hand_id),
    )
    if is_tool:
        return Tool(width=_num(p, "width"), **common)
    return Finger(**common)


def _circle(g: Message) -> Dict[str, Any]:
    return dict(
        center=_vec(g, "center"),
        normal=_vec(g, "normal"),
        progress=_num(g, "progress"),
        radius=_num(g, "radius"),
    )


def _swipe(g: Message) -> Dict[str, Any]:
    return dict(
        start_position=_vec(g, "startPosition"),
        position=_vec(g, "position"),
        direction=_vec(g, "direction"),
        speed=_num(g, "speed"),
    )


def _tap(g: Message) -> Dict[str, Any]:
    return dict(
        position=_vec(g, "position"),
        direction=_vec(g, "direction"),
        progress=_num(g, "progress"),
    )


_GESTURES: Dict[str, Tuple[Type[Gesture], Callable[[Message], Dict[str, Any]]]] = {
    GestureType.CIRCLE.value: (CircleGesture, _circle),
    GestureType.SWIPE.value: (SwipeGesture, _swipe),
    GestureType.SCREEN_TAP.value: (ScreenTapGesture, _tap),
    GestureType.KEY_TAP.value: (KeyTapGesture, _tap),
}


def _decode_gesture(g: Message, fb: _FrameBuilder) -> Gesture:
    raw_type = g.get("type")
    entry = _GESTURES.get(raw_type) if isinstance(raw_type, str) else None
    if entry is None:
        raise MalformedGestureType(raw_type)
    cls, variant_fields = entry

    hands = []
    for hand_id in _entries(g, "handIds"):
        hand = get_hand_by_id(fb, hand_id)
        if hand is None:
            logger.debug("gesture %s: hand %s not in frame %s", g.get("id"), hand_id, fb.id)
            continue
        if hand in hands:
            continue
        hands.append(hand)

    pointables = []
    for pointable_id in _entries(g, "pointableIds"):
        pointable = get_pointable_by_id(fb, pointable_id)
        if pointable is None:
            logger.debug("gesture %s: pointable %s not in frame %s", g.get("id"), pointable_id, fb.id)
            continue
        if pointable in pointables:
            continue
        pointables.append(pointable)

    kwargs = variant_fields(g)
    if cls is CircleGesture and pointables:
        kwargs["pointable"] = pointables[0]

    return cls(
        id=_int(g, "id"),
        state=_state(g.get("state")),
        duration=_int(g, "duration"),
        hands=tuple(hands),
        pointables=tuple(pointables),
        **kwargs,
    )


# ============================================================
# Entry points
# ============================================================

def decode_frame(message: Message, controller: Any = None) -> Frame:
    """
    Build a Frame from an already-parsed wire message.

    Absent hands / pointables / gestures / interactionBox / r / t mean "no data
    this frame". Absent "s" is 1.0.
    Raises MalformedGestureType on an unknown gesture type, FrameDecodeError on
    structurally broken input (non-object message or entry, non-array
    collection, short or non-numeric vector, non-numeric scalar).
    """
    if not isinstance(message, Mapping):
        raise FrameDecodeError(f"frame message must be an object, got {type(message).__name__}")

    fb = _FrameBuilder(frame_id=_int(message, "id"), timestamp=_int(message, "timestamp"))

    for h in _objects(message, "hands"):
        fb.add_hand(_decode_hand(h))

    box = message.get("interactionBox")
    if box is not None:
        if not isinstance(box, Mapping):
            raise FrameDecodeError(f"interactionBox: expected an object, got {type(box).__name__}")
        fb.interaction_box = _decode_interaction_box(box)

    for p in _objects(message, "pointables"):
        fb.add_pointable(_decode_pointable(p, fb))

    for g in _objects(message, "gestures"):
        fb.add_gesture(_decode_gesture(g, fb))

    # motion since previous frame
    if message.get("r") is not None:
        fb.rotation = Matrix.from_rows(message["r"])
    fb.scale_factor = _num(message, "s", 1.0)
    if message.get("t") is not None:
        fb.translation = Vector3.from_list(message["t"])

    return fb.build(controller=controller)


def parse_message(data: Union[str, bytes]) -> Any:
    """Raw websocket payload -> JSON value. Raises orjson.JSONDecodeError."""
    return orjson.loads(data)


def decode_message(data: Union[str, bytes], controller: Any = None) -> Frame:
    return decode_frame(parse_message(data), controller=controller)
