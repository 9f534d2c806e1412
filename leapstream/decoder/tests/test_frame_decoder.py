import dataclasses

import pytest

from leapstream.core.errors import FrameDecodeError, MalformedGestureType
from leapstream.core.types import (
    Vector3, Matrix, Zone, GestureState, GestureType,
    Finger, Tool, CircleGesture, SwipeGesture, ScreenTapGesture, KeyTapGesture,
)
from leapstream.decoder.frame_decoder import decode_frame, decode_message


def hand(hid, **kw):
    h = {
        "id": hid,
        "direction": [0.0, 0.0, -1.0],
        "palmNormal": [0.0, -1.0, 0.0],
        "palmPosition": [0.0, 200.0, 0.0],
        "stabilizedPalmPosition": [0.0, 199.0, 0.0],
        "palmVelocity": [1.0, 2.0, 3.0],
        "r": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
        "s": 1.0,
        "sphereCenter": [0.0, 180.0, 10.0],
        "sphereRadius": 80.0,
        "timeVisible": 1.5,
        "t": [0.0, 0.0, 0.0],
    }
    h.update(kw)
    return h


def pointable(pid, hand_id=-1, tool=False, **kw):
    p = {
        "id": pid,
        "handId": hand_id,
        "tool": tool,
        "length": 50.0,
        "width": 8.0,
        "direction": [0.0, 0.0, -1.0],
        "tipPosition": [1.0, 2.0, 3.0],
        "stabilizedTipPosition": [1.0, 2.0, 3.0],
        "tipVelocity": [0.0, 0.0, 0.0],
        "touchDist": 0.3,
        "touchZone": "none",
        "timeVisible": 0.5,
    }
    p.update(kw)
    return p


def gesture(gid, gtype, hand_ids=(), pointable_ids=(), state="update", duration=0, **kw):
    g = {
        "id": gid,
        "type": gtype,
        "state": state,
        "duration": duration,
        "handIds": list(hand_ids),
        "pointableIds": list(pointable_ids),
    }
    g.update(kw)
    return g


def message(**kw):
    m = {"id": 1, "timestamp": 1000}
    m.update(kw)
    return m


def test_single_hand_single_finger():
    f = decode_frame(message(hands=[hand(1)], pointables=[pointable(10, hand_id=1)]))

    assert f.id == 1 and f.timestamp == 1000
    assert [h.id for h in f.hands] == [1]
    assert [p.id for p in f.fingers] == [10]
    assert f.tools == ()

    finger = f.fingers[0]
    assert isinstance(finger, Finger)
    assert finger.is_finger and not finger.is_tool
    assert finger.hand is f.hands[0]
    assert finger.hand.id == 1
    assert f.hands[0].fingers.count(finger) == 1


def test_hands_and_pointables_are_cross_linked():
    f = decode_frame(message(
        hands=[hand(1), hand(2)],
        pointables=[
            pointable(10, hand_id=1),
            pointable(11, hand_id=1, tool=True),
            pointable(12, hand_id=2),
            pointable(13, hand_id=-1),
            pointable(14, hand_id=99, tool=True),
        ],
    ))

    assert [p.id for p in f.pointables] == [10, 11, 12, 13, 14]
    assert [p.id for p in f.fingers] == [10, 12, 13]
    assert [p.id for p in f.tools] == [11, 14]

    # fingers / tools partition pointables
    fingers, tools = set(f.fingers), set(f.tools)
    assert fingers | tools == set(f.pointables)
    assert not (fingers & tools)

    for p in f.pointables:
        if p.hand is None:
            continue
        assert p.hand in f.hands
        assert p.hand.pointables.count(p) == 1
        side = p.hand.tools if p.is_tool else p.hand.fingers
        assert side.count(p) == 1

    h1, h2 = f.hands
    assert [p.id for p in h1.pointables] == [10, 11]
    assert [p.id for p in h1.fingers] == [10]
    assert [p.id for p in h1.tools] == [11]
    assert [p.id for p in h2.pointables] == [12]
    assert f.pointable(13).hand is None
    assert f.pointable(14).hand is None
    assert h1.finger(10) is f.pointable(10)
    assert h1.tool(10) is None


def test_tool_carries_width():
    f = decode_frame(message(pointables=[pointable(3, tool=True, width=6.5)]))
    t = f.tools[0]
    assert isinstance(t, Tool)
    assert t.is_tool
    assert t.width == 6.5


def test_empty_message_is_a_valid_frame():
    f = decode_frame({"id": 7, "timestamp": 123})

    assert f.is_valid
    assert f.id == 7 and f.timestamp == 123
    assert f.hands == () and f.pointables == () and f.fingers == () and f.tools == ()
    assert f.gestures == ()
    assert f.interaction_box is None
    assert f.rotation is None
    assert f.translation is None
    assert f.scale_factor == 1.0


def test_no_gestures_key():
    f = decode_frame(message(hands=[hand(1)]))
    assert f.gestures == ()


@pytest.mark.parametrize("raw, zone", [
    ("touching", Zone.TOUCHING),
    ("hovering", Zone.HOVERING),
    ("none", Zone.NONE),
    ("bogus", Zone.NONE),
    (None, Zone.NONE),
    (3, Zone.NONE),
])
def test_touch_zone(raw, zone):
    f = decode_frame(message(pointables=[pointable(1, touchZone=raw)]))
    assert f.pointables[0].touch_zone is zone


def test_missing_touch_zone_is_none():
    p = pointable(1)
    del p["touchZone"]
    f = decode_frame(message(pointables=[p]))
    assert f.pointables[0].touch_zone is Zone.NONE


def test_circle_pointable_is_first_resolved():
    f = decode_frame(message(
        pointables=[pointable(4), pointable(5)],
        gestures=[gesture(1, "circle", pointable_ids=[77, 5, 4],
                          center=[1, 2, 3], normal=[0, 0, 1], progress=1.25, radius=30.0)],
    ))
    g = f.gestures[0]
    assert isinstance(g, CircleGesture)
    assert g.type is GestureType.CIRCLE
    assert [p.id for p in g.pointables] == [5, 4]
    assert g.pointable is g.pointables[0]
    assert g.pointable.id == 5
    assert g.center == Vector3(1.0, 2.0, 3.0)
    assert g.progress == 1.25
    assert g.radius == 30.0


def test_circle_without_pointables():
    f = decode_frame(message(gestures=[gesture(1, "circle")]))
    assert f.gestures[0].pointable is None
    assert f.gestures[0].pointables == ()


def test_unresolved_gesture_hand_is_skipped():
    f = decode_frame(message(
        hands=[hand(1)],
        gestures=[gesture(2, "swipe", hand_ids=[99], speed=700.0,
                          startPosition=[0, 0, 0], position=[10, 0, 0], direction=[1, 0, 0])],
    ))
    g = f.gestures[0]
    assert isinstance(g, SwipeGesture)
    assert g.hands == ()
    assert g.speed == 700.0
    assert g.position == Vector3(10.0, 0.0, 0.0)
    assert g.direction == Vector3(1.0, 0.0, 0.0)


def test_gesture_resolves_hands_and_pointables():
    f = decode_frame(message(
        hands=[hand(1), hand(2)],
        pointables=[pointable(10, hand_id=2)],
        gestures=[gesture(3, "keyTap", hand_ids=[2, 1], pointable_ids=[10],
                          position=[5, 6, 7], direction=[0, -1, 0], progress=1.0)],
    ))
    g = f.gestures[0]
    assert isinstance(g, KeyTapGesture)
    assert [h.id for h in g.hands] == [2, 1]
    assert g.hands[0] is f.hand(2)
    assert g.pointables == (f.pointable(10),)
    assert g.position == Vector3(5.0, 6.0, 7.0)
    assert g.progress == 1.0


def test_repeated_gesture_ids_resolve_once():
    f = decode_frame(message(
        hands=[hand(1)],
        pointables=[pointable(4, hand_id=1), pointable(5, hand_id=1)],
        gestures=[gesture(1, "circle", hand_ids=[1, 1], pointable_ids=[5, 5, 4, 5])],
    ))
    g = f.gestures[0]
    assert g.hands == (f.hand(1),)
    assert [p.id for p in g.pointables] == [5, 4]
    assert g.pointable is f.pointable(5)


def test_screen_tap_fields():
    f = decode_frame(message(gestures=[gesture(4, "screenTap", position=[1, 1, 1], direction=[0, 0, -1], progress=0.5)]))
    g = f.gestures[0]
    assert isinstance(g, ScreenTapGesture)
    assert g.type is GestureType.SCREEN_TAP
    assert g.direction == Vector3(0.0, 0.0, -1.0)
    assert g.progress == 0.5


@pytest.mark.parametrize("raw, state", [
    ("start", GestureState.START),
    ("update", GestureState.UPDATE),
    ("stop", GestureState.STOP),
    ("paused", GestureState.INVALID),
    (None, GestureState.INVALID),
])
def test_gesture_state(raw, state):
    f = decode_frame(message(gestures=[gesture(1, "swipe", state=raw)]))
    assert f.gestures[0].state is state


def test_gesture_duration_seconds():
    f = decode_frame(message(gestures=[gesture(1, "keyTap", duration=250000)]))
    g = f.gestures[0]
    assert g.duration == 250000
    assert g.duration_seconds == pytest.approx(0.25)


@pytest.mark.parametrize("gtype", ["unknown", "", None, "Circle"])
def test_unknown_gesture_type_raises(gtype):
    with pytest.raises(MalformedGestureType) as exc:
        decode_frame(message(gestures=[gesture(1, "circle"), gesture(2, gtype)]))
    assert exc.value.gesture_type == gtype


def test_malformed_gesture_is_a_decode_error():
    assert issubclass(MalformedGestureType, FrameDecodeError)
    assert issubclass(FrameDecodeError, ValueError)


def test_frame_motion_fields():
    f = decode_frame(message(r=[[1, 2, 3], [4, 5, 6], [7, 8, 9]], s=0.98, t=[1.5, -2.0, 0.25]))
    assert f.rotation == Matrix(Vector3(1, 2, 3), Vector3(4, 5, 6), Vector3(7, 8, 9))
    assert f.rotation.to_rows()[1] == (4.0, 5.0, 6.0)
    assert f.scale_factor == 0.98
    assert f.translation == Vector3(1.5, -2.0, 0.25)


def test_hand_fields():
    f = decode_frame(message(hands=[hand(4, r=[[0, 1, 0], [-1, 0, 0], [0, 0, 1]], s=1.1, t=[3, 2, 1])]))
    h = f.hands[0]
    assert h.rotation.x_basis == Vector3(0.0, 1.0, 0.0)
    assert h.rotation.y_basis == Vector3(-1.0, 0.0, 0.0)
    assert h.scale_factor == 1.1
    assert h.translation == Vector3(3.0, 2.0, 1.0)
    assert h.palm_velocity == Vector3(1.0, 2.0, 3.0)
    assert h.stabilized_palm_position == Vector3(0.0, 199.0, 0.0)
    assert h.sphere_radius == 80.0
    assert h.time_visible == 1.5


def test_interaction_box():
    f = decode_frame(message(interactionBox={"center": [0, 200, 0], "size": [235, 235, 147]}))
    box = f.interaction_box
    assert box.center == Vector3(0.0, 200.0, 0.0)
    assert (box.width, box.height, box.depth) == (235.0, 235.0, 147.0)


def test_every_entity_points_back_to_frame():
    owner = object()
    f = decode_frame(message(
        hands=[hand(1)],
        pointables=[pointable(10, hand_id=1), pointable(11, tool=True)],
        gestures=[gesture(1, "circle", pointable_ids=[10])],
    ), controller=owner)

    assert f.controller is owner
    assert all(h.frame is f for h in f.hands)
    assert all(p.frame is f for p in f.pointables)
    assert all(g.frame is f for g in f.gestures)


def test_frame_is_frozen():
    f = decode_frame(message(hands=[hand(1)], pointables=[pointable(10, hand_id=1)]))
    with pytest.raises(dataclasses.FrozenInstanceError):
        f.id = 2
    with pytest.raises(dataclasses.FrozenInstanceError):
        f.hands[0].id = 2
    assert isinstance(f.hands, tuple)
    assert isinstance(f.hands[0].fingers, tuple)


def test_decode_message_from_text():
    f = decode_message(b'{"id": 42, "timestamp": 5, "hands": [], "s": 1.0}')
    assert f.id == 42
    assert f.hands == ()


def test_short_vector_is_rejected():
    with pytest.raises(FrameDecodeError):
        decode_frame(message(t=[1, 2]))


def test_non_object_message_is_rejected():
    with pytest.raises(FrameDecodeError):
        decode_frame([1, 2, 3])


@pytest.mark.parametrize("fields", [
    {"hands": [None]},
    {"hands": ["x"]},
    {"hands": 5},
    {"hands": {"id": 1}},
    {"pointables": [None]},
    {"pointables": "abc"},
    {"gestures": [7]},
    {"interactionBox": "x"},
    {"interactionBox": {"size": 3}},
    {"t": 3},
    {"t": "abc"},
    {"t": [1, "x", 3]},
    {"r": [[1, 0, 0], None, [0, 0, 1]]},
    {"id": [1]},
    {"timestamp": "soon"},
    {"s": {}},
])
def test_wrong_typed_content_is_a_decode_error(fields):
    with pytest.raises(FrameDecodeError):
        decode_frame(message(**fields))


@pytest.mark.parametrize("entry", [
    {"palmPosition": 3},
    {"direction": [0, None, 1]},
    {"sphereRadius": "big"},
    {"r": 1},
])
def test_wrong_typed_hand_field_is_a_decode_error(entry):
    with pytest.raises(FrameDecodeError):
        decode_frame(message(hands=[hand(1, **entry)]))


def test_wrong_typed_gesture_ids():
    with pytest.raises(FrameDecodeError):
        decode_frame(message(hands=[hand(1)], gestures=[gesture(1, "swipe", handIds=1)]))
    with pytest.raises(FrameDecodeError):
        decode_frame(message(gestures=[gesture(1, "keyTap", duration="long")]))


def test_wrong_typed_text_message():
    with pytest.raises(FrameDecodeError):
        decode_message(b'{"id": 1, "timestamp": 1, "hands": [null]}')
