from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from leapstream.core.config import load_settings
from leapstream.core.types import Frame, GestureType
from leapstream.runtime.controller import Controller
from leapstream.runtime.listener import Listener


class PrintListener(Listener):
    """One line per frame, plus connection transitions."""

    def on_init(self, controller):
        print(f"[leapstream] ready ({controller.settings.url})")

    def on_connect(self, controller):
        print("[leapstream] connected")

    def on_disconnect(self, controller):
        print("[leapstream] disconnected")

    def on_exit(self, controller):
        print("[leapstream] exit")

    def on_frame(self, controller, frame: Frame):
        print(
            f"[frame {frame.id}] t={frame.timestamp} hands={len(frame.hands)} "
            f"fingers={len(frame.fingers)} tools={len(frame.tools)} gestures={len(frame.gestures)}"
        )
        for g in frame.gestures:
            print(f"   {g.type.value:9s} id={g.id} state={g.state.value} {g.duration_seconds:.3f}s")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Print tracking frames from the local tracking service")
    parser.add_argument("--host", default=None, help="Service host (default: localhost)")
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--gestures", action="store_true", help="Ask the service to report gestures")
    parser.add_argument("--background", action="store_true", help="Request frames while not focused")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config).with_host(args.host)

    with Controller(settings=settings, listener=PrintListener()) as controller:
        if args.gestures:
            for t in GestureType:
                controller.enable_gesture(t)
        if args.background:
            controller.set_policy_flags(Controller.POLICY_BACKGROUND_FRAMES)

        controller.connect()
        print("[leapstream] Ctrl+C to exit.")
        try:
            while True:
                time.sleep(0.5)
        except KeyboardInterrupt:
            print("\n[leapstream] exiting")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
