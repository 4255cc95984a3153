"""
Demo script for an offline RUNESIGHT demonstration.

Renders each built-in marker onto a synthetic scene at every quarter turn,
runs the detector on it and feeds detections to an element board. Optionally
writes printable marker images and shows the detector's debug windows.

Usage:
    python examples/run_demo.py
    python examples/run_demo.py --save-markers markers/
    python examples/run_demo.py --show
"""

import argparse
import logging
import os
import sys

import cv2
import numpy as np

# Add src directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from elements import ElementBoard, element_for_marker  # type: ignore
from marker_detect import Frame, MarkerDetector  # type: ignore
from overlay import OverlayRenderer  # type: ignore
from recognition import PatternLibrary  # type: ignore
from ui import UserInterface  # type: ignore
from utils import get_config, setup_logging  # type: ignore


LOGGER = logging.getLogger(__name__)

BACKGROUND = 40
PAPER = 230


def _render_scene(grid, cell_size=50, width=800, height=600):
    """Marker on a white disc over a dark background, as a BGR image."""
    marker = OverlayRenderer.render_marker(grid, cell_size)
    marker = np.where(marker > 0, PAPER, 0).astype(np.uint8)

    scene = np.full((height, width), BACKGROUND, dtype=np.uint8)
    cx, cy = width // 2, height // 2
    side = marker.shape[0]
    cv2.circle(scene, (cx, cy), int(side * 0.87), PAPER, -1)
    scene[cy - side // 2:cy - side // 2 + side, cx - side // 2:cx - side // 2 + side] = marker
    return cv2.cvtColor(scene, cv2.COLOR_GRAY2BGR)


def save_markers(library: PatternLibrary, directory: str, cell_size: int = 80):
    """Write one printable PNG per marker, with a white margin."""
    os.makedirs(directory, exist_ok=True)
    for pattern in library:
        image = OverlayRenderer.render_marker(pattern.reference, cell_size)
        image = cv2.copyMakeBorder(image, cell_size, cell_size, cell_size, cell_size,
                                   cv2.BORDER_CONSTANT, value=255)
        path = os.path.join(directory, f"marker_{pattern.marker_id}.png")
        cv2.imwrite(path, image)
        print(f"Saved {path}")


def run_synthetic_demo(show: bool = False) -> bool:
    """Detect every marker at every rotation. Returns True if all were recognized."""
    print("RUNESIGHT - Synthetic Demo")
    print("=" * 40)

    config = get_config()
    config["detection"]["emit_debug_images"] = show
    config["show_debug_windows"] = show

    ui = UserInterface(config)
    if show and not ui.initialize():
        print("Failed to initialize user interface")
        return False

    board = ElementBoard()
    detector = MarkerDetector(config["detection"], consumer=board, debug_sink=ui if show else None)

    failures = 0
    try:
        for pattern in detector.library:
            base = _render_scene(pattern.reference)
            for turns in range(4):
                image = np.ascontiguousarray(np.rot90(base, k=-turns))
                detection = detector.process_frame(Frame.from_bgr(image))

                expected = (pattern.marker_id, 90 * turns)
                got = None if detection is None else (detection.marker_id, detection.rotation_degrees)
                status = "ok" if got == expected else "MISMATCH"
                if got != expected:
                    failures += 1
                print(f"  marker {expected[0]} at {expected[1]:3d} deg -> {got} [{status}]")

                if show:
                    final = detector.get_debug_images().get("final", image)
                    ui.display_frame(final, status=f"marker {expected[0]} turn {turns}")
                    cv2.waitKey(500)

        names = ", ".join(e.name.lower() for e in board.elements()) or "none"
        print(f"\nActive elements: {names}")
        for event in board.history:
            print(f"  {event.first.name.lower()} + {event.second.name.lower()} -> {event.result.name.lower()}")
    finally:
        if show:
            ui.cleanup()

    print(f"\n{failures} mismatches")
    return failures == 0


def main():
    """Main entry point for demo."""
    parser = argparse.ArgumentParser(description="RUNESIGHT synthetic demo")
    parser.add_argument("--save-markers", metavar="DIR", help="Write printable marker images and exit")
    parser.add_argument("--show", action="store_true", help="Show debug windows while running")
    args = parser.parse_args()

    setup_logging(level=logging.WARNING)

    if args.save_markers:
        save_markers(PatternLibrary.default(), args.save_markers)
        for marker_id in PatternLibrary.default().marker_ids():
            print(f"  marker {marker_id}: {element_for_marker(marker_id).name.lower()}")
        return

    if not run_synthetic_demo(show=args.show):
        sys.exit(1)


if __name__ == "__main__":
    main()
