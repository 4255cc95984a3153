"""
Main entry point for the RUNESIGHT application.

Recognizes element markers in still images or in a live camera/video feed.

Usage:
    python main.py                          # Live camera
    python main.py --video clip.mp4         # Video file
    python main.py --image a.png b.png      # Still images
    python main.py --debug --verbose        # Debug windows + debug logging
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import cv2

from elements import ElementBoard, element_for_marker
from marker_detect import Frame, FrameFormatError, MarkerDetection, MarkerDetector
from recognition import PatternLibrary
from ui import UserInterface
from utils import get_config, setup_logging, validate_config
from video import VideoProcessor

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="RUNESIGHT - Element marker recognition",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Controls (live mode):
  D  - Toggle debug image windows
  P  - Pause/resume
  H  - Print help
  Q  - Quit
        """,
    )

    parser.add_argument("--config", "-c", help="Path to JSON configuration file")
    parser.add_argument("--image", "-i", nargs="+", metavar="PATH", help="Process still images and exit")
    parser.add_argument("--video", help="Read frames from a video file instead of the camera")
    parser.add_argument("--camera", type=int, help="Camera index (overrides config)")
    parser.add_argument("--mirror", action="store_true", help="Mirror frames vertically before detection")
    parser.add_argument("--debug", "-d", action="store_true", help="Produce and show intermediate images")
    parser.add_argument(
        "--verbose", "-V",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    return parser.parse_args(argv)


def build_detector(config, board: Optional[ElementBoard] = None, ui: Optional[UserInterface] = None) -> MarkerDetector:
    """Create the detector from configuration, wiring consumer and debug sink."""
    patterns_file = config.get("patterns_file")
    library = PatternLibrary.from_json(patterns_file) if patterns_file else PatternLibrary.default()
    return MarkerDetector(config.get("detection", {}), library=library, consumer=board, debug_sink=ui)


def describe(detection: Optional[MarkerDetection]) -> str:
    if detection is None:
        return "no marker"
    cx, cy = detection.centroid
    element = element_for_marker(detection.marker_id)
    return (
        f"marker {detection.marker_id} ({element.name.lower()}) "
        f"rotation {detection.rotation_degrees} at ({cx:.1f}, {cy:.1f})"
    )


def run_images(paths: List[str], detector: MarkerDetector) -> int:
    """Process still images, printing one line each. Returns an exit code."""
    failures = 0
    for path in paths:
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None:
            LOGGER.error("Could not read image: %s", path)
            failures += 1
            continue

        detection = detector.process_frame(Frame.from_bgr(image))
        print(f"{path}: {describe(detection)}")

        if detector.config.emit_debug_images:
            for name, debug_image in detector.get_debug_images().items():
                LOGGER.debug("%s: %s image %s", path, name, debug_image.shape)

    return 1 if failures else 0


def run_live(config, detector: MarkerDetector, board: ElementBoard, ui: UserInterface, video_path: Optional[str]) -> int:
    """Run detection on the camera or a video file until the user quits."""
    video = VideoProcessor(config)
    opened = video.load_video_file(video_path) if video_path else video.initialize()
    if not opened:
        LOGGER.error("Failed to open video source")
        return 1

    if not ui.initialize():
        video.cleanup()
        return 1

    def on_frame(frame: Frame) -> bool:
        if ui.paused:
            return ui.handle_events()

        detection = detector.process_frame(frame)
        display = frame.to_rgba_array()
        display = cv2.cvtColor(display, cv2.COLOR_RGBA2BGR)

        elements = ", ".join(e.name.lower() for e in board.elements()) or "none"
        ui.display_frame(display, status=f"{describe(detection)} | active: {elements}")
        return ui.handle_events()

    try:
        video.run(on_frame)
    finally:
        video.cleanup()
        ui.cleanup()

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level)

    config = get_config(args.config)
    if args.camera is not None:
        config["camera_id"] = args.camera
    if args.mirror:
        config["mirror_vertical"] = True
    if args.debug:
        config["detection"]["emit_debug_images"] = True
        config["show_debug_windows"] = True

    if not validate_config(config):
        sys.exit(1)

    LOGGER.info("Starting RUNESIGHT...")

    board = ElementBoard()
    ui = UserInterface(config)
    try:
        detector = build_detector(config, board=board, ui=None if args.image else ui)
    except (ValueError, OSError) as e:
        LOGGER.error("Failed to set up detector: %s", e)
        sys.exit(1)

    try:
        if args.image:
            code = run_images(args.image, detector)
        else:
            code = run_live(config, detector, board, ui, args.video)
    except FrameFormatError as e:
        LOGGER.error("Malformed frame: %s", e)
        code = 1

    LOGGER.info("RUNESIGHT exited with code %d", code)
    sys.exit(code)


if __name__ == "__main__":
    main()
