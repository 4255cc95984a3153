"""
Integration tests for the RUNESIGHT pipeline.

Tests the complete pipeline from frame delivery through marker recognition and
element combination, using synthetic scenes for reproducible results.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import cv2
import numpy as np
import pytest

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import main as runesight_main
from elements import ElementBoard, ElementType
from marker_detect import Frame, MarkerDetector
from overlay import OverlayRenderer
from recognition import DEFAULT_REFERENCES, PatternLibrary
from utils import DEFAULT_CONFIG, get_config, save_config, validate_config
from video import VideoProcessor

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineMetrics:
    """Metrics collected during pipeline testing."""

    total_frames: int = 0
    detections: int = 0
    marker_ids: List[Optional[int]] = field(default_factory=list)
    rotations: List[Optional[int]] = field(default_factory=list)
    processing_times: List[float] = field(default_factory=list)

    @property
    def detection_rate(self) -> float:
        return self.detections / max(self.total_frames, 1) * 100

    @property
    def avg_processing_time(self) -> float:
        return np.mean(self.processing_times) if self.processing_times else 0.0

    def to_dict(self) -> Dict:
        return {
            "total_frames": self.total_frames,
            "detection_rate": self.detection_rate,
            "avg_processing_time_ms": self.avg_processing_time * 1000,
        }


class SyntheticMarkerScene:
    """Generate synthetic marker frames for testing."""

    BACKGROUND = 40
    PAPER = 230

    @classmethod
    def create(
        cls,
        marker_id: int = 2,
        cell_size: int = 50,
        width: int = 800,
        height: int = 600,
    ) -> np.ndarray:
        """
        Render a marker centred on a white disc over a dark background.

        The disc keeps the background from forming a frame-sized quad.

        Returns:
            BGR frame
        """
        grid = np.array(DEFAULT_REFERENCES[marker_id], dtype=np.uint8)
        marker = OverlayRenderer.render_marker(grid, cell_size)
        marker = np.where(marker > 0, cls.PAPER, 0).astype(np.uint8)

        gray = np.full((height, width), cls.BACKGROUND, dtype=np.uint8)
        cx, cy = width // 2, height // 2
        side = marker.shape[0]
        cv2.circle(gray, (cx, cy), int(side * 0.87), cls.PAPER, -1)

        x0, y0 = cx - side // 2, cy - side // 2
        gray[y0:y0 + side, x0:x0 + side] = marker
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    @classmethod
    def create_rotation_sequence(cls, marker_id: int = 2) -> List[np.ndarray]:
        """Four frames with the marker turned clockwise by 0, 90, 180, 270 degrees."""
        base = cls.create(marker_id)
        return [np.ascontiguousarray(np.rot90(base, k=-turns)) for turns in range(4)]

    @classmethod
    def tilt(cls, image: np.ndarray, inset: int = 60) -> np.ndarray:
        """Keystone the frame as if viewed from below."""
        h, w = image.shape[:2]
        src = np.float32([[0, 0], [w - 1, 0], [w - 1, h - 1], [0, h - 1]])
        dst = np.float32([[inset, 0], [w - 1 - inset, 0], [w - 1, h - 1], [0, h - 1]])
        M = cv2.getPerspectiveTransform(src, dst)
        background = (cls.BACKGROUND,) * 3
        return cv2.warpPerspective(image, M, (w, h), flags=cv2.INTER_NEAREST, borderValue=background)


class FakeCapture:
    """Stands in for cv2.VideoCapture, replaying a list of BGR frames."""

    def __init__(self, frames: List[np.ndarray], fps: int = 30):
        self.frames = list(frames)
        self.fps = fps
        self.released = False
        self.reads = 0

    def isOpened(self) -> bool:
        return not self.released

    def read(self):
        if self.reads >= len(self.frames):
            return False, None
        frame = self.frames[self.reads]
        self.reads += 1
        return True, frame

    def get(self, prop):
        h, w = self.frames[0].shape[:2]
        return {
            cv2.CAP_PROP_FRAME_WIDTH: w,
            cv2.CAP_PROP_FRAME_HEIGHT: h,
            cv2.CAP_PROP_FPS: self.fps,
        }.get(prop, 0)

    def release(self):
        self.released = True


class PipelineTester:
    """Test harness for the RUNESIGHT pipeline."""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or get_config()
        self.board = ElementBoard()
        self.detector = MarkerDetector(self.config.get("detection", {}), consumer=self.board)
        self.video = VideoProcessor(self.config)
        self.metrics = PipelineMetrics()

    def process_frames(self, frames: List[np.ndarray]) -> PipelineMetrics:
        """
        Replay frames through VideoProcessor.run into the detector.

        Args:
            frames: List of BGR frames

        Returns:
            Collected metrics
        """
        self.metrics = PipelineMetrics()
        self.video.cap = FakeCapture(frames)

        def on_frame(frame: Frame) -> bool:
            start_time = time.time()
            detection = self.detector.process_frame(frame)
            self.metrics.processing_times.append(time.time() - start_time)

            self.metrics.total_frames += 1
            if detection is not None:
                self.metrics.detections += 1
            self.metrics.marker_ids.append(detection.marker_id if detection else None)
            self.metrics.rotations.append(detection.rotation_degrees if detection else None)
            return True

        self.video.run(on_frame)
        self.video.cleanup()
        return self.metrics


# ============================================================================
# Test Cases
# ============================================================================

class TestFrameDelivery:
    """Tests for the observer-style frame loop."""

    def test_delivers_every_frame_in_order(self):
        frames = [np.full((20, 30, 3), i, dtype=np.uint8) for i in range(5)]
        video = VideoProcessor()
        video.cap = FakeCapture(frames)

        seen = []
        delivered = video.run(lambda frame: seen.append(frame.to_rgba_array()[0, 0, 0]))

        assert delivered == 5
        assert seen == [0, 1, 2, 3, 4]

    def test_listener_can_stop_loop(self):
        frames = [np.zeros((20, 30, 3), dtype=np.uint8)] * 10
        video = VideoProcessor()
        video.cap = FakeCapture(frames)

        delivered = video.run(lambda frame: False)
        assert delivered == 1

    def test_stop_from_listener(self):
        frames = [np.zeros((20, 30, 3), dtype=np.uint8)] * 10
        video = VideoProcessor()
        video.cap = FakeCapture(frames)

        def on_frame(frame):
            if video.cap.reads == 3:
                video.stop()

        assert video.run(on_frame) == 3

    def test_max_frames(self):
        frames = [np.zeros((20, 30, 3), dtype=np.uint8)] * 10
        video = VideoProcessor()
        video.cap = FakeCapture(frames)

        assert video.run(lambda frame: True, max_frames=4) == 4

    def test_frames_are_rgba(self):
        video = VideoProcessor()
        video.cap = FakeCapture([np.zeros((20, 30, 3), dtype=np.uint8)])

        frame = video.capture_frame()
        assert (frame.width, frame.height) == (30, 20)
        assert frame.to_rgba_array().shape == (20, 30, 4)
        assert video.capture_frame() is None

    def test_mirror_vertical(self):
        image = np.zeros((4, 2, 3), dtype=np.uint8)
        image[0] = 255
        video = VideoProcessor({"mirror_vertical": True})

        rgba = video.to_frame(image).to_rgba_array()
        assert rgba[3, 0, 0] == 255
        assert rgba[0, 0, 0] == 0

    def test_frame_info(self):
        video = VideoProcessor({"mirror_vertical": True})
        assert video.get_frame_info() == {}

        video.cap = FakeCapture([np.zeros((20, 30, 3), dtype=np.uint8)])
        info = video.get_frame_info()
        assert info["width"] == 30
        assert info["height"] == 20
        assert info["mirror_vertical"] is True

    def test_no_source(self):
        video = VideoProcessor()
        assert video.capture_frame() is None
        assert video.run(lambda frame: True) == 0


class TestConfiguration:
    """Tests for configuration loading and validation."""

    def test_defaults(self):
        config = get_config()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG
        assert validate_config(config)

    def test_nested_merge(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"camera_id": 2, "detection": {"warp_size": 240}}))

        config = get_config(str(path))
        assert config["camera_id"] == 2
        assert config["detection"]["warp_size"] == 240
        assert config["detection"]["grid_size"] == 6
        assert DEFAULT_CONFIG["detection"]["warp_size"] == 300

    def test_missing_file_uses_defaults(self, tmp_path):
        assert get_config(str(tmp_path / "missing.json")) == DEFAULT_CONFIG

    def test_invalid_json_uses_defaults(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert get_config(str(path)) == DEFAULT_CONFIG

    def test_save_and_reload(self, tmp_path):
        config = get_config()
        config["mirror_vertical"] = True
        path = str(tmp_path / "saved.json")

        assert save_config(config, path)
        assert get_config(path)["mirror_vertical"] is True

    def test_validation_failures(self):
        config = get_config()
        del config["detection"]
        assert not validate_config(config)

        config = get_config()
        config["video_width"] = 0
        assert not validate_config(config)

        config = get_config()
        config["detection"]["grid_threshold"] = 512
        assert not validate_config(config)


class TestPipelineIntegration:
    """End-to-end tests for the full pipeline."""

    def test_rotation_sequence(self):
        tester = PipelineTester()
        metrics = tester.process_frames(SyntheticMarkerScene.create_rotation_sequence(2))

        assert metrics.total_frames == 4
        assert metrics.detection_rate == 100
        assert metrics.marker_ids == [2, 2, 2, 2]
        assert metrics.rotations == [0, 90, 180, 270]

    def test_mirrored_source(self):
        config = get_config()
        config["mirror_vertical"] = True
        tester = PipelineTester(config)
        metrics = tester.process_frames([SyntheticMarkerScene.create(2)])

        # A vertically mirrored marker reads as the horizontal flip of its 180 degree turn
        assert metrics.marker_ids == [2]
        assert metrics.rotations == [180]

    def test_tilted_marker(self):
        frame = SyntheticMarkerScene.tilt(SyntheticMarkerScene.create(4))
        metrics = PipelineTester().process_frames([frame])

        assert metrics.marker_ids == [4]
        assert metrics.rotations == [0]

    def test_elements_combine(self):
        tester = PipelineTester()
        tester.process_frames([SyntheticMarkerScene.create(1), SyntheticMarkerScene.create(2)])

        assert tester.board.elements() == [ElementType.STEAM]
        assert tester.board.history[0].first == ElementType.FIRE
        assert tester.board.history[0].second == ElementType.WATER

    def test_empty_frames(self):
        frames = [np.full((120, 160, 3), 90, dtype=np.uint8)] * 3
        metrics = PipelineTester().process_frames(frames)

        assert metrics.total_frames == 3
        assert metrics.detections == 0


class TestCommandLine:
    """Tests for the still-image entry points."""

    def test_run_images(self, tmp_path, capsys):
        path = str(tmp_path / "water.png")
        cv2.imwrite(path, SyntheticMarkerScene.create(2))

        code = runesight_main.run_images([path], MarkerDetector())
        out = capsys.readouterr().out

        assert code == 0
        assert "marker 2 (water) rotation 0" in out

    def test_unreadable_image(self, tmp_path):
        code = runesight_main.run_images([str(tmp_path / "missing.png")], MarkerDetector())
        assert code == 1

    def test_custom_pattern_file(self, tmp_path):
        cells = [[1 if v else 0 for v in row] for row in DEFAULT_REFERENCES[2]]
        patterns = tmp_path / "patterns.json"
        patterns.write_text(json.dumps([{"id": 7, "grid": cells}]))

        config = get_config()
        config["patterns_file"] = str(patterns)
        detector = runesight_main.build_detector(config)

        assert detector.library.marker_ids() == [7]
        detection = detector.process_frame(Frame.from_bgr(SyntheticMarkerScene.create(2)))
        assert detection.marker_id == 7

    def test_main_exit_code(self, tmp_path):
        path = str(tmp_path / "earth.png")
        cv2.imwrite(path, SyntheticMarkerScene.create(4))

        with pytest.raises(SystemExit) as excinfo:
            runesight_main.main(["--image", path])
        assert excinfo.value.code == 0

    def test_bad_pattern_file_exits(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"patterns_file": str(tmp_path / "none.json")}))

        with pytest.raises(SystemExit) as excinfo:
            runesight_main.main(["--config", str(config_path), "--image", "x.png"])
        assert excinfo.value.code == 1


def run_benchmark(num_frames: int = 100):
    """Run the pipeline on repeated synthetic frames and print timings."""
    print("=" * 60)
    print("RUNESIGHT Pipeline Benchmark")
    print("=" * 60)

    sequence = SyntheticMarkerScene.create_rotation_sequence(2)
    frames = [sequence[i % len(sequence)] for i in range(num_frames)]

    tester = PipelineTester()
    metrics = tester.process_frames(frames)

    print("\nResults:")
    print(f"  Total frames: {metrics.total_frames}")
    print(f"  Detection rate: {metrics.detection_rate:.1f}%")
    print(f"  Average processing time: {metrics.avg_processing_time * 1000:.2f} ms")
    print(f"  Effective FPS: {1.0 / max(metrics.avg_processing_time, 0.001):.1f}")
    print("=" * 60)

    return metrics


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run RUNESIGHT integration tests")
    parser.add_argument("--frames", type=int, default=100, help="Number of frames to process")
    parser.add_argument("--benchmark", action="store_true", help="Run benchmark only")

    args = parser.parse_args()

    if args.benchmark:
        run_benchmark(args.frames)
    else:
        # Run pytest
        pytest.main([__file__, "-v", "--tb=short"])
