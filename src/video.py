"""
Video input utilities.

This module handles video capture and delivers frames to the detector as RGBA
Frame objects, optionally mirrored vertically.
"""

import logging
import platform
from typing import Callable, List, Optional

import cv2
import numpy as np

from marker_detect import Frame

# Called once per captured frame; returning False stops the loop.
FrameListener = Callable[[Frame], Optional[bool]]


class VideoProcessor:
    """Handles video input capture and frame delivery."""

    def __init__(self, config=None):
        """Initialize video processor.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.cap: Optional[cv2.VideoCapture] = None
        self.logger = logging.getLogger(__name__)

        # Video settings from config
        self.camera_id = self.config.get('camera_id', 0)
        self.width = self.config.get('video_width', 1280)
        self.height = self.config.get('video_height', 720)
        self.fps = self.config.get('video_fps', 30)
        self.mirror_vertical = self.config.get('mirror_vertical', False)

        # Backend priority list
        self.backend_priority = self._resolve_backend_priority(
            self.config.get('camera_backend_priority')
        )
        self.selected_backend: Optional[int] = None

        # Frame warmup attempts
        self.max_init_attempts = self.config.get('camera_init_attempts', 10)

        self._running = False

    @staticmethod
    def _resolve_backend_priority(user_priority: Optional[List[int]]) -> List[int]:
        """Determine backend priority order based on platform and config."""
        if user_priority:
            return user_priority

        system = platform.system()
        backends: List[int] = []

        def add_backend(name: str):
            value = getattr(cv2, name, None)
            if value is not None:
                backends.append(value)

        if system == 'Darwin':
            add_backend('CAP_AVFOUNDATION')
        elif system == 'Windows':
            add_backend('CAP_DSHOW')
            add_backend('CAP_MSMF')
        else:
            add_backend('CAP_V4L2')
            add_backend('CAP_GSTREAMER')

        add_backend('CAP_ANY')
        return backends or [cv2.CAP_ANY]

    @staticmethod
    def _backend_name(backend: Optional[int]) -> str:
        """Return human-readable name for backend constant."""
        if backend is None:
            return "Unknown"

        for attr in dir(cv2):
            if attr.startswith("CAP_") and getattr(cv2, attr) == backend:
                return attr
        return f"Backend({backend})"

    def initialize(self):
        """Initialize video capture from the configured camera.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        self.cleanup()

        for backend in self.backend_priority:
            try:
                self.logger.info(
                    "Attempting to initialize camera %s using backend %s",
                    self.camera_id,
                    self._backend_name(backend),
                )
                cap = cv2.VideoCapture(self.camera_id, backend)

                if not cap.isOpened():
                    self.logger.warning(
                        "Failed to open camera %s with backend %s",
                        self.camera_id,
                        self._backend_name(backend),
                    )
                    cap.release()
                    continue

                cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
                cap.set(cv2.CAP_PROP_FPS, self.fps)

                test_frame = self._warmup_camera(cap)
                if test_frame is None:
                    self.logger.warning(
                        "Camera opened but failed to provide frames (backend %s)",
                        self._backend_name(backend),
                    )
                    cap.release()
                    continue

                self.cap = cap
                self.selected_backend = backend

                self.logger.info(
                    "Camera initialized with backend %s: %sx%s @ %sfps",
                    self._backend_name(backend),
                    int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                    int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                    int(self.cap.get(cv2.CAP_PROP_FPS)),
                )
                return True

            except cv2.error as e:
                self.logger.error(
                    "Error initializing camera %s with backend %s: %s",
                    self.camera_id,
                    self._backend_name(backend),
                    e,
                )

        self.logger.error(
            "Unable to initialize camera %s with available backends: %s",
            self.camera_id,
            [self._backend_name(b) for b in self.backend_priority],
        )
        return False

    def _warmup_camera(self, cap: cv2.VideoCapture) -> Optional[np.ndarray]:
        """Capture a few frames to allow camera to warm up."""
        for attempt in range(1, self.max_init_attempts + 1):
            ret, frame = cap.read()
            if ret and frame is not None and frame.size > 0:
                if frame.mean() == 0:
                    self.logger.debug(
                        "Warmup frame %s captured but appears black; retrying...", attempt
                    )
                    continue
                return frame
        return None

    def load_video_file(self, filepath):
        """Load a video file instead of camera.

        Args:
            filepath: Path to video file

        Returns:
            bool: True if load successful, False otherwise
        """
        self.cleanup()
        self.cap = cv2.VideoCapture(filepath)

        if not self.cap.isOpened():
            self.logger.error(f"Failed to open video file: {filepath}")
            self.cap = None
            return False

        self.logger.info(f"Video file loaded: {filepath}")
        return True

    def to_frame(self, image: np.ndarray) -> Frame:
        """Convert a captured BGR image into an RGBA Frame."""
        if self.mirror_vertical:
            image = cv2.flip(image, 0)
        return Frame.from_bgr(image)

    def capture_frame(self) -> Optional[Frame]:
        """Capture a frame from the video source.

        Returns:
            Frame or None if capture failed or the source is exhausted
        """
        if self.cap is None or not self.cap.isOpened():
            return None

        ret, image = self.cap.read()
        if not ret or image is None:
            self.logger.debug("No frame available from video source")
            return None

        return self.to_frame(image)

    def run(self, listener: FrameListener, max_frames: Optional[int] = None) -> int:
        """Deliver frames to ``listener`` until stopped or the source ends.

        Frames are delivered one at a time; the next capture starts only after
        the listener returns.

        Args:
            listener: Called with each Frame; returning False stops the loop
            max_frames: Optional limit on delivered frames

        Returns:
            int: Number of frames delivered
        """
        delivered = 0
        self._running = True
        try:
            while self._running:
                if max_frames is not None and delivered >= max_frames:
                    break

                frame = self.capture_frame()
                if frame is None:
                    break

                delivered += 1
                if listener(frame) is False:
                    break
        finally:
            self._running = False

        self.logger.info("Frame delivery stopped after %d frames", delivered)
        return delivered

    def stop(self):
        """Stop a running delivery loop after the current frame."""
        self._running = False

    def get_frame_info(self):
        """Get information about the current video stream.

        Returns:
            dict: Frame information
        """
        if self.cap is None:
            return {}

        return {
            'width': int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            'fps': int(self.cap.get(cv2.CAP_PROP_FPS)),
            'backend': self._backend_name(self.selected_backend),
            'mirror_vertical': self.mirror_vertical,
        }

    def cleanup(self):
        """Clean up video resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self.logger.info("Video processor cleaned up")
