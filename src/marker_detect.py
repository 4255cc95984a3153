"""
Marker detection module.

Runs the full recognition pipeline on one frame:

    binarize -> extract quads -> order -> rectify -> sample grid -> match

and reports at most one MarkerDetection per frame. Only the first
area-qualifying quad of a frame is rectified and matched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

import cv2
import numpy as np

from overlay import OverlayConfiguration, OverlayRenderer
from recognition import (
    Binarizer,
    ContourExtractor,
    GridSampler,
    PatternLibrary,
    PatternMatcher,
    Rectifier,
    order_quad_points,
    quad_centroid,
)

LOGGER = logging.getLogger(__name__)

RGBA_CHANNELS = 4

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


class FrameFormatError(ValueError):
    """Raised for frames with invalid dimensions or a short pixel buffer."""


@dataclass
class Frame:
    """An RGBA8 frame: row-major, top-to-bottom, width * height * 4 bytes."""

    width: int
    height: int
    pixels: PixelBuffer

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> Frame:
        """Wrap an OpenCV BGR (or grayscale) image as an RGBA frame."""
        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        else:
            rgba = cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_BGR2RGBA)
        height, width = rgba.shape[:2]
        return cls(width=width, height=height, pixels=rgba)

    def to_rgba_array(self) -> np.ndarray:
        """View the pixel buffer as a (height, width, 4) uint8 array.

        Raises:
            FrameFormatError: if dimensions or buffer length are invalid
        """
        width, height = self.width, self.height
        if isinstance(width, bool) or isinstance(height, bool) or not (
            isinstance(width, (int, np.integer)) and isinstance(height, (int, np.integer))
        ):
            raise FrameFormatError(f"Frame dimensions must be integers, got {width!r}x{height!r}")
        if width <= 0 or height <= 0:
            raise FrameFormatError(f"Frame dimensions must be positive, got {width}x{height}")

        if isinstance(self.pixels, np.ndarray):
            flat = np.ascontiguousarray(self.pixels, dtype=np.uint8).reshape(-1)
        else:
            flat = np.frombuffer(self.pixels, dtype=np.uint8)

        expected = int(width) * int(height) * RGBA_CHANNELS
        if flat.size < expected:
            raise FrameFormatError(
                f"Pixel buffer holds {flat.size} bytes, {width}x{height} RGBA needs {expected}"
            )
        return flat[:expected].reshape(int(height), int(width), RGBA_CHANNELS)


@dataclass
class MarkerDetection:
    """A recognized marker in one frame."""

    marker_id: int
    rotation_degrees: int
    quad: np.ndarray  # (4, 2) canonical order, image pixels
    centroid: Tuple[float, float]

    def as_dict(self) -> Dict[str, Any]:
        """Plain record for consumers outside the pipeline."""
        return {
            "markerId": self.marker_id,
            "rotationDegrees": self.rotation_degrees,
            "quad": [(float(x), float(y)) for x, y in self.quad],
            "centroid": (float(self.centroid[0]), float(self.centroid[1])),
        }


class DetectionConsumer(Protocol):
    """Receives each detection synchronously."""

    def handle_detection(self, detection: MarkerDetection) -> None:
        ...


class DebugImageSink(Protocol):
    """Receives intermediate images when debug output is enabled."""

    def show_debug_image(self, name: str, image: np.ndarray) -> None:
        ...


@dataclass
class DetectorConfiguration:
    """Configuration for the marker detector."""

    warp_size: int = 300  # Side of the rectified square patch
    min_contour_area: float = 6500.0  # px^2
    approx_epsilon: float = 4.0  # Polygon approximation tolerance (px)
    grid_size: int = 6
    grid_threshold: int = 128
    emit_debug_images: bool = False
    draw_grid_values: bool = True

    def __post_init__(self):
        if self.warp_size <= 1:
            raise ValueError(f"warp_size must be greater than 1, got {self.warp_size}")
        if self.grid_size <= 0 or self.grid_size > self.warp_size:
            raise ValueError(f"grid_size must be in [1, warp_size], got {self.grid_size}")
        if not 0 <= self.grid_threshold <= 255:
            raise ValueError(f"grid_threshold must be in [0, 255], got {self.grid_threshold}")
        if self.min_contour_area < 0:
            raise ValueError(f"min_contour_area must be non-negative, got {self.min_contour_area}")
        if self.approx_epsilon <= 0:
            raise ValueError(f"approx_epsilon must be positive, got {self.approx_epsilon}")

    @classmethod
    def from_dict(cls, config: Optional[Dict] = None) -> DetectorConfiguration:
        """Build from a config dict, ignoring unknown keys."""
        cfg_dict = dict(config or {})
        return cls(**{k: v for k, v in cfg_dict.items() if k in cls.__dataclass_fields__})


@dataclass
class _FrameBuffers:
    """Scratch images sized to one frame resolution."""

    width: int
    height: int
    rgba: np.ndarray = field(init=False)
    bgr: np.ndarray = field(init=False)
    gray: np.ndarray = field(init=False)
    binary: np.ndarray = field(init=False)

    def __post_init__(self):
        self.rgba = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self.bgr = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self.gray = np.zeros((self.height, self.width), dtype=np.uint8)
        self.binary = np.zeros((self.height, self.width), dtype=np.uint8)

    def matches(self, width: int, height: int) -> bool:
        return self.width == width and self.height == height


class MarkerDetector:
    """Handles marker detection in video frames.

    One instance owns its scratch buffers; call process_frame from a single
    thread with at most one frame in flight. The pattern library is read-only
    and may be shared between instances.
    """

    def __init__(
        self,
        config: Optional[Union[Dict, DetectorConfiguration]] = None,
        library: Optional[PatternLibrary] = None,
        consumer: Optional[DetectionConsumer] = None,
        debug_sink: Optional[DebugImageSink] = None,
    ):
        if isinstance(config, DetectorConfiguration):
            self.config = config
        else:
            self.config = DetectorConfiguration.from_dict(config)

        self.library = library if library is not None else PatternLibrary.default()
        if self.library.grid_size not in (None, self.config.grid_size):
            raise ValueError(
                f"Pattern grids are {self.library.grid_size}x{self.library.grid_size} "
                f"but grid_size is {self.config.grid_size}"
            )

        self.consumer = consumer
        self.debug_sink = debug_sink

        self.extractor = ContourExtractor(self.config.min_contour_area, self.config.approx_epsilon)
        self.rectifier = Rectifier(self.config.warp_size)
        self.sampler = GridSampler(self.config.grid_size, self.config.grid_threshold)
        self.matcher = PatternMatcher(self.library)
        self.renderer = OverlayRenderer(OverlayConfiguration(draw_grid_values=self.config.draw_grid_values))

        self._buffers: Optional[_FrameBuffers] = None
        self.debug_images: Dict[str, np.ndarray] = {}

        LOGGER.info(
            "MarkerDetector initialized: %d patterns, warp=%d, grid=%d, min_area=%.0f",
            len(self.library),
            self.config.warp_size,
            self.config.grid_size,
            self.config.min_contour_area,
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def process_frame(self, frame: Frame) -> Optional[MarkerDetection]:
        """Detect at most one known marker in the frame.

        Args:
            frame: RGBA frame

        Returns:
            MarkerDetection, or None when nothing is recognized

        Raises:
            FrameFormatError: for malformed frames
        """
        rgba = frame.to_rgba_array()
        buffers = self._ensure_buffers(frame.width, frame.height)
        np.copyto(buffers.rgba, rgba)

        Binarizer.to_grayscale(buffers.rgba, bgr_out=buffers.bgr, gray_out=buffers.gray)
        Binarizer.threshold(buffers.gray, out=buffers.binary)

        quads = self.extractor.extract(buffers.binary)
        debug = self.config.emit_debug_images
        if debug:
            self._begin_debug(buffers, quads)

        if not quads:
            LOGGER.debug("No candidate quads")
            if debug:
                self._finish_debug(buffers.bgr)
            return None

        quad = order_quad_points(quads[0])
        rectified = self.rectifier.rectify(buffers.gray, quad)
        if rectified is None:
            LOGGER.debug("Candidate quad could not be rectified")
            if debug:
                self._finish_debug(buffers.bgr)
            return None

        _, patch = rectified
        grid = self.sampler.extract(patch)
        match = self.matcher.match(grid)

        detection = None
        if match is not None:
            cx, cy = quad_centroid(quad)
            detection = MarkerDetection(
                marker_id=match.marker_id,
                rotation_degrees=match.rotation_degrees,
                quad=quad,
                centroid=(float(cx), float(cy)),
            )
            LOGGER.debug(
                "Marker %d at (%.1f, %.1f), rotation %d (variant %d)",
                match.marker_id,
                cx,
                cy,
                match.rotation_degrees,
                match.variant_index,
            )
        else:
            LOGGER.debug("Sampled grid matches no known pattern")

        if debug:
            final = buffers.bgr
            if detection is not None:
                final = self.renderer.draw_detection(buffers.bgr, quad, detection.marker_id, detection.rotation_degrees)
            self._finish_debug(final, patch=patch, grid=grid)

        if detection is not None and self.consumer is not None:
            self.consumer.handle_detection(detection)

        return detection

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) the scratch buffers are sized for, None before the first frame."""
        if self._buffers is None:
            return None
        return self._buffers.width, self._buffers.height

    def get_debug_images(self) -> Dict[str, np.ndarray]:
        """Debug images of the last processed frame (empty if disabled)."""
        return dict(self.debug_images)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _ensure_buffers(self, width: int, height: int) -> _FrameBuffers:
        if self._buffers is None or not self._buffers.matches(width, height):
            LOGGER.debug("Allocating frame buffers for %dx%d", width, height)
            self._buffers = _FrameBuffers(int(width), int(height))
        return self._buffers

    def _begin_debug(self, buffers: _FrameBuffers, quads: List[np.ndarray]):
        self.debug_images = {
            "original": buffers.bgr.copy(),
            "grayscale": buffers.gray.copy(),
            "threshold": buffers.binary.copy(),
            "contours": self.renderer.draw_candidates(buffers.bgr, quads),
        }

    def _finish_debug(
        self,
        final: np.ndarray,
        patch: Optional[np.ndarray] = None,
        grid: Optional[np.ndarray] = None,
    ):
        size = self.config.warp_size
        if patch is None or grid is None:
            self.debug_images["warped"] = self.renderer.blank(size)
            self.debug_images["grid"] = self.renderer.blank(size, channels=3)
        else:
            self.debug_images["warped"] = patch.copy()
            self.debug_images["grid"] = self.renderer.draw_grid(patch, grid)
        self.debug_images["final"] = final.copy()

        if self.debug_sink is not None:
            for name, image in self.debug_images.items():
                self.debug_sink.show_debug_image(name, image)
