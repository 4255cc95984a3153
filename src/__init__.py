"""
RUNESIGHT - Element marker recognition.

This package provides functionality for:
- Frame capture from cameras and video files
- Fiducial marker detection and recognition
- Element mapping and combination for recognized markers
- Debug overlays and display
"""

from .recognition import (
    Binarizer,
    ContourExtractor,
    GridSampler,
    MarkerPattern,
    MatchResult,
    PatternLibrary,
    PatternMatcher,
    Rectifier,
    order_quad_points,
)
from .marker_detect import DetectorConfiguration, Frame, FrameFormatError, MarkerDetection, MarkerDetector
from .elements import ElementBoard, ElementType, RecipeBook, element_for_marker
from .overlay import OverlayConfiguration, OverlayRenderer
from .ui import UserInterface
from .video import VideoProcessor

__version__ = "0.1.0"

__all__ = [
    # Video & UI
    "VideoProcessor",
    "UserInterface",
    # Recognition stages
    "Binarizer",
    "ContourExtractor",
    "GridSampler",
    "MarkerPattern",
    "MatchResult",
    "PatternLibrary",
    "PatternMatcher",
    "Rectifier",
    "order_quad_points",
    # Pipeline
    "DetectorConfiguration",
    "Frame",
    "FrameFormatError",
    "MarkerDetection",
    "MarkerDetector",
    # Elements
    "ElementBoard",
    "ElementType",
    "RecipeBook",
    "element_for_marker",
    # Overlay
    "OverlayConfiguration",
    "OverlayRenderer",
]
