"""
Recognition subpackage.

Stages of the marker recognition pipeline, leaf-first:
- Binarizer (grayscale + Otsu threshold)
- ContourExtractor / order_quad_points (candidate quads)
- Rectifier (homography + warp to a canonical square)
- GridSampler (coarse binary fingerprint)
- PatternLibrary / PatternMatcher (known markers, first exact match)
"""

from .binarize import Binarizer
from .contours import ContourExtractor, order_quad_points, quad_centroid
from .grid import (
    CELL_OFF,
    CELL_ON,
    GridSampler,
    flip_horizontal,
    flip_vertical,
    format_grid,
    grids_equal,
    rotate90,
)
from .patterns import (
    DEFAULT_REFERENCES,
    MarkerPattern,
    MatchResult,
    PatternLibrary,
    PatternLibraryError,
    PatternMatcher,
    generate_variants,
)
from .rectify import Rectifier, is_degenerate_quad

__all__ = [
    "Binarizer",
    "ContourExtractor",
    "order_quad_points",
    "quad_centroid",
    "CELL_OFF",
    "CELL_ON",
    "GridSampler",
    "flip_horizontal",
    "flip_vertical",
    "format_grid",
    "grids_equal",
    "rotate90",
    "DEFAULT_REFERENCES",
    "MarkerPattern",
    "MatchResult",
    "PatternLibrary",
    "PatternLibraryError",
    "PatternMatcher",
    "generate_variants",
    "Rectifier",
    "is_degenerate_quad",
]
