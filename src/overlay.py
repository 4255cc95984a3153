"""
Debug overlay rendering.

Draws the intermediate images of the marker pipeline with OpenCV: candidate
contours, the sampling grid over the rectified patch, and the annotated final
frame. These images are for visualization only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)


@dataclass
class OverlayConfiguration:
    """Colors (BGR) and styles for debug overlays."""

    contour_color: Tuple[int, int, int] = (100, 255, 255)
    contour_thickness: int = 2
    grid_line_color: Tuple[int, int, int] = (0, 200, 0)
    grid_value_color: Tuple[int, int, int] = (255, 0, 0)
    grid_font_scale: float = 0.5
    marker_color: Tuple[int, int, int] = (0, 255, 0)
    label_color: Tuple[int, int, int] = (255, 255, 255)
    label_font_scale: float = 0.7
    draw_grid_values: bool = True


class OverlayRenderer:
    """Renders the pipeline's debug images."""

    def __init__(self, config: Optional[OverlayConfiguration] = None):
        self.config = config or OverlayConfiguration()

    def draw_candidates(self, bgr: np.ndarray, quads: Sequence[np.ndarray]) -> np.ndarray:
        """Copy of the frame with every candidate quad outlined."""
        canvas = bgr.copy()
        if quads:
            contours = [np.asarray(q, dtype=np.int32).reshape(-1, 1, 2) for q in quads]
            cv2.drawContours(canvas, contours, -1, self.config.contour_color, self.config.contour_thickness)
        return canvas

    def draw_grid(self, patch: np.ndarray, grid: np.ndarray) -> np.ndarray:
        """Rectified patch with grid lines and, optionally, the 0/1 cell values."""
        canvas = cv2.cvtColor(patch, cv2.COLOR_GRAY2BGR)
        height, width = canvas.shape[:2]
        size = grid.shape[0]
        cell_w = width // size
        cell_h = height // size

        for i in range(size + 1):
            y = i * cell_h
            cv2.line(canvas, (0, y), (width, y), self.config.grid_line_color, 1)
            x = i * cell_w
            cv2.line(canvas, (x, 0), (x, height), self.config.grid_line_color, 1)

        if not self.config.draw_grid_values:
            return canvas

        for row in range(size):
            for col in range(size):
                origin = (col * cell_w + cell_w // 2 - 6, row * cell_h + cell_h // 2 + 6)
                cv2.putText(
                    canvas,
                    "1" if grid[row, col] else "0",
                    origin,
                    cv2.FONT_HERSHEY_SIMPLEX,
                    self.config.grid_font_scale,
                    self.config.grid_value_color,
                    1,
                )
        return canvas

    def draw_detection(self, bgr: np.ndarray, quad: np.ndarray, marker_id: int, rotation_degrees: int) -> np.ndarray:
        """Copy of the frame with the recognized marker outlined and labelled."""
        canvas = bgr.copy()
        points = np.asarray(quad, dtype=np.int32).reshape(-1, 1, 2)
        cv2.polylines(canvas, [points], True, self.config.marker_color, 2)

        x, y = int(quad[0][0]), int(quad[0][1])
        cv2.putText(
            canvas,
            f"Marker {marker_id} ({rotation_degrees} deg)",
            (x, max(y - 10, 0)),
            cv2.FONT_HERSHEY_SIMPLEX,
            self.config.label_font_scale,
            self.config.label_color,
            2,
        )
        return canvas

    @staticmethod
    def render_marker(grid: np.ndarray, cell_size: int = 50) -> np.ndarray:
        """Draw a grid as a printable grayscale marker, one square per cell."""
        cells = np.asarray(grid, dtype=np.uint8)
        block = np.ones((cell_size, cell_size), dtype=np.uint8)
        return np.kron(cells, block).astype(np.uint8)

    @staticmethod
    def blank(size: int, channels: int = 1) -> np.ndarray:
        """Black placeholder image for stages that did not run."""
        shape = (size, size) if channels == 1 else (size, size, channels)
        return np.zeros(shape, dtype=np.uint8)
