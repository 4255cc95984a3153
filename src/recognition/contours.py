"""
Candidate quadrilateral extraction and canonical vertex ordering.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)


class ContourExtractor:
    """Finds 4-vertex polygons of sufficient area in a binary image."""

    def __init__(self, min_area: float = 6500.0, epsilon: float = 4.0):
        self.min_area = float(min_area)
        self.epsilon = float(epsilon)

    def extract(self, binary: np.ndarray) -> List[np.ndarray]:
        """Extract candidate quads.

        Args:
            binary: Single-channel binary image

        Returns:
            List of (4, 2) int32 vertex arrays in discovery order
        """
        # OpenCV 3 returns (image, contours, hierarchy), OpenCV 4 (contours, hierarchy)
        contours = cv2.findContours(binary, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)[-2]

        quads: List[np.ndarray] = []
        for contour in contours:
            approx = cv2.approxPolyDP(contour, self.epsilon, True)
            if len(approx) != 4:
                continue

            area = cv2.contourArea(approx)
            if area < self.min_area:
                continue

            quads.append(approx.reshape(4, 2))

        LOGGER.debug("%d contours, %d candidate quads", len(contours), len(quads))
        return quads


def order_quad_points(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Put four points in canonical order.

    Points are sorted by angle around their centroid, then the cycle is rotated
    so the point with the smallest x + y comes first. In image coordinates this
    gives top-left first, then clockwise, independent of input order.

    Args:
        points: Four (x, y) points

    Returns:
        (4, 2) float32 array
    """
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    if pts.shape[0] != 4:
        raise ValueError(f"Expected 4 points, got {pts.shape[0]}")

    cx, cy = pts.mean(axis=0)
    by_angle = sorted(pts.tolist(), key=lambda p: math.atan2(p[1] - cy, p[0] - cx))

    start = min(range(4), key=lambda i: by_angle[i][0] + by_angle[i][1])
    ordered = by_angle[start:] + by_angle[:start]
    return np.array(ordered, dtype=np.float32)


def quad_centroid(quad: np.ndarray) -> np.ndarray:
    """Mean of the four vertices."""
    return np.asarray(quad, dtype=np.float32).reshape(4, 2).mean(axis=0)
