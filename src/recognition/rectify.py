"""
Perspective rectification of a candidate quad into a canonical square patch.
"""

from __future__ import annotations

import itertools
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .binarize import Binarizer

LOGGER = logging.getLogger(__name__)

# Homographies with a smaller determinant are treated as singular.
MIN_HOMOGRAPHY_DET = 1e-12

# Any three source corners spanning less than this (px^2) count as collinear.
MIN_CORNER_TRIANGLE_AREA = 1.0


def is_degenerate_quad(quad: np.ndarray) -> bool:
    """True if any three corners are (nearly) collinear."""
    pts = np.asarray(quad, dtype=np.float64).reshape(4, 2)
    for i, j, k in itertools.combinations(range(4), 3):
        (ax, ay), (bx, by), (cx, cy) = pts[i], pts[j], pts[k]
        doubled_area = abs((bx - ax) * (cy - ay) - (by - ay) * (cx - ax))
        if doubled_area < 2.0 * MIN_CORNER_TRIANGLE_AREA:
            return True
    return False


class Rectifier:
    """Warps the image region inside a quad onto a warp_size x warp_size square."""

    def __init__(self, warp_size: int = 300):
        if warp_size <= 1:
            raise ValueError(f"warp_size must be greater than 1, got {warp_size}")
        self.warp_size = int(warp_size)
        last = float(self.warp_size - 1)
        self.destination = np.array(
            [[0.0, 0.0], [last, 0.0], [last, last], [0.0, last]],
            dtype=np.float32,
        )
        self._warped = np.zeros((self.warp_size, self.warp_size), dtype=np.uint8)

    def estimate_homography(self, quad: np.ndarray) -> Optional[np.ndarray]:
        """Estimate the quad -> square homography.

        Returns:
            3x3 matrix, or None when the estimate is missing or degenerate
        """
        src = np.asarray(quad, dtype=np.float32).reshape(4, 2)
        if is_degenerate_quad(src):
            LOGGER.debug("Degenerate source quad %s", src.tolist())
            return None

        try:
            homography, _ = cv2.findHomography(src, self.destination, cv2.RANSAC)
        except cv2.error as e:
            LOGGER.debug("Homography estimation failed: %s", e)
            return None

        if homography is None or homography.size == 0:
            LOGGER.debug("No homography for quad %s", src.tolist())
            return None

        if not np.all(np.isfinite(homography)) or abs(np.linalg.det(homography)) < MIN_HOMOGRAPHY_DET:
            LOGGER.debug("Degenerate homography for quad %s", src.tolist())
            return None

        return homography

    def rectify(self, gray: np.ndarray, quad: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """Warp and re-binarize the region inside ``quad``.

        Args:
            gray: Full-frame grayscale image
            quad: Canonically ordered (4, 2) source quad

        Returns:
            (homography, binary patch) or None if the quad cannot be rectified.
            The patch is a reused buffer, valid until the next call.
        """
        homography = self.estimate_homography(quad)
        if homography is None:
            return None

        cv2.warpPerspective(gray, homography, (self.warp_size, self.warp_size), dst=self._warped)
        patch = Binarizer.threshold(self._warped, out=self._warped)
        return homography, patch
