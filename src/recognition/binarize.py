"""
Grayscale conversion and global Otsu thresholding.
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)


class Binarizer:
    """Converts RGBA frames to grayscale and binarizes them with Otsu's method."""

    @staticmethod
    def to_grayscale(
        rgba: np.ndarray,
        bgr_out: Optional[np.ndarray] = None,
        gray_out: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """RGBA -> BGR -> luma grayscale, writing into the given buffers if any."""
        bgr = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGR, dst=bgr_out)
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY, dst=gray_out)

    @staticmethod
    def threshold(gray: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Binarize with an automatically chosen (Otsu) threshold."""
        value, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU, dst=out)
        LOGGER.debug("Otsu threshold: %.1f", value)
        return binary
