"""
Grid sampling and grid transforms.

A grid is the coarse N x N binary fingerprint of a rectified marker patch:
a uint8 array whose cells are either 0 ("off") or 255 ("on").
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

LOGGER = logging.getLogger(__name__)

CELL_ON = 255
CELL_OFF = 0


def rotate90(grid: np.ndarray) -> np.ndarray:
    """Rotate a grid 90 degrees clockwise (column 0 becomes row 0 reversed)."""
    return np.ascontiguousarray(np.rot90(grid, k=-1))


def flip_horizontal(grid: np.ndarray) -> np.ndarray:
    """Reverse the column order of every row."""
    return np.ascontiguousarray(grid[:, ::-1])


def flip_vertical(grid: np.ndarray) -> np.ndarray:
    """Reverse the row order."""
    return np.ascontiguousarray(grid[::-1, :])


def grids_equal(a: np.ndarray, b: np.ndarray) -> bool:
    """Cell-for-cell equality; grids of different shape are never equal."""
    return a.shape == b.shape and bool(np.array_equal(a, b))


@dataclass
class GridSampler:
    """Samples a rectified binary patch into an N x N grid."""

    grid_size: int = 6
    threshold: int = 128

    def __post_init__(self):
        if self.grid_size <= 0:
            raise ValueError(f"grid_size must be positive, got {self.grid_size}")
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be in [0, 255], got {self.threshold}")

    def sample(self, patch: np.ndarray) -> np.ndarray:
        """Read the pixel at the centre of each cell.

        Args:
            patch: Single-channel rectified patch

        Returns:
            Raw sampled values, shape (grid_size, grid_size)
        """
        height, width = patch.shape[:2]
        cell_w = width // self.grid_size
        cell_h = height // self.grid_size
        if cell_w == 0 or cell_h == 0:
            raise ValueError(
                f"Patch {width}x{height} too small for a {self.grid_size}x{self.grid_size} grid"
            )

        xs = np.arange(self.grid_size) * cell_w + cell_w // 2
        ys = np.arange(self.grid_size) * cell_h + cell_h // 2
        return patch[np.ix_(ys, xs)].astype(np.uint8)

    def normalize(self, values: np.ndarray) -> np.ndarray:
        """Snap sampled values to CELL_ON / CELL_OFF at the configured cutoff."""
        return np.where(values >= self.threshold, CELL_ON, CELL_OFF).astype(np.uint8)

    def extract(self, patch: np.ndarray) -> np.ndarray:
        """Sample and normalize a patch in one step."""
        grid = self.normalize(self.sample(patch))
        LOGGER.debug("Sampled grid:\n%s", format_grid(grid))
        return grid


def format_grid(grid: np.ndarray) -> str:
    """Render a grid as rows of 0/1 characters."""
    return "\n".join("".join("1" if cell else "0" for cell in row) for row in grid)
