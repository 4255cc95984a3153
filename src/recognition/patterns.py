"""
Marker pattern library and matcher.

Each known marker is authored as an N x N reference grid. The library expands
every reference into twelve variants once at construction:

    r0, r90, r180, r270,
    H(r0), H(r90), H(r180), H(r270),
    V(r0), V(r90), V(r180), V(r270)

where H/V are horizontal/vertical flips. This is not the full dihedral group
of the square; some variants repeat for symmetric references and all of them
are kept so variant indices stay stable.

Matching is first-match, not best-match: if two patterns share a variant the
pattern registered first wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .grid import CELL_OFF, CELL_ON, flip_horizontal, flip_vertical, grids_equal, rotate90

LOGGER = logging.getLogger(__name__)

BASE_ROTATIONS = 4

# Built-in element markers, 6x6 with a solid black border.
DEFAULT_REFERENCES: Dict[int, List[List[int]]] = {
    1: [
        [0, 0, 0, 0, 0, 0],
        [0, 0, 255, 255, 255, 0],
        [0, 255, 0, 0, 255, 0],
        [0, 255, 255, 0, 0, 0],
        [0, 255, 255, 0, 255, 0],
        [0, 0, 0, 0, 0, 0],
    ],
    2: [
        [0, 0, 0, 0, 0, 0],
        [0, 255, 0, 255, 255, 0],
        [0, 0, 255, 0, 255, 0],
        [0, 0, 0, 255, 255, 0],
        [0, 0, 0, 0, 255, 0],
        [0, 0, 0, 0, 0, 0],
    ],
    3: [
        [0, 0, 0, 0, 0, 0],
        [0, 0, 0, 0, 0, 0],
        [0, 255, 255, 255, 255, 0],
        [0, 255, 0, 0, 255, 0],
        [0, 255, 0, 255, 0, 0],
        [0, 0, 0, 0, 0, 0],
    ],
    4: [
        [0, 0, 0, 0, 0, 0],
        [0, 0, 0, 255, 255, 0],
        [0, 0, 0, 255, 255, 0],
        [0, 0, 0, 255, 0, 0],
        [0, 255, 255, 0, 255, 0],
        [0, 0, 0, 0, 0, 0],
    ],
}


class PatternLibraryError(ValueError):
    """Raised when reference grids cannot form a consistent library."""


def _frozen(grid: np.ndarray) -> np.ndarray:
    grid = np.array(grid, dtype=np.uint8, copy=True)
    grid.setflags(write=False)
    return grid


def generate_variants(reference: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Expand a reference grid into its twelve stored variants."""
    rotations = [np.asarray(reference, dtype=np.uint8)]
    for _ in range(BASE_ROTATIONS - 1):
        rotations.append(rotate90(rotations[-1]))

    variants = list(rotations)
    variants.extend(flip_horizontal(r) for r in rotations)
    variants.extend(flip_vertical(r) for r in rotations)
    return tuple(_frozen(v) for v in variants)


def to_reference_grid(cells: Union[Sequence[Sequence[int]], np.ndarray]) -> np.ndarray:
    """Coerce authored cells into a 0/255 reference grid.

    Cells may be written as 0/1 or 0/255; anything else is rejected.
    """
    grid = np.asarray(cells)
    if grid.ndim != 2 or grid.shape[0] != grid.shape[1] or grid.size == 0:
        raise PatternLibraryError(f"Reference grid must be square, got shape {grid.shape}")

    values = set(np.unique(grid).tolist())
    if not values <= {CELL_OFF, 1, CELL_ON}:
        raise PatternLibraryError(f"Reference grid has non-binary cells: {sorted(values)}")

    return np.where(grid > 0, CELL_ON, CELL_OFF).astype(np.uint8)


@dataclass(frozen=True, eq=False)
class MarkerPattern:
    """A known marker: its id, reference grid and generated variants."""

    marker_id: int
    reference: np.ndarray
    variants: Tuple[np.ndarray, ...]

    @classmethod
    def from_reference(cls, marker_id: int, cells) -> MarkerPattern:
        reference = _frozen(to_reference_grid(cells))
        return cls(marker_id=int(marker_id), reference=reference, variants=generate_variants(reference))

    @property
    def grid_size(self) -> int:
        return self.reference.shape[0]


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a successful pattern match."""

    marker_id: int
    rotation_degrees: int
    variant_index: int

    @property
    def is_reflection(self) -> bool:
        return self.variant_index >= BASE_ROTATIONS


class PatternLibrary:
    """Ordered, read-only collection of marker patterns.

    Safe to share between detector instances.
    """

    def __init__(self, patterns: Iterable[MarkerPattern]):
        self._patterns: Tuple[MarkerPattern, ...] = tuple(patterns)

        seen = set()
        sizes = set()
        for pattern in self._patterns:
            if pattern.marker_id in seen:
                raise PatternLibraryError(f"Duplicate marker id {pattern.marker_id}")
            seen.add(pattern.marker_id)
            sizes.add(pattern.grid_size)

        if len(sizes) > 1:
            raise PatternLibraryError(f"Patterns have mixed grid sizes: {sorted(sizes)}")

        LOGGER.debug(
            "PatternLibrary built: %d patterns, %d variants",
            len(self._patterns),
            sum(len(p.variants) for p in self._patterns),
        )

    @classmethod
    def from_references(cls, references: Mapping[int, Sequence[Sequence[int]]]) -> PatternLibrary:
        """Build a library from ``{marker_id: cells}``, in mapping order."""
        return cls(MarkerPattern.from_reference(mid, cells) for mid, cells in references.items())

    @classmethod
    def default(cls) -> PatternLibrary:
        """Library of the built-in element markers (ids 1-4)."""
        return cls.from_references(DEFAULT_REFERENCES)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> PatternLibrary:
        """Load references from a JSON list of ``{"id": int, "grid": [[...]]}``."""
        with open(path, "r") as f:
            entries = json.load(f)

        if not isinstance(entries, list):
            raise PatternLibraryError(f"{path}: expected a list of pattern entries")

        patterns = []
        for entry in entries:
            try:
                patterns.append(MarkerPattern.from_reference(entry["id"], entry["grid"]))
            except (KeyError, TypeError) as e:
                raise PatternLibraryError(f"{path}: malformed pattern entry {entry!r}") from e

        LOGGER.info("Loaded %d marker patterns from %s", len(patterns), path)
        return cls(patterns)

    @property
    def patterns(self) -> Tuple[MarkerPattern, ...]:
        return self._patterns

    @property
    def grid_size(self) -> Optional[int]:
        return self._patterns[0].grid_size if self._patterns else None

    def marker_ids(self) -> List[int]:
        return [p.marker_id for p in self._patterns]

    def __iter__(self) -> Iterator[MarkerPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)


class PatternMatcher:
    """Finds the first library variant equal to an observed grid."""

    def __init__(self, library: PatternLibrary):
        self.library = library

    def match(self, observed: np.ndarray) -> Optional[MatchResult]:
        """Match an observed grid against the library.

        Args:
            observed: Normalized N x N grid

        Returns:
            MatchResult for the first equal variant, or None
        """
        for pattern in self.library:
            for index, variant in enumerate(pattern.variants):
                if grids_equal(observed, variant):
                    return MatchResult(
                        marker_id=pattern.marker_id,
                        rotation_degrees=(index % BASE_ROTATIONS) * 90,
                        variant_index=index,
                    )
        return None
