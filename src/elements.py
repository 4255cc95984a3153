"""
Element mapping and combination.

Markers are keyed to elements (fire, water, wind, earth). Two active elements
with a recipe combine into a new one (fire + water -> steam, ...). This module
is the detection consumer side of the application: it tracks which elements
are visible in screen space and applies the combination table. Placing objects
in a 3-D world is left to the host application.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from marker_detect import MarkerDetection

LOGGER = logging.getLogger(__name__)


class ElementType(Enum):
    """Closed set of element kinds."""
    UNKNOWN = "unknown"
    FIRE = "fire"
    WATER = "water"
    WIND = "wind"
    EARTH = "earth"
    STEAM = "steam"
    MIST = "mist"
    MUD = "mud"
    DUST = "dust"
    LAVA = "lava"


# Single source of truth for marker id -> element
MARKER_ELEMENTS: Dict[int, ElementType] = {
    1: ElementType.FIRE,
    2: ElementType.WATER,
    3: ElementType.WIND,
    4: ElementType.EARTH,
}

DEFAULT_RECIPES: List[Tuple[ElementType, ElementType, ElementType]] = [
    (ElementType.FIRE, ElementType.WATER, ElementType.STEAM),
    (ElementType.FIRE, ElementType.WIND, ElementType.MIST),
    (ElementType.EARTH, ElementType.WATER, ElementType.MUD),
    (ElementType.WIND, ElementType.EARTH, ElementType.DUST),
    (ElementType.FIRE, ElementType.EARTH, ElementType.LAVA),
]


def element_for_marker(marker_id: int) -> ElementType:
    """Element keyed to a marker id; UNKNOWN for ids with no mapping."""
    element = MARKER_ELEMENTS.get(marker_id, ElementType.UNKNOWN)
    if element is ElementType.UNKNOWN:
        LOGGER.debug("Marker %s has no element mapping", marker_id)
    return element


class RecipeBook:
    """Order-independent element combination table."""

    def __init__(self, recipes: Optional[Iterable[Tuple[ElementType, ElementType, ElementType]]] = None):
        self.recipes = list(DEFAULT_RECIPES if recipes is None else recipes)
        self._lookup: Dict[frozenset, ElementType] = {}
        for a, b, result in self.recipes:
            self._lookup[frozenset((a, b))] = result

        duplicates = self.validate()
        if duplicates:
            LOGGER.error("Found %d duplicate recipes: %s", len(duplicates), ", ".join(duplicates))

    def combine(self, a: ElementType, b: ElementType) -> Optional[ElementType]:
        """Result of combining two elements, or None if no recipe applies."""
        if ElementType.UNKNOWN in (a, b):
            return None
        return self._lookup.get(frozenset((a, b)))

    def combinations_for(self, element: ElementType) -> List[Tuple[ElementType, ElementType]]:
        """(other ingredient, result) pairs the element takes part in."""
        results = []
        for a, b, result in self.recipes:
            if a == element:
                results.append((b, result))
            elif b == element:
                results.append((a, result))
        return results

    def validate(self) -> List[str]:
        """Describe recipes whose unordered ingredient pair repeats."""
        seen = set()
        duplicates = []
        for a, b, _ in self.recipes:
            key = frozenset((a, b))
            if key in seen:
                duplicates.append(f"{a.name} + {b.name}")
            seen.add(key)
        return duplicates


@dataclass
class ElementInstance:
    """An element currently visible (or produced by a combination)."""

    instance_id: int
    element: ElementType
    screen_position: np.ndarray
    marker_quad: Optional[np.ndarray] = None


@dataclass
class CombinationEvent:
    """Record of two elements merging."""

    first: ElementType
    second: ElementType
    result: ElementType
    instance_id: int
    screen_position: np.ndarray


@dataclass
class ElementBoard:
    """Detection consumer tracking active elements in screen space.

    Each detection registers (or moves) the element keyed to its marker, then
    the first combinable pair of active elements merges into a new element at
    their midpoint.
    """

    recipes: RecipeBook = field(default_factory=RecipeBook)
    active: Dict[int, ElementInstance] = field(default_factory=dict)
    history: List[CombinationEvent] = field(default_factory=list)
    next_combined_id: int = 10000

    def handle_detection(self, detection: MarkerDetection) -> None:
        self.register_marker(detection.marker_id, detection.centroid, detection.quad)

    def register_marker(self, marker_id: int, screen_position, quad: Optional[np.ndarray] = None) -> ElementInstance:
        """Add or update the element for a marker and try to combine."""
        position = np.asarray(screen_position, dtype=np.float32)
        instance = self.active.get(marker_id)
        if instance is None:
            instance = ElementInstance(
                instance_id=marker_id,
                element=element_for_marker(marker_id),
                screen_position=position,
                marker_quad=quad,
            )
            self.active[marker_id] = instance
            LOGGER.info("Spawned element %s for marker %d", instance.element.name, marker_id)
        else:
            instance.screen_position = position
            instance.marker_quad = quad

        self.try_combine()
        return instance

    def remove(self, instance_id: int) -> bool:
        return self.active.pop(instance_id, None) is not None

    def clear(self):
        self.active.clear()

    def try_combine(self) -> Optional[CombinationEvent]:
        """Merge the first pair of active elements that has a recipe."""
        if len(self.active) < 2:
            return None

        for a, b in itertools.combinations(list(self.active.values()), 2):
            result = self.recipes.combine(a.element, b.element)
            if result is None:
                continue

            midpoint = (a.screen_position + b.screen_position) / 2.0
            del self.active[a.instance_id]
            del self.active[b.instance_id]

            new_id = self.next_combined_id
            self.next_combined_id += 1
            self.active[new_id] = ElementInstance(instance_id=new_id, element=result, screen_position=midpoint)

            event = CombinationEvent(a.element, b.element, result, new_id, midpoint)
            self.history.append(event)
            LOGGER.info("Combined %s + %s -> %s", a.element.name, b.element.name, result.name)
            return event

        return None

    def elements(self) -> List[ElementType]:
        return [inst.element for inst in self.active.values()]
