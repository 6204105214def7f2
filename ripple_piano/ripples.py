"""Data model for the ripple visualization.

Nothing in this module draws.  It keeps the numbers a renderer needs: each
trigger spawns an expanding ring whose opacity and stroke width grow with the
triggering volume, and :meth:`RippleField.step` ages every ring by one frame
until it has faded out.  :func:`volume_indicator` computes the geometry of the
small meter bar that shows the live volume against the current threshold.
"""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, NamedTuple, Optional, Tuple

from .config import RippleConfig

__all__ = ["Ripple", "RippleField", "IndicatorGeometry", "volume_indicator"]

# Per-frame multiplicative decay of a ripple's stroke width.
STROKE_DECAY = 0.98


@dataclass
class Ripple:
    x: float
    y: float
    radius: float
    opacity: float
    hue: float
    stroke_weight: float

    @property
    def alive(self) -> bool:
        return self.opacity > 0


class RippleField:
    """Bounded collection of live ripples.

    When ``max_ripples`` rings are alive the oldest is dropped to make room
    for a new one.
    """

    def __init__(
        self,
        config: RippleConfig,
        *,
        center: Tuple[float, float] = (0.0, 0.0),
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.center = center
        self.rng = rng or random.Random()
        self._ripples: Deque[Ripple] = deque(maxlen=config.max_ripples)

    def __len__(self) -> int:
        return len(self._ripples)

    @property
    def ripples(self) -> List[Ripple]:
        return list(self._ripples)

    def spawn(self, volume: float) -> Ripple:
        """Add a ripple for a trigger at ``volume`` and return it."""

        x, y = self.center
        ripple = Ripple(
            x=x,
            y=y,
            radius=self.config.base_radius + 20,
            opacity=70 + volume * 30,
            hue=self.rng.uniform(0, 360),
            stroke_weight=4 + volume * 4,
        )
        self._ripples.append(ripple)
        return ripple

    def step(self) -> List[Ripple]:
        """Advance every ripple by one frame and drop faded ones."""

        survivors = []
        for ripple in self._ripples:
            ripple.radius += self.config.ripple_expand_speed
            ripple.opacity -= self.config.ripple_fade_speed
            ripple.stroke_weight *= STROKE_DECAY
            if ripple.alive:
                survivors.append(ripple)
        self._ripples = deque(survivors, maxlen=self.config.max_ripples)
        return survivors

    def clear(self) -> None:
        self._ripples.clear()


class IndicatorGeometry(NamedTuple):
    fill_width: float
    hue: float
    threshold_x: float


def volume_indicator(volume: float, threshold: float, width: float = 200) -> IndicatorGeometry:
    """Return the fill width, colour hue and threshold marker of the meter bar.

    Hue runs from 120 (green) at silence to 0 (red) at full volume.  Both
    inputs are clamped to ``[0, 1]`` so clipping never draws past the bar.
    """

    v = max(0.0, min(1.0, volume))
    t = max(0.0, min(1.0, threshold))
    return IndicatorGeometry(v * width, 120 * (1 - v), t * width)
