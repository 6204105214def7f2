"""One voice-reactive session: volume in, notes and ripples out.

:class:`RippleSession` wires the components together for a single tick::

    decision = trigger.evaluate(volume)
    if decision.fired:
        event = melody.next(volume)
        synth(event.note, config.duration_hint, event.velocity)
        visual(volume)

Each session owns its own controller, generator and ripple field, so several
sessions can run side by side in one process.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional

from .config import RippleConfig
from .melody import MarkovMelodyGenerator, NoteEvent
from .ripples import RippleField
from .scheduler import ManualScheduler
from .trigger import TriggerController, TriggerState

__all__ = ["RippleSession"]

logger = logging.getLogger(__name__)

SynthCallback = Callable[[object, str, float], None]
VisualCallback = Callable[[float], None]


class RippleSession:
    """Drive the trigger and melody generator from a stream of volumes.

    Parameters
    ----------
    config:
        Shared configuration; defaults to :class:`RippleConfig`.
    scheduler:
        Timer source for the protection protocol.  Defaults to a
        :class:`ManualScheduler`, which the caller must advance.
    synth:
        Called as ``synth(note, duration_hint, velocity)`` for every note.
    visual:
        Called with the triggering volume.  Defaults to spawning a ripple in
        :attr:`ripples`.
    seed:
        Seeds the melody and, independently, the ripple hue random source.
    rng:
        Random source for the melody, used instead of ``seed``.  It is never
        drawn from for anything else.
    """

    def __init__(
        self,
        config: Optional[RippleConfig] = None,
        *,
        scheduler=None,
        synth: Optional[SynthCallback] = None,
        visual: Optional[VisualCallback] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or RippleConfig()
        self.scheduler = scheduler if scheduler is not None else ManualScheduler()
        rng = rng if rng is not None else random.Random(seed)
        self.trigger = TriggerController(self.config, self.scheduler)
        self.melody = MarkovMelodyGenerator(self.config, rng=rng)
        self.ripples = RippleField(self.config, rng=random.Random(seed))
        self.synth = synth
        self.visual = visual if visual is not None else self.ripples.spawn
        self._volume = 0.0
        self._fired = 0

    @property
    def current_volume(self) -> float:
        return self._volume

    @property
    def current_threshold(self) -> float:
        return self.trigger.current_threshold

    @property
    def trigger_state(self) -> TriggerState:
        return self.trigger.state

    @property
    def fired_count(self) -> int:
        return self._fired

    def tick(self, volume: float) -> Optional[NoteEvent]:
        """Process one volume sample; return the note played, if any."""

        self._volume = volume
        if not self.trigger.evaluate(volume).fired:
            return None
        event = self.melody.next(volume)
        self._fired += 1
        logger.debug(
            "Note %s (index %d, velocity %.3f)", event.note, event.index, event.velocity
        )
        if self.synth is not None:
            self.synth(event.note, self.config.duration_hint, event.velocity)
        self.visual(volume)
        return event

    def reset(self) -> None:
        """Start over: fresh trigger state, tonic first, no ripples."""

        self.trigger.reset()
        self.melody.reset()
        self.ripples.clear()
        self._volume = 0.0
        self._fired = 0
        logger.info("Session reset")
