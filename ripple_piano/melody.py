"""Markov-chain melody generation.

:class:`MarkovMelodyGenerator` walks a configured scale one note per trigger.
Each step draws from a small transition table of scale-step offsets, so the
line moves mostly by step with occasional leaps and an occasional return to
the tonic of the current octave.  The first note after construction or
:meth:`~MarkovMelodyGenerator.reset` is always the configured tonic, which
gives every session the same stable starting pitch.

Indices that would leave the scale are mirrored back off the nearest edge
(boundary reflection) rather than clamped, so the melody does not pile up on
the lowest and highest notes.  A final clamp still guarantees a valid index
for deltas larger than the scale itself.

Velocity is independent of pitch: a straight line from ``min_velocity`` at
volume ``0`` to ``max_velocity`` at volume ``1``.

Example
-------
>>> from ripple_piano.config import RippleConfig
>>> gen = MarkovMelodyGenerator(RippleConfig(), seed=1)
>>> gen.next(0.5).note
'C4'
"""

from __future__ import annotations

import random
from typing import NamedTuple, Optional, Sequence, Union

from .config import TONIC, RippleConfig, Transition

__all__ = [
    "NoteEvent",
    "MarkovMelodyGenerator",
    "select_transition",
    "reflect_index",
    "velocity_for_volume",
]


class NoteEvent(NamedTuple):
    """A generated note ready for a synthesis collaborator."""

    note: Union[str, int]
    velocity: float
    index: int


def select_transition(transitions: Sequence[Transition], r: float) -> Transition:
    """Return the first entry whose cumulative probability exceeds ``r``.

    When rounding leaves the running total at or below ``r`` for every entry
    the last entry is returned, so selection always terminates.
    """

    cumulative = 0.0
    for entry in transitions:
        cumulative += entry.probability
        if r < cumulative:
            return entry
    return transitions[-1]


def reflect_index(candidate: int, length: int) -> int:
    """Mirror ``candidate`` back into ``[0, length - 1]``.

    ``-2`` becomes ``2`` and, for a 21-note scale, ``22`` becomes ``19``.
    Deltas large relative to ``length`` can still overshoot after one
    reflection, so the result is clamped as well.
    """

    if candidate < 0:
        candidate = -candidate
    elif candidate >= length:
        candidate = length - 1 - (candidate - length)
    return max(0, min(length - 1, candidate))


def velocity_for_volume(volume: float, min_velocity: float, max_velocity: float) -> float:
    """Map ``volume`` linearly onto ``[min_velocity, max_velocity]``.

    Volumes outside ``[0, 1]`` are not clamped; the result then falls outside
    the velocity range as well.
    """

    return min_velocity + (max_velocity - min_velocity) * volume


class MarkovMelodyGenerator:
    """Generate one note per call from a first-order Markov process.

    Parameters
    ----------
    config:
        Supplies the scale, transition table and velocity range.
    rng:
        Random source used for transition draws.  Defaults to a fresh
        :class:`random.Random` seeded with ``seed``.
    seed:
        Seed for the default random source; ignored when ``rng`` is given.
    """

    def __init__(
        self,
        config: RippleConfig,
        *,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.config = config
        self.rng = rng if rng is not None else random.Random(seed)
        self.last_note_index: Optional[int] = None

    def reset(self) -> None:
        """Forget the previous note so the next call starts on the tonic."""

        self.last_note_index = None

    def next_index(self) -> int:
        """Return the next scale index without updating the state."""

        cfg = self.config
        last = self.last_note_index
        if last is None:
            return cfg.tonic_index

        entry = select_transition(cfg.transitions, self.rng.random())
        length = cfg.scale_length
        if entry.delta == TONIC:
            octave = last // cfg.notes_per_octave
            tonic = octave * cfg.notes_per_octave + cfg.tonic_offset
            # A partial top octave may not contain its tonic.
            return max(0, min(length - 1, tonic))
        return reflect_index(last + entry.delta, length)

    def next(self, volume: float) -> NoteEvent:
        """Choose the next note and its velocity for a trigger at ``volume``."""

        index = self.next_index()
        velocity = velocity_for_volume(
            volume, self.config.min_velocity, self.config.max_velocity
        )
        self.last_note_index = index
        return NoteEvent(self.config.scale[index], velocity, index)
