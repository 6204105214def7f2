"""Utility functions for translating note names and building scales.

Scales in Voice Ripple Piano are flat, multi-octave lists of note names such
as ``["C3", "D3", ..., "B5"]``.  The melody generator walks these lists by
index, so everything here is concerned with producing them in strictly
ascending order and comparing pitch identifiers that may be either note
names or raw MIDI numbers.

Example
-------
>>> from ripple_piano.note_utils import note_to_midi, build_scale
>>> note_to_midi("C4")
60
>>> build_scale("C", "lydian", octaves=1, start_octave=4)
['C4', 'D4', 'E4', 'F#4', 'G4', 'A4', 'B4']
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, List, Sequence, Union

__all__ = [
    "NOTES",
    "MODE_PATTERNS",
    "note_to_midi",
    "midi_to_note",
    "pitch_value",
    "build_scale",
    "is_strictly_ascending",
]

PitchIdentifier = Union[str, int]

# Both sharp and flat spellings map to their semitone offset within an octave
# so ``note_to_midi`` accepts either form.
NOTE_TO_SEMITONE: Dict[str, int] = {
    "C": 0,
    "B#": 0,
    "C#": 1,
    "Db": 1,
    "D": 2,
    "D#": 3,
    "Eb": 3,
    "E": 4,
    "Fb": 4,
    "E#": 5,
    "F": 5,
    "F#": 6,
    "Gb": 6,
    "G": 7,
    "G#": 8,
    "Ab": 8,
    "A": 9,
    "A#": 10,
    "Bb": 10,
    "B": 11,
    "Cb": 11,
}

NOTES: List[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Semitone offsets from the root for each supported mode.
MODE_PATTERNS: Dict[str, List[int]] = {
    "ionian": [0, 2, 4, 5, 7, 9, 11],
    "dorian": [0, 2, 3, 5, 7, 9, 10],
    "phrygian": [0, 1, 3, 5, 7, 8, 10],
    "lydian": [0, 2, 4, 6, 7, 9, 11],
    "mixolydian": [0, 2, 4, 5, 7, 9, 10],
    "aeolian": [0, 2, 3, 5, 7, 8, 10],
    "locrian": [0, 1, 3, 5, 6, 8, 10],
    # Pentatonic scales contain five degrees per octave.
    "pentatonic": [0, 2, 4, 7, 9],
    "minor_pentatonic": [0, 3, 5, 7, 10],
}


@lru_cache(maxsize=None)
def note_to_midi(note: str) -> int:
    """Convert a note string such as ``C#4`` into a MIDI number.

    Parameters
    ----------
    note:
        Note name including octave. Octaves may be negative or contain
        multiple digits.

    Returns
    -------
    int
        MIDI note number in the range ``0-127``.

    Raises
    ------
    ValueError
        If ``note`` is not properly formatted or the computed MIDI value falls
        outside ``0-127``.
    """

    match = re.fullmatch(r"([A-Ga-g][#b]?)(-?\d+)", note)
    if not match:
        logging.error("Invalid note format: %s", note)
        raise ValueError(f"Invalid note format: {note}")

    note_name, octave_str = match.groups()
    # MIDI octave numbers are offset by one relative to scientific pitch
    # notation (C4 == 60).
    octave = int(octave_str) + 1
    note_name = note_name.capitalize()

    try:
        note_idx = NOTE_TO_SEMITONE[note_name]
    except KeyError:
        logging.error("Unknown note name: %s", note_name)
        raise ValueError(f"Unknown note name: {note_name}")

    midi_val = note_idx + (octave * 12)
    if not 0 <= midi_val <= 127:
        logging.error("MIDI value out of range: %s -> %d", note, midi_val)
        raise ValueError(
            f"Computed MIDI value {midi_val} out of range 0-127 for note {note}"
        )
    return midi_val


def midi_to_note(midi_note: int) -> str:
    """Convert a MIDI number into a note name using sharps.

    Examples
    --------
    >>> midi_to_note(66)
    'F#4'
    """

    if not 0 <= midi_note <= 127:
        raise ValueError(f"MIDI note {midi_note} out of range 0-127")
    octave = midi_note // 12 - 1
    return f"{NOTES[midi_note % 12]}{octave}"


def pitch_value(pitch: PitchIdentifier) -> int:
    """Return the MIDI number for ``pitch``.

    Integers are treated as MIDI numbers already and only range checked;
    strings are parsed with :func:`note_to_midi`.
    """

    # ``bool`` is an ``int`` subclass but never a meaningful pitch.
    if isinstance(pitch, bool):
        raise ValueError(f"Invalid pitch identifier: {pitch!r}")
    if isinstance(pitch, int):
        if not 0 <= pitch <= 127:
            raise ValueError(f"MIDI note {pitch} out of range 0-127")
        return pitch
    if isinstance(pitch, str):
        return note_to_midi(pitch)
    raise ValueError(f"Invalid pitch identifier: {pitch!r}")


def build_scale(
    root: str,
    mode: str,
    *,
    octaves: int = 3,
    start_octave: int = 3,
) -> List[str]:
    """Return ``octaves`` consecutive octaves of ``mode`` starting at ``root``.

    Octave numbers follow the pitch rather than the scale degree, so an
    ``A`` aeolian scale starting in octave 3 runs ``A3, B3, C4, ...``.
    The result is strictly ascending.

    Raises
    ------
    ValueError
        If ``root`` or ``mode`` is unknown, ``octaves`` is not positive or a
        resulting pitch leaves the MIDI range.
    """

    if mode not in MODE_PATTERNS:
        raise ValueError(f"Unknown mode: {mode}")
    if octaves <= 0:
        raise ValueError("octaves must be positive")
    root_midi = note_to_midi(f"{root}{start_octave}")
    notes: List[str] = []
    for octave in range(octaves):
        for interval in MODE_PATTERNS[mode]:
            notes.append(midi_to_note(root_midi + octave * 12 + interval))
    return notes


def is_strictly_ascending(scale: Sequence[PitchIdentifier]) -> bool:
    """Return ``True`` when every pitch in ``scale`` is higher than the last."""

    values = [pitch_value(p) for p in scale]
    return all(a < b for a, b in zip(values, values[1:]))
