"""Unit tests for note conversion and scale construction helpers."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

note_utils = importlib.import_module("ripple_piano.note_utils")


def test_sharp_and_flat_conversion():
    """Sharps and their enharmonic flats share a MIDI number."""

    assert note_utils.note_to_midi("C#4") == 61
    assert note_utils.note_to_midi("Db4") == 61
    assert note_utils.note_to_midi("C-1") == 0


@pytest.mark.parametrize("bad", ["H4", "C", "C-2", "C10"])
def test_invalid_notes_raise(bad):
    """Malformed or out-of-range notes raise ``ValueError``."""

    with pytest.raises(ValueError):
        note_utils.note_to_midi(bad)


def test_midi_to_note_round_trip():
    """Sharps are used when converting back to names."""

    assert note_utils.midi_to_note(66) == "F#4"
    with pytest.raises(ValueError):
        note_utils.midi_to_note(128)


def test_pitch_value_accepts_names_and_numbers():
    """Pitch identifiers may be names or MIDI numbers."""

    assert note_utils.pitch_value("A4") == 69
    assert note_utils.pitch_value(69) == 69
    for bad in (True, 200, 4.5):
        with pytest.raises(ValueError):
            note_utils.pitch_value(bad)


def test_build_scale_lydian():
    """Three octaves of C Lydian match the classic layout."""

    scale = note_utils.build_scale("C", "lydian", octaves=3, start_octave=3)
    assert scale[:7] == ["C3", "D3", "E3", "F#3", "G3", "A3", "B3"]
    assert scale[7] == "C4"
    assert len(scale) == 21
    assert note_utils.is_strictly_ascending(scale)


def test_build_scale_crosses_octave_boundary():
    """Octave numbers follow the pitch for roots other than C."""

    scale = note_utils.build_scale("A", "aeolian", octaves=1, start_octave=3)
    assert scale == ["A3", "B3", "C4", "D4", "E4", "F4", "G4"]


def test_build_scale_errors():
    """Unknown modes and non-positive octave counts are rejected."""

    with pytest.raises(ValueError):
        note_utils.build_scale("C", "bebop")
    with pytest.raises(ValueError):
        note_utils.build_scale("C", "lydian", octaves=0)
