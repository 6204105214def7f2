"""Integration tests for :class:`RippleSession`."""

from __future__ import annotations

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

config_mod = importlib.import_module("ripple_piano.config")
session_mod = importlib.import_module("ripple_piano.session")
scheduler_mod = importlib.import_module("ripple_piano.scheduler")
RippleSession = session_mod.RippleSession


def test_first_note_is_tonic_and_reaches_synth():
    """A loud tick plays the tonic through the synth with the duration hint."""

    calls = []
    session = RippleSession(synth=lambda *args: calls.append(args), seed=1)
    assert session.tick(0.01) is None
    event = session.tick(0.5)
    assert event.note == "C4" and event.index == 7
    assert calls == [("C4", "8n", pytest.approx(0.65))]
    assert len(session.ripples) == 1
    assert session.fired_count == 1


def test_protection_blocks_repeat_triggers():
    """A second loud tick inside the silence window plays nothing."""

    session = RippleSession(seed=1)
    session.tick(0.5)
    session.scheduler.advance(50)
    assert session.tick(0.9) is None
    assert session.trigger_state.gated
    assert session.current_threshold == pytest.approx(0.085)
    assert session.current_volume == 0.9


def test_custom_visual_receives_volume():
    """The visual hook is called with the triggering volume."""

    seen = []
    session = RippleSession(visual=seen.append, seed=1)
    session.tick(0.4)
    assert seen == [0.4]
    assert len(session.ripples) == 0


def test_reset_returns_to_tonic():
    """After a reset the next note is the tonic again."""

    session = RippleSession(seed=3)
    sched = session.scheduler
    for _ in range(5):
        session.tick(0.5)
        sched.advance(700)
    session.reset()
    assert len(session.ripples) == 0
    assert session.fired_count == 0
    assert not session.trigger_state.gated
    assert session.tick(0.5).index == 7


def test_sessions_are_independent():
    """Two sessions share no trigger or melody state."""

    first = RippleSession(seed=1)
    second = RippleSession(seed=1)
    first.tick(0.5)
    assert first.trigger_state.gated
    assert not second.trigger_state.gated
    assert second.tick(0.5).index == 7


def _play(seed):
    session = RippleSession(seed=seed)
    notes = []
    for i in range(200):
        event = session.tick(0.5 if i % 40 == 0 else 0.0)
        if event is not None:
            notes.append(event.note)
        session.scheduler.advance(1000 / 60)
    return notes


def test_seeded_sessions_are_reproducible():
    """The same seed replays the same melody."""

    assert _play(42) == _play(42)
    assert len(_play(42)) == 5


def test_pentatonic_preset_session():
    """Sessions accept any preset configuration."""

    session = RippleSession(config_mod.preset_config("pentatonic"), seed=0)
    event = session.tick(0.3)
    assert event.note == "C4"


def test_session_melody_matches_standalone_generator():
    """A seeded session plays the same notes as a generator with that seed."""

    melody_mod = importlib.import_module("ripple_piano.melody")
    generator = melody_mod.MarkovMelodyGenerator(config_mod.RippleConfig(), seed=9)
    session = RippleSession(seed=9)
    played = []
    for _ in range(8):
        played.append(session.tick(0.5).index)
        session.scheduler.advance(700)
    assert played == [generator.next(0.5).index for _ in range(8)]


def test_injected_rng_is_not_advanced_at_construction():
    """Building a session leaves an injected random source untouched."""

    rng = random.Random(4)
    state = rng.getstate()
    RippleSession(rng=rng)
    assert rng.getstate() == state
