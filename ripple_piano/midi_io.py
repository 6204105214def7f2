"""MIDI synthesis collaborators built on :mod:`mido`.

A session hands every generated note to a *synth* callable with the
signature ``synth(note, duration_hint, velocity)``.  This module provides two
such callables:

:class:`NoteRecorder`
    Collects timestamped notes and renders them into a Standard MIDI File.
:class:`MidiPortSynth`
    Plays notes live on a MIDI output port, scheduling each ``note_off``
    after the note's duration.

Durations use the musical notation common in web audio frameworks: ``"4n"``
is a quarter note, ``"8n"`` an eighth, ``"8n."`` a dotted eighth, ``"8t"`` an
eighth-note triplet and ``"1m"`` one 4/4 measure.  Plain numbers are seconds.

``mido`` is imported lazily so the core trigger and melody modules can be
used without loading the MIDI stack.

Example
-------
>>> duration_to_seconds("8n", 120)
0.25
>>> velocity_to_midi(1.0)
127
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, NamedTuple, Optional, Union

from .note_utils import pitch_value

if TYPE_CHECKING:
    from mido import MidiFile

__all__ = [
    "RecordedNote",
    "NoteRecorder",
    "MidiPortSynth",
    "duration_to_seconds",
    "velocity_to_midi",
    "list_output_ports",
]

logger = logging.getLogger(__name__)

TICKS_PER_BEAT = 480


def _import_mido():
    try:
        import mido
    except ModuleNotFoundError as exc:
        raise ImportError(
            "mido is required for MIDI output; install it with 'pip install mido'"
        ) from exc
    return mido


def velocity_to_midi(velocity: float) -> int:
    """Convert a ``0.0-1.0`` velocity into the MIDI range ``1-127``."""

    return max(1, min(127, int(round(velocity * 127))))


def duration_to_seconds(hint: Union[str, float, int], bpm: float) -> float:
    """Return the length of ``hint`` in seconds at ``bpm`` (4/4 time).

    Raises
    ------
    ValueError
        If ``bpm`` is not positive or ``hint`` is not recognised.
    """

    if bpm <= 0:
        raise ValueError("bpm must be positive")
    if isinstance(hint, (int, float)) and not isinstance(hint, bool):
        if hint < 0:
            raise ValueError("duration must be non-negative")
        return float(hint)

    beat = 60.0 / bpm
    match = re.fullmatch(r"(\d+)([nmt])(\.?)", str(hint).strip())
    if not match:
        try:
            seconds = float(hint)
        except ValueError:
            raise ValueError(f"Unknown duration: {hint}") from None
        if seconds < 0:
            raise ValueError("duration must be non-negative")
        return seconds

    count, unit, dot = match.groups()
    value = int(count)
    if value <= 0:
        raise ValueError(f"Unknown duration: {hint}")
    if unit == "m":
        seconds = 4 * beat * value
    else:
        # ``Nn`` is an N-th note: a whole note spans four beats.
        seconds = 4 * beat / value
        if unit == "t":
            seconds *= 2.0 / 3.0
    if dot:
        seconds *= 1.5
    return seconds


def list_output_ports() -> List[str]:
    """Return the names of the available MIDI output ports."""

    return list(_import_mido().get_output_names())


class RecordedNote(NamedTuple):
    time_ms: float
    pitch: int
    duration: float
    velocity: float


class NoteRecorder:
    """Synth collaborator that records notes for later MIDI export.

    Parameters
    ----------
    clock:
        Zero-argument callable returning the current time in milliseconds,
        typically ``scheduler.now_ms``.
    bpm:
        Tempo used to resolve duration hints and to write the file.
    """

    def __init__(self, clock: Callable[[], float], *, bpm: float = 120) -> None:
        if bpm <= 0:
            raise ValueError("bpm must be positive")
        self.clock = clock
        self.bpm = bpm
        self.notes: List[RecordedNote] = []

    def __call__(self, note, duration_hint, velocity: float) -> None:
        self.notes.append(
            RecordedNote(
                self.clock(),
                pitch_value(note),
                duration_to_seconds(duration_hint, self.bpm),
                velocity,
            )
        )

    def _ms_to_ticks(self, ms: float) -> int:
        beats = ms / 1000.0 * self.bpm / 60.0
        return int(round(beats * TICKS_PER_BEAT))

    def to_midi_file(self, *, program: int = 0, channel: int = 0) -> "MidiFile":
        """Return the recorded notes as a single-track ``MidiFile``."""

        mido = _import_mido()
        if not 0 <= program <= 127:
            raise ValueError("program must be between 0 and 127")

        mid = mido.MidiFile(ticks_per_beat=TICKS_PER_BEAT)
        track = mido.MidiTrack()
        mid.tracks.append(track)
        track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(self.bpm), time=0))
        track.append(mido.Message("program_change", program=program, channel=channel, time=0))

        # (absolute tick, sort key, message); note_off sorts before note_on
        # on the same tick so repeated pitches retrigger cleanly.
        events = []
        for rec in self.notes:
            start = self._ms_to_ticks(rec.time_ms)
            end = max(start + 1, self._ms_to_ticks(rec.time_ms + rec.duration * 1000.0))
            vel = velocity_to_midi(rec.velocity)
            events.append((start, 1, mido.Message("note_on", note=rec.pitch, velocity=vel, channel=channel)))
            events.append((end, 0, mido.Message("note_off", note=rec.pitch, velocity=0, channel=channel)))
        events.sort(key=lambda e: (e[0], e[1]))

        last_tick = 0
        for tick, _, msg in events:
            track.append(msg.copy(time=tick - last_tick))
            last_tick = tick
        return mid

    def save(self, path: Union[str, Path], *, program: int = 0) -> "MidiFile":
        """Write the recording to ``path``, creating parent folders."""

        mid = self.to_midi_file(program=program)
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        mid.save(str(path))
        logger.info("Wrote %d notes to %s", len(self.notes), path)
        return mid


class MidiPortSynth:
    """Synth collaborator that plays notes on a live MIDI output port.

    Parameters
    ----------
    scheduler:
        Used to schedule each ``note_off``.
    port_name:
        Output port to open; ``None`` opens the backend's default port.
    port:
        An already open port, used instead of opening ``port_name``.
    """

    def __init__(
        self,
        scheduler,
        *,
        port_name: Optional[str] = None,
        port=None,
        bpm: float = 120,
        channel: int = 0,
        program: Optional[int] = None,
    ) -> None:
        self._mido = _import_mido()
        self.scheduler = scheduler
        self.bpm = bpm
        self.channel = channel
        self.port = port if port is not None else self._mido.open_output(port_name)
        if program is not None:
            self.port.send(self._mido.Message("program_change", program=program, channel=channel))

    def __call__(self, note, duration_hint, velocity: float) -> None:
        pitch = pitch_value(note)
        seconds = duration_to_seconds(duration_hint, self.bpm)
        self.port.send(
            self._mido.Message(
                "note_on", note=pitch, velocity=velocity_to_midi(velocity), channel=self.channel
            )
        )
        self.scheduler.call_later(seconds * 1000.0, lambda: self._note_off(pitch))

    def _note_off(self, pitch: int) -> None:
        if self.port.closed:
            return
        self.port.send(self._mido.Message("note_off", note=pitch, velocity=0, channel=self.channel))

    def close(self) -> None:
        """Silence every note and close the port."""

        if not self.port.closed:
            self.port.reset()
            self.port.close()
