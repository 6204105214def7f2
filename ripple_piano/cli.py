"""Command line replay tool for Voice Ripple Piano.

The browser version listens to a live microphone.  From the command line the
same trigger and melody logic is driven by a recording instead: either a WAV
file, which is metered one tick at a time, or a plain list of volume values
(text, CSV or JSON).  Every note the session plays is written to a MIDI file
and, when ``--port`` names a MIDI output, also played live in real time.

Example
-------
Running ``python -m ripple_piano --input voice.wav --output voice.mid --seed 7``
replays ``voice.wav`` at 60 ticks per second with the default Lydian preset
and saves the resulting melody to ``voice.mid``.  ``--preset pentatonic``
switches to the pentatonic configuration and ``--settings-file`` points at a
JSON file of overrides (see :func:`ripple_piano.config.config_from_settings`).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
import wave
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from .config import (
    DEFAULT_SETTINGS_FILE,
    PRESETS,
    config_from_settings,
    load_settings,
    save_settings,
    settings_from_config,
)
from .meter import VolumeMeter, frames
from .midi_io import MidiPortSynth, NoteRecorder, list_output_ports
from .scheduler import ManualScheduler, ThreadingScheduler
from .session import RippleSession

__all__ = ["run_cli", "main", "read_wav", "read_volumes"]

DEFAULT_TICK_MS = 1000.0 / 60.0


def read_wav(path: Path) -> tuple:
    """Return ``(samples, sample_rate)`` for a PCM WAV file.

    Multi-channel audio is averaged to mono and scaled to ``[-1, 1]``.
    """

    with wave.open(str(path), "rb") as wav:
        channels = wav.getnchannels()
        width = wav.getsampwidth()
        rate = wav.getframerate()
        raw = wav.readframes(wav.getnframes())

    if width == 1:
        data = (np.frombuffer(raw, dtype=np.uint8).astype(np.float64) - 128.0) / 128.0
    elif width == 2:
        data = np.frombuffer(raw, dtype="<i2").astype(np.float64) / 32768.0
    elif width == 4:
        data = np.frombuffer(raw, dtype="<i4").astype(np.float64) / 2147483648.0
    else:
        raise ValueError(f"Unsupported sample width: {width * 8} bits")
    if channels > 1:
        data = data.reshape(-1, channels).mean(axis=1)
    return data, rate


def read_volumes(path: Path) -> List[float]:
    """Read a list of volume values from a JSON, CSV or whitespace file."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        values = json.loads(text)
        if not isinstance(values, list):
            raise ValueError("JSON volume file must contain a list")
    else:
        values = text.replace(",", " ").split()
    volumes = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"Volume {value!r} is not a number")
        volumes.append(float(value))
    return volumes


def _load_input(path: Path, tick_ms: float, meter: VolumeMeter) -> List[float]:
    if path.suffix.lower() == ".wav":
        samples, rate = read_wav(path)
        frame_size = max(1, int(round(rate * tick_ms / 1000.0)))
        return [meter.update(frame) for frame in frames(samples, frame_size)]
    return read_volumes(path)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay a recording through the voice-triggered melody generator."
    )
    parser.add_argument("--input", type=str, help="WAV file or list of volumes (.txt, .csv, .json)")
    parser.add_argument("--output", type=str, help="MIDI file to write the played notes to")
    parser.add_argument("--preset", type=str, help=f"Configuration preset ({', '.join(PRESETS)})")
    parser.add_argument("--settings-file", type=str, help="Path to a JSON settings file")
    parser.add_argument("--save-settings", action="store_true", help="Write the effective settings back to the settings file")
    parser.add_argument("--tick-ms", type=float, default=DEFAULT_TICK_MS, help="Tick interval in milliseconds (default: 60 ticks per second)")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible output")
    parser.add_argument("--bpm", type=float, default=120, help="Tempo used to resolve note durations (default: 120)")
    parser.add_argument("--instrument", type=int, default=0, help="MIDI program number for the notes")
    parser.add_argument("--port", type=str, help="Play notes live on this MIDI output port")
    parser.add_argument("--list-presets", action="store_true", help="List configuration presets and exit")
    parser.add_argument("--list-ports", action="store_true", help="List MIDI output ports and exit")
    parser.add_argument("--verbose", action="store_true", help="Log every trigger and note")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> None:
    """Parse ``argv`` and replay the requested recording.

    Invalid arguments are reported with ``logging.error`` and terminate the
    process with exit status ``1``.
    """

    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.list_presets:
        print("\n".join(sorted(PRESETS)))
        return
    if args.list_ports:
        print("\n".join(list_output_ports()))
        return

    if not args.input:
        logging.error("An --input file is required.")
        sys.exit(1)
    if args.tick_ms <= 0:
        logging.error("Tick interval must be positive.")
        sys.exit(1)
    if args.bpm <= 0:
        logging.error("BPM must be positive.")
        sys.exit(1)
    if not 0 <= args.instrument <= 127:
        logging.error("Instrument must be between 0 and 127.")
        sys.exit(1)

    settings_path = (
        Path(args.settings_file).expanduser() if args.settings_file else DEFAULT_SETTINGS_FILE
    )
    settings = load_settings(settings_path)
    if args.preset:
        settings["preset"] = args.preset
    try:
        config = config_from_settings(settings)
    except ValueError as exc:
        logging.error(str(exc))
        sys.exit(1)
    if args.save_settings:
        save_settings(settings_from_config(config, preset=settings.get("preset")), settings_path)

    input_path = Path(args.input).expanduser()
    try:
        volumes = _load_input(input_path, args.tick_ms, VolumeMeter.from_config(config))
    except (OSError, ValueError, wave.Error) as exc:
        logging.error("Could not read input %s: %s", input_path, exc)
        sys.exit(1)

    realtime = args.port is not None
    scheduler = ThreadingScheduler() if realtime else ManualScheduler()
    recorder = NoteRecorder(scheduler.now_ms, bpm=args.bpm)
    port_synth = None
    if realtime:
        try:
            port_synth = MidiPortSynth(
                scheduler, port_name=args.port, bpm=args.bpm, program=args.instrument
            )
        except (OSError, ImportError) as exc:
            logging.error("Could not open MIDI port %s: %s", args.port, exc)
            sys.exit(1)

    def synth(note, duration_hint, velocity):
        recorder(note, duration_hint, velocity)
        if port_synth is not None:
            port_synth(note, duration_hint, velocity)

    session = RippleSession(config, scheduler=scheduler, synth=synth, seed=args.seed)
    try:
        for volume in volumes:
            session.tick(volume)
            if realtime:
                time.sleep(args.tick_ms / 1000.0)
            else:
                scheduler.advance(args.tick_ms)
    finally:
        if port_synth is not None:
            port_synth.close()
            scheduler.cancel_all()

    logging.info("Replayed %d ticks, %d notes played.", len(volumes), session.fired_count)
    if args.output:
        try:
            recorder.save(args.output, program=args.instrument)
        except OSError as exc:
            logging.error("Could not write MIDI file: %s", exc)
            sys.exit(1)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Console entry point."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    run_cli(argv)
