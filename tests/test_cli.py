"""Tests for the command line replay tool."""

from __future__ import annotations

import importlib
import json
import sys
import wave
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

mido = pytest.importorskip("mido")
cli = importlib.import_module("ripple_piano.cli")


def _note_ons(path):
    return [m for m in mido.MidiFile(str(path)).tracks[0] if m.type == "note_on"]


def _write_wav(path, samples, rate=8000):
    pcm = (np.clip(samples, -1, 1) * 32767).astype("<i2")
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(pcm.tobytes())


def test_volume_file_to_midi(tmp_path):
    """A list of volumes produces one note per accepted trigger."""

    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.0, 0.01, 0.5, 0.5\n0.0 0.0")
    out = tmp_path / "out.mid"
    cli.run_cli([
        "--input", str(volumes),
        "--output", str(out),
        "--settings-file", str(tmp_path / "settings.json"),
        "--seed", "1",
    ])
    notes = _note_ons(out)
    assert len(notes) == 1
    assert notes[0].note == 60


def test_json_volume_file(tmp_path):
    """JSON lists are accepted as input."""

    volumes = tmp_path / "volumes.json"
    volumes.write_text(json.dumps([0.5] + [0.0] * 60 + [0.5]))
    out = tmp_path / "out.mid"
    cli.run_cli([
        "--input", str(volumes),
        "--output", str(out),
        "--settings-file", str(tmp_path / "settings.json"),
    ])
    assert len(_note_ons(out)) == 2


def test_wav_burst_plays_single_note(tmp_path):
    """A short vocal burst in silence triggers exactly once."""

    rate = 8000
    t = np.arange(int(rate * 0.1)) / rate
    burst = 0.5 * np.sin(2 * np.pi * 220 * t)
    silence = np.zeros(rate // 2)
    wav_path = tmp_path / "voice.wav"
    _write_wav(wav_path, np.concatenate([silence, burst, silence]), rate)
    out = tmp_path / "voice.mid"
    cli.run_cli([
        "--input", str(wav_path),
        "--output", str(out),
        "--settings-file", str(tmp_path / "settings.json"),
    ])
    assert len(_note_ons(out)) == 1


def test_read_wav_stereo_to_mono(tmp_path):
    """Stereo files are averaged to one channel."""

    path = tmp_path / "stereo.wav"
    frames = np.array([[16384, 0], [-16384, 0]], dtype="<i2")
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(8000)
        wav.writeframes(frames.tobytes())
    samples, rate = cli.read_wav(path)
    assert rate == 8000
    assert samples.tolist() == pytest.approx([0.25, -0.25])


@pytest.mark.parametrize(
    "extra",
    [
        ["--tick-ms", "0"],
        ["--bpm", "-5"],
        ["--instrument", "200"],
        ["--preset", "nonexistent"],
    ],
)
def test_invalid_arguments_exit(tmp_path, extra):
    """Invalid options log an error and exit with status 1."""

    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.5")
    argv = ["--input", str(volumes), "--settings-file", str(tmp_path / "s.json")] + extra
    with pytest.raises(SystemExit) as exc:
        cli.run_cli(argv)
    assert exc.value.code == 1


def test_missing_input_exits(tmp_path):
    """Unreadable input files exit with status 1."""

    with pytest.raises(SystemExit) as exc:
        cli.run_cli([
            "--input", str(tmp_path / "missing.txt"),
            "--settings-file", str(tmp_path / "s.json"),
        ])
    assert exc.value.code == 1


def test_list_presets(capsys):
    """``--list-presets`` prints every preset name."""

    cli.run_cli(["--list-presets"])
    assert capsys.readouterr().out.split() == ["lydian", "pentatonic"]


def test_save_settings(tmp_path):
    """``--save-settings`` stores the effective configuration."""

    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.0")
    settings = tmp_path / "settings.json"
    cli.run_cli([
        "--input", str(volumes),
        "--preset", "pentatonic",
        "--settings-file", str(settings),
        "--save-settings",
    ])
    saved = json.loads(settings.read_text())
    assert saved["preset"] == "pentatonic"
    assert saved["notes_per_octave"] == 5
    assert saved["threshold_restore_ms"] == 1200


def test_settings_file_overrides(tmp_path):
    """Values in the settings file change trigger behaviour."""

    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"base_threshold": 0.9, "dynamic_boost": 0.05}))
    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.5 0.5 0.5")
    out = tmp_path / "out.mid"
    cli.run_cli(["--input", str(volumes), "--output", str(out), "--settings-file", str(settings)])
    assert _note_ons(out) == []


def test_default_settings_file_used(tmp_path, monkeypatch):
    """Without ``--settings-file`` the default settings path is read."""

    settings = tmp_path / "default.json"
    settings.write_text(json.dumps({"preset": "pentatonic"}))
    monkeypatch.setattr(cli, "DEFAULT_SETTINGS_FILE", settings)
    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.5")
    out = tmp_path / "out.mid"
    cli.run_cli(["--input", str(volumes), "--output", str(out), "--save-settings"])
    assert json.loads(settings.read_text())["notes_per_octave"] == 5
    assert _note_ons(out)[0].note == 60


@pytest.mark.parametrize("content", ["[null]", "[0.5, \"loud\"]", "[[0.5]]", "[true]"])
def test_non_numeric_json_volumes_exit(tmp_path, content, caplog):
    """Non-numeric entries in a JSON volume list are reported, not raised."""

    volumes = tmp_path / "volumes.json"
    volumes.write_text(content)
    with pytest.raises(SystemExit) as exc:
        cli.run_cli(["--input", str(volumes), "--settings-file", str(tmp_path / "s.json")])
    assert exc.value.code == 1
    assert "Could not read input" in caplog.text


def test_wrongly_typed_settings_exit(tmp_path, caplog):
    """A settings file with a string threshold fails cleanly."""

    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"base_threshold": "0.02"}))
    volumes = tmp_path / "volumes.txt"
    volumes.write_text("0.5")
    with pytest.raises(SystemExit) as exc:
        cli.run_cli(["--input", str(volumes), "--settings-file", str(settings)])
    assert exc.value.code == 1
    assert "base_threshold" in caplog.text
