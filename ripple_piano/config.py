"""Configuration for Voice Ripple Piano sessions.

Every tunable value of the trigger controller, the melody generator and the
ripple model lives in a single frozen :class:`RippleConfig`.  Instances are
validated as they are constructed so an invalid scale or transition table is
reported immediately with a :class:`ConfigurationError` rather than failing
on some later tick.

User preferences are persisted as JSON in the same way the desktop tools in
this family do it: :func:`load_settings` returns an empty dictionary when the
file is missing or unreadable and :func:`save_settings` logs failures instead
of raising.  :func:`config_from_settings` turns such a dictionary into a
config, starting from one of the named :data:`PRESETS`.

Example
-------
>>> from ripple_piano.config import RippleConfig, preset_config
>>> cfg = preset_config("pentatonic")
>>> cfg.scale[cfg.tonic_index]
'C4'
>>> RippleConfig(silence_ms=0)
Traceback (most recent call last):
    ...
ripple_piano.config.ConfigurationError: silence_ms must be positive
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from .note_utils import build_scale, is_strictly_ascending

__all__ = [
    "TONIC",
    "Transition",
    "RippleConfig",
    "ConfigurationError",
    "PRESETS",
    "DEFAULT_SETTINGS_FILE",
    "preset_config",
    "load_settings",
    "save_settings",
    "config_from_settings",
    "settings_from_config",
]

logger = logging.getLogger(__name__)

# Sentinel delta meaning "return to the tonic of the current octave".
TONIC = "tonic"

# Probabilities in a transition table must sum to one within this tolerance.
PROBABILITY_TOLERANCE = 1e-6

env_path = os.environ.get("RIPPLE_SETTINGS_FILE")
if env_path:
    DEFAULT_SETTINGS_FILE = Path(env_path).expanduser()
else:
    DEFAULT_SETTINGS_FILE = Path.home() / ".ripple_piano_settings.json"


class ConfigurationError(ValueError):
    """Raised when a configuration violates one of its constraints."""


class Transition(NamedTuple):
    """One entry of the Markov transition table."""

    delta: Union[int, str]
    probability: float


# Step probabilities lean slightly upward which suits the floating character
# of the Lydian mode.  Order matters for cumulative selection.
DEFAULT_TRANSITIONS: Tuple[Transition, ...] = (
    Transition(-3, 0.05),
    Transition(-2, 0.10),
    Transition(-1, 0.20),
    Transition(0, 0.10),
    Transition(1, 0.25),
    Transition(2, 0.15),
    Transition(3, 0.05),
    Transition(TONIC, 0.10),
)

# C Lydian across three octaves, C3 through B5.
DEFAULT_SCALE: Tuple[str, ...] = tuple(build_scale("C", "lydian", octaves=3, start_octave=3))


_INT_FIELDS = ("notes_per_octave", "tonic_index", "tonic_offset", "max_ripples")
_REAL_FIELDS = (
    "base_threshold",
    "dynamic_boost",
    "silence_ms",
    "cooldown_ms",
    "threshold_restore_ms",
    "release_tail_ms",
    "min_velocity",
    "max_velocity",
    "mic_gain_db",
    "meter_smoothing",
    "base_radius",
    "ripple_expand_speed",
    "ripple_fade_speed",
)


def _fail(message: str) -> None:
    logger.error("Invalid configuration: %s", message)
    raise ConfigurationError(message)


def _coerce_transition(entry: Any) -> Transition:
    """Return ``entry`` as a :class:`Transition`.

    Accepts existing transitions, ``(delta, probability)`` pairs and mappings
    with ``delta`` and ``probability`` (or ``prob``) keys as read from JSON.
    """

    if isinstance(entry, Transition):
        return entry
    if isinstance(entry, dict):
        try:
            prob = entry["probability"] if "probability" in entry else entry["prob"]
            return Transition(entry["delta"], prob)
        except KeyError:
            _fail(f"transition entry {entry!r} needs 'delta' and 'probability'")
    try:
        delta, prob = entry
    except (TypeError, ValueError):
        _fail(f"transition entry {entry!r} is not a (delta, probability) pair")
    return Transition(delta, prob)


@dataclass(frozen=True)
class RippleConfig:
    """Immutable parameters shared by every component of a session.

    Timer durations are in milliseconds.  ``tonic_offset`` is the position of
    the tonic inside each octave of ``scale`` and ``tonic_index`` the index
    the melody starts from after construction or reset.
    """

    # Trigger controller
    base_threshold: float = 0.025
    dynamic_boost: float = 0.06
    silence_ms: float = 100
    cooldown_ms: float = 220
    threshold_restore_ms: float = 600
    release_tail_ms: float = 400

    # Melody generator
    scale: Tuple[Union[str, int], ...] = DEFAULT_SCALE
    transitions: Tuple[Transition, ...] = DEFAULT_TRANSITIONS
    notes_per_octave: int = 7
    tonic_index: int = 7
    tonic_offset: int = 0
    min_velocity: float = 0.3
    max_velocity: float = 1.0
    duration_hint: str = "8n"

    # Signal and ripple model
    mic_gain_db: float = 3.0
    meter_smoothing: float = 0.3
    base_radius: float = 140
    ripple_expand_speed: float = 3.5
    ripple_fade_speed: float = 2.0
    max_ripples: int = 30

    def __post_init__(self) -> None:
        # Normalise sequences to tuples so the frozen instance is truly
        # immutable and hashable.
        for name in ("scale", "transitions"):
            if isinstance(getattr(self, name), (str, bytes, dict)):
                _fail(f"{name} must be a list")
            try:
                object.__setattr__(self, name, tuple(getattr(self, name)))
            except TypeError:
                _fail(f"{name} must be a list")
        object.__setattr__(
            self, "transitions", tuple(_coerce_transition(t) for t in self.transitions)
        )
        self.validate()

    @property
    def scale_length(self) -> int:
        return len(self.scale)

    @property
    def boosted_threshold(self) -> float:
        return self.base_threshold + self.dynamic_boost

    def validate(self) -> None:
        """Check every constraint, raising :class:`ConfigurationError`."""

        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                _fail(f"{name} must be an integer (got {value!r})")
        for name in _REAL_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                _fail(f"{name} must be a number (got {value!r})")
            if not math.isfinite(value):
                _fail(f"{name} must be finite")

        if not self.scale:
            _fail("scale must contain at least one pitch")
        try:
            ascending = is_strictly_ascending(self.scale)
        except ValueError as exc:
            _fail(f"scale contains an invalid pitch: {exc}")
        if not ascending:
            _fail("scale must be in strictly ascending pitch order")

        if not self.transitions:
            _fail("transition table must contain at least one entry")
        for entry in self.transitions:
            delta = entry.delta
            if delta != TONIC and (isinstance(delta, bool) or not isinstance(delta, int)):
                _fail(f"transition delta {delta!r} must be an integer or {TONIC!r}")
            if isinstance(entry.probability, bool) or not isinstance(entry.probability, (int, float)):
                _fail(f"transition probability {entry.probability!r} must be a number")
            if not math.isfinite(entry.probability) or entry.probability < 0:
                _fail(f"transition probability {entry.probability!r} must be non-negative")
        total = math.fsum(t.probability for t in self.transitions)
        if not math.isclose(total, 1.0, abs_tol=PROBABILITY_TOLERANCE):
            _fail(f"transition probabilities must sum to 1.0 (got {total:.6f})")

        if self.notes_per_octave <= 0:
            _fail("notes_per_octave must be positive")
        if not 0 <= self.tonic_offset < self.notes_per_octave:
            _fail("tonic_offset must lie within one octave of the scale")
        if not 0 <= self.tonic_index < len(self.scale):
            _fail(f"tonic_index {self.tonic_index} is outside the scale")

        for name in ("silence_ms", "cooldown_ms", "threshold_restore_ms"):
            if getattr(self, name) <= 0:
                _fail(f"{name} must be positive")
        if self.release_tail_ms < 0:
            _fail("release_tail_ms must be non-negative")
        if self.threshold_restore_ms < self.release_tail_ms:
            _fail(
                "threshold_restore_ms must be at least release_tail_ms"
            )

        if self.base_threshold < 0:
            _fail("base_threshold must be non-negative")
        if self.dynamic_boost < 0:
            _fail("dynamic_boost must be non-negative")
        if self.min_velocity > self.max_velocity:
            _fail("min_velocity cannot exceed max_velocity")
        if self.min_velocity < 0:
            _fail("min_velocity must be non-negative")

        if not 0 <= self.meter_smoothing < 1:
            _fail("meter_smoothing must be in [0, 1)")
        if self.max_ripples <= 0:
            _fail("max_ripples must be positive")
        if self.ripple_fade_speed <= 0:
            _fail("ripple_fade_speed must be positive")


PRESETS: Dict[str, Dict[str, Any]] = {
    "lydian": {},
    # More sensitive trigger and a 1.2 s synth release tail.
    "pentatonic": {
        "base_threshold": 0.02,
        "dynamic_boost": 0.04,
        "silence_ms": 80,
        "cooldown_ms": 180,
        "threshold_restore_ms": 1200,
        "release_tail_ms": 1200,
        "mic_gain_db": 6.0,
        "scale": tuple(build_scale("C", "pentatonic", octaves=3, start_octave=3)),
        "notes_per_octave": 5,
        "tonic_index": 5,
    },
}


def preset_config(name: str = "lydian", **overrides: Any) -> RippleConfig:
    """Return the named preset with ``overrides`` applied.

    Raises
    ------
    ValueError
        If ``name`` is not one of :data:`PRESETS`.
    """

    try:
        values = dict(PRESETS[name])
    except KeyError:
        raise ValueError(f"Unknown preset: {name}") from None
    values.update(overrides)
    return RippleConfig(**values)


def load_settings(path: Path = DEFAULT_SETTINGS_FILE) -> dict:
    """Load saved user settings from ``path`` if it exists.

    Missing or unreadable files yield an empty dictionary so a broken
    preferences file never prevents a session from starting.
    """

    if path.is_file():
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logging.error(f"Could not load settings: {exc}")
            return {}
        if isinstance(data, dict):
            return data
        logging.error("Could not load settings: %s does not contain an object", path)
    return {}


def save_settings(settings: dict, path: Path = DEFAULT_SETTINGS_FILE) -> None:
    """Save user ``settings`` to ``path`` as JSON, logging any failure."""

    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, indent=2)
    except OSError as exc:
        logging.error(f"Could not save settings: {exc}")


_FIELD_NAMES = frozenset(f.name for f in fields(RippleConfig))


def config_from_settings(
    settings: dict, base: Optional[RippleConfig] = None
) -> RippleConfig:
    """Build a config from a settings dictionary.

    The optional ``preset`` key selects the starting point (defaults to
    ``base`` or the ``lydian`` preset); every other key must name a
    :class:`RippleConfig` field.
    """

    values = dict(settings)
    preset = values.pop("preset", None)
    unknown = sorted(set(values) - _FIELD_NAMES)
    if unknown:
        _fail(f"unknown settings: {', '.join(unknown)}")
    if preset is not None:
        start = preset_config(preset)
    else:
        start = base or RippleConfig()
    return replace(start, **values)


def settings_from_config(config: RippleConfig, *, preset: Optional[str] = None) -> dict:
    """Return a JSON-serialisable dictionary describing ``config``."""

    data = asdict(config)
    data["scale"] = list(config.scale)
    data["transitions"] = [
        {"delta": t.delta, "probability": t.probability} for t in config.transitions
    ]
    if preset is not None:
        data["preset"] = preset
    return data
