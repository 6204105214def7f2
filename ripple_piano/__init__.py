#!/usr/bin/env python3
"""Voice Ripple Piano library.

A microphone signal drives both a note generator and a ripple visualization.
Once per tick the host passes the current volume to a
:class:`RippleSession`; when the volume crosses the trigger threshold the
session asks the Markov-chain melody generator for the next note, hands it
to a synth collaborator and spawns a ripple.

Underlying Algorithm
--------------------
The trigger fires when ``volume > threshold`` and neither protection gate is
closed.  Each fire immediately silences the trigger, starts a cooldown and
raises the threshold so the synthesized note cannot re-trigger itself through
the microphone; three independent timers reopen the gates and restore the
threshold.  The melody starts on the tonic and then moves by scale steps
drawn from a probability table, reflecting off the ends of the scale::

    decision = trigger.evaluate(volume)
    if decision.fired:
        index = tonic if first else reflect(last + draw(transitions))
        velocity = min_velocity + (max_velocity - min_velocity) * volume
        synth(scale[index], "8n", velocity)
        ripple(volume)

Features include:
- Feedback protection with generation-guarded timers.
- Seedable Markov melody generation over any multi-octave modal scale.
- RMS volume metering of raw sample buffers.
- MIDI recording and live MIDI port output through ``mido``.
- JSON settings with named presets and a command line replay tool.
"""

__version__ = "0.1.0"

from .config import (  # noqa: F401
    TONIC,
    ConfigurationError,
    PRESETS,
    RippleConfig,
    Transition,
    config_from_settings,
    load_settings,
    preset_config,
    save_settings,
    settings_from_config,
)
from .note_utils import build_scale, midi_to_note, note_to_midi  # noqa: F401
from .melody import MarkovMelodyGenerator, NoteEvent  # noqa: F401
from .scheduler import ManualScheduler, ThreadingScheduler  # noqa: F401
from .trigger import TriggerController, TriggerDecision, TriggerState  # noqa: F401
from .ripples import Ripple, RippleField, volume_indicator  # noqa: F401
from .meter import VolumeMeter  # noqa: F401
from .session import RippleSession  # noqa: F401


def run_cli(argv=None):
    from .cli import run_cli as _run_cli
    _run_cli(argv)


def main(argv=None):
    from .cli import main as _main
    _main(argv)


if __name__ == "__main__":
    main()
