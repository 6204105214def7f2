"""Volume metering for raw sample buffers.

The trigger controller consumes one volume scalar per tick.  When the caller
has raw audio rather than a ready-made meter reading, :class:`VolumeMeter`
turns each buffer into that scalar the way a typical audio-framework meter
does: apply input gain, take the RMS of the buffer, then hold peaks and let
them decay geometrically (``level = max(rms, previous * smoothing)``).  The
returned level is a normal-range amplitude, not decibels.

Example
-------
>>> import numpy as np
>>> meter = VolumeMeter(gain_db=0.0, smoothing=0.5)
>>> round(meter.update(np.full(128, 0.2)), 6)
0.2
>>> round(meter.update(np.zeros(128)), 6)
0.1
"""

from __future__ import annotations

from typing import Iterator

import numpy as np

from .config import RippleConfig

__all__ = ["VolumeMeter", "db_to_gain", "frames"]


def db_to_gain(db: float) -> float:
    """Convert a decibel value to a linear amplitude factor."""

    return float(10.0 ** (db / 20.0))


def frames(samples, frame_size: int) -> Iterator[np.ndarray]:
    """Yield consecutive ``frame_size`` slices of ``samples``.

    A trailing partial frame is yielded as well so no audio is dropped.
    """

    if frame_size <= 0:
        raise ValueError("frame_size must be positive")
    data = np.asarray(samples, dtype=np.float64)
    for start in range(0, len(data), frame_size):
        yield data[start:start + frame_size]


class VolumeMeter:
    """RMS meter with peak-hold smoothing."""

    def __init__(self, *, gain_db: float = 3.0, smoothing: float = 0.3) -> None:
        if not 0 <= smoothing < 1:
            raise ValueError("smoothing must be in [0, 1)")
        self.gain = db_to_gain(gain_db)
        self.smoothing = smoothing
        self.level = 0.0

    @classmethod
    def from_config(cls, config: RippleConfig) -> "VolumeMeter":
        return cls(gain_db=config.mic_gain_db, smoothing=config.meter_smoothing)

    def reset(self) -> None:
        self.level = 0.0

    def update(self, samples) -> float:
        """Feed one buffer of samples and return the new meter level."""

        data = np.asarray(samples, dtype=np.float64)
        if data.size:
            rms = float(np.sqrt(np.mean(np.square(data * self.gain))))
        else:
            rms = 0.0
        self.level = max(rms, self.level * self.smoothing)
        return self.level
