"""Volume trigger with acoustic feedback protection.

The microphone that drives the trigger also hears the notes the synthesizer
plays in response.  Without protection every note would re-trigger itself.
:class:`TriggerController` therefore runs a short protection protocol each
time it fires:

1. ``silenced`` and ``cooling_down`` are set and the threshold is raised to
   ``base_threshold + dynamic_boost``.
2. After ``silence_ms`` the silence gate lifts.
3. After ``cooldown_ms`` the cooldown gate lifts.
4. After ``threshold_restore_ms`` the threshold drops back to
   ``base_threshold``.

While either gate is closed no volume, however loud, fires the trigger.

Design Notes
------------
- The three timers are independent and never cancelled.  Each fire bumps a
  generation counter and every timer callback checks that its generation is
  still current before touching state.  A restore timer left over from an
  earlier fire therefore cannot drop a threshold that a later fire boosted,
  and :meth:`TriggerController.reset` invalidates all outstanding timers.
- State is guarded by a re-entrant lock because :class:`ThreadingScheduler`
  runs timer callbacks on their own threads.

Example
-------
>>> from ripple_piano.config import RippleConfig
>>> from ripple_piano.scheduler import ManualScheduler
>>> sched = ManualScheduler()
>>> trig = TriggerController(RippleConfig(), sched)
>>> [trig.evaluate(v).fired for v in (0.01, 0.03, 0.01, 0.5)]
[False, True, False, False]
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .config import RippleConfig

__all__ = ["TriggerDecision", "TriggerState", "TriggerController"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of one :meth:`TriggerController.evaluate` call."""

    fired: bool
    volume: float
    threshold: float

    def __bool__(self) -> bool:
        return self.fired


@dataclass(frozen=True)
class TriggerState:
    """Read-only snapshot of the controller's mutable state."""

    cooling_down: bool
    silenced: bool
    current_threshold: float
    generation: int

    @property
    def gated(self) -> bool:
        return self.cooling_down or self.silenced


class TriggerController:
    """Decide once per tick whether the current volume should play a note.

    Parameters
    ----------
    config:
        Thresholds and timer durations.
    scheduler:
        Object providing ``call_later(delay_ms, callback)``.
    on_fire:
        Optional hook called with the :class:`TriggerDecision` each time the
        controller fires, after the protection timers are armed.
    """

    def __init__(
        self,
        config: RippleConfig,
        scheduler,
        *,
        on_fire: Optional[Callable[[TriggerDecision], None]] = None,
    ) -> None:
        self.config = config
        self.scheduler = scheduler
        self.on_fire = on_fire
        self._lock = threading.RLock()
        self._generation = 0
        self._cooling_down = False
        self._silenced = False
        self._threshold = config.base_threshold

    @property
    def cooling_down(self) -> bool:
        return self._cooling_down

    @property
    def silenced(self) -> bool:
        return self._silenced

    @property
    def current_threshold(self) -> float:
        return self._threshold

    @property
    def state(self) -> TriggerState:
        with self._lock:
            return TriggerState(
                self._cooling_down, self._silenced, self._threshold, self._generation
            )

    def evaluate(self, volume: float) -> TriggerDecision:
        """Compare ``volume`` with the current threshold and fire if needed."""

        with self._lock:
            threshold = self._threshold
            if self._silenced or self._cooling_down:
                return TriggerDecision(False, volume, threshold)
            if not volume > threshold:
                return TriggerDecision(False, volume, threshold)
            decision = TriggerDecision(True, volume, threshold)
            self._start_protection()
        logger.debug("Trigger fired at volume %.4f (threshold %.4f)", volume, threshold)
        if self.on_fire is not None:
            self.on_fire(decision)
        return decision

    def reset(self) -> None:
        """Return to the initial state and invalidate outstanding timers."""

        with self._lock:
            self._generation += 1
            self._cooling_down = False
            self._silenced = False
            self._threshold = self.config.base_threshold

    def _start_protection(self) -> None:
        cfg = self.config
        self._generation += 1
        generation = self._generation
        self._cooling_down = True
        self._silenced = True
        self._threshold = cfg.boosted_threshold

        self.scheduler.call_later(cfg.silence_ms, self._guarded(generation, self._end_silence))
        self.scheduler.call_later(cfg.cooldown_ms, self._guarded(generation, self._end_cooldown))
        self.scheduler.call_later(
            cfg.threshold_restore_ms, self._guarded(generation, self._restore_threshold)
        )

    def _guarded(self, generation: int, action: Callable[[], None]) -> Callable[[], None]:
        """Wrap ``action`` so it only runs while ``generation`` is current."""

        def _callback() -> None:
            with self._lock:
                if generation != self._generation:
                    logger.debug(
                        "Ignoring stale %s from generation %d", action.__name__, generation
                    )
                    return
                action()

        return _callback

    def _end_silence(self) -> None:
        self._silenced = False

    def _end_cooldown(self) -> None:
        self._cooling_down = False

    def _restore_threshold(self) -> None:
        self._threshold = self.config.base_threshold
