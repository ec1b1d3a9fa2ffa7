"""Per-tick arbitration of the heightmap, shadow, and erosion phases."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum


class TriggerEvent(str, Enum):
    REGENERATE_HEIGHTMAP = "regenerate_heightmap"
    REGENERATE_SHADOW = "regenerate_shadow"
    EROSION_START = "erosion_start"
    EROSION_STOP = "erosion_stop"
    EROSION_TOGGLE = "erosion_toggle"


class PhaseStatus(str, Enum):
    UPDATE = "update"
    WAIT = "wait"


class Phase(str, Enum):
    HEIGHTMAP = "heightmap"
    SHADOW = "shadow"
    EROSION = "erosion"


@dataclass(frozen=True)
class TickDecision:
    """Phases to run this tick, in execution order heightmap, shadow, erosion."""

    tick: int
    heightmap: bool
    shadow: bool
    erosion: bool

    def phases(self) -> tuple[Phase, ...]:
        fired = (
            (Phase.HEIGHTMAP, self.heightmap),
            (Phase.SHADOW, self.shadow),
            (Phase.EROSION, self.erosion),
        )
        return tuple(phase for phase, on in fired if on)


class OneShotLatch:
    """Sticky UPDATE/WAIT status plus an arm bit.

    A trigger sets UPDATE. The decision stage of the same tick arms the
    latch; the next decision stage fires it once and returns it to WAIT.
    A trigger observed on the firing tick re-arms it for the tick after.
    """

    def __init__(self, status: PhaseStatus = PhaseStatus.WAIT) -> None:
        self.status = status
        self.armed = False
        self._triggered = False

    def trigger(self) -> None:
        self.status = PhaseStatus.UPDATE
        self._triggered = True

    def decide(self) -> bool:
        triggered, self._triggered = self._triggered, False
        if self.status is not PhaseStatus.UPDATE:
            self.armed = False
            return False
        if not self.armed:
            self.armed = True
            return False
        if triggered:
            # Fires for the earlier trigger; stays armed for this one.
            return True
        self.status = PhaseStatus.WAIT
        self.armed = False
        return True


class DispatchScheduler:
    """Drains queued triggers once per tick and decides which phases fire.

    Same-kind events within one tick collapse to the first occurrence;
    different kinds are applied in arrival order.
    """

    def __init__(self, *, generate_on_start: bool = True) -> None:
        initial = PhaseStatus.UPDATE if generate_on_start else PhaseStatus.WAIT
        self.heightmap = OneShotLatch(initial)
        self.shadow = OneShotLatch(initial)
        self.erosion_status = PhaseStatus.WAIT
        self.tick_count = 0
        self._queue: deque[TriggerEvent] = deque()

    def post(self, event: TriggerEvent | str) -> None:
        self._queue.append(TriggerEvent(event))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def tick(self) -> TickDecision:
        self._observe()
        self.tick_count += 1
        heightmap = self.heightmap.decide()
        shadow = self.shadow.decide() or heightmap
        erosion = self.erosion_status is PhaseStatus.UPDATE
        return TickDecision(self.tick_count, heightmap, shadow, erosion)

    def _observe(self) -> None:
        seen: set[TriggerEvent] = set()
        while self._queue:
            event = self._queue.popleft()
            if event in seen:
                continue
            seen.add(event)
            self._apply(event)

    def _apply(self, event: TriggerEvent) -> None:
        if event is TriggerEvent.REGENERATE_HEIGHTMAP:
            self.heightmap.trigger()
        elif event is TriggerEvent.REGENERATE_SHADOW:
            self.shadow.trigger()
        elif event is TriggerEvent.EROSION_START:
            self.erosion_status = PhaseStatus.UPDATE
        elif event is TriggerEvent.EROSION_STOP:
            self.erosion_status = PhaseStatus.WAIT
        elif event is TriggerEvent.EROSION_TOGGLE:
            if self.erosion_status is PhaseStatus.WAIT:
                self.erosion_status = PhaseStatus.UPDATE
            else:
                self.erosion_status = PhaseStatus.WAIT
