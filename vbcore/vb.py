"""System-wide constants and the bus interface the chips talk through."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol

MASTER_CLOCK = 20000000.0
"""Master clock of the system, in Hz."""

EVENT_NONONO = 0x7FFFFFFF
"""Timestamp meaning that no event is scheduled."""


class Mode3D(IntEnum):
    """How the two eye images are combined on the output surface."""

    ANAGLYPH = 0
    CSCOPE = 1
    SIDEBYSIDE = 2
    OVERUNDER = 3
    VLI = 4
    HLI = 5


class Event(IntEnum):
    """Scheduled event kinds."""

    VIP = 0
    TIMER = 1
    INPUT = 2


class IrqSource(IntEnum):
    """Interrupt lines."""

    INPUT = 0
    TIMER = 1
    EXPANSION = 2
    COMM = 3
    VIP = 4


class SystemBus(Protocol):
    """What a chip needs from the rest of the system."""

    def set_event(self, event: Event, timestamp: int) -> None:
        """Schedule the next event of a kind at an absolute timestamp."""

    def irq_assert(self, source: IrqSource, asserted: bool) -> None:
        """Raise or lower an interrupt line."""

    def exit_loop(self) -> None:
        """Ask the CPU loop to return after the current frame."""


@dataclass
class RecordingBus:
    """A bus that remembers every call, for driving chips on their own."""

    events: dict[Event, int] = field(default_factory=dict)
    irq: dict[IrqSource, bool] = field(default_factory=dict)
    history: list[tuple[str, object, object]] = field(default_factory=list)
    exit_requests: int = 0

    def set_event(self, event: int, timestamp: int) -> None:
        kind = Event(event)
        self.events[kind] = timestamp
        self.history.append(("event", kind, timestamp))

    def irq_assert(self, source: int, asserted: bool) -> None:
        line = IrqSource(source)
        self.irq[line] = bool(asserted)
        self.history.append(("irq", line, bool(asserted)))

    def exit_loop(self) -> None:
        self.exit_requests += 1
        self.history.append(("exit", None, None))

    def irq_level(self, source: int) -> bool:
        """Current level of an interrupt line; lines never touched read low."""
        return self.irq.get(IrqSource(source), False)