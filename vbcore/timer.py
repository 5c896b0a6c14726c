"""The programmable interval timer."""

from __future__ import annotations

from enum import IntEnum

from .savestate import StateMem, bool_field, int_field, state_action
from .vb import EVENT_NONONO, Event, IrqSource, SystemBus

TC_TENABLE = 0x01
TC_ZSTAT = 0x02
TC_ZSTATCLR = 0x04
TC_TIMZINT = 0x08
TC_TCLKSEL = 0x10

_UNKNOWN_REGISTER = 0xDEADBEEF


class TimerRegister(IntEnum):
    """Registers reachable through the debugger interface."""

    TCR = 0
    DIVCOUNTER = 1
    RELOAD_VALUE = 2
    COUNTER = 3


class Timer:
    """A 16-bit down counter that raises an interrupt when it reaches zero."""

    def __init__(self, bus: SystemBus) -> None:
        self.bus = bus
        self.control = 0
        self.reload_value = 0
        self.counter = 0
        self.divider = 0
        self.last_ts = 0
        self.status = False
        self.status_shadow = False
        self.reload_pending = False

    def _assert_irq(self) -> None:
        self.bus.irq_assert(
            IrqSource.TIMER, bool(self.status_shadow and (self.control & TC_TIMZINT))
        )

    def update(self, timestamp: int) -> int:
        """Run the timer up to ``timestamp`` and return when it next needs attention."""
        run_time = timestamp - self.last_ts
        if self.control & TC_TENABLE:
            self.divider -= run_time
            while self.divider <= 0:
                if not self.counter or self.reload_pending:
                    self.counter = self.reload_value
                    self.reload_pending = False
                if self.counter:
                    self.counter -= 1
                if not self.counter or self.status:
                    self.status = self.status_shadow = True
                self._assert_irq()
                self.divider += 400 if self.control & TC_TCLKSEL else 2000
        self.last_ts = timestamp
        return timestamp + self.divider if self.control & TC_TENABLE else EVENT_NONONO

    def reset_ts(self) -> None:
        """Rebase the timestamp at the start of a frame."""
        self.last_ts = 0

    def read(self, timestamp: int, address: int) -> int:
        """Read one byte-wide register."""
        self.update(timestamp)
        reg = address & 0xFF
        if reg == 0x18:
            return self.counter & 0xFF
        if reg == 0x1C:
            return (self.counter >> 8) & 0xFF
        if reg == 0x20:
            return self.control | 0xE0 | TC_ZSTATCLR | (TC_ZSTAT if self.status else 0)
        return 0

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write one byte-wide register; unaligned addresses are ignored."""
        if address & 0x3:
            return
        value &= 0xFF
        self.update(timestamp)
        reg = address & 0xFF
        if reg == 0x18:
            self.reload_value = (self.reload_value & 0xFF00) | value
            self.reload_pending = True
        elif reg == 0x1C:
            self.reload_value = (self.reload_value & 0x00FF) | (value << 8)
            self.reload_pending = True
        elif reg == 0x20:
            if value & TC_ZSTATCLR:
                # Clearing the zero status does not take while the enabled counter sits at zero.
                if not ((self.control & TC_TENABLE) and self.counter == 0):
                    self.status = False
                self.status_shadow = False
            if (value & TC_TENABLE) and not (self.control & TC_TENABLE):
                self.divider = 500 if value & TC_TCLKSEL else 2000
            self.control = value & (TC_TCLKSEL | TC_TIMZINT | TC_TENABLE)
            if not self.control & TC_TIMZINT:
                self.status = self.status_shadow = False
            self._assert_irq()
            if self.control & TC_TENABLE:
                self.bus.set_event(Event.TIMER, timestamp + self.divider)

    def power(self) -> None:
        """Put the timer in its power-on state."""
        self.last_ts = 0
        self.counter = 0xFFFF
        self.reload_value = 0xFFFF
        self.divider = 2000
        self.status = False
        self.status_shadow = False
        self.control = 0
        self.reload_pending = False
        self.bus.irq_assert(IrqSource.TIMER, False)

    def state_action(self, mem: StateMem, load: int) -> bool:
        """Save or load the timer's section of a savestate."""
        fields = [
            int_field(self, "counter", "TimerCounter", 16),
            int_field(self, "reload_value", "TimerReloadValue", 16),
            int_field(self, "divider", "TimerDivider", 32, True),
            bool_field(self, "status", "TimerStatus"),
            bool_field(self, "status_shadow", "TimerStatusShadow"),
            int_field(self, "control", "TimerControl", 8),
            bool_field(self, "reload_pending", "ReloadPending"),
        ]
        return state_action(mem, load, fields, "TIMER", optional=False)

    def get_register(self, reg: int) -> int:
        """Read a register for debugging; unknown ids give 0xDEADBEEF."""
        if reg == TimerRegister.TCR:
            return self.control
        if reg == TimerRegister.DIVCOUNTER:
            return self.divider & 0xFFFFFFFF
        if reg == TimerRegister.RELOAD_VALUE:
            return self.reload_value
        if reg == TimerRegister.COUNTER:
            return self.counter
        return _UNKNOWN_REGISTER

    def set_register(self, reg: int, value: int) -> None:
        """Write a register for debugging; unknown ids are ignored."""
        value &= 0xFFFFFFFF
        if reg == TimerRegister.TCR:
            self.control = value & (TC_TENABLE | TC_TIMZINT | TC_TCLKSEL)
        elif reg == TimerRegister.DIVCOUNTER:
            self.divider = value % (500 if self.control & TC_TCLKSEL else 2000)
        elif reg == TimerRegister.RELOAD_VALUE:
            self.reload_value = value & 0xFFFF
        elif reg == TimerRegister.COUNTER:
            self.counter = value & 0xFFFF