"""The serial game-pad interface: latches the pad bits and shifts them in."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from .savestate import StateMem, bool_field, int_field, state_action
from .vb import EVENT_NONONO, Event, IrqSource, SystemBus

SCR_S_ABT_DIS = 0x01
SCR_SI_STAT = 0x02
SCR_HW_SI = 0x04
SCR_SOFT_CLK = 0x10
SCR_PARA_SI = 0x20
SCR_K_INT_INH = 0x80

BIT_CLOCKS = 640
"""Clocks needed to shift in one pad bit."""

PAD_BITS = 16

_SCR_WRITABLE = SCR_K_INT_INH | SCR_PARA_SI | SCR_SOFT_CLK | SCR_S_ABT_DIS
_SCR_ALWAYS_SET = 0x40 | 0x08 | SCR_HW_SI


class Gamepad:
    """The controller port, with its serial data and control registers."""

    def __init__(self, bus: SystemBus) -> None:
        self.bus = bus
        self.instant_read_hack = True
        self._ports: list[Optional[Sequence[int]]] = [None, None]
        self.int_pending = False
        self.pad_data = 0
        self.pad_latched = 0
        self.scr = 0
        self.sdr = 0
        self.read_bit_pos = 0
        self.read_counter = 0
        self.last_ts = 0

    def set_instant_read_hack(self, enabled: bool) -> None:
        """Let reads of the data registers see the pad state at once."""
        self.instant_read_hack = bool(enabled)

    def set_input(self, port: int, data: Sequence[int]) -> None:
        """Attach the buffer a port's state is read from at every frame.

        Port 0 holds the 16 button bits as two little-endian bytes; port 1
        holds one byte whose low bit is the battery-low flag.
        """
        if port not in (0, 1):
            raise ValueError(f"input port must be 0 or 1, got {port}")
        self._ports[port] = data

    def _next_event(self, timestamp: int) -> int:
        return timestamp + self.read_counter if self.read_counter > 0 else EVENT_NONONO

    def read(self, timestamp: int, address: int) -> int:
        """Read one byte-wide register."""
        self.update(timestamp)
        reg = address & 0xFF
        ret = 0
        if reg == 0x10:
            ret = (self.pad_data if self.instant_read_hack else self.sdr) & 0xFF
        elif reg == 0x14:
            ret = ((self.pad_data if self.instant_read_hack else self.sdr) >> 8) & 0xFF
        elif reg == 0x28:
            ret = self.scr | _SCR_ALWAYS_SET
            if self.read_counter > 0:
                ret |= SCR_SI_STAT
        self.bus.set_event(Event.INPUT, self._next_event(timestamp))
        return ret

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write one byte-wide register."""
        value &= 0xFF
        self.update(timestamp)
        if address & 0xFF == 0x28:
            if (value & SCR_HW_SI) and not (self.scr & SCR_S_ABT_DIS) and self.read_counter <= 0:
                self.pad_latched = self.pad_data
                self.read_bit_pos = 0
                self.read_counter = BIT_CLOCKS
            if value & SCR_S_ABT_DIS:
                self.read_counter = 0
                self.read_bit_pos = 0
            if value & SCR_K_INT_INH:
                self.int_pending = False
                self.bus.irq_assert(IrqSource.INPUT, self.int_pending)
            self.scr = value & _SCR_WRITABLE
        self.bus.set_event(Event.INPUT, self._next_event(timestamp))

    def frame(self) -> None:
        """Sample the attached input buffers."""
        pad, extra = self._ports
        if pad is None or extra is None:
            raise RuntimeError("both input ports must be set before a frame")
        buttons = pad[0] | (pad[1] << 8)
        self.pad_data = ((buttons << 2) | 0x2 | (extra[0] & 0x1)) & 0xFFFF

    def update(self, timestamp: int) -> int:
        """Shift in pad bits up to ``timestamp``; return the next event time."""
        clocks = timestamp - self.last_ts
        if self.read_counter > 0:
            self.read_counter -= clocks
            while self.read_counter <= 0:
                bit = 1 << self.read_bit_pos
                self.sdr = (self.sdr & ~bit & 0xFFFF) | (self.pad_latched & bit)
                self.read_bit_pos += 1
                if self.read_bit_pos < PAD_BITS:
                    self.read_counter += BIT_CLOCKS
                else:
                    if not self.scr & SCR_K_INT_INH:
                        self.int_pending = True
                        self.bus.irq_assert(IrqSource.INPUT, self.int_pending)
                    break
        self.last_ts = timestamp
        return self._next_event(timestamp)

    def reset_ts(self) -> None:
        """Rebase the timestamp at the start of a frame."""
        self.last_ts = 0

    def power(self) -> None:
        """Put the interface in its power-on state."""
        self.last_ts = 0
        self.pad_data = 0
        self.pad_latched = 0
        self.sdr = 0
        self.scr = 0
        self.read_bit_pos = 0
        self.read_counter = 0
        self.int_pending = False
        self.bus.irq_assert(IrqSource.INPUT, False)

    def state_action(self, mem: StateMem, load: int) -> bool:
        """Save or load the interface's section of a savestate."""
        fields = [
            int_field(self, "pad_data", "PadData", 16),
            int_field(self, "pad_latched", "PadLatched", 16),
            int_field(self, "scr", "SCR", 8),
            int_field(self, "sdr", "SDR", 16),
            int_field(self, "read_bit_pos", "ReadBitPos", 32),
            int_field(self, "read_counter", "ReadCounter", 32, True),
            bool_field(self, "int_pending", "IntPending"),
        ]
        return state_action(mem, load, fields, "INPUT", optional=False)