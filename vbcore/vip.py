"""The video image processor: memory map, registers, display and drawing timing."""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum, IntFlag
from typing import Optional

from .savestate import (
    StateField,
    StateFlag,
    StateMem,
    array_field,
    bool_field,
    int_field,
    state_action,
)
from .vb import Event, IrqSource, SystemBus
from .vip_video import COLUMN_STRIDE, COLUMNS, FRAMEBUFFER_SIZE, Surface, VideoOutput

CHR_RAM_SIZE = 0x8000
DRAM_SIZE = 0x20000

COLUMN_CLOCKS = 259
"""Clocks spent displaying one column."""

BLOCK_CLOCKS = 1120 * 4
"""Clocks spent drawing one 8-row block."""

BLOCKS = 28
"""Blocks drawn per game frame."""

DRAW_ROW_STRIDE = 512
DRAW_ORIGIN = 8
DRAW_BUFFER_SIZE = DRAW_ORIGIN + DRAW_ROW_STRIDE * 8

XPCTRL_XP_RST = 0x0001
XPCTRL_XP_EN = 0x0002

_INTERRUPT_MASK = 0xE01F
_UNKNOWN_REGISTER = 0xDEADBEEF

DrawBlock = Callable[[int, bytearray, bytearray], None]
"""Renders block ``n`` into a left and a right buffer.

Each buffer holds ``DRAW_BUFFER_SIZE`` bytes; the 2-bit pixel at column
``x`` of row ``r`` of the block lives at ``DRAW_ORIGIN + r * DRAW_ROW_STRIDE + x``.
"""


class VIPRegister(IntEnum):
    """Registers reachable through the debugger interface."""

    IPENDING = 0
    IENABLE = 1
    DPCTRL = 2
    BRTA = 3
    BRTB = 4
    BRTC = 5
    REST = 6
    FRMCYC = 7
    XPCTRL = 8
    SPT0 = 9
    SPT1 = 10
    SPT2 = 11
    SPT3 = 12
    GPLT0 = 13
    GPLT1 = 14
    GPLT2 = 15
    GPLT3 = 16
    JPLT0 = 17
    JPLT1 = 18
    JPLT2 = 19
    JPLT3 = 20
    BKCOL = 21


class Interrupt(IntFlag):
    """Interrupt bits of the pending and enable registers."""

    SCAN_ERR = 0x0001
    LFB_END = 0x0002
    RFB_END = 0x0004
    GAME_START = 0x0008
    FRAME_START = 0x0010
    SB_HIT = 0x2000
    XP_END = 0x4000
    TIME_ERR = 0x8000


_DISPLAY_RESET_CLEARS = (
    Interrupt.TIME_ERR
    | Interrupt.FRAME_START
    | Interrupt.GAME_START
    | Interrupt.RFB_END
    | Interrupt.LFB_END
    | Interrupt.SCAN_ERR
)
_DRAW_RESET_CLEARS = Interrupt.SB_HIT | Interrupt.XP_END | Interrupt.TIME_ERR


def _palette_cache(value: int) -> list[int]:
    return [(value >> (i * 2)) & 3 for i in range(4)]


class VIP:
    """Frame buffers, character and display RAM, and the display/drawing state machine."""

    def __init__(self, bus: SystemBus, draw_block: Optional[DrawBlock] = None) -> None:
        self.bus = bus
        self.draw_block = draw_block
        self.video = VideoOutput()
        self.instant_display_hack = False
        self.allow_draw_skip = False
        self.parallax_disabled = False
        self._surface: Optional[Surface] = None
        self._skip = False
        self.power()

    # Settings

    def set_instant_display_hack(self, enabled: bool) -> None:
        """Copy whole frames at frame start instead of column by column."""
        self.instant_display_hack = bool(enabled)

    def set_allow_draw_skip(self, enabled: bool) -> None:
        """Allow drawing to be skipped on skipped frames."""
        self.allow_draw_skip = bool(enabled)

    def set_3d_mode(self, mode: int, reverse: bool, prescale: int, sbs_separation: int) -> None:
        """Choose the 3D output mode."""
        self.video.set_3d_mode(mode, reverse, prescale, sbs_separation)

    def set_parallax_disable(self, disabled: bool) -> None:
        """Turn parallax off for the block renderer."""
        self.parallax_disabled = bool(disabled)

    def set_default_color(self, color: int) -> None:
        """Set the 0xRRGGBB colour used outside anaglyph mode."""
        self.video.set_default_color(color)

    def set_anaglyph_colors(self, lcolor: int, rcolor: int) -> None:
        """Set the 0xRRGGBB colours of the two eyes in anaglyph mode."""
        self.video.set_anaglyph_colors(lcolor, rcolor)

    # State

    def power(self) -> None:
        """Put the chip in its power-on state."""
        self.repeat = 0
        self.sb_latch = 0
        self.sbout_inactive_time = -1
        self.last_ts = 0
        self.column = 0
        self.column_counter = COLUMN_CLOCKS
        self.display_region = 0
        self.display_fb = 0
        self.game_frame_counter = 0
        self.drawing_counter = 0
        self.drawing_active = False
        self.drawing_fb = 0
        self.drawing_block = 0
        self.dpctrl = 2
        self.display_active = False
        self.fb = [[bytearray(FRAMEBUFFER_SIZE) for _ in range(2)] for _ in range(2)]
        self.chr_ram = bytearray(CHR_RAM_SIZE)
        self.dram = bytearray(DRAM_SIZE)
        self.interrupt_pending = 0
        self.interrupt_enable = 0
        self.brta = 0
        self.brtb = 0
        self.brtc = 0
        self.rest = 0
        self.frmcyc = 0
        self.xpctrl = 0
        self.sbcmp = 0
        self.spt = [0] * 4
        self.gplt = [0] * 4
        self.jplt = [0] * 4
        self.gplt_cache = [_palette_cache(0) for _ in range(4)]
        self.jplt_cache = [_palette_cache(0) for _ in range(4)]
        self.bkcol = 0

    def _check_irq(self) -> None:
        self.bus.irq_assert(IrqSource.VIP, bool(self.interrupt_enable & self.interrupt_pending))

    def _recalc_brightness(self) -> None:
        self.video.recalc_brightness(self.brta, self.brtb, self.brtc, self.rest, self.repeat)

    def _set_gplt(self, which: int, value: int) -> None:
        self.gplt[which] = value & 0xFC
        self.gplt_cache[which] = _palette_cache(self.gplt[which])

    def _set_jplt(self, which: int, value: int) -> None:
        self.jplt[which] = value & 0xFC
        self.jplt_cache[which] = _palette_cache(self.jplt[which])

    # Registers

    def _read_register(self, timestamp: int, address: int) -> int:
        reg = address & 0xFE
        ret = 0
        if reg == 0x00:
            ret = self.interrupt_pending
        elif reg == 0x02:
            ret = self.interrupt_enable
        elif reg == 0x20:
            ret = self.dpctrl & 0x702
            if (self.display_region & 1) and self.display_active:
                busy = 1 << ((self.display_region >> 1) & 1)
                if self.display_fb:
                    busy <<= 2
                ret |= busy << 2
            ret |= 1 << 6
        elif reg == 0x24:
            ret = self.brta
        elif reg == 0x26:
            ret = self.brtb
        elif reg == 0x28:
            ret = self.brtc
        elif reg == 0x2A:
            ret = self.rest
        elif reg == 0x30:
            ret = 0xFFFF
        elif reg == 0x40:
            ret = self.xpctrl & 0x2
            if self.drawing_active:
                ret |= (1 + self.drawing_fb) << 2
            if timestamp < self.sbout_inactive_time:
                ret |= 0x8000
                ret |= self.sb_latch << 8
        elif reg == 0x44:
            ret = 2
        elif reg in (0x48, 0x4A, 0x4C, 0x4E):
            ret = self.spt[(address >> 1) & 3]
        elif reg in (0x60, 0x62, 0x64, 0x66):
            ret = self.gplt[(address >> 1) & 3]
        elif reg in (0x68, 0x6A, 0x6C, 0x6E):
            ret = self.jplt[(address >> 1) & 3]
        elif reg == 0x70:
            ret = self.bkcol
        return ret & 0xFFFF

    def _write_register(self, timestamp: int, address: int, value: int) -> None:
        reg = address & 0xFE
        value &= 0xFFFF
        if reg == 0x02:
            self.interrupt_enable = value & _INTERRUPT_MASK
            self._check_irq()
        elif reg == 0x04:
            self.interrupt_pending &= ~value & 0xFFFF
            self._check_irq()
        elif reg == 0x22:
            self.dpctrl = value & 0x703
            if value & 1:
                self.display_active = False
                self.interrupt_pending &= ~_DISPLAY_RESET_CLEARS & 0xFFFF
                self._check_irq()
        elif reg == 0x24:
            self.brta = value & 0xFF
            self._recalc_brightness()
        elif reg == 0x26:
            self.brtb = value & 0xFF
            self._recalc_brightness()
        elif reg == 0x28:
            self.brtc = value & 0xFF
            self._recalc_brightness()
        elif reg == 0x2A:
            self.rest = value & 0xFF
            self._recalc_brightness()
        elif reg == 0x2E:
            self.frmcyc = value & 0xF
        elif reg == 0x42:
            self.xpctrl = value & XPCTRL_XP_EN
            self.sbcmp = (value >> 8) & 0x1F
            if value & XPCTRL_XP_RST:
                self.drawing_fb = self.display_fb
                self.display_fb ^= 1
                self.drawing_active = False
                self.drawing_counter = 0
                self.interrupt_pending &= ~_DRAW_RESET_CLEARS & 0xFFFF
                self._check_irq()
        elif reg in (0x48, 0x4A, 0x4C, 0x4E):
            self.spt[(address >> 1) & 3] = value & 0x3FF
        elif reg in (0x60, 0x62, 0x64, 0x66):
            self._set_gplt((address >> 1) & 3, value)
        elif reg in (0x68, 0x6A, 0x6C, 0x6E):
            self._set_jplt((address >> 1) & 3, value)
        elif reg == 0x70:
            self.bkcol = value & 0x3

    # Memory map

    @staticmethod
    def _chr_alias(address: int) -> int:
        return (address & 0x1FFF) | ((address >> 2) & 0x6000)

    @staticmethod
    def _load16(mem: bytearray, offset: int) -> int:
        offset &= ~1
        return mem[offset] | (mem[offset + 1] << 8)

    @staticmethod
    def _store16(mem: bytearray, offset: int, value: int) -> None:
        offset &= ~1
        mem[offset] = value & 0xFF
        mem[offset + 1] = (value >> 8) & 0xFF

    def _fb_at(self, address: int) -> bytearray:
        return self.fb[(address >> 15) & 1][(address >> 16) & 1]

    def read8(self, timestamp: int, address: int) -> int:
        """Read a byte from the chip's address space."""
        address &= 0xFFFFFFFF
        page = address >> 16
        if page in (0, 1):
            if (address & 0x7FFF) >= 0x6000:
                return self.chr_ram[self._chr_alias(address)]
            return self._fb_at(address)[address & 0x7FFF]
        if page in (2, 3):
            return self.dram[address & 0x1FFFF]
        if page in (4, 5):
            if address >= 0x5E000:
                return self._read_register(timestamp, address) & 0xFF
            return 0
        if page == 7:
            return self.chr_ram[address & 0x7FFF]
        return 0

    def read16(self, timestamp: int, address: int) -> int:
        """Read a 16-bit word from the chip's address space."""
        address &= 0xFFFFFFFF
        page = address >> 16
        if page in (0, 1):
            if (address & 0x7FFF) >= 0x6000:
                return self._load16(self.chr_ram, self._chr_alias(address))
            return self._load16(self._fb_at(address), address & 0x7FFF)
        if page in (2, 3):
            return self._load16(self.dram, address & 0x1FFFF)
        if page in (4, 5):
            if address >= 0x5E000:
                return self._read_register(timestamp, address)
            return 0
        if page == 7:
            return self._load16(self.chr_ram, address & 0x7FFF)
        return 0

    def write8(self, timestamp: int, address: int, value: int) -> None:
        """Write a byte to the chip's address space."""
        address &= 0xFFFFFFFF
        value &= 0xFF
        page = address >> 16
        if page in (0, 1):
            if (address & 0x7FFF) >= 0x6000:
                self.chr_ram[self._chr_alias(address)] = value
            else:
                self._fb_at(address)[address & 0x7FFF] = value
        elif page in (2, 3):
            self.dram[address & 0x1FFFF] = value
        elif page in (4, 5):
            if address >= 0x5E000:
                self._write_register(timestamp, address, value)
        elif page == 7:
            self.chr_ram[address & 0x7FFF] = value

    def write16(self, timestamp: int, address: int, value: int) -> None:
        """Write a 16-bit word to the chip's address space."""
        address &= 0xFFFFFFFF
        value &= 0xFFFF
        page = address >> 16
        if page in (0, 1):
            if (address & 0x7FFF) >= 0x6000:
                self._store16(self.chr_ram, self._chr_alias(address), value)
            else:
                self._store16(self._fb_at(address), address & 0x7FFF, value)
        elif page in (2, 3):
            self._store16(self.dram, address & 0x1FFFF, value)
        elif page in (4, 5):
            if address >= 0x5E000:
                self._write_register(timestamp, address, value)
        elif page == 7:
            self._store16(self.chr_ram, address & 0x7FFF, value)

    # Frame handling

    def start_frame(self, surface: Surface, format_changed: bool = False) -> tuple[int, int]:
        """Prepare to draw into ``surface``; return the picture's width and height."""
        if format_changed or self.video.settings_dirty:
            self.video.recalc_tables(False)
        self._surface = surface
        self._skip = False
        if self.video.settings_dirty:
            surface.clear()
            self.video.settings_dirty = False
        return self.video.display_size()

    def reset_ts(self) -> None:
        """Rebase the timestamp at the start of a frame."""
        if self.sbout_inactive_time >= 0:
            self.sbout_inactive_time -= self.last_ts
        self.last_ts = 0

    def _copy_column(self) -> None:
        if self._surface is None:
            return
        lr = (self.display_region & 2) >> 1
        self.video.copy_column(
            self._surface, self.fb[self.display_fb][lr], self.column, lr, self.display_active
        )

    def _load_column_repeat(self, lr: int) -> None:
        offset = 0x1DFFE - ((self.column >> 2) * 2) - (0 if lr else 0x200)
        repeat = self._load16(self.dram, offset) >> 8
        if repeat != self.repeat:
            self.repeat = repeat
            self._recalc_brightness()

    def _draw_current_block(self) -> None:
        left = bytearray(DRAW_BUFFER_SIZE)
        right = bytearray(DRAW_BUFFER_SIZE)
        if self.draw_block is not None:
            self.draw_block(self.drawing_block, left, right)
        base = self.drawing_block * 2
        for lr, buf in enumerate((left, right)):
            target = self.fb[self.drawing_fb][lr]
            rows = [buf[DRAW_ORIGIN + r * DRAW_ROW_STRIDE:] for r in range(8)]
            for x in range(COLUMNS):
                pos = COLUMN_STRIDE * x + base
                target[pos] = (
                    rows[0][x] | (rows[1][x] << 2) | (rows[2][x] << 4) | (rows[3][x] << 6)
                ) & 0xFF
                target[pos + 1] = (
                    rows[4][x] | (rows[5][x] << 2) | (rows[6][x] << 4) | (rows[7][x] << 6)
                ) & 0xFF

    def _instant_display(self) -> None:
        saved = (self.display_region, self.column, self.repeat)
        for lr in range(2):
            self.display_region = lr << 1
            for column in range(COLUMNS):
                self.column = column
                if not column & 3:
                    self._load_column_repeat(lr)
                self._copy_column()
        self.display_region, self.column, self.repeat = saved
        self._recalc_brightness()

    def _end_of_region(self) -> None:
        if self.display_active and self.display_region & 1:
            if self.display_region & 2:
                self.interrupt_pending |= Interrupt.RFB_END
            else:
                self.interrupt_pending |= Interrupt.LFB_END
            self._check_irq()

        self.display_region = (self.display_region + 1) & 3
        if self.display_region:
            return

        self.display_active = bool(self.dpctrl & 0x2)
        if self.display_active:
            self.interrupt_pending |= Interrupt.FRAME_START
            self._check_irq()
        self.game_frame_counter += 1
        if self.game_frame_counter > self.frmcyc:
            self.interrupt_pending |= Interrupt.GAME_START
            self._check_irq()
            if self.xpctrl & XPCTRL_XP_EN:
                self.display_fb = self.drawing_fb
                self.drawing_fb ^= 1
                self.drawing_block = 0
                self.drawing_active = True
                self.drawing_counter = BLOCK_CLOCKS
            self.game_frame_counter = 0

        if not self._skip and self.instant_display_hack:
            self._instant_display()

        self.bus.exit_loop()

    def update(self, timestamp: int) -> int:
        """Run display and drawing up to ``timestamp``; return the next event time."""
        clocks = timestamp - self.last_ts
        running = timestamp
        while clocks > 0:
            chunk = clocks
            if 0 < self.drawing_counter < chunk:
                chunk = self.drawing_counter
            chunk = min(chunk, self.column_counter)
            running += chunk

            if self.drawing_counter > 0:
                self.drawing_counter -= chunk
                if self.drawing_counter <= 0:
                    if not (self._skip and self.instant_display_hack and self.allow_draw_skip):
                        self._draw_current_block()
                    self.sbout_inactive_time = running + 1120
                    self.sb_latch = self.drawing_block
                    self.drawing_block += 1
                    if self.drawing_block == BLOCKS:
                        self.drawing_active = False
                        self.interrupt_pending |= Interrupt.XP_END
                        self._check_irq()
                    else:
                        self.drawing_counter += BLOCK_CLOCKS

            self.column_counter -= chunk
            if self.column_counter == 0:
                if self.display_region & 1:
                    if not self.column & 3:
                        self._load_column_repeat((self.display_region & 2) >> 1)
                    if not self._skip and not self.instant_display_hack:
                        self._copy_column()
                self.column_counter = COLUMN_CLOCKS
                self.column += 1
                if self.column == COLUMNS:
                    self.column = 0
                    self._end_of_region()

            clocks -= chunk

        self.last_ts = timestamp
        return timestamp + self.column_counter

    # Savestates

    def _fb_field(self) -> StateField:
        def dump() -> bytes:
            return b"".join(bytes(self.fb[f][lr]) for f in range(2) for lr in range(2))

        def load(data: bytes) -> None:
            for i, (f, lr) in enumerate((f, lr) for f in range(2) for lr in range(2)):
                self.fb[f][lr][:] = data[i * FRAMEBUFFER_SIZE:(i + 1) * FRAMEBUFFER_SIZE]

        return StateField("FB[0][0]", FRAMEBUFFER_SIZE * 4, StateFlag.NONE, dump, load)

    def _ram_field(self, attr: str, name: str) -> StateField:
        def dump() -> bytes:
            return bytes(getattr(self, attr))

        def load(data: bytes) -> None:
            getattr(self, attr)[:] = data

        return StateField(name, len(getattr(self, attr)), StateFlag.RLSB16, dump, load)

    def state_action(self, mem: StateMem, load: int) -> bool:
        """Save or load the chip's section of a savestate."""
        fields = [
            self._fb_field(),
            self._ram_field("chr_ram", "CHR_RAM"),
            self._ram_field("dram", "DRAM"),
            int_field(self, "interrupt_pending", "InterruptPending", 16),
            int_field(self, "interrupt_enable", "InterruptEnable", 16),
            int_field(self, "brta", "BRTA", 8),
            int_field(self, "brtb", "BRTB", 8),
            int_field(self, "brtc", "BRTC", 8),
            int_field(self, "rest", "REST", 8),
            int_field(self, "frmcyc", "FRMCYC", 16),
            int_field(self, "dpctrl", "DPCTRL", 16),
            bool_field(self, "display_active", "DisplayActive"),
            int_field(self, "xpctrl", "XPCTRL", 16),
            int_field(self, "sbcmp", "SBCMP", 16),
            array_field(self, "spt", "SPT", 16),
            array_field(self, "gplt", "GPLT", 16),
            array_field(self, "jplt", "JPLT", 16),
            int_field(self, "bkcol", "BKCOL", 16),
            int_field(self, "column", "Column", 32, True),
            int_field(self, "column_counter", "ColumnCounter", 32, True),
            int_field(self, "display_region", "DisplayRegion", 32, True),
            int_field(self, "display_fb", "DisplayFB", 8),
            int_field(self, "game_frame_counter", "GameFrameCounter", 32, True),
            int_field(self, "drawing_counter", "DrawingCounter", 32, True),
            bool_field(self, "drawing_active", "DrawingActive"),
            int_field(self, "drawing_fb", "DrawingFB", 8),
            int_field(self, "drawing_block", "DrawingBlock", 32),
            int_field(self, "sb_latch", "SB_Latch", 32, True),
            int_field(self, "sbout_inactive_time", "SBOUT_InactiveTime", 32, True),
            int_field(self, "repeat", "Repeat", 8),
        ]
        ret = state_action(mem, load, fields, "VIP", optional=False)
        if load:
            self.display_fb &= 1
            self.drawing_fb &= 1
            self._recalc_brightness()
            for i in range(4):
                self.gplt_cache[i] = _palette_cache(self.gplt[i])
                self.jplt_cache[i] = _palette_cache(self.jplt[i])
        return ret

    # Debugger access

    def get_register(self, reg: int) -> int:
        """Read a register for debugging; unknown ids give 0xDEADBEEF."""
        if reg == VIPRegister.IPENDING:
            return self.interrupt_pending
        if reg == VIPRegister.IENABLE:
            return self.interrupt_enable
        if reg == VIPRegister.DPCTRL:
            return self.dpctrl
        if reg == VIPRegister.BRTA:
            return self.brta
        if reg == VIPRegister.BRTB:
            return self.brtb
        if reg == VIPRegister.BRTC:
            return self.brtc
        if reg == VIPRegister.REST:
            return self.rest
        if reg == VIPRegister.FRMCYC:
            return self.frmcyc
        if reg == VIPRegister.XPCTRL:
            return self.xpctrl | (self.sbcmp << 8)
        if VIPRegister.SPT0 <= reg <= VIPRegister.SPT3:
            return self.spt[reg - VIPRegister.SPT0]
        if VIPRegister.GPLT0 <= reg <= VIPRegister.GPLT3:
            return self.gplt[reg - VIPRegister.GPLT0]
        if VIPRegister.JPLT0 <= reg <= VIPRegister.JPLT3:
            return self.jplt[reg - VIPRegister.JPLT0]
        if reg == VIPRegister.BKCOL:
            return self.bkcol
        return _UNKNOWN_REGISTER

    def set_register(self, reg: int, value: int) -> None:
        """Write a register for debugging; unknown ids are ignored."""
        value &= 0xFFFFFFFF
        if reg == VIPRegister.IPENDING:
            self.interrupt_pending = value & _INTERRUPT_MASK
            self._check_irq()
        elif reg == VIPRegister.IENABLE:
            self.interrupt_enable = value & _INTERRUPT_MASK
            self._check_irq()
        elif reg == VIPRegister.DPCTRL:
            self.dpctrl = value & 0x703
        elif reg == VIPRegister.BRTA:
            self.brta = value & 0xFF
            self._recalc_brightness()
        elif reg == VIPRegister.BRTB:
            self.brtb = value & 0xFF
            self._recalc_brightness()
        elif reg == VIPRegister.BRTC:
            self.brtc = value & 0xFF
            self._recalc_brightness()
        elif reg == VIPRegister.REST:
            self.rest = value & 0xFF
            self._recalc_brightness()
        elif reg == VIPRegister.FRMCYC:
            self.frmcyc = value & 0xF
        elif reg == VIPRegister.XPCTRL:
            self.xpctrl = value & 0x2
            self.sbcmp = (value >> 8) & 0x1F
        elif VIPRegister.SPT0 <= reg <= VIPRegister.SPT3:
            self.spt[reg - VIPRegister.SPT0] = value & 0x3FF
        elif VIPRegister.GPLT0 <= reg <= VIPRegister.GPLT3:
            self._set_gplt(reg - VIPRegister.GPLT0, value)
        elif VIPRegister.JPLT0 <= reg <= VIPRegister.JPLT3:
            self._set_jplt(reg - VIPRegister.JPLT0, value)
        elif reg == VIPRegister.BKCOL:
            self.bkcol = value & 0x03


# The VIP schedules itself through its update return value; kept for callers that map events.
VIP_EVENT = Event.VIP