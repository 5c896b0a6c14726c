import pytest

from vbcore.savestate import StateError, StateMem
from vbcore.vb import IrqSource, Mode3D, RecordingBus
from vbcore.vip import (
    BLOCK_CLOCKS,
    BLOCKS,
    COLUMN_CLOCKS,
    DRAW_ORIGIN,
    DRAW_ROW_STRIDE,
    VIP,
    Interrupt,
    VIPRegister,
)
from vbcore.vip_video import COLUMNS, Surface, brightness_levels

FRAME_CLOCKS = 4 * COLUMNS * COLUMN_CLOCKS


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def vip(bus):
    return VIP(bus)


def test_version_and_cta_registers(vip):
    assert vip.read16(0, 0x5F844) == 2
    assert vip.read16(0, 0x5F830) == 0xFFFF


def test_dram_byte_and_word_views_agree(vip):
    vip.write8(0, 0x20000, 0x34)
    vip.write8(0, 0x20001, 0x12)
    assert vip.read16(0, 0x20000) == 0x1234
    vip.write16(0, 0x30010, 0xBEEF)
    assert vip.read8(0, 0x30010) == 0xEF
    assert vip.read8(0, 0x30011) == 0xBE


def test_framebuffer_addressing(vip):
    vip.write8(0, 0x10005, 0x77)
    assert vip.fb[0][1][5] == 0x77
    vip.write16(0, 0x08002, 0xA1B2)
    assert vip.fb[1][0][2] == 0xB2
    assert vip.read16(0, 0x08002) == 0xA1B2


def test_character_ram_mirror(vip):
    vip.write16(0, 0x7A000, 0x4321)
    assert vip.read16(0, 0x0E000) == 0x4321
    vip.write8(0, 0x06001, 0x99)
    assert vip.read8(0, 0x78001) == 0x99


def test_unmapped_page_reads_zero(vip):
    vip.write8(0, 0x60000, 0x55)
    assert vip.read8(0, 0x60000) == 0
    assert vip.read16(0, 0x40000) == 0


def test_register_masks(vip):
    vip.write16(0, 0x5F848, 0xFFFF)
    assert vip.get_register(VIPRegister.SPT0) == 0x3FF
    vip.write16(0, 0x5F862, 0xFFFF)
    assert vip.get_register(VIPRegister.GPLT1) == 0xFC
    assert vip.gplt_cache[1] == [0, 3, 3, 3]
    vip.write16(0, 0x5F870, 0xFFFF)
    assert vip.read16(0, 0x5F870) == 0x3


def test_interrupt_line_follows_enable_and_clear(vip, bus):
    vip.set_register(VIPRegister.IENABLE, Interrupt.XP_END)
    vip.set_register(VIPRegister.IPENDING, Interrupt.XP_END)
    assert bus.irq_level(IrqSource.VIP) is True
    vip.write16(0, 0x5F804, Interrupt.XP_END)
    assert bus.irq_level(IrqSource.VIP) is False
    assert vip.read16(0, 0x5F800) == 0


def test_brightness_write_updates_video(vip):
    vip.write16(0, 0x5F824, 10)
    vip.write16(0, 0x5F826, 20)
    assert vip.read16(0, 0x5F824) == 10
    assert vip.video.brightness == brightness_levels(10, 20, 0, 0, 0)


def test_unknown_register(vip):
    assert vip.get_register(99) == 0xDEADBEEF


def test_update_returns_next_column(vip):
    assert vip.update(COLUMN_CLOCKS) == 2 * COLUMN_CLOCKS
    assert vip.column == 1


def test_full_frame_requests_exit(vip, bus):
    vip.update(FRAME_CLOCKS)
    assert bus.exit_requests == 1
    assert vip.display_region == 0
    assert vip.get_register(VIPRegister.IPENDING) & Interrupt.GAME_START


def test_drawing_fills_framebuffer(bus):
    calls = []

    def draw(block, left, right):
        calls.append(block)
        for row in range(8):
            start = DRAW_ORIGIN + row * DRAW_ROW_STRIDE
            left[start:start + COLUMNS] = bytes([3]) * COLUMNS
            right[start:start + COLUMNS] = bytes([1]) * COLUMNS

    vip = VIP(bus, draw)
    vip.write16(0, 0x5F842, 2)
    vip.update(FRAME_CLOCKS)
    assert vip.drawing_active is True
    target = vip.drawing_fb
    vip.update(FRAME_CLOCKS + BLOCKS * BLOCK_CLOCKS)
    assert calls == list(range(BLOCKS))
    assert vip.drawing_active is False
    assert vip.get_register(VIPRegister.IPENDING) & Interrupt.XP_END
    assert all(b == 0xFF for b in vip.fb[target][0][0:56])
    assert all(b == 0x55 for b in vip.fb[target][1][64 * 383:64 * 383 + 56])


def test_start_frame_display_size(vip):
    surface = Surface()
    assert vip.start_frame(surface) == (384, 224)
    vip.set_3d_mode(Mode3D.SIDEBYSIDE, False, 1, 16)
    assert vip.start_frame(surface) == (768 + 16, 224)
    assert vip.video.settings_dirty is False


def test_columns_copied_to_surface(vip):
    surface = Surface()
    vip.start_frame(surface)
    vip.write16(0, 0x5F824, 32)
    vip.write16(0, 0x5F822, 2)
    vip.fb[0][0][:] = bytes([0x55]) * len(vip.fb[0][0])
    vip.fb[0][1][:] = bytes([0x55]) * len(vip.fb[0][1])
    vip.update(2 * FRAME_CLOCKS)
    expected = vip.video.bright_clut[0][1] | vip.video.bright_clut[1][1]
    assert vip.video.bright_clut[0][1] != 0
    assert surface.pixel(0, 0) == expected
    assert surface.pixel(383, 223) == expected


def test_reset_ts_rebases_scan_time(vip):
    vip.last_ts = 500
    vip.sbout_inactive_time = 800
    vip.reset_ts()
    assert vip.sbout_inactive_time == 300
    assert vip.last_ts == 0


def test_savestate_round_trip(vip, bus):
    vip.write16(0, 0x20100, 0x1357)
    vip.write8(0, 0x00010, 0x42)
    vip.write16(0, 0x5F866, 0x00F0)
    vip.set_register(VIPRegister.BRTA, 7)
    vip.update(3 * COLUMN_CLOCKS)
    mem = StateMem()
    assert vip.state_action(mem, 0) is True
    mem.seek(0)
    other = VIP(RecordingBus())
    assert other.state_action(mem, 1) is True
    assert other.read16(0, 0x20100) == 0x1357
    assert other.read8(0, 0x00010) == 0x42
    assert other.get_register(VIPRegister.GPLT3) == vip.get_register(VIPRegister.GPLT3)
    assert other.gplt_cache[3] == vip.gplt_cache[3]
    assert other.column == vip.column
    assert other.video.brightness == vip.video.brightness


def test_load_missing_section_raises(vip):
    with pytest.raises(StateError):
        vip.state_action(StateMem(), 1)