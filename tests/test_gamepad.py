import pytest

from vbcore.gamepad import BIT_CLOCKS, PAD_BITS, Gamepad
from vbcore.savestate import StateError, StateMem
from vbcore.vb import EVENT_NONONO, Event, IrqSource, RecordingBus


def make_pad(buttons=(0x5A, 0x03), extra=(1,), hack=True):
    bus = RecordingBus()
    pad = Gamepad(bus)
    pad.power()
    pad.set_instant_read_hack(hack)
    pad.set_input(0, bytearray(buttons))
    pad.set_input(1, bytearray(extra))
    pad.frame()
    return pad, bus


def test_set_input_rejects_bad_port():
    pad = Gamepad(RecordingBus())
    with pytest.raises(ValueError):
        pad.set_input(2, bytearray(2))


def test_frame_without_input_raises():
    pad = Gamepad(RecordingBus())
    with pytest.raises(RuntimeError):
        pad.frame()


def test_power_lowers_irq():
    pad, bus = make_pad()
    assert bus.irq_level(IrqSource.INPUT) is False
    assert ("irq", IrqSource.INPUT, False) in bus.history


def test_control_register_fixed_bits():
    pad, _ = make_pad()
    assert pad.read(0, 0x28) & 0x4C == 0x4C


def test_hardware_read_matches_instant_read():
    fast, _ = make_pad(hack=True)
    lo = fast.read(0, 0x10)
    hi = fast.read(0, 0x14)
    slow, bus = make_pad(hack=False)
    assert slow.read(0, 0x10) == 0
    slow.write(0, 0x28, 0x04)
    end = BIT_CLOCKS * PAD_BITS
    assert slow.read(end, 0x10) == lo
    assert slow.read(end, 0x14) == hi
    assert bus.irq_level(IrqSource.INPUT) is True
    assert slow.int_pending is True


def test_instant_read_high_byte_is_pad_data_high():
    pad, _ = make_pad()
    assert pad.read(0, 0x14) == pad.pad_data >> 8
    assert pad.read(0, 0x10) == pad.pad_data & 0xFF


def test_status_bit_while_shifting():
    pad, _ = make_pad(hack=False)
    pad.write(0, 0x28, 0x04)
    assert pad.read(10, 0x28) & 0x02 == 0x02
    assert pad.read(BIT_CLOCKS * PAD_BITS, 0x28) & 0x02 == 0


def test_write_schedules_event():
    pad, bus = make_pad(hack=False)
    pad.write(100, 0x28, 0x04)
    assert bus.events[Event.INPUT] == 100 + BIT_CLOCKS
    assert pad.update(100 + 40) == 100 + BIT_CLOCKS


def test_abort_stops_shift():
    pad, bus = make_pad(hack=False)
    pad.write(0, 0x28, 0x04)
    pad.write(10, 0x28, 0x01)
    assert pad.read_counter == 0
    assert pad.read_bit_pos == 0
    assert bus.events[Event.INPUT] == EVENT_NONONO


def test_interrupt_inhibit_blocks_irq():
    pad, bus = make_pad(hack=False)
    pad.write(0, 0x28, 0x84)
    pad.update(BIT_CLOCKS * PAD_BITS)
    assert pad.int_pending is False
    assert bus.irq_level(IrqSource.INPUT) is False


def test_inhibit_write_clears_pending_irq():
    pad, bus = make_pad(hack=False)
    pad.write(0, 0x28, 0x04)
    pad.update(BIT_CLOCKS * PAD_BITS)
    assert bus.irq_level(IrqSource.INPUT) is True
    pad.write(BIT_CLOCKS * PAD_BITS, 0x28, 0x80)
    assert bus.irq_level(IrqSource.INPUT) is False


def test_no_latch_while_abort_disabled_bit_set():
    pad, _ = make_pad(hack=False)
    pad.write(0, 0x28, 0x01)
    pad.write(10, 0x28, 0x04)
    assert pad.read_counter == 0


def test_reset_ts():
    pad, _ = make_pad()
    pad.update(500)
    pad.reset_ts()
    assert pad.last_ts == 0


def test_state_round_trip():
    pad, _ = make_pad(hack=False)
    pad.write(0, 0x28, 0x04)
    pad.update(BIT_CLOCKS * 3 + 10)
    mem = StateMem()
    assert pad.state_action(mem, 0) is True
    other, _ = make_pad(buttons=(0, 0), extra=(0,))
    mem.seek(0)
    assert other.state_action(mem, 1) is True
    for attr in ("pad_data", "pad_latched", "scr", "sdr", "read_bit_pos", "read_counter", "int_pending"):
        assert getattr(other, attr) == getattr(pad, attr)


def test_load_missing_section_raises():
    pad, _ = make_pad()
    with pytest.raises(StateError):
        pad.state_action(StateMem(), 1)