"""The sound unit: five wave channels and one noise channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .bits import sign_extend
from .savestate import StateMem, array_field, int_field, state_action

CHANNELS = 6
WAVE_TABLES = 5
WAVE_LENGTH = 0x20

_EFFECTS_PERIOD = 4800
_LATCHER_PERIOD = 120
_TAP_LUT = (15 - 1, 11 - 1, 14 - 1, 5 - 1, 9 - 1, 7 - 1, 10 - 1, 12 - 1)


class DeltaSink(Protocol):
    """Receives output level changes at timestamps."""

    def offset(self, timestamp: int, delta: int) -> None:
        """Add ``delta`` to the output level from ``timestamp`` on."""


@dataclass
class DeltaRecorder:
    """A sink that keeps every non-zero level change."""

    deltas: list[tuple[int, int]] = field(default_factory=list)

    def offset(self, timestamp: int, delta: int) -> None:
        """Record a level change."""
        if delta:
            self.deltas.append((timestamp, delta))

    @property
    def level(self) -> int:
        """The output level after all recorded changes."""
        return sum(delta for _, delta in self.deltas)


class VSU:
    """Sound generator driving a left and a right delta sink."""

    def __init__(self, left: DeltaSink, right: DeltaSink) -> None:
        self.left = left
        self.right = right
        self.last_output = [[0, 0] for _ in range(CHANNELS)]
        self.power()

    def power(self) -> None:
        """Put the sound unit in its power-on state."""
        self.sweep_control = 0
        self.sweep_mod_counter = 0
        self.sweep_mod_clock_divider = 1
        self.intl_control = [0] * CHANNELS
        self.left_level = [0] * CHANNELS
        self.right_level = [0] * CHANNELS
        self.frequency = [0] * CHANNELS
        self.env_control = [0] * CHANNELS
        self.ram_address = [0] * CHANNELS
        self.eff_freq = [0] * CHANNELS
        self.envelope = [0] * CHANNELS
        self.wave_pos = [0] * CHANNELS
        self.freq_counter = [0] * CHANNELS
        self.interval_counter = [0] * CHANNELS
        self.envelope_counter = [0] * CHANNELS
        self.effects_clock_divider = [_EFFECTS_PERIOD] * CHANNELS
        self.interval_clock_divider = [4] * CHANNELS
        self.envelope_clock_divider = [4] * CHANNELS
        self.latcher_clock_divider = [_LATCHER_PERIOD] * CHANNELS
        self.mod_wave_pos = 0
        self.noise_latcher_clock_divider = _LATCHER_PERIOD
        self.noise_latcher = 0
        self.lfsr = 0
        self.wave_data = bytearray(WAVE_TABLES * WAVE_LENGTH)
        self.mod_data = bytearray(WAVE_LENGTH)
        self.last_ts = 0

    def _key_on(self, ch: int, value: int) -> None:
        self.eff_freq[ch] = self.frequency[ch]
        period = 2048 - self.eff_freq[ch]
        self.freq_counter[ch] = 10 * period if ch == 5 else period
        self.interval_counter[ch] = (value & 0x1F) + 1
        self.envelope_counter[ch] = (self.env_control[ch] & 0x7) + 1
        if ch == 4:
            self.sweep_mod_counter = (self.sweep_control >> 4) & 7
            self.sweep_mod_clock_divider = 8 if self.sweep_control & 0x80 else 1
            self.mod_wave_pos = 0
        self.wave_pos[ch] = 0
        if ch == 5:
            self.lfsr = 1
        self.effects_clock_divider[ch] = _EFFECTS_PERIOD
        self.interval_clock_divider[ch] = 4
        self.envelope_clock_divider[ch] = 4

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write a byte to wave memory or a channel register."""
        if address & 0x3:
            return
        address &= 0x7FF
        value &= 0xFF
        self.update(timestamp)

        if address < 0x280:
            self.wave_data[(address >> 7) * WAVE_LENGTH + ((address >> 2) & 0x1F)] = value & 0x3F
        elif address < 0x400:
            self.mod_data[(address >> 2) & 0x1F] = value
        elif address < 0x600:
            ch = (address >> 6) & 0xF
            if ch > 5:
                if address == 0x580 and value & 1:
                    self.intl_control = [c & ~0x80 & 0xFF for c in self.intl_control]
                return
            reg = (address >> 2) & 0xF
            if reg == 0x0:
                self.intl_control[ch] = value & ~0x40 & 0xFF
                if value & 0x80:
                    self._key_on(ch, value)
            elif reg == 0x1:
                self.left_level[ch] = (value >> 4) & 0xF
                self.right_level[ch] = value & 0xF
            elif reg == 0x2:
                self.frequency[ch] = (self.frequency[ch] & 0xFF00) | value
                self.eff_freq[ch] = (self.eff_freq[ch] & 0xFF00) | value
            elif reg == 0x3:
                self.frequency[ch] = (self.frequency[ch] & 0x00FF) | ((value & 0x7) << 8)
                self.eff_freq[ch] = (self.eff_freq[ch] & 0x00FF) | ((value & 0x7) << 8)
            elif reg == 0x4:
                self.env_control[ch] = (self.env_control[ch] & 0xFF00) | value
                self.envelope[ch] = (value >> 4) & 0xF
            elif reg == 0x5:
                self.env_control[ch] &= 0x00FF
                if ch == 4:
                    self.env_control[ch] |= (value & 0x73) << 8
                elif ch == 5:
                    self.env_control[ch] |= (value & 0x73) << 8
                    self.lfsr = 1
                else:
                    self.env_control[ch] |= (value & 0x03) << 8
            elif reg == 0x6:
                self.ram_address[ch] = value & 0xF
            elif reg == 0x7:
                if ch == 4:
                    self.sweep_control = value

    def _current_output(self, ch: int) -> tuple[int, int]:
        if not self.intl_control[ch] & 0x80:
            return 0, 0
        if ch == 5:
            sample = self.noise_latcher
        elif self.ram_address[ch] > 4:
            sample = 0
        else:
            sample = self.wave_data[self.ram_address[ch] * WAVE_LENGTH + self.wave_pos[ch]]

        def scale(level: int) -> int:
            volume = self.envelope[ch] * level
            return (volume >> 3) + 1 if volume else 0

        return sample * scale(self.left_level[ch]), sample * scale(self.right_level[ch])

    def _emit(self, ch: int, timestamp: int) -> None:
        left, right = self._current_output(ch)
        last = self.last_output[ch]
        self.left.offset(timestamp, left - last[0])
        self.right.offset(timestamp, right - last[1])
        last[0] = left
        last[1] = right

    def _clock_envelope(self, ch: int) -> None:
        ctrl = self.env_control[ch]
        if not ctrl & 0x0100:
            return
        self.envelope_counter[ch] -= 1
        if self.envelope_counter[ch]:
            return
        self.envelope_counter[ch] = (ctrl & 0x7) + 1
        if ctrl & 0x0008:
            if self.envelope[ch] < 0xF or ctrl & 0x200:
                self.envelope[ch] = (self.envelope[ch] + 1) & 0xF
        elif self.envelope[ch] > 0 or ctrl & 0x200:
            self.envelope[ch] = (self.envelope[ch] - 1) & 0xF

    def _clock_sweep_mod(self) -> None:
        ch = 4
        self.sweep_mod_clock_divider -= 1
        while self.sweep_mod_clock_divider <= 0:
            self.sweep_mod_clock_divider += 8 if self.sweep_control & 0x80 else 1
            interval = (self.sweep_control >> 4) & 0x7
            if not (interval and self.env_control[ch] & 0x4000):
                continue
            if self.sweep_mod_counter:
                self.sweep_mod_counter -= 1
            if self.sweep_mod_counter:
                continue
            self.sweep_mod_counter = interval
            if self.env_control[ch] & 0x1000:
                if self.mod_wave_pos < 32 or self.env_control[ch] & 0x2000:
                    self.mod_wave_pos &= 0x1F
                    step = sign_extend(self.mod_data[self.mod_wave_pos], 8)
                    self.eff_freq[ch] = (self.frequency[ch] + step) & 0x7FF
                    self.mod_wave_pos += 1
            else:
                delta = self.eff_freq[ch] >> (self.sweep_control & 0x7)
                new_freq = self.eff_freq[ch] + (delta if self.sweep_control & 0x8 else -delta)
                if new_freq < 0:
                    self.eff_freq[ch] = 0
                elif new_freq > 0x7FF:
                    self.intl_control[ch] &= ~0x80 & 0xFF
                else:
                    self.eff_freq[ch] = new_freq

    def _clock_effects(self, ch: int) -> None:
        self.interval_clock_divider[ch] -= 1
        while self.interval_clock_divider[ch] <= 0:
            self.interval_clock_divider[ch] += 4
            if self.intl_control[ch] & 0x20:
                self.interval_counter[ch] -= 1
                if not self.interval_counter[ch]:
                    self.intl_control[ch] &= ~0x80 & 0xFF
            self.envelope_clock_divider[ch] -= 1
            while self.envelope_clock_divider[ch] <= 0:
                self.envelope_clock_divider[ch] += 4
                self._clock_envelope(ch)
        if ch == 4:
            self._clock_sweep_mod()

    def update(self, timestamp: int) -> None:
        """Run every channel up to ``timestamp``, sending level changes to the sinks."""
        for ch in range(CHANNELS):
            clocks = timestamp - self.last_ts
            running = self.last_ts
            self._emit(ch, running)
            if not self.intl_control[ch] & 0x80:
                continue
            while clocks > 0:
                chunk = min(clocks, self.effects_clock_divider[ch])
                if ch == 5:
                    chunk = min(chunk, self.noise_latcher_clock_divider)
                elif self.eff_freq[ch] >= 2040:
                    chunk = min(chunk, self.latcher_clock_divider[ch])
                else:
                    chunk = min(chunk, self.freq_counter[ch])

                self.freq_counter[ch] -= chunk
                while self.freq_counter[ch] <= 0:
                    if ch == 5:
                        tap = _TAP_LUT[(self.env_control[5] >> 12) & 0x7]
                        feedback = ((self.lfsr >> 7) & 1) ^ ((self.lfsr >> tap) & 1) ^ 1
                        self.lfsr = ((self.lfsr << 1) & 0x7FFF) | feedback
                        self.freq_counter[ch] += 10 * (2048 - self.eff_freq[ch])
                    else:
                        self.freq_counter[ch] += 2048 - self.eff_freq[ch]
                        self.wave_pos[ch] = (self.wave_pos[ch] + 1) & 0x1F

                self.latcher_clock_divider[ch] -= chunk
                while self.latcher_clock_divider[ch] <= 0:
                    self.latcher_clock_divider[ch] += _LATCHER_PERIOD

                if ch == 5:
                    self.noise_latcher_clock_divider -= chunk
                    if not self.noise_latcher_clock_divider:
                        self.noise_latcher_clock_divider = _LATCHER_PERIOD
                        bit = self.lfsr & 1
                        self.noise_latcher = (bit << 6) - bit

                self.effects_clock_divider[ch] -= chunk
                while self.effects_clock_divider[ch] <= 0:
                    self.effects_clock_divider[ch] += _EFFECTS_PERIOD
                    self._clock_effects(ch)

                clocks -= chunk
                running += chunk
                self._emit(ch, running)
        self.last_ts = timestamp

    def end_frame(self, timestamp: int) -> None:
        """Run up to the end of the frame and rebase the timestamp."""
        self.update(timestamp)
        self.last_ts = 0

    def state_action(self, mem: StateMem, load: int) -> bool:
        """Save or load the sound unit's section of a savestate."""
        fields = [
            array_field(self, "intl_control", "IntlControl", 8),
            array_field(self, "left_level", "LeftLevel", 8),
            array_field(self, "right_level", "RightLevel", 8),
            array_field(self, "frequency", "Frequency", 16),
            array_field(self, "env_control", "EnvControl", 16),
            array_field(self, "ram_address", "RAMAddress", 8),
            int_field(self, "sweep_control", "SweepControl", 8),
            array_field(self, "wave_data", "WaveData", 8),
            array_field(self, "mod_data", "ModData", 8),
            array_field(self, "eff_freq", "EffFreq", 32, True),
            array_field(self, "envelope", "Envelope", 32, True),
            array_field(self, "wave_pos", "WavePos", 32, True),
            int_field(self, "mod_wave_pos", "ModWavePos", 32, True),
            array_field(self, "latcher_clock_divider", "LatcherClockDivider", 32, True),
            array_field(self, "freq_counter", "FreqCounter", 32, True),
            array_field(self, "interval_counter", "IntervalCounter", 32, True),
            array_field(self, "envelope_counter", "EnvelopeCounter", 32, True),
            int_field(self, "sweep_mod_counter", "SweepModCounter", 32, True),
            array_field(self, "effects_clock_divider", "EffectsClockDivider", 32, True),
            array_field(self, "interval_clock_divider", "IntervalClockDivider", 32, True),
            array_field(self, "envelope_clock_divider", "EnvelopeClockDivider", 32, True),
            int_field(self, "sweep_mod_clock_divider", "SweepModClockDivider", 32, True),
            int_field(self, "noise_latcher_clock_divider", "NoiseLatcherClockDivider", 32, True),
            int_field(self, "noise_latcher", "NoiseLatcher", 32),
            int_field(self, "lfsr", "lfsr", 32),
        ]
        return state_action(mem, load, fields, "VSU", optional=False)

    @staticmethod
    def _check_table(which: int) -> None:
        if not 0 <= which < WAVE_TABLES:
            raise IndexError(f"wave table {which} outside 0..{WAVE_TABLES - 1}")

    def peek_wave(self, which: int, address: int) -> int:
        """Read a sample of a wave table."""
        self._check_table(which)
        return self.wave_data[which * WAVE_LENGTH + (address & 0x1F)]

    def poke_wave(self, which: int, address: int, value: int) -> None:
        """Write a 6-bit sample into a wave table."""
        self._check_table(which)
        self.wave_data[which * WAVE_LENGTH + (address & 0x1F)] = value & 0x3F

    def peek_mod_wave(self, address: int) -> int:
        """Read an entry of the modulation table."""
        return self.mod_data[address & 0x1F]

    def poke_mod_wave(self, address: int, value: int) -> None:
        """Write an entry of the modulation table."""
        self.mod_data[address & 0x1F] = value & 0xFF