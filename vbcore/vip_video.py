"""Colour tables and the copy of frame-buffer columns onto an output surface."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Callable

from .vb import Mode3D

COLUMNS = 384
"""Columns in one eye's frame buffer."""

ROWS = 224
"""Visible rows in one eye's frame buffer."""

COLUMN_STRIDE = 64
"""Bytes per column in a frame buffer."""

FRAMEBUFFER_SIZE = 0x6000
"""Bytes in one eye's frame buffer."""

_COLUMN_BYTES = ROWS // 4
_MAX_TIME = 128
_GAMMA = 2.2


def make_color(r: int, g: int, b: int) -> int:
    """Pack 8-bit red, green and blue into a 32-bit pixel."""
    return ((r & 0xFF) << 16) | ((g & 0xFF) << 8) | (b & 0xFF)


class Surface:
    """A 32-bit pixel surface stored row by row."""

    def __init__(self, width: int = 768, height: int = 448) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"surface size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.pitch = width
        self.pixels = [0] * (width * height)

    def pixel(self, x: int, y: int) -> int:
        """The pixel at column ``x`` of row ``y``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        return self.pixels[y * self.pitch + x]

    def clear(self) -> None:
        """Set every pixel to zero."""
        self.pixels = [0] * (self.width * self.height)


def hli_table(prescale: int) -> list[int]:
    """For every frame-buffer byte, its four 2-bit pixels each repeated ``prescale`` times."""
    table = []
    for byte in range(256):
        value = 0
        shift = 0
        for i in range(4):
            pixel = (byte >> (i * 2)) & 0x3
            for _ in range(prescale):
                value |= pixel << shift
                shift += 2
        table.append(value & 0xFFFFFFFF)
    return table


def brightness_levels(brta: int, brtb: int, brtc: int, rest: int, repeat: int) -> list[int]:
    """The 0..255 intensity of each of the four pixel values for the given LED timings."""
    cumulative = (brta + 1 + brtb + 1 + brtc + 1 + rest + 1) + 1
    levels = [0, 0, 0, 0]
    for i in range(repeat + 1):
        base = i * cumulative
        if base >= _MAX_TIME:
            break
        t1 = max(min(base + brta, _MAX_TIME) - base, 0)
        t2 = max(min(base + brta + 1 + brtb, _MAX_TIME) - (base + brta + 1), 0)
        t3 = max(min(base + brta + brtb + brtc + 1, _MAX_TIME) - (base + 1), 0)
        levels[1] += t1
        levels[2] += t2
        levels[3] += t3
    return [255 * level // _MAX_TIME for level in levels]


def _two_bit_pixels(source: Sequence[int]) -> Iterator[int]:
    for byte in source:
        for _ in range(4):
            yield byte & 0x3
            byte >>= 2


_Copier = Callable[[Surface, Sequence[int], int, int, bool], None]


class VideoOutput:
    """Turns frame-buffer columns into pixels for the selected 3D mode."""

    def __init__(self) -> None:
        self.mode = int(Mode3D.ANAGLYPH)
        self.reverse = 0
        self.prescale = 1
        self.sbs_separation = 0
        self.anaglyph_colors = [0xFF0000, 0x0000FF]
        self.default_color = 0xFFFFFF
        self.settings_dirty = True
        self.non_rgb = False
        self.hli_lut = hli_table(1)
        self.color_lut = [[0] * 256 for _ in range(2)]
        self._color_nogc: list[list[tuple[float, float, float]]] = [
            [(0.0, 0.0, 0.0)] * 256 for _ in range(2)
        ]
        self._slow_cache: dict[tuple[int, int], int] = {}
        self._ana_slow_buf = [[0] * ROWS for _ in range(COLUMNS)]
        self._brightness_params = (0, 0, 0, 0, 0)
        self.brightness = [0, 0, 0, 0]
        self.bright_clut = [[0] * 4 for _ in range(2)]
        self._copier: _Copier = self._copy_anaglyph
        self.recalc_tables(False)

    def set_3d_mode(self, mode: int, reverse: bool, prescale: int, sbs_separation: int) -> None:
        """Choose the 3D output mode and its scaling and separation."""
        if prescale < 1:
            raise ValueError(f"prescale must be at least 1, got {prescale}")
        self.mode = int(mode)
        self.reverse = 1 if reverse else 0
        self.prescale = prescale
        self.sbs_separation = sbs_separation
        self.settings_dirty = True
        self.hli_lut = hli_table(prescale)

    def set_default_color(self, color: int) -> None:
        """Set the 0xRRGGBB colour used outside anaglyph mode."""
        self.default_color = color & 0xFFFFFF
        self.settings_dirty = True

    def set_anaglyph_colors(self, lcolor: int, rcolor: int) -> None:
        """Set the 0xRRGGBB colours of the left and right eye in anaglyph mode."""
        self.anaglyph_colors = [lcolor & 0xFFFFFF, rcolor & 0xFFFFFF]
        self.settings_dirty = True

    def _make_color_lut(self) -> None:
        for lr in range(2):
            if self.mode == Mode3D.ANAGLYPH:
                tint = self.anaglyph_colors[lr ^ self.reverse]
            else:
                tint = self.default_color
            scale = ((tint >> 16) & 0xFF, (tint >> 8) & 0xFF, tint & 0xFF)
            for i in range(256):
                prime = (i / 255) ** (1.0 / _GAMMA)
                r, g, b = (prime * c / 255 for c in scale)
                self._color_nogc[lr][i] = (r**_GAMMA, g**_GAMMA, b**_GAMMA)
                self.color_lut[lr][i] = make_color(int(r * 255), int(g * 255), int(b * 255))
        self._slow_cache.clear()

    def _ana_slow_color(self, left: int, right: int) -> int:
        key = (left, right)
        cached = self._slow_cache.get(key)
        if cached is None:
            lc = self._color_nogc[0][left]
            rc = self._color_nogc[1][right]
            r, g, b = (min(1.0, a + c) ** (1.0 / _GAMMA) for a, c in zip(lc, rc))
            cached = make_color(int(r * 255), int(g * 255), int(b * 255))
            self._slow_cache[key] = cached
        return cached

    def recalc_tables(self, non_rgb: bool) -> None:
        """Rebuild the colour tables and pick the column copier for the mode."""
        self.non_rgb = bool(non_rgb)
        self._make_color_lut()
        copiers: dict[int, _Copier] = {
            Mode3D.CSCOPE: self._copy_cscope,
            Mode3D.SIDEBYSIDE: self._copy_side_by_side,
            Mode3D.VLI: self._copy_vli,
            Mode3D.HLI: self._copy_hli,
        }
        copier = copiers.get(self.mode)
        if copier is None:
            left, right = self.anaglyph_colors
            shared = any(left & mask and right & mask for mask in (0xFF, 0xFF00, 0xFF0000))
            copier = self._copy_anaglyph_slow if shared or self.non_rgb else self._copy_anaglyph
        self._copier = copier
        self.recalc_brightness(*self._brightness_params)

    def recalc_brightness(self, brta: int, brtb: int, brtc: int, rest: int, repeat: int) -> None:
        """Recompute the pixel intensities and their colours for new LED timings."""
        self._brightness_params = (brta, brtb, brtc, rest, repeat)
        self.brightness = brightness_levels(brta, brtb, brtc, rest, repeat)
        self.bright_clut = [[self.color_lut[lr][b] for b in self.brightness] for lr in range(2)]

    def display_size(self) -> tuple[int, int]:
        """Width and height of the picture in the current mode."""
        if self.mode == Mode3D.VLI:
            return 768 * self.prescale, ROWS
        if self.mode == Mode3D.HLI:
            return COLUMNS, 448 * self.prescale
        if self.mode == Mode3D.CSCOPE:
            return 512, 384
        if self.mode == Mode3D.SIDEBYSIDE:
            return 768 + self.sbs_separation, ROWS
        return COLUMNS, ROWS

    def copy_column(
        self, surface: Surface, fb: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        """Draw one column of eye ``lr``'s frame buffer ``fb`` onto ``surface``."""
        if not 0 <= column < COLUMNS:
            raise IndexError(f"column {column} outside 0..{COLUMNS - 1}")
        if lr not in (0, 1):
            raise ValueError(f"eye must be 0 or 1, got {lr}")
        start = COLUMN_STRIDE * column
        source = fb[start:start + _COLUMN_BYTES]
        if len(source) != _COLUMN_BYTES:
            raise ValueError("frame buffer too short for this column")
        self._copier(surface, source, column, lr, bool(active))

    def _copy_anaglyph(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        pixels = surface.pixels
        pitch = surface.pitch
        clut = self.bright_clut[lr]
        for y, value in enumerate(_two_bit_pixels(source)):
            index = column + y * pitch
            if lr:
                if active:
                    pixels[index] |= clut[value]
            else:
                pixels[index] = clut[value] if active else 0

    def _copy_anaglyph_slow(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        left_buf = self._ana_slow_buf[column]
        levels = self.brightness
        if not lr:
            left_buf[:] = [levels[v] if active else 0 for v in _two_bit_pixels(source)]
            return
        pixels = surface.pixels
        pitch = surface.pitch
        for y, value in enumerate(_two_bit_pixels(source)):
            right = levels[value] if active else 0
            pixels[column + y * pitch] = self._ana_slow_color(left_buf[y], right)

    def _copy_cscope(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        pixels = surface.pixels
        pitch = surface.pitch
        clut = self.bright_clut[lr]
        if lr ^ self.reverse:
            target, step = (512 - 16 - 1) + column * pitch, -1
        else:
            target, step = 16 + (COLUMNS - 1 - column) * pitch, 1
        for value in _two_bit_pixels(source):
            pixels[target] = clut[value] if active else 0
            target += step

    def _copy_side_by_side(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        pixels = surface.pixels
        pitch = surface.pitch
        clut = self.bright_clut[lr]
        target = column + ((COLUMNS + self.sbs_separation) if lr ^ self.reverse else 0)
        for value in _two_bit_pixels(source):
            pixels[target] = clut[value] if active else 0
            target += pitch

    def _copy_vli(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        pixels = surface.pixels
        pitch = surface.pitch
        clut = self.bright_clut[0]
        target = column * 2 * self.prescale + (lr ^ self.reverse)
        for value in _two_bit_pixels(source):
            color = clut[value] if active else 0
            for ps in range(self.prescale):
                pixels[target + ps * 2] = color
            target += pitch

    def _copy_hli(
        self, surface: Surface, source: Sequence[int], column: int, lr: int, active: bool
    ) -> None:
        pixels = surface.pixels
        pitch = surface.pitch
        clut = self.bright_clut[0]
        target = column + (lr ^ self.reverse) * pitch
        step = pitch * 2
        if self.prescale <= 4:
            for byte in source:
                bits = self.hli_lut[byte]
                for _ in range(4 * self.prescale):
                    pixels[target] = clut[bits & 3] if active else 0
                    target += step
                    bits >>= 2
        else:
            for value in _two_bit_pixels(source):
                color = clut[value] if active else 0
                for _ in range(self.prescale):
                    pixels[target] = color
                    target += step