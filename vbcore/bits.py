"""Bit helpers: sign extension, byte swapping and a 256-bit flag set."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

_MASK16 = 0xFFFF
_MASK32 = 0xFFFFFFFF
_RETRO_BITS_WORDS = 8
_RETRO_BITS_TOTAL = _RETRO_BITS_WORDS * 32


def sign_extend(value: int, bits: int) -> int:
    """Interpret the low ``bits`` bits of ``value`` as a two's-complement number."""
    if not 1 <= bits <= 32:
        raise ValueError(f"bit width must be between 1 and 32, got {bits}")
    value &= (1 << bits) - 1
    sign = 1 << (bits - 1)
    return (value ^ sign) - sign


def sign_x_to_s32(bits: int, value: int) -> int:
    """Sign-extend a ``bits``-wide value to a signed 32-bit integer."""
    return sign_extend(value, bits)


def swap16(value: int) -> int:
    """Reverse the byte order of a 16-bit value."""
    value &= _MASK16
    return ((value << 8) | (value >> 8)) & _MASK16


def bits_or(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """Combine two equally long word arrays with bitwise OR."""
    return [(x | y) & _MASK32 for x, y in zip(a, b, strict=True)]


def bits_clear(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """Clear in ``a`` every bit that is set in ``b``."""
    return [(x & ~y) & _MASK32 for x, y in zip(a, b, strict=True)]


def bits_any_set(words: Iterable[int]) -> bool:
    """Tell whether any word holds a set bit."""
    return any(word != 0 for word in words)


@dataclass
class RetroBits:
    """A set of 256 boolean flags stored as eight 32-bit words."""

    data: list[int] = field(default_factory=lambda: [0] * _RETRO_BITS_WORDS)

    def __post_init__(self) -> None:
        if len(self.data) != _RETRO_BITS_WORDS:
            raise ValueError(f"RetroBits needs {_RETRO_BITS_WORDS} words, got {len(self.data)}")
        self.data = [word & _MASK32 for word in self.data]

    @staticmethod
    def _locate(bit: int) -> tuple[int, int]:
        if not 0 <= bit < _RETRO_BITS_TOTAL:
            raise IndexError(f"bit {bit} outside 0..{_RETRO_BITS_TOTAL - 1}")
        return bit >> 5, 1 << (bit & 31)

    def set(self, bit: int) -> None:
        """Set one flag."""
        index, mask = self._locate(bit)
        self.data[index] |= mask

    def clear(self, bit: int) -> None:
        """Clear one flag."""
        index, mask = self._locate(bit)
        self.data[index] &= ~mask & _MASK32

    def get(self, bit: int) -> bool:
        """Return whether one flag is set."""
        index, mask = self._locate(bit)
        return bool(self.data[index] & mask)

    def clear_all(self) -> None:
        """Clear every flag."""
        self.data = [0] * _RETRO_BITS_WORDS