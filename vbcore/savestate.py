"""Savestate container: named sections holding named little-endian fields."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Union

STATE_VERSION = 931
"""Version number written into every savestate header."""

HEADER_MAGIC = b"MDFNSVST"
LEGACY_HEADER_MAGIC = b"MEDNAFENSVESTATE"
HEADER_SIZE = 32
SECTION_NAME_SIZE = 32
MAX_FIELD_NAME = 255

_HEADER_VERSION_OFFSET = 16
_HEADER_SIZE_OFFSET = 20


class StateError(Exception):
    """A savestate could not be written or read."""


class StateFlag(IntFlag):
    """How the bytes of a field are laid out."""

    NONE = 0
    RLSB = 0x80000000
    RLSB32 = 0x40000000
    RLSB16 = 0x20000000
    RLSB64 = 0x10000000
    BOOL = 0x08000000


_ARRAY_FLAGS = {
    8: StateFlag.NONE,
    16: StateFlag.RLSB16,
    32: StateFlag.RLSB32,
    64: StateFlag.RLSB64,
}


class StateMem:
    """A growable in-memory byte stream with a read/write position."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)
        self.loc = 0

    def __len__(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        """Bytes left between the position and the end."""
        return len(self._data) - self.loc

    def read(self, n: int) -> bytes:
        """Read exactly ``n`` bytes; a short read raises and moves nothing."""
        if n < 0:
            raise ValueError(f"cannot read {n} bytes")
        end = self.loc + n
        if end > len(self._data):
            raise StateError(f"read of {n} bytes at {self.loc} runs past end {len(self._data)}")
        chunk = bytes(self._data[self.loc:end])
        self.loc = end
        return chunk

    def write(self, data: bytes) -> int:
        """Write ``data`` at the position, growing the stream as needed."""
        end = self.loc + len(data)
        if end > len(self._data):
            self._data.extend(bytes(end - len(self._data)))
        self._data[self.loc:end] = data
        self.loc = end
        return len(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the position.

        With ``SEEK_END`` the offset counts back from the end. A target past
        the end leaves the position at the end and raises StateError.
        """
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self.loc + offset
        elif whence == os.SEEK_END:
            target = len(self._data) - offset
        else:
            raise ValueError(f"unknown whence {whence}")
        if target < 0:
            raise StateError(f"seek to negative position {target}")
        if target > len(self._data):
            self.loc = len(self._data)
            raise StateError(f"seek to {target} past end {len(self._data)}")
        self.loc = target
        return target

    def read_u32le(self) -> int:
        """Read an unsigned little-endian 32-bit integer."""
        return int.from_bytes(self.read(4), "little")

    def write_u32le(self, value: int) -> int:
        """Write an unsigned little-endian 32-bit integer."""
        return self.write((value & 0xFFFFFFFF).to_bytes(4, "little"))

    def getvalue(self) -> bytes:
        """All bytes written so far."""
        return bytes(self._data)


@dataclass(frozen=True)
class StateField:
    """A named piece of state with its serialised size and accessors."""

    name: str
    size: int
    flags: StateFlag
    dump: Callable[[], bytes]
    load: Callable[[bytes], None]


FieldSpec = Union[StateField, Sequence["FieldSpec"]]


def _byte_width(width: int) -> int:
    if width not in _ARRAY_FLAGS:
        raise ValueError(f"field width must be 8, 16, 32 or 64 bits, got {width}")
    return width // 8


def int_field(obj: Any, attr: str, name: str, width: int = 32, signed: bool = False) -> StateField:
    """A field for an integer attribute of ``obj``."""
    nbytes = _byte_width(width)
    mask = (1 << width) - 1

    def dump() -> bytes:
        return (int(getattr(obj, attr)) & mask).to_bytes(nbytes, "little")

    def load(data: bytes) -> None:
        setattr(obj, attr, int.from_bytes(data, "little", signed=signed))

    return StateField(name, nbytes, StateFlag.RLSB, dump, load)


def array_field(obj: Any, attr: str, name: str, width: int = 8, signed: bool = False) -> StateField:
    """A field for a mutable sequence of integers held in an attribute of ``obj``."""
    nbytes = _byte_width(width)
    mask = (1 << width) - 1
    count = len(getattr(obj, attr))

    def dump() -> bytes:
        return b"".join((int(v) & mask).to_bytes(nbytes, "little") for v in getattr(obj, attr))

    def load(data: bytes) -> None:
        target = getattr(obj, attr)
        if nbytes == 1 and not signed:
            target[:] = data
        else:
            target[:] = [
                int.from_bytes(data[pos:pos + nbytes], "little", signed=signed)
                for pos in range(0, len(data), nbytes)
            ]

    return StateField(name, count * nbytes, _ARRAY_FLAGS[width], dump, load)


def bool_field(obj: Any, attr: str, name: str) -> StateField:
    """A field for a boolean attribute of ``obj``, stored as one byte."""

    def dump() -> bytes:
        return b"\x01" if getattr(obj, attr) else b"\x00"

    def load(data: bytes) -> None:
        setattr(obj, attr, bool(data[0]))

    return StateField(name, 1, StateFlag.BOOL, dump, load)


def _iter_fields(fields: Sequence[FieldSpec]) -> Iterator[StateField]:
    for item in fields:
        if isinstance(item, StateField):
            if item.size:
                yield item
        else:
            yield from _iter_fields(item)


def _encode_name(name: str) -> bytes:
    return name.encode("utf-8")


def _find_field(fields: Sequence[FieldSpec], name: bytes) -> StateField | None:
    return next((f for f in _iter_fields(fields) if _encode_name(f.name) == name), None)


def write_section(mem: StateMem, name: str, fields: Sequence[FieldSpec]) -> int:
    """Write one named section and return the size of its payload."""
    mem.write(_encode_name(name)[:SECTION_NAME_SIZE].ljust(SECTION_NAME_SIZE, b"\0"))
    mem.write_u32le(0)
    start = mem.loc
    for field_ in _iter_fields(fields):
        raw_name = _encode_name(field_.name)
        if len(raw_name) > MAX_FIELD_NAME:
            raise ValueError(f"field name longer than {MAX_FIELD_NAME} bytes: {field_.name!r}")
        data = field_.dump()
        if len(data) != field_.size:
            raise StateError(f"field {field_.name!r} produced {len(data)} bytes, expected {field_.size}")
        mem.write(bytes([len(raw_name)]) + raw_name)
        mem.write_u32le(field_.size)
        mem.write(data)
    end = mem.loc
    mem.seek(start - 4)
    mem.write_u32le(end - start)
    mem.seek(end)
    return end - start


def _read_chunk(mem: StateMem, fields: Sequence[FieldSpec], size: int) -> None:
    end = mem.loc + size
    while mem.loc < end:
        (name_len,) = mem.read(1)
        field_name = mem.read(name_len)
        recorded = mem.read_u32le()
        target = _find_field(fields, field_name)
        if target is not None and recorded == target.size:
            target.load(mem.read(recorded))
        else:
            mem.seek(recorded, os.SEEK_CUR)


def _section_name(raw: bytes) -> bytes:
    return raw.split(b"\0", 1)[0]


def read_section(
    mem: StateMem, name: str, fields: Sequence[FieldSpec], optional: bool = False
) -> bool:
    """Find a section by name from the position on and load its fields.

    The position is left where the search began. Returns whether the
    section was found; a missing section that is not optional raises.
    """
    wanted = _encode_name(name)[:SECTION_NAME_SIZE]
    total = 0
    found = False
    while mem.remaining >= SECTION_NAME_SIZE:
        section = _section_name(mem.read(SECTION_NAME_SIZE))
        size = mem.read_u32le()
        total += size + SECTION_NAME_SIZE + 4
        if section == wanted:
            _read_chunk(mem, fields, size)
            found = True
            break
        mem.seek(size, os.SEEK_CUR)
    mem.seek(-total, os.SEEK_CUR)
    if not found and not optional:
        raise StateError(f"section {name!r} not found")
    return found


def state_action(
    mem: StateMem, load: int, fields: Sequence[FieldSpec], name: str, optional: bool = False
) -> bool:
    """Load the section when ``load`` is true, otherwise save it.

    Returns whether a section was loaded or written.
    """
    if load:
        return read_section(mem, name, fields, optional)
    if not write_section(mem, name, fields):
        raise StateError(f"section {name!r} is empty")
    return True


Action = Callable[[StateMem, int], Any]


def save_state(mem: StateMem, action: Action) -> None:
    """Write a header, let ``action`` save every section, then record the size."""
    header = bytearray(HEADER_SIZE)
    header[: len(HEADER_MAGIC)] = HEADER_MAGIC
    header[_HEADER_VERSION_OFFSET:_HEADER_VERSION_OFFSET + 4] = STATE_VERSION.to_bytes(4, "little")
    mem.write(bytes(header))
    action(mem, 0)
    size = mem.loc
    mem.seek(_HEADER_SIZE_OFFSET)
    mem.write_u32le(size)
    mem.seek(size)


def load_state(mem: StateMem, action: Action) -> Any:
    """Check the header and let ``action`` load the sections with the stored version."""
    header = mem.read(HEADER_SIZE)
    if header[:16] != LEGACY_HEADER_MAGIC and header[:8] != HEADER_MAGIC:
        raise StateError("not a savestate: bad header magic")
    version = int.from_bytes(header[_HEADER_VERSION_OFFSET:_HEADER_VERSION_OFFSET + 4], "little")
    return action(mem, version)